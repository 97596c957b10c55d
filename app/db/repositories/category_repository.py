# app/db/repositories/category_repository.py
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID
import uuid
from sqlalchemy.orm import Session
from app.db.models.category import Category
from app.db.repositories.base import BaseRepository
from app.services.category_tree import TreeExpansionHook
from app.utils.category_helpers import link_parents

# Columns a plain category mapping may set directly; other keys become attributes
CATEGORY_COLUMNS = {
    "id",
    "name",
    "description",
    "active",
    "create_uuid",
    "children",
    "attributes",
    "created_by",
    "modified_by",
    "create_created_date",
}


class CategoryRepository(BaseRepository[Category]):
    """Repository for CRUD operations on Category model"""

    model = Category

    def __init__(self, db_session: Session, tree_hook: Optional[TreeExpansionHook] = None):
        super().__init__(db_session)
        hook = tree_hook or TreeExpansionHook(Category, Category.build_node)
        self.tree_hook = hook.attach(db_session)

    def get_by_ids(self, category_ids: Iterable[UUID]) -> List[Category]:
        """Get categories whose ID is in ``category_ids``"""
        ids = list(category_ids)
        if not ids:
            return []
        return self.db_session.query(Category).filter(Category.id.in_(ids)).all()

    def get_by_create_uuid(self, create_uuid: str) -> Optional[Category]:
        """Get category by its external sync identity"""
        return (
            self.db_session.query(Category)
            .filter(Category.create_uuid == create_uuid)
            .first()
        )

    def list_filtered(
        self, category_ids: Optional[Iterable[UUID]] = None, active_only: bool = False
    ) -> List[Category]:
        """List root categories, optionally restricted to IDs and/or active ones"""
        query = self.db_session.query(Category)
        if category_ids is not None:
            query = query.filter(Category.id.in_(list(category_ids)))
        if active_only:
            query = query.filter(Category.active.is_(True))
        return query.order_by(Category.created_at, Category.name).all()

    def create_from_dict(self, data: Dict[str, Any]) -> Category:
        """
        Create a root category from a plain mapping.

        Nested children get ids and parent links but stay plain until the
        flush, where the tree hook types them. Keys that are not columns are
        stored as attributes.
        """
        values = {key: value for key, value in data.items() if key in CATEGORY_COLUMNS}
        extra = {key: value for key, value in data.items() if key not in CATEGORY_COLUMNS}
        if extra:
            values["attributes"] = {**(values.get("attributes") or {}), **extra}
        values["id"] = values.get("id") or uuid.uuid4()
        children = values.get("children")
        values["children"] = [] if children is None else link_parents(children, values["id"])

        return self.create(values)
