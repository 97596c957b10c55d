# app/services/category_service.py
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
import uuid
import logging

from app.core.config import settings
from app.db.models.category import Category
from app.db.repositories.category_repository import CategoryRepository
from app.schemas.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryInDB,
    CategoryExportResponse,
    CategoryImportResponse,
    CategoryNode,
    CategorySearchResult,
    CurrentUser,
    ShallowChildrenResponse,
    SubcategoryEnsure,
    SubcategoryEnsureResponse,
)
from app.services.category_tree import build_children
from app.utils.category_helpers import (
    apply_node_update,
    build_breadcrumbs,
    filter_inactive_children,
    find_in_tree,
    flatten_descendants,
    link_parents,
    merge_category,
    shallow_children,
    utcnow,
)

logger = logging.getLogger(__name__)


class CategoryService:
    """Service for category-related business logic"""

    def __init__(self, db_session):
        self.category_repo = CategoryRepository(db_session)

    def get_category(self, category_id: UUID) -> Optional[CategoryInDB]:
        """Get category by ID"""
        category = self.category_repo.get_by_id(category_id)
        if not category:
            return None
        return CategoryInDB.model_validate(category)

    def list_categories(self, skip: int = 0, limit: int = 100) -> Tuple[List[CategoryInDB], int]:
        """List categories with pagination, along with the total count"""
        categories = self.category_repo.list(skip, limit)
        return [CategoryInDB.model_validate(category) for category in categories], self.category_repo.count()

    def create_category(self, category_data: CategoryCreate) -> CategoryInDB:
        """
        Create a new category.

        The nested children are typed when the record is first written; a
        node that fails validation fails the whole create. With ``parent_id``
        the category is added under that category, wherever it sits in a
        tree; an unknown parent falls back to a new root category.
        """
        data = category_data.model_dump()
        parent_id = data.pop("parent_id", None)
        user = data.get("created_by") or settings.SYSTEM_USER
        data["created_by"] = user
        data["modified_by"] = user

        if parent_id is not None:
            nested = self._create_under_parent(parent_id, data)
            if nested is not None:
                return nested
            logger.warning(f"Parent {parent_id} not found, creating '{data['name']}' as a root category")

        category = self.category_repo.create_from_dict(data)
        logger.info(f"Created category '{category.name}' with ID {category.id}")
        return CategoryInDB.model_validate(category)

    def update_category(self, category_id: UUID, category_data: CategoryUpdate) -> Optional[CategoryInDB]:
        """
        Update a root category, or a category nested anywhere in a tree.

        A root's stored tree is not re-expanded by the save hook; given
        children replace it. A nested category only takes non-structural
        fields, its id, parent, children and creation data are kept. Returns
        the root category holding the change.
        """
        values = category_data.model_dump(exclude_unset=True)
        user = values.pop("modified_by", None) or settings.SYSTEM_USER

        category = self.category_repo.get_by_id(category_id)
        if not category:
            return self._update_nested(category_id, values, user)

        if "children" in values:
            children = [child.model_dump() for child in category_data.children or []]
            values["children"] = build_children(Category.build_node, link_parents(children, category.id))
        values["modified_by"] = user

        category = self.category_repo.update(category_id, values)
        return CategoryInDB.model_validate(category)

    def delete_category(self, category_id: UUID) -> bool:
        """Delete a category by ID"""
        return self.category_repo.delete(category_id)

    def find_category(self, category_id: UUID) -> Optional[Dict[str, Any]]:
        """Find a category anywhere in the stored trees"""
        located = self._locate(category_id)
        if located is None:
            return None
        return find_in_tree([located[1]], category_id)

    def get_shallow_children(self, category_id: UUID) -> Optional[ShallowChildrenResponse]:
        """Immediate children of a category at any depth, for lazy tree navigation"""
        found = self.find_category(category_id)
        if found is None:
            return None
        return ShallowChildrenResponse(result=shallow_children(found), parent_name=found["name"])

    def ensure_subcategory(self, data: SubcategoryEnsure) -> Optional[SubcategoryEnsureResponse]:
        """
        Return the child of ``data.parent_id`` named ``data.name``, creating it
        when it does not exist yet.

        Returns None when the parent is unknown.
        """
        located = self._locate(data.parent_id)
        if located is None:
            return None

        root, tree = located
        parent = find_in_tree([tree], data.parent_id)
        existing = next((c for c in parent["children"] if c.get("name") == data.name), None)
        if existing is not None:
            return SubcategoryEnsureResponse(existed=True, category=existing)

        node = {
            "id": uuid.uuid4(),
            "create_uuid": str(uuid.uuid4()),
            "create_created_date": utcnow(),
            "created_at": utcnow(),
            "active": True,
            "children": [],
            **(data.model_extra or {}),
            "name": data.name,
            "parent": parent["id"],
        }
        node["children"] = link_parents(node["children"] or [], node["id"])
        parent["children"].append(node)

        saved = self._save_tree(root, tree["children"], settings.SYSTEM_USER)
        created = find_in_tree(saved.model_dump()["children"], node["id"])
        logger.info(f"Created subcategory '{data.name}' under {data.parent_id}")
        return SubcategoryEnsureResponse(existed=False, category=created)

    def import_categories(self, categories: List[Dict[str, Any]]) -> CategoryImportResponse:
        """
        Create root categories from exported or hand-written trees.

        Every tree is validated before anything is written, so one invalid
        node rejects the whole import.
        """
        prepared = []
        for data in categories:
            values = {key: value for key, value in data.items() if key not in _IMPORT_SKIP_KEYS}
            validated = CategoryCreate.model_validate(values)
            build_children(Category.build_node, values.get("children"))

            if values.get("id") is not None:
                values["id"] = UUID(str(values["id"]))
            values["create_uuid"] = values.get("create_uuid") or str(uuid.uuid4())
            values["create_created_date"] = validated.create_created_date or utcnow()
            values["created_by"] = values.get("created_by") or settings.SYSTEM_USER
            values["modified_by"] = values["created_by"]
            prepared.append(values)

        created = [CategoryInDB.model_validate(self.category_repo.create_from_dict(v)) for v in prepared]
        logger.info(f"Imported {len(created)} categories")
        return CategoryImportResponse(imported=len(created), categories=created)

    def export_categories(self) -> CategoryExportResponse:
        """Every root category with its full tree"""
        categories = [CategoryInDB.model_validate(c) for c in self.category_repo.list_filtered()]
        return CategoryExportResponse(count=len(categories), categories=categories)

    def is_admin(self, current_user: Optional[CurrentUser]) -> bool:
        if not current_user:
            return False
        return any(role.name == settings.ADMIN_ROLE_NAME for role in current_user.roles)

    def get_nested(
        self, current_user: Optional[CurrentUser] = None, get_all_categories: bool = False
    ) -> List[Dict[str, Any]]:
        """
        List root categories with their trees, as seen by ``current_user``.

        Administrators and ``get_all_categories`` requests see everything.
        Other users see their active lines of service, without inactive
        children at any depth.
        """
        if self.is_admin(current_user) or get_all_categories:
            categories = self.category_repo.list_filtered()
            return [CategoryInDB.model_validate(c).model_dump() for c in categories]

        if current_user and current_user.lines_of_service:
            ids = [line.id for line in current_user.lines_of_service]
            categories = self.category_repo.list_filtered(ids, active_only=True)
        else:
            categories = self.category_repo.list_filtered()

        return [
            filter_inactive_children(CategoryInDB.model_validate(c).model_dump())
            for c in categories
        ]

    def sync_create_categories(self, categories: List[Dict[str, Any]]) -> List[CategoryInDB]:
        """
        Upsert root categories keyed on ``create_uuid``.

        Matched roots are merged with the incoming tree, unmatched incoming
        roots are created, and stored roots missing from the payload are
        deactivated. Every merged tree is typed before the first write, so an
        invalid node fails the sync without storing anything. Returns every
        root category.
        """
        remaining = {c.id: c for c in self.category_repo.list_all()}
        updates = []
        creates = []

        for incoming in categories:
            create_uuid = incoming.get("create_uuid")
            match = None
            if create_uuid is not None:
                match = next(
                    (c for c in remaining.values() if c.create_uuid == create_uuid), None
                )

            if match is not None:
                existing = CategoryInDB.model_validate(match).model_dump()
                merged = merge_category(existing, incoming)
                merged["children"] = build_children(Category.build_node, merged["children"])
                updates.append((match, merged))
                remaining.pop(match.id)
            else:
                # The merged root keeps its generated ID so children can reference it
                merged = merge_category({"create_uuid": create_uuid, "children": []}, incoming)
                CategoryNode.model_validate(merged)
                merged["created_by"] = settings.SYSTEM_USER
                merged["modified_by"] = settings.SYSTEM_USER
                creates.append(merged)

        for match, merged in updates:
            self.category_repo.update(
                match.id,
                {
                    "name": merged["name"],
                    "active": merged["active"],
                    "create_created_date": merged.get("create_created_date"),
                    "children": merged["children"],
                    "modified_by": settings.SYSTEM_USER,
                },
            )
            logger.info(f"Synced existing category '{merged['name']}' ({match.id})")

        for merged in creates:
            created = self.category_repo.create_from_dict(
                {key: value for key, value in merged.items() if key in _SYNC_CREATE_KEYS}
            )
            logger.info(f"Synced new category '{created.name}' ({created.id})")

        for category in remaining.values():
            self.category_repo.update(category.id, {"active": False, "modified_by": settings.SYSTEM_USER})
            logger.info(f"Deactivated category '{category.name}' ({category.id}) missing from sync")

        return [CategoryInDB.model_validate(c) for c in self.category_repo.list_filtered()]

    def search_categories(self, text: str) -> List[CategorySearchResult]:
        """Find nested categories whose name contains ``text``, with breadcrumbs"""
        roots = [
            build_breadcrumbs(CategoryInDB.model_validate(c).model_dump())
            for c in self.category_repo.list_all()
        ]
        needle = text.lower()
        return [
            CategorySearchResult(**row)
            for row in flatten_descendants(roots)
            if row["name"] and needle in row["name"].lower()
        ]

    def _locate(self, category_id: UUID) -> Optional[Tuple[Category, Dict[str, Any]]]:
        """The root row whose tree holds ``category_id``, with that tree as plain data"""
        for root in self.category_repo.list_all():
            tree = CategoryInDB.model_validate(root).model_dump()
            if find_in_tree([tree], category_id) is not None:
                return root, tree
        return None

    def _save_tree(self, root: Category, children: List[Dict[str, Any]], user: str) -> CategoryInDB:
        """Type an edited tree and store it on its root"""
        typed = build_children(Category.build_node, children)
        category = self.category_repo.update(root.id, {"children": typed, "modified_by": user})
        return CategoryInDB.model_validate(category)

    def _create_under_parent(self, parent_id: UUID, data: Dict[str, Any]) -> Optional[CategoryInDB]:
        located = self._locate(parent_id)
        if located is None:
            return None

        root, tree = located
        parent = find_in_tree([tree], parent_id)
        node = dict(data)
        node["id"] = node.get("id") or uuid.uuid4()
        node["parent"] = parent["id"]
        node["created_at"] = utcnow()
        node["children"] = link_parents(node.get("children") or [], node["id"])
        parent["children"].append(node)

        saved = self._save_tree(root, tree["children"], data["modified_by"])
        created = find_in_tree(saved.model_dump()["children"], node["id"])
        logger.info(f"Created category '{node['name']}' under {parent_id} in root {root.id}")

        extras = {
            key: value
            for key, value in created.items()
            if key not in CategoryNode.model_fields and key not in CategoryInDB.model_fields
        }
        return CategoryInDB.model_validate({**created, "parent_id": created["parent"], "attributes": extras})

    def _update_nested(self, category_id: UUID, values: Dict[str, Any], user: str) -> Optional[CategoryInDB]:
        located = self._locate(category_id)
        if located is None:
            return None

        root, tree = located
        node = find_in_tree(tree["children"], category_id)
        values.pop("children", None)
        attributes = values.pop("attributes", None) or {}
        apply_node_update(node, {**values, **attributes})

        logger.info(f"Updating category {category_id} nested in root {root.id}")
        return self._save_tree(root, tree["children"], user)


_SYNC_CREATE_KEYS = {
    "id",
    "name",
    "description",
    "active",
    "create_uuid",
    "create_created_date",
    "children",
    "created_by",
    "modified_by",
}

# Read-only fields of an exported category
_IMPORT_SKIP_KEYS = {"created_at", "updated_at", "parent_id"}
