# app/db/models/category.py
from sqlalchemy import Column, String, Text, Boolean, JSON, DateTime, Uuid, func
from app.db.base import Base
from app.db.types import CategoryTreeType
from app.schemas.category import CategoryNode
import uuid


class Category(Base):
    """
    Category model representing a root category and its nested tree.

    Nested categories live in the ``children`` JSON column as CategoryNode
    instances; only the root owns a row.
    """

    __tablename__ = "categories"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, index=True)
    description = Column(Text)
    active = Column(Boolean, nullable=False, default=True, index=True)
    create_uuid = Column(String, nullable=True, index=True)
    children = Column(CategoryTreeType, nullable=False, default=list)
    attributes = Column(JSON, nullable=False, default=dict)

    # Audit
    created_by = Column(String)
    modified_by = Column(String)
    create_created_date = Column(DateTime(timezone=True))

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @staticmethod
    def build_node(data) -> CategoryNode:
        """Typed-instance factory for nested categories; a node without an id gets a new one"""
        return CategoryNode.model_validate(data)

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
