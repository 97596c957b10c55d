# app/db/types.py
from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator
from pydantic_core import to_jsonable_python

from app.schemas.category import CategoryNode


class CategoryTreeType(TypeDecorator):
    """
    JSON list of nested categories.

    Typed nodes are serialized on write; rows are loaded back as CategoryNode
    instances.
    """

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return []
        return to_jsonable_python(list(value))

    def process_result_value(self, value, dialect):
        if not value:
            return []
        return [CategoryNode.model_validate(node) for node in value]
