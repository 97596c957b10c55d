from app.db.repositories.base import BaseRepository
from app.db.repositories.category_repository import CategoryRepository

__all__ = [
    "BaseRepository",
    "CategoryRepository",
]
