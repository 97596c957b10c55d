# app/db/repositories/base.py
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from app.db.base import Base

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Generic data access for one SQLAlchemy model.

    Every write commits the session. When a write fails the session is rolled
    back and the original exception is re-raised.
    """

    model: Type[ModelT]

    def __init__(self, db_session: Session, model: Optional[Type[ModelT]] = None):
        self.db_session = db_session
        if model is not None:
            self.model = model

    def get_by_id(self, record_id: UUID) -> Optional[ModelT]:
        """Get a record by ID"""
        return self.db_session.query(self.model).filter(self.model.id == record_id).first()

    def list(self, skip: int = 0, limit: int = 100) -> List[ModelT]:
        """List records with pagination"""
        return self.db_session.query(self.model).offset(skip).limit(limit).all()

    def list_all(self) -> List[ModelT]:
        return self.db_session.query(self.model).all()

    def count(self) -> int:
        return self.db_session.query(self.model).count()

    def save(self, instance: ModelT) -> ModelT:
        """Add an instance to the session and commit"""
        self.db_session.add(instance)
        try:
            self.db_session.commit()
        except Exception:
            logger.exception(f"Failed to save {self.model.__name__}")
            self.db_session.rollback()
            raise

        self.db_session.refresh(instance)
        return instance

    def create(self, values: Dict[str, Any]) -> ModelT:
        """Create a new record from column values"""
        return self.save(self.model(**values))

    def update(self, record_id: UUID, values: Dict[str, Any]) -> Optional[ModelT]:
        """Update an existing record"""
        instance = self.get_by_id(record_id)

        if not instance:
            return None

        for key, value in values.items():
            setattr(instance, key, value)

        return self.save(instance)

    def delete(self, record_id: UUID) -> bool:
        """Delete a record by ID"""
        instance = self.get_by_id(record_id)

        if not instance:
            return False

        self.db_session.delete(instance)
        try:
            self.db_session.commit()
        except Exception:
            logger.exception(f"Failed to delete {self.model.__name__} {record_id}")
            self.db_session.rollback()
            raise

        return True
