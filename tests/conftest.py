# tests/conftest.py
import pytest
import os
import sys
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Test settings must be in place before the app modules read them
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("LOG_LEVEL", "warning")

# Add project root to Python path
project_root = Path(__file__).parent.parent.absolute()
sys.path.insert(0, str(project_root))

from app.db.base import Base
import app.db.models  # noqa: F401
from app.services.category_service import CategoryService


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh in-memory database engine with all tables."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a test database session."""
    Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = Session()

    yield session

    session.close()


@pytest.fixture(scope="function")
def category_service(db_session):
    """Create a category service for testing."""
    return CategoryService(db_session)


@pytest.fixture(scope="function")
def test_category_data():
    """Sample nested category tree."""
    return {
        "name": "root",
        "description": "Top level",
        "children": [
            {"name": "a"},
            {"name": "b", "children": [{"name": "c", "color": "blue"}]},
        ],
    }


@pytest.fixture(scope="function")
def test_sync_data():
    """Sample sync payload keyed on create_uuid."""
    return {
        "name": "Chess",
        "create_uuid": "chess-uuid",
        "active": True,
        "children": [
            {
                "name": "Chess Openings",
                "create_uuid": "openings-uuid",
                "active": True,
                "children": [
                    {"name": "Sicilian", "create_uuid": "sicilian-uuid", "active": True}
                ],
            },
            {"name": "Endgames", "create_uuid": "endgames-uuid", "active": True},
        ],
    }
