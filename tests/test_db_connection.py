# tests/test_db_connection.py
from sqlalchemy import inspect, text

from app.db.base import Base, init_db
from app.db.models.category import Category


def test_database_connection(db_engine, db_session):
    """Test that we can connect to the database."""
    # Try to execute a simple query
    result = db_session.execute(text("SELECT 1")).scalar()
    assert result == 1

    # Insert a row
    db_session.add(Category(name="test", children=[{"name": "nested"}]))
    db_session.commit()

    # Query the table
    result = db_session.query(Category).filter_by(name="test").first()
    assert result is not None
    assert result.name == "test"
    assert result.children[0].name == "nested"


def test_init_db_creates_tables(db_engine):
    Base.metadata.drop_all(db_engine)

    init_db(bind=db_engine)

    assert "categories" in inspect(db_engine).get_table_names()
