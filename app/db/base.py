from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy import create_engine
from app.core.config import settings


def _engine_options() -> dict:
    options = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
    # SQLite uses a single-connection pool that rejects sizing arguments
    if not settings.is_sqlite:
        options["pool_size"] = settings.DB_MIN_CONNECTIONS
        options["max_overflow"] = settings.DB_MAX_CONNECTIONS - settings.DB_MIN_CONNECTIONS
    return options


# Create SQLAlchemy engine
engine = create_engine(settings.DATABASE_URL, **_engine_options())

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create declarative base for models
Base = declarative_base()

def get_db_session():
    """
    Dependency for getting DB session.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables known to the declarative base."""
    # Import models so they register on Base.metadata
    import app.db.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
