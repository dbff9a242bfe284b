"""
Database configuration and session management.
"""
import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import settings

logger = logging.getLogger(__name__)

# Database connection will be initialized on first request
engine = None
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def get_engine():
    """Get database engine, initializing if necessary"""
    global engine
    if engine is None:
        engine = initialize_database(settings.database_url)
        SessionLocal.configure(bind=engine)
    return engine


def initialize_database(database_url: str):
    """Create the engine for ``database_url``."""
    logger.info(f"🗄️ Initializing database: {database_url[:50]}{'...' if len(database_url) > 50 else ''}")

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False}
        )

    # Pooled engine for PostgreSQL/MySQL
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before use
        pool_recycle=300
    )


# Create base class for models
Base = declarative_base()


def get_session():
    """Open a new session bound to the configured engine."""
    get_engine()
    return SessionLocal()


def get_db():
    """Dependency to get database session."""
    db = get_session()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """Create all database tables."""
    from . import models  # noqa: F401  register mappers

    Base.metadata.create_all(bind=bind or get_engine())
    logger.info("✅ Database tables ready")
