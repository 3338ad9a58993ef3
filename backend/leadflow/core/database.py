"""
Database connection and session management.

Provides SQLAlchemy engine, session factory, and dependency injection
for database sessions in FastAPI endpoints.
"""

import logging
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from .config import settings


logger = logging.getLogger(__name__)


# =============================================================================
# SQLAlchemy Base
# =============================================================================

Base = declarative_base()


# =============================================================================
# Engine Configuration
# =============================================================================

def get_engine_url() -> str:
    """
    Get database URL from settings.

    Returns:
        Database connection URL string
    """
    return settings.database_url


def _engine_options(url: str) -> dict:
    """Pool options only apply to server databases; SQLite uses its own pool."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": settings.db_pool_recycle,
        "pool_timeout": settings.db_pool_timeout,
    }


engine = create_engine(
    get_engine_url(),
    echo=settings.debug,  # Log SQL queries in debug mode
    **_engine_options(get_engine_url()),
)


# =============================================================================
# Session Factory
# =============================================================================

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


# =============================================================================
# Event Listeners for Connection Management
# =============================================================================

if engine.dialect.name == "postgresql":

    @event.listens_for(engine, "connect")
    def set_connection_settings(dbapi_connection, connection_record):
        """
        Configure connection settings when a new connection is created.

        All workflow arithmetic is UTC; lock waits are bounded so a stuck
        writer surfaces as an error instead of hanging the request.
        """
        cursor = dbapi_connection.cursor()
        cursor.execute("SET timezone='UTC'")
        cursor.execute("SET statement_timeout = '30s'")
        cursor.execute("SET lock_timeout = '10s'")
        cursor.close()


# =============================================================================
# Dependency Injection
# =============================================================================

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database session injection.

    Creates a new session for each request and ensures proper cleanup.

    Yields:
        SQLAlchemy Session instance
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# Database Utilities
# =============================================================================

def init_db() -> None:
    """
    Initialize database tables.

    Creates all tables defined in models. Should only be used
    in development or for initial setup.
    """
    from .. import models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(bind=engine)


def check_db_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection check failed: {e}")
        return False
