"""
Database transaction management utilities.

Provides a context manager for safe database transactions
with automatic rollback on error.

Usage:
    with transaction(db):
        # Multiple database operations
        # All succeed or all roll back
        db.add(obj1)
        db.add(obj2)
        # Automatically commits on success, rolls back on error
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .exceptions import ConcurrentUpdateError


logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """
    Context manager for database transactions with automatic rollback.

    Ensures that all database operations within the context succeed together
    or all fail together. Automatically commits on success, rolls back on error.

    A flush that hits a row whose version moved underneath us (another
    session committed first) is reported as ConcurrentUpdateError so the
    caller can re-read and retry.

    Args:
        db: SQLAlchemy database session

    Yields:
        The same database session

    Raises:
        Any exception raised within the context
    """
    try:
        yield db
        db.commit()
        logger.debug("Transaction committed successfully")
    except StaleDataError as e:
        db.rollback()
        logger.warning(f"Transaction rolled back on stale snapshot: {e}")
        raise ConcurrentUpdateError(
            "The lead was modified by another session. Reload and retry."
        ) from e
    except Exception as e:
        db.rollback()
        logger.info(f"Transaction rolled back due to error: {type(e).__name__}: {e}")
        raise
