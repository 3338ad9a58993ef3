"""
Core module for the LeadFlow backend.

Contains configuration, database setup, clock and error taxonomy.
"""

from .config import settings
from .database import get_db, engine, SessionLocal

__all__ = ["settings", "get_db", "engine", "SessionLocal"]
