"""
Shared route dependencies.

Tests override get_clock (and get_db) through app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.config import get_settings
from ..core.database import get_db
from ..services.workflow import WorkflowService


def get_clock() -> Clock:
    return system_clock


def get_workflow_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> WorkflowService:
    return WorkflowService(db, clock, get_settings())
