"""
Row-locking loaders.

Writers always lock the lead row first and the task row second, so two
sessions working on the same lead queue up instead of deadlocking. On
PostgreSQL the SELECT ... FOR UPDATE blocks a concurrent writer until the
first one commits; the lead's version column catches anything that slips
past (e.g. backends without row locks).
"""

from typing import Tuple, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.exceptions import LeadNotFoundError, TaskNotFoundError
from ..models.lead import Lead
from ..models.task import Task


def as_uuid(value: Union[UUID, str]) -> UUID:
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


def get_lead(db: Session, lead_id) -> Lead:
    """Load a lead without locking (pure reads)."""
    try:
        key = as_uuid(lead_id)
    except ValueError:
        raise LeadNotFoundError(f"Lead not found: {lead_id}")
    lead = db.get(Lead, key)
    if lead is None:
        raise LeadNotFoundError(f"Lead not found: {lead_id}")
    return lead


def lock_lead(db: Session, lead_id) -> Lead:
    """Load a lead with a row lock, refreshing any stale copy in the session."""
    try:
        key = as_uuid(lead_id)
    except ValueError:
        raise LeadNotFoundError(f"Lead not found: {lead_id}")
    lead = db.execute(
        select(Lead)
        .where(Lead.id == key)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if lead is None:
        raise LeadNotFoundError(f"Lead not found: {lead_id}")
    return lead


def lock_task_with_lead(db: Session, task_id) -> Tuple[Task, Lead]:
    """Lock a task's lead, then the task itself."""
    try:
        key = as_uuid(task_id)
    except ValueError:
        raise TaskNotFoundError(f"Task not found: {task_id}")
    lead_id = db.execute(
        select(Task.lead_id).where(Task.id == key)
    ).scalar_one_or_none()
    if lead_id is None:
        raise TaskNotFoundError(f"Task not found: {task_id}")

    lead = lock_lead(db, lead_id)
    task = db.execute(
        select(Task)
        .where(Task.id == key)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one()
    return task, lead
