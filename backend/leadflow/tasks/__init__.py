"""
Celery tasks package for the follow-up workflow.

Provides background task infrastructure for:
- Periodic SLA sweep (reassignment of unanswered leads)
"""

from .celery_app import celery_app
from .workflow_tasks import reassign_overdue_leads

__all__ = [
    "celery_app",
    "reassign_overdue_leads",
]
