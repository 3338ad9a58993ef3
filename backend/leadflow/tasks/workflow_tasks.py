"""
Celery tasks for the follow-up workflow.

Provides:
- Periodic SLA sweep (reassign leads nobody responded to in time)
"""

import logging
from typing import Any, Dict

from celery import shared_task
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..core.clock import system_clock
from ..core.config import settings
from ..core.database import SessionLocal
from ..services.sla_sweep import SlaSweep


logger = logging.getLogger(__name__)


# =============================================================================
# Database Session Context Manager
# =============================================================================

def get_db_session() -> Session:
    """Create a new database session for task execution."""
    return SessionLocal()


# =============================================================================
# SLA Sweep
# =============================================================================

@shared_task(
    bind=True,
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    retry_backoff_max=60,
    retry_jitter=True,
    max_retries=settings.celery_max_retries,
    acks_late=True,
)
def reassign_overdue_leads(self) -> Dict[str, Any]:
    """
    Hand leads whose SLA window expired to the least-busy active agent.

    Leads are reassigned one transaction at a time, so a retry after a
    dropped connection only redoes the leads that were not committed yet.

    Returns:
        Dict with sweep counters
    """
    db = get_db_session()

    try:
        result = SlaSweep(db, system_clock, settings).reassign_overdue_leads()
        return {
            "status": "success",
            "checked": result.checked,
            "reassigned": result.reassigned_count,
            "skipped": result.skipped,
            "failed": result.failed,
            "lead_ids": [str(lead_id) for lead_id in result.reassigned],
        }

    except OperationalError as e:
        logger.warning(
            f"SLA sweep hit a database error (attempt {self.request.retries + 1}): {e}"
        )
        db.rollback()
        raise  # Let Celery retry

    finally:
        db.close()
