"""
Celery application configuration.

Configures Celery for the workflow's periodic jobs with:
- Redis as message broker
- Beat schedule for the SLA sweep
- Late acknowledgement so a lost worker re-queues its job
"""

import logging
from celery import Celery
from kombu import Exchange, Queue

from ..core.config import settings


logger = logging.getLogger(__name__)


# =============================================================================
# Celery Application
# =============================================================================

celery_app = Celery(
    "leadflow",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "leadflow.tasks.workflow_tasks",
    ],
)


# =============================================================================
# Celery Configuration
# =============================================================================

celery_app.conf.update(
    # Task execution settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task time limits
    task_time_limit=settings.celery_task_time_limit,  # Hard limit (kill task)
    task_soft_time_limit=settings.celery_task_time_limit - 30,  # Soft limit (raise exception)

    # Worker settings
    worker_concurrency=settings.celery_worker_concurrency,
    worker_prefetch_multiplier=1,  # Sweeps are long; don't hoard them
    worker_max_tasks_per_child=1000,

    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour

    # Broker settings
    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,

    # Task acknowledgement
    task_acks_late=True,  # Ack after task completes
    task_reject_on_worker_lost=True,  # Re-queue if worker dies

    # Task routing
    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",

    beat_scheduler="celery.beat:PersistentScheduler",
    beat_schedule_filename="/tmp/celerybeat-schedule",  # Writable location in containers

    # Beat schedule for periodic tasks
    beat_schedule={
        "sla-sweep": {
            "task": "leadflow.tasks.workflow_tasks.reassign_overdue_leads",
            "schedule": float(settings.sla_sweep_interval_seconds),
            # A sweep older than one interval is superseded by the next one
            "options": {"expires": float(settings.sla_sweep_interval_seconds)},
        },
    },
)


# =============================================================================
# Queue Configuration
# =============================================================================

default_exchange = Exchange("default", type="direct")
workflow_exchange = Exchange("workflow", type="direct")

celery_app.conf.task_queues = (
    Queue(
        "default",
        default_exchange,
        routing_key="default",
    ),
    Queue(
        "workflow.sweeps",
        workflow_exchange,
        routing_key="workflow.sweeps",
    ),
)

celery_app.conf.task_routes = {
    "leadflow.tasks.workflow_tasks.reassign_overdue_leads": {
        "queue": "workflow.sweeps",
        "routing_key": "workflow.sweeps",
    },
}


# =============================================================================
# Startup Events
# =============================================================================

@celery_app.on_after_configure.connect
def setup_periodic_tasks(sender, **kwargs):
    """Log the sweep cadence on worker startup."""
    logger.info(
        f"Celery configured: SLA sweep every {settings.sla_sweep_interval_seconds}s"
    )


@celery_app.task
def health_check():
    """
    Simple health check task for monitoring.

    Returns:
        Dict with worker status
    """
    return {
        "status": "healthy",
        "worker": True,
    }
