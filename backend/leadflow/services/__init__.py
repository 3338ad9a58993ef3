"""
Business logic services for LeadFlow.

Contains the follow-up workflow engine, separated from the API layer.
"""

from .activity import ActivityService
from .gating import selectable_outcomes, is_selectable
from .outcome_catalog import CATALOG, CATALOG_VERSION, OutcomeTag, get_outcome
from .sla import SlaState, SlaStatus, sla_status
from .sla_sweep import SlaSweep, SweepResult
from .task_scheduler import CompletionResult, TaskScheduler
from .transitions import OutcomeParams, TransitionApplier, TransitionResult
from .workflow import WorkflowService

__all__ = [
    "ActivityService",
    "selectable_outcomes",
    "is_selectable",
    "CATALOG",
    "CATALOG_VERSION",
    "OutcomeTag",
    "get_outcome",
    "SlaState",
    "SlaStatus",
    "sla_status",
    "SlaSweep",
    "SweepResult",
    "CompletionResult",
    "TaskScheduler",
    "OutcomeParams",
    "TransitionApplier",
    "TransitionResult",
    "WorkflowService",
]
