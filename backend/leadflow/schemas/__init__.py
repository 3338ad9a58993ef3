"""
Pydantic validation schemas for LeadFlow.

Contains request/response DTOs with validation rules.
These schemas enforce data integrity at API boundaries.
"""

from .common import (
    HealthResponse,
    ErrorDetail,
    ErrorResponse,
)
from .workflow import (
    ActivityResponse,
    CatalogResponse,
    CompleteTaskRequest,
    CompletionResponse,
    OutcomeOption,
    OutcomeRecordResponse,
    ReasonOption,
    RecordOutcomeRequest,
    ReopenLeadRequest,
    RescheduleTaskRequest,
    ScheduleTaskRequest,
    SelectableOutcomesResponse,
    SlaStatusResponse,
    TaskCreatedResponse,
    TaskResponse,
    TransitionResponse,
)

__all__ = [
    # Common schemas
    "HealthResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Workflow schemas
    "ActivityResponse",
    "CatalogResponse",
    "CompleteTaskRequest",
    "CompletionResponse",
    "OutcomeOption",
    "OutcomeRecordResponse",
    "ReasonOption",
    "RecordOutcomeRequest",
    "ReopenLeadRequest",
    "RescheduleTaskRequest",
    "ScheduleTaskRequest",
    "SelectableOutcomesResponse",
    "SlaStatusResponse",
    "TaskCreatedResponse",
    "TaskResponse",
    "TransitionResponse",
]
