"""
Follow-up workflow Pydantic schemas for request/response validation.

Timestamps in requests may be naive (wall-clock time in the business
timezone) or carry an offset; the workflow service normalizes both to UTC.
Responses always return UTC.
"""

from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..models.activity import ActivityType
from ..models.lead import LeadStage
from ..models.task import TaskKind, TaskOrigin, TaskStatus
from ..services.outcome_catalog import OutcomeDefinition
from ..services.sla import SlaState


# =============================================================================
# Outcome Catalog Schemas
# =============================================================================

class ReasonOption(BaseModel):
    id: str
    label: str


class OutcomeOption(BaseModel):
    """One selectable outcome, with the reasons to offer when one is required."""

    tag: str
    label: str
    requires_reason: bool
    db_outcome: str
    reasons: List[ReasonOption] = Field(default_factory=list)

    @classmethod
    def from_definition(cls, definition: OutcomeDefinition) -> "OutcomeOption":
        return cls(
            tag=definition.tag.value,
            label=definition.label,
            requires_reason=definition.requires_reason,
            db_outcome=definition.db_outcome.value,
            reasons=[
                ReasonOption(id=reason_id, label=label)
                for reason_id, label in definition.reasons.items()
            ],
        )


class CatalogResponse(BaseModel):
    version: int
    outcomes: List[OutcomeOption]


class SelectableOutcomesResponse(BaseModel):
    """
    Outcomes an agent may record for a lead right now, in display order.

    Empty for closed leads.
    """

    lead_id: UUID
    stage: LeadStage
    terminal: bool
    catalog_version: int
    outcomes: List[OutcomeOption]


# =============================================================================
# SLA Schemas
# =============================================================================

class SlaStatusResponse(BaseModel):
    lead_id: UUID
    state: SlaState
    agent_id: Optional[UUID] = None
    elapsed_minutes: Optional[int] = None
    remaining_minutes: Optional[int] = None
    computed_at: datetime

    model_config = {
        "json_schema_extra": {
            "example": {
                "lead_id": "3f6c2f0e-6d0b-4b56-9a84-0f1e3c7d2a11",
                "state": "active",
                "agent_id": "8a1d5c7e-2b34-4f0a-b9e1-6c2d4e8f0a13",
                "elapsed_minutes": 12,
                "remaining_minutes": 18,
                "computed_at": "2025-01-15T10:30:00Z"
            }
        }
    }


# =============================================================================
# Outcome Recording Schemas
# =============================================================================

class RecordOutcomeRequest(BaseModel):
    """
    Schema for recording an outcome against a lead.

    reason_id is required for 'deal_lost' and 'invalid';
    client_still_with_us is required for 'deal_lost'.
    """

    outcome: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Outcome catalog tag"
    )
    due_at: Optional[datetime] = Field(
        default=None,
        description="When the follow-up or meeting is due (defaults to one hour from now)"
    )
    reason_id: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Reason slug from the outcome's reason list"
    )
    client_still_with_us: Optional[bool] = Field(
        default=None,
        description="Deal Lost only: restart the pipeline instead of closing the lead"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="Free-text notes"
    )

    @field_validator("outcome")
    @classmethod
    def normalize_outcome(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

    model_config = {
        "json_schema_extra": {
            "example": {
                "outcome": "call_back_request",
                "due_at": "2025-01-15T14:00:00",
                "notes": "Asked to call after lunch"
            }
        }
    }


class TransitionResponse(BaseModel):
    success: bool = True
    lead_id: UUID
    new_stage: LeadStage
    outcome_id: UUID
    created_task_id: Optional[UUID] = None
    created_task_ids: List[UUID] = Field(default_factory=list)
    terminal: bool = False
    escalated_unreachable: bool = False

    @classmethod
    def from_result(cls, result) -> "TransitionResponse":
        return cls(
            lead_id=result.lead_id,
            new_stage=result.new_stage,
            outcome_id=result.outcome_id,
            created_task_id=result.created_task_id,
            created_task_ids=list(result.created_task_ids),
            terminal=result.terminal,
            escalated_unreachable=result.escalated_unreachable,
        )


class OutcomeRecordResponse(BaseModel):
    """Audit trail entry; synthetic entries were written by the engine itself."""

    id: UUID
    lead_id: UUID
    outcome_tag: str
    db_outcome: Optional[str] = None
    reason_id: Optional[str] = None
    client_still_with_us: Optional[bool] = None
    notes: Optional[str] = None
    due_at: Optional[datetime] = None
    from_stage: str
    to_stage: str
    is_synthetic: bool
    created_at: datetime
    created_by: Optional[UUID] = None

    model_config = {
        "from_attributes": True
    }


class ActivityResponse(BaseModel):
    id: UUID
    lead_id: UUID
    activity_type: ActivityType
    description: str
    created_by: Optional[UUID] = None
    created_at: datetime

    model_config = {
        "from_attributes": True
    }


class ReopenLeadRequest(BaseModel):
    target_stage: LeadStage = Field(
        default=LeadStage.NEW,
        description="Active stage to move the lead back into"
    )


# =============================================================================
# Task Schemas
# =============================================================================

class TaskResponse(BaseModel):
    id: UUID
    lead_id: UUID
    kind: TaskKind
    status: TaskStatus
    origin: TaskOrigin
    title: str
    description: Optional[str] = None
    due_at: datetime
    completed_at: Optional[datetime] = None
    linked_event_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    created_at: datetime

    model_config = {
        "from_attributes": True
    }


class ScheduleTaskRequest(BaseModel):
    """Schema for scheduling a task directly (always creates a new one)."""

    lead_id: UUID
    kind: TaskKind = Field(
        default=TaskKind.FOLLOW_UP,
        description="Task kind"
    )
    due_at: datetime = Field(
        ...,
        description="When the task is due"
    )
    title: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Task title (defaults to one derived from kind and lead)"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=2000,
    )


class RescheduleTaskRequest(BaseModel):
    due_at: datetime = Field(
        ...,
        description="New due time"
    )


class CompleteTaskRequest(BaseModel):
    """
    Schema for completing a task.

    Follow-up tasks on active leads are decision points: they can only be
    completed together with an outcome.
    """

    outcome: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Outcome to record with the completion"
    )
    due_at: Optional[datetime] = None
    reason_id: Optional[str] = Field(default=None, max_length=100)
    client_still_with_us: Optional[bool] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("outcome")
    @classmethod
    def normalize_outcome(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().lower()
        return v or None


class CompletionResponse(BaseModel):
    success: bool = True
    task_id: UUID
    next_task_id: Optional[UUID] = None
    transition: Optional[TransitionResponse] = None


class TaskCreatedResponse(BaseModel):
    success: bool = True
    task_id: UUID
