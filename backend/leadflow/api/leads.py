"""
Lead follow-up workflow endpoints.

Exposes the outcome picker (selectable outcomes), the SLA badge, outcome
recording, the reopen flow, and the per-lead audit trail, timeline and task
list.

Routes are plain `def` so the blocking session (and any row lock it waits
on) runs in the threadpool instead of on the event loop.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core.auth import get_actor_id
from ..schemas.common import ErrorResponse
from ..schemas.workflow import (
    ActivityResponse,
    OutcomeOption,
    OutcomeRecordResponse,
    RecordOutcomeRequest,
    ReopenLeadRequest,
    SelectableOutcomesResponse,
    SlaStatusResponse,
    TaskResponse,
    TransitionResponse,
)
from ..services.outcome_catalog import CATALOG_VERSION, get_outcome
from ..services.workflow import WorkflowService
from .deps import get_workflow_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leads", tags=["Leads"])


_ERRORS = {
    404: {"model": ErrorResponse, "description": "Lead not found"},
    409: {"model": ErrorResponse, "description": "Workflow conflict"},
}


# =============================================================================
# Read Endpoints
# =============================================================================

@router.get(
    "/{lead_id}/selectable-outcomes",
    response_model=SelectableOutcomesResponse,
    summary="Selectable Outcomes",
    description="Outcomes the agent may record for this lead right now.",
    responses={404: _ERRORS[404]},
)
def get_selectable_outcomes(
    lead_id: UUID,
    workflow: WorkflowService = Depends(get_workflow_service),
) -> SelectableOutcomesResponse:
    lead = workflow.get_lead(lead_id)
    tags = workflow.get_selectable_outcomes(lead_id)
    return SelectableOutcomesResponse(
        lead_id=lead.id,
        stage=lead.stage,
        terminal=lead.is_terminal,
        catalog_version=CATALOG_VERSION,
        outcomes=[OutcomeOption.from_definition(get_outcome(tag)) for tag in tags],
    )


@router.get(
    "/{lead_id}/sla-status",
    response_model=SlaStatusResponse,
    summary="SLA Status",
    description="Response-time badge: unreachable, owned, overdue, active or none.",
    responses={404: _ERRORS[404]},
)
def get_sla_status(
    lead_id: UUID,
    workflow: WorkflowService = Depends(get_workflow_service),
) -> SlaStatusResponse:
    now = workflow.clock.now()
    sla = workflow.get_sla_status(lead_id, now)
    return SlaStatusResponse(
        lead_id=lead_id,
        state=sla.state,
        agent_id=sla.agent_id,
        elapsed_minutes=sla.elapsed_minutes,
        remaining_minutes=sla.remaining_minutes,
        computed_at=now,
    )


@router.get(
    "/{lead_id}/outcomes",
    response_model=List[OutcomeRecordResponse],
    summary="Outcome History",
    description="Append-only audit trail of outcomes, including engine-forced transitions.",
    responses={404: _ERRORS[404]},
)
def list_outcomes(
    lead_id: UUID,
    workflow: WorkflowService = Depends(get_workflow_service),
) -> List[OutcomeRecordResponse]:
    return [
        OutcomeRecordResponse.model_validate(record)
        for record in workflow.get_outcome_history(lead_id)
    ]


@router.get(
    "/{lead_id}/tasks",
    response_model=List[TaskResponse],
    summary="Lead Tasks",
    description="Tasks for the lead ordered by due time.",
    responses={404: _ERRORS[404]},
)
def list_tasks(
    lead_id: UUID,
    open_only: bool = Query(default=False, description="Only return open tasks"),
    workflow: WorkflowService = Depends(get_workflow_service),
) -> List[TaskResponse]:
    return [
        TaskResponse.model_validate(task)
        for task in workflow.get_tasks(lead_id, open_only=open_only)
    ]


@router.get(
    "/{lead_id}/activity",
    response_model=List[ActivityResponse],
    summary="Lead Timeline",
    description="Human-readable timeline of outcomes, task changes, reassignments and reopens.",
    responses={404: _ERRORS[404]},
)
def list_activity(
    lead_id: UUID,
    workflow: WorkflowService = Depends(get_workflow_service),
) -> List[ActivityResponse]:
    return [
        ActivityResponse.model_validate(entry)
        for entry in workflow.get_activity(lead_id)
    ]


# =============================================================================
# Write Endpoints
# =============================================================================

@router.post(
    "/{lead_id}/outcomes",
    response_model=TransitionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record Outcome",
    description=(
        "Record an outcome and apply its stage transition. The outcome "
        "record, stage change and follow-up tasks commit together. Agent "
        "traffic must carry X-Agent-Id; requests without it are treated as "
        "system callers and skip the lead-owner check."
    ),
    responses=_ERRORS,
)
def record_outcome(
    lead_id: UUID,
    payload: RecordOutcomeRequest,
    workflow: WorkflowService = Depends(get_workflow_service),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> TransitionResponse:
    result = workflow.apply_outcome(
        lead_id,
        payload.outcome,
        due_at=payload.due_at,
        reason_id=payload.reason_id,
        client_still_with_us=payload.client_still_with_us,
        notes=payload.notes,
        actor_id=actor_id,
    )
    return TransitionResponse.from_result(result)


@router.post(
    "/{lead_id}/reopen",
    response_model=TransitionResponse,
    summary="Reopen Lead",
    description="Move a won, lost or invalid lead back into an active stage.",
    responses=_ERRORS,
)
def reopen_lead(
    lead_id: UUID,
    payload: Optional[ReopenLeadRequest] = None,
    workflow: WorkflowService = Depends(get_workflow_service),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> TransitionResponse:
    payload = payload or ReopenLeadRequest()
    result = workflow.reopen_lead(lead_id, payload.target_stage, actor_id=actor_id)
    return TransitionResponse.from_result(result)
