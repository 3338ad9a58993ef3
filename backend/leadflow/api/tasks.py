"""
Task endpoints.

Scheduling, completion (optionally with an outcome) and rescheduling of
follow-up tasks.

Writes are attributed to the X-Agent-Id caller. The gateway must set that
header for agent traffic; a request without it acts as a system caller.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status

from ..core.auth import get_actor_id
from ..schemas.common import ErrorResponse
from ..schemas.workflow import (
    CompleteTaskRequest,
    CompletionResponse,
    RescheduleTaskRequest,
    ScheduleTaskRequest,
    TaskCreatedResponse,
    TaskResponse,
    TransitionResponse,
)
from ..services.workflow import WorkflowService
from .deps import get_workflow_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


_ERRORS = {
    404: {"model": ErrorResponse, "description": "Task or lead not found"},
    409: {"model": ErrorResponse, "description": "Workflow conflict"},
}


@router.post(
    "",
    response_model=TaskCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule Task",
    description="Create one new open task (and its calendar entry) for a lead.",
    responses=_ERRORS,
)
def schedule_task(
    payload: ScheduleTaskRequest,
    workflow: WorkflowService = Depends(get_workflow_service),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> TaskCreatedResponse:
    task_id = workflow.schedule_task(
        payload.lead_id,
        payload.kind,
        payload.due_at,
        description=payload.description,
        title=payload.title,
        actor_id=actor_id,
    )
    return TaskCreatedResponse(task_id=task_id)


@router.post(
    "/{task_id}/complete",
    response_model=CompletionResponse,
    summary="Complete Task",
    description=(
        "Complete a task. Follow-ups on active leads need an outcome; other "
        "tasks auto-chain a routine follow-up when the lead has none open."
    ),
    responses=_ERRORS,
)
def complete_task(
    task_id: UUID,
    payload: Optional[CompleteTaskRequest] = None,
    workflow: WorkflowService = Depends(get_workflow_service),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> CompletionResponse:
    payload = payload or CompleteTaskRequest()
    completion, transition = workflow.complete_task(
        task_id,
        outcome_tag=payload.outcome,
        due_at=payload.due_at,
        reason_id=payload.reason_id,
        client_still_with_us=payload.client_still_with_us,
        notes=payload.notes,
        actor_id=actor_id,
    )
    return CompletionResponse(
        task_id=completion.task_id,
        next_task_id=completion.next_task_id,
        transition=TransitionResponse.from_result(transition) if transition else None,
    )


@router.post(
    "/{task_id}/reschedule",
    response_model=TaskResponse,
    summary="Reschedule Task",
    description="Move an open task and its calendar entry to a new due time.",
    responses=_ERRORS,
)
def reschedule_task(
    task_id: UUID,
    payload: RescheduleTaskRequest,
    workflow: WorkflowService = Depends(get_workflow_service),
    actor_id: Optional[UUID] = Depends(get_actor_id),
) -> TaskResponse:
    task = workflow.reschedule_task(task_id, payload.due_at, actor_id=actor_id)
    return TaskResponse.model_validate(task)
