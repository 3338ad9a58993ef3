"""
Workflow service.

Caller-facing facade over the follow-up engine. Normalizes caller
timestamps (business-timezone wall clock) to UTC, wires the components to a
shared session and clock, and owns the transaction for composite operations
such as completing a follow-up task together with its outcome.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.clock import Clock, local_to_utc, system_clock
from ..core.config import Settings, get_settings
from ..core.exceptions import TaskNotOpenError
from ..core.transactions import transaction
from ..models.activity import LeadActivity
from ..models.lead import Lead, LeadStage
from ..models.outcome import OutcomeRecord
from ..models.task import Task, TaskKind
from .activity import ActivityService
from .gating import selectable_outcomes
from .locking import get_lead, lock_task_with_lead
from .sla import SlaStatus, sla_status
from .task_scheduler import CompletionResult, TaskScheduler
from .transitions import OutcomeParams, TransitionApplier, TransitionResult


logger = logging.getLogger(__name__)


class WorkflowService:
    """
    Lead follow-up workflow operations.

    Example usage:
        workflow = WorkflowService(db, clock)
        tags = workflow.get_selectable_outcomes(lead_id)
        result = workflow.apply_outcome(lead_id, "interested", actor_id=agent_id)
    """

    def __init__(
        self,
        db: Session,
        clock: Clock = system_clock,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.clock = clock
        self.config = config or get_settings()
        self.activity = ActivityService(db, clock)
        self.scheduler = TaskScheduler(db, clock, self.config, self.activity)
        self.applier = TransitionApplier(db, clock, self.config, self.scheduler, self.activity)

    def _to_utc(self, value: Optional[datetime]) -> Optional[datetime]:
        return local_to_utc(value, self.config.business_timezone)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_lead(self, lead_id) -> Lead:
        return get_lead(self.db, lead_id)

    def get_selectable_outcomes(self, lead_id) -> Tuple[str, ...]:
        return selectable_outcomes(get_lead(self.db, lead_id))

    def get_sla_status(self, lead_id, now: Optional[datetime] = None) -> SlaStatus:
        return sla_status(
            get_lead(self.db, lead_id),
            now or self.clock.now(),
            sla_target=timedelta(minutes=self.config.sla_target_minutes),
            unreachable_threshold=self.config.unreachable_threshold,
        )

    def get_outcome_history(self, lead_id) -> List[OutcomeRecord]:
        return self.applier.outcome_history(lead_id)

    def get_tasks(self, lead_id, open_only: bool = False) -> List[Task]:
        return self.scheduler.tasks_for_lead(lead_id, open_only=open_only)

    def get_activity(self, lead_id) -> List[LeadActivity]:
        return self.activity.list_for_lead(get_lead(self.db, lead_id).id)

    # =========================================================================
    # Writes
    # =========================================================================

    def apply_outcome(
        self,
        lead_id,
        outcome_tag: str,
        due_at: Optional[datetime] = None,
        reason_id: Optional[str] = None,
        client_still_with_us: Optional[bool] = None,
        notes: Optional[str] = None,
        actor_id: Optional[UUID] = None,
    ) -> TransitionResult:
        params = OutcomeParams(
            due_at=self._to_utc(due_at),
            reason_id=reason_id,
            client_still_with_us=client_still_with_us,
            notes=notes,
        )
        return self.applier.apply_outcome(lead_id, outcome_tag, params, actor_id)

    def complete_task(
        self,
        task_id,
        outcome_tag: Optional[str] = None,
        due_at: Optional[datetime] = None,
        reason_id: Optional[str] = None,
        client_still_with_us: Optional[bool] = None,
        notes: Optional[str] = None,
        actor_id: Optional[UUID] = None,
    ) -> Tuple[CompletionResult, Optional[TransitionResult]]:
        """
        Complete a task, recording an outcome with it when one is given.

        The outcome and the completion commit together: if the outcome is
        rejected the task stays open.

        Returns:
            (CompletionResult, TransitionResult or None)
        """
        with transaction(self.db):
            task, lead = lock_task_with_lead(self.db, task_id)
            if not task.is_open:
                raise TaskNotOpenError(f"Task {task.id} is already completed")

            transition = None
            if outcome_tag is not None:
                params = OutcomeParams(
                    due_at=self._to_utc(due_at),
                    reason_id=reason_id,
                    client_still_with_us=client_still_with_us,
                    notes=notes,
                )
                transition = self.applier.apply_to_locked_lead(lead, outcome_tag, params, actor_id)

            completion = self.scheduler.complete_locked(
                task,
                lead,
                outcome_recorded=transition is not None,
                actor_id=actor_id,
            )
        return completion, transition

    def schedule_task(
        self,
        lead_id,
        kind: TaskKind,
        due_at: datetime,
        description: Optional[str] = None,
        title: Optional[str] = None,
        actor_id: Optional[UUID] = None,
    ) -> UUID:
        return self.scheduler.schedule(
            lead_id,
            kind,
            self._to_utc(due_at),
            description=description,
            title=title,
            actor_id=actor_id,
        )

    def reschedule_task(self, task_id, new_due_at: datetime, actor_id: Optional[UUID] = None) -> Task:
        return self.scheduler.reschedule(task_id, self._to_utc(new_due_at), actor_id)

    def reopen_lead(
        self,
        lead_id,
        target_stage=LeadStage.NEW,
        actor_id: Optional[UUID] = None,
    ) -> TransitionResult:
        return self.applier.reopen_lead(lead_id, target_stage, actor_id)
