"""
Task scheduler.

Creates, completes and reschedules follow-up tasks, keeping each task's
calendar entry in step. Completing a routine task auto-chains the next
follow-up so a lead is never left without a next action.

Methods suffixed `_locked` (and add_task) expect the caller to hold the lead
row lock inside its own transaction; they never commit. The public methods
open their own transaction.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.clock import Clock, ensure_utc, system_clock
from ..core.config import Settings, get_settings
from ..core.exceptions import (
    OutcomeRequiredError,
    TaskNotOpenError,
    TerminalLeadError,
)
from ..core.transactions import transaction
from ..models.lead import Lead
from ..models.task import (
    CalendarEvent,
    CalendarEventStatus,
    Task,
    TaskKind,
    TaskOrigin,
    TaskStatus,
)
from .outcome_catalog import OutcomeTag
from .activity import ActivityService
from .locking import get_lead, lock_lead, lock_task_with_lead


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    task_id: UUID
    next_task_id: Optional[UUID] = None


def default_title(kind: TaskKind, lead: Lead) -> str:
    who = lead.name or "lead"
    if kind == TaskKind.MEETING:
        return f"Meeting with {who}"
    if kind == TaskKind.CLOSURE:
        return f"Close-out: {who}"
    if kind == TaskKind.UNDER_OFFER:
        return f"Offer follow-up: {who}"
    return f"Follow up with {who}"


class TaskScheduler:
    """
    Service for follow-up task lifecycle.

    Example usage:
        scheduler = TaskScheduler(db, clock)
        task_id = scheduler.schedule(lead.id, TaskKind.FOLLOW_UP, due_at, "Call back")
        scheduler.complete(task_id)
    """

    def __init__(
        self,
        db: Session,
        clock: Clock = system_clock,
        config: Optional[Settings] = None,
        activity: Optional[ActivityService] = None,
    ):
        self.db = db
        self.clock = clock
        self.config = config or get_settings()
        self.activity = activity or ActivityService(db, clock)

    # =========================================================================
    # Queries
    # =========================================================================

    def tasks_for_lead(self, lead_id, open_only: bool = False) -> List[Task]:
        lead = get_lead(self.db, lead_id)
        query = self.db.query(Task).filter(Task.lead_id == lead.id)
        if open_only:
            query = query.filter(Task.status == TaskStatus.OPEN)
        return query.order_by(Task.due_at, Task.created_at).all()

    def has_open_follow_up(self, lead_id: UUID) -> bool:
        return (
            self.db.query(Task.id)
            .filter(
                Task.lead_id == lead_id,
                Task.kind == TaskKind.FOLLOW_UP,
                Task.status == TaskStatus.OPEN,
            )
            .first()
            is not None
        )

    def is_decision_point(self, task: Task, lead: Lead) -> bool:
        """A follow-up on an active lead cannot be closed without an outcome."""
        return task.kind == TaskKind.FOLLOW_UP and not lead.is_terminal

    # =========================================================================
    # Unit-of-work building blocks (caller holds the lead lock)
    # =========================================================================

    def add_task(
        self,
        lead: Lead,
        kind: TaskKind,
        due_at: datetime,
        title: Optional[str] = None,
        description: Optional[str] = None,
        origin: TaskOrigin = TaskOrigin.MANUAL,
        actor_id: Optional[UUID] = None,
        allow_terminal: bool = False,
    ) -> Task:
        """
        Add an open task and its calendar entry to the session.

        allow_terminal is set only by the transition that closes the lead,
        for its closure task.

        Raises:
            TerminalLeadError: If the lead is terminal and allow_terminal is not set
        """
        if lead.is_terminal and not (allow_terminal and kind == TaskKind.CLOSURE):
            raise TerminalLeadError(f"Lead {lead.id} is closed; no new tasks can be scheduled")

        now = self.clock.now()
        due_at = ensure_utc(due_at)
        task = Task(
            id=uuid.uuid4(),
            lead_id=lead.id,
            kind=kind,
            status=TaskStatus.OPEN,
            origin=origin,
            title=title or default_title(kind, lead),
            description=description,
            due_at=due_at,
            created_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        event = CalendarEvent(
            id=uuid.uuid4(),
            lead_id=lead.id,
            task_id=task.id,
            title=task.title,
            event_type=kind.value,
            start_at=due_at,
            end_at=due_at + timedelta(minutes=self.config.calendar_event_minutes),
            status=CalendarEventStatus.SCHEDULED,
            agent_id=lead.owner_agent_id or actor_id,
            created_at=now,
        )
        task.linked_event_id = event.id

        self.db.add(task)
        self.db.add(event)
        self.activity.log_task_created(task, actor_id)

        logger.info(
            f"Task scheduled: lead={lead.id} kind={kind.value} "
            f"origin={origin.value} due={due_at.isoformat()}"
        )
        return task

    def complete_locked(
        self,
        task: Task,
        lead: Lead,
        outcome_recorded: bool = False,
        actor_id: Optional[UUID] = None,
    ) -> CompletionResult:
        """
        Mark task completed and auto-chain the next follow-up when due.

        Raises:
            TaskNotOpenError: If the task was already completed
            OutcomeRequiredError: If the task is a decision point and no
                outcome was recorded with it
        """
        if not task.is_open:
            raise TaskNotOpenError(f"Task {task.id} is already completed")
        if not outcome_recorded and self.is_decision_point(task, lead):
            raise OutcomeRequiredError(
                f"Task {task.id} is a follow-up; record an outcome to complete it"
            )

        now = self.clock.now()
        task.status = TaskStatus.COMPLETED
        task.completed_at = now
        task.updated_at = now

        event = self.db.get(CalendarEvent, task.linked_event_id) if task.linked_event_id else None
        if event is not None:
            event.status = CalendarEventStatus.COMPLETED

        self.activity.log_task_completed(task, actor_id)
        self.db.flush()

        # Outcome-driven scheduling already happened in the transition
        next_task = None
        if not outcome_recorded:
            next_task = self._auto_chain(task, lead, actor_id)

        logger.info(
            f"Task completed: task={task.id} lead={lead.id} kind={task.kind.value} "
            f"chained={next_task.id if next_task else None}"
        )
        return CompletionResult(
            task_id=task.id,
            next_task_id=next_task.id if next_task else None,
        )

    def _auto_chain(self, completed: Task, lead: Lead, actor_id: Optional[UUID]) -> Optional[Task]:
        if completed.kind == TaskKind.CLOSURE or lead.is_terminal:
            return None
        if self.has_open_follow_up(lead.id):
            return None

        minutes = self.config.auto_chain_minutes.get(lead.stage.value)
        if minutes is None:
            return None

        return self.add_task(
            lead,
            TaskKind.FOLLOW_UP,
            self.clock.now() + timedelta(minutes=minutes),
            description=f"Auto follow-up after: {completed.title}",
            origin=TaskOrigin.AUTO_FOLLOWUP,
            actor_id=actor_id,
        )

    def reschedule_locked(
        self,
        task: Task,
        lead: Lead,
        new_due_at: datetime,
        actor_id: Optional[UUID] = None,
    ) -> Task:
        """
        Move an open task (and its calendar entry) to a new due time.

        Rescheduling a meeting makes 'Meeting Scheduled' selectable again so
        the new slot can be recorded.
        """
        if not task.is_open:
            raise TaskNotOpenError(f"Task {task.id} is already completed")
        if lead.is_terminal and task.kind != TaskKind.CLOSURE:
            raise TerminalLeadError(f"Lead {lead.id} is closed; its tasks cannot be rescheduled")

        new_due_at = ensure_utc(new_due_at)
        task.due_at = new_due_at
        task.updated_at = self.clock.now()

        event = self.db.get(CalendarEvent, task.linked_event_id) if task.linked_event_id else None
        if event is not None:
            event.start_at = new_due_at
            event.end_at = new_due_at + timedelta(minutes=self.config.calendar_event_minutes)

        if task.kind == TaskKind.MEETING:
            remaining = lead.selected_outcomes - {OutcomeTag.MEETING_SCHEDULED.value}
            if remaining != lead.selected_outcomes:
                lead.set_selected_outcomes(remaining)

        self.activity.log_task_rescheduled(task, actor_id)
        logger.info(f"Task rescheduled: task={task.id} due={new_due_at.isoformat()}")
        return task

    # =========================================================================
    # Transactional operations
    # =========================================================================

    def schedule(
        self,
        lead_id,
        kind: TaskKind,
        due_at: datetime,
        description: Optional[str] = None,
        title: Optional[str] = None,
        actor_id: Optional[UUID] = None,
    ) -> UUID:
        """
        Schedule one new open task. Never merges with existing tasks.

        Returns:
            ID of the created task
        """
        with transaction(self.db):
            lead = lock_lead(self.db, lead_id)
            task = self.add_task(
                lead,
                kind,
                due_at,
                title=title,
                description=description,
                origin=TaskOrigin.MANUAL,
                actor_id=actor_id,
            )
        return task.id

    def complete(self, task_id, actor_id: Optional[UUID] = None) -> CompletionResult:
        """Complete a task that needs no outcome; chaining shares the transaction."""
        with transaction(self.db):
            task, lead = lock_task_with_lead(self.db, task_id)
            result = self.complete_locked(task, lead, outcome_recorded=False, actor_id=actor_id)
        return result

    def reschedule(self, task_id, new_due_at: datetime, actor_id: Optional[UUID] = None) -> Task:
        with transaction(self.db):
            task, lead = lock_task_with_lead(self.db, task_id)
            self.reschedule_locked(task, lead, new_due_at, actor_id)
        return task
