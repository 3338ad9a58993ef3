"""
Transition applier: the lead follow-up state machine.

Validates a recorded outcome against a locked snapshot of the lead, then in
one unit of work writes the outcome record, moves the lead's stage and
schedules the follow-up tasks the outcome implies. Every precondition is
checked before the first write, so a rejected outcome leaves nothing behind.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.clock import Clock, ensure_utc, system_clock
from ..core.config import Settings, get_settings
from ..core.exceptions import (
    ClientStatusRequiredError,
    InvalidTargetStageError,
    LeadNotTerminalError,
    NotLeadOwnerError,
    OutcomeNotAvailableError,
    ReasonRequiredError,
    TerminalLeadError,
)
from ..core.transactions import transaction
from ..models.lead import Lead, LeadStage, TERMINAL_STAGES
from ..models.outcome import OutcomeRecord
from ..models.task import Task, TaskKind, TaskOrigin
from .activity import ActivityService
from .gating import is_selectable
from .locking import get_lead, lock_lead
from .outcome_catalog import (
    OutcomeDefinition,
    OutcomeTag,
    ReportingOutcome,
    SystemTag,
    UNREACHABLE_REASON_ID,
    UNREACHABLE_REASON_LABEL,
    get_outcome,
    is_valid_reason,
    reason_label,
)
from .task_scheduler import TaskScheduler


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutcomeParams:
    """Caller-supplied details of a recorded outcome. Timestamps are UTC."""
    due_at: Optional[datetime] = None
    reason_id: Optional[str] = None
    client_still_with_us: Optional[bool] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class TransitionResult:
    lead_id: UUID
    new_stage: LeadStage
    outcome_id: UUID
    created_task_ids: Tuple[UUID, ...] = ()
    terminal: bool = False
    escalated_unreachable: bool = False

    @property
    def created_task_id(self) -> Optional[UUID]:
        return self.created_task_ids[0] if self.created_task_ids else None


@dataclass
class _Transition:
    """Mutable working state while one outcome is applied."""
    lead: Lead
    definition: OutcomeDefinition
    params: OutcomeParams
    actor_id: Optional[UUID]
    now: datetime
    record: OutcomeRecord
    tasks: List[Task] = field(default_factory=list)
    escalated: bool = False


class TransitionApplier:
    """
    Applies recorded outcomes to leads.

    Example usage:
        applier = TransitionApplier(db, clock)
        result = applier.apply_outcome(
            lead.id, "call_back_request", OutcomeParams(due_at=due), actor_id=agent.id
        )
    """

    def __init__(
        self,
        db: Session,
        clock: Clock = system_clock,
        config: Optional[Settings] = None,
        scheduler: Optional[TaskScheduler] = None,
        activity: Optional[ActivityService] = None,
    ):
        self.db = db
        self.clock = clock
        self.config = config or get_settings()
        self.activity = activity or ActivityService(db, clock)
        self.scheduler = scheduler or TaskScheduler(db, clock, self.config, self.activity)

        self._handlers: Dict[str, Callable[[_Transition], None]] = {
            OutcomeTag.CALL_BACK_REQUEST.value: self._on_call_back_request,
            OutcomeTag.NO_ANSWER.value: self._on_no_answer,
            OutcomeTag.INTERESTED.value: self._on_interested,
            OutcomeTag.MEETING_SCHEDULED.value: self._on_meeting_scheduled,
            OutcomeTag.UNDER_OFFER.value: self._on_under_offer,
            OutcomeTag.DEAL_WON.value: self._on_deal_won,
            OutcomeTag.DEAL_LOST.value: self._on_deal_lost,
            OutcomeTag.INVALID.value: self._on_invalid,
        }

    # =========================================================================
    # Public API
    # =========================================================================

    def apply_outcome(
        self,
        lead_id,
        outcome_tag,
        params: Optional[OutcomeParams] = None,
        actor_id: Optional[UUID] = None,
    ) -> TransitionResult:
        """
        Record an outcome and apply its transition atomically.

        Args:
            lead_id: Lead to update
            outcome_tag: Catalog tag
            params: Due time, reason, client flag and notes
            actor_id: Agent recording the outcome

        Returns:
            TransitionResult

        Raises:
            LeadNotFoundError, UnknownOutcome, TerminalLeadError,
            OutcomeNotAvailableError, ReasonRequiredError,
            ClientStatusRequiredError, NotLeadOwnerError,
            ConcurrentUpdateError
        """
        with transaction(self.db):
            lead = lock_lead(self.db, lead_id)
            result = self.apply_to_locked_lead(lead, outcome_tag, params, actor_id)
        return result

    def apply_to_locked_lead(
        self,
        lead: Lead,
        outcome_tag,
        params: Optional[OutcomeParams] = None,
        actor_id: Optional[UUID] = None,
    ) -> TransitionResult:
        """Same as apply_outcome for a lead the caller has locked; does not commit."""
        params = params or OutcomeParams()
        definition = get_outcome(outcome_tag)
        tag = definition.tag.value

        self._check_preconditions(lead, definition, params, actor_id)

        now = self.clock.now()
        from_stage = lead.stage
        record = OutcomeRecord(
            id=uuid.uuid4(),
            lead_id=lead.id,
            outcome_tag=tag,
            db_outcome=definition.db_outcome.value,
            reason_id=params.reason_id if definition.requires_reason else None,
            client_still_with_us=(
                params.client_still_with_us if definition.tag == OutcomeTag.DEAL_LOST else None
            ),
            notes=params.notes,
            due_at=ensure_utc(params.due_at),
            from_stage=from_stage.value,
            to_stage=from_stage.value,
            is_synthetic=False,
            created_at=now,
            created_by=actor_id,
        )
        self.db.add(record)

        lead.set_selected_outcomes(lead.selected_outcomes | {tag})
        lead.last_outcome = tag
        if lead.first_outcome_at is None:
            lead.first_outcome_at = now
            if actor_id is not None:
                lead.owner_agent_id = actor_id
        if definition.tag != OutcomeTag.NO_ANSWER:
            lead.unreachable_count = 0

        state = _Transition(
            lead=lead,
            definition=definition,
            params=params,
            actor_id=actor_id,
            now=now,
            record=record,
        )
        self._handlers[tag](state)

        if not state.escalated:
            record.to_stage = lead.stage.value
        lead.updated_at = now

        self.activity.log_outcome(
            lead.id,
            definition.label,
            from_stage.value,
            lead.stage.value,
            actor_id=actor_id,
            notes=params.notes,
            workflow_ended=lead.is_terminal,
        )

        logger.info(
            f"Outcome applied: lead={lead.id} tag={tag} "
            f"{from_stage.value}->{lead.stage.value} tasks={len(state.tasks)}"
        )
        logger.debug(f"Lead after transition: {lead.to_safe_dict()}")
        return TransitionResult(
            lead_id=lead.id,
            new_stage=lead.stage,
            outcome_id=record.id,
            created_task_ids=tuple(task.id for task in state.tasks),
            terminal=lead.is_terminal,
            escalated_unreachable=state.escalated,
        )

    def reopen_lead(
        self,
        lead_id,
        target_stage=LeadStage.NEW,
        actor_id: Optional[UUID] = None,
    ) -> TransitionResult:
        """
        Move a won, lost or invalid lead back into the active pipeline.

        Outcome history is cleared so every outcome can be recorded again.
        No task is scheduled; the agent picks the next step.

        Raises:
            LeadNotFoundError: If the lead does not exist
            LeadNotTerminalError: If the lead is still active
            InvalidTargetStageError: If target_stage is won/lost or unknown
            NotLeadOwnerError: If actor_id is not the lead's owner
        """
        try:
            target = LeadStage(target_stage)
        except ValueError:
            raise InvalidTargetStageError(f"Unknown stage: {target_stage!r}")
        if target in TERMINAL_STAGES:
            raise InvalidTargetStageError(f"Cannot reopen a lead into '{target.value}'")

        with transaction(self.db):
            lead = lock_lead(self.db, lead_id)
            if not lead.is_terminal:
                raise LeadNotTerminalError(f"Lead {lead.id} is not closed")
            self._check_owner(lead, actor_id)

            now = self.clock.now()
            from_stage = lead.stage
            from_state = "invalid" if lead.invalid_flag else from_stage.value

            if from_stage == LeadStage.LOST:
                lead.restarted_from_lost = True
                lead.previous_lost_reason = lead.lost_reason or lead.previous_lost_reason

            lead.stage = target
            lead.invalid_flag = False
            lead.invalid_at = None
            lead.lost_reason = None
            lead.unreachable_count = 0
            lead.set_selected_outcomes(())
            lead.last_outcome = SystemTag.REOPENED.value
            lead.updated_at = now

            record = self._synthetic_record(
                lead,
                SystemTag.REOPENED,
                from_stage,
                target,
                now,
                actor_id=actor_id,
                notes=f"Reopened from {from_state}",
            )
            self.activity.log_reopened(lead.id, from_state, target.value, actor_id)

        logger.info(f"Lead reopened: lead={lead.id} {from_state}->{target.value}")
        return TransitionResult(
            lead_id=lead.id,
            new_stage=lead.stage,
            outcome_id=record.id,
        )

    def outcome_history(self, lead_id) -> List[OutcomeRecord]:
        lead = get_lead(self.db, lead_id)
        return (
            self.db.query(OutcomeRecord)
            .filter(OutcomeRecord.lead_id == lead.id)
            .order_by(OutcomeRecord.created_at, OutcomeRecord.is_synthetic)
            .all()
        )

    # =========================================================================
    # Preconditions
    # =========================================================================

    def _check_preconditions(
        self,
        lead: Lead,
        definition: OutcomeDefinition,
        params: OutcomeParams,
        actor_id: Optional[UUID],
    ) -> None:
        tag = definition.tag.value
        is_restart = (
            definition.tag == OutcomeTag.DEAL_LOST
            and params.client_still_with_us is True
            and lead.stage == LeadStage.LOST
            and not lead.invalid_flag
        )

        # A lost client who is still with us may restart; everything else
        # on a closed lead goes through reopen_lead.
        if not is_restart:
            if lead.is_terminal:
                raise TerminalLeadError(
                    f"Lead {lead.id} is closed ({self._closed_state(lead)}); reopen it first"
                )
            if not is_selectable(lead, tag):
                raise OutcomeNotAvailableError(
                    f"Outcome '{tag}' is not available for lead {lead.id} "
                    f"in stage '{lead.stage.value}'"
                )

        if definition.requires_reason and not is_valid_reason(tag, params.reason_id):
            raise ReasonRequiredError(
                f"Outcome '{tag}' requires a reason from: {', '.join(definition.reason_ids)}"
            )

        if definition.tag == OutcomeTag.DEAL_LOST and params.client_still_with_us is None:
            raise ClientStatusRequiredError(
                "Deal Lost requires client_still_with_us to be set"
            )

        self._check_owner(lead, actor_id)

    @staticmethod
    def _check_owner(lead: Lead, actor_id: Optional[UUID]) -> None:
        if (
            actor_id is not None
            and lead.is_ownership_locked
            and lead.owner_agent_id is not None
            and lead.owner_agent_id != actor_id
        ):
            raise NotLeadOwnerError(
                f"Lead {lead.id} is owned by agent {lead.owner_agent_id}"
            )

    @staticmethod
    def _closed_state(lead: Lead) -> str:
        return "invalid" if lead.invalid_flag else lead.stage.value

    # =========================================================================
    # Stage transition table
    # =========================================================================

    def _follow_up_due(self, state: _Transition) -> datetime:
        if state.params.due_at is not None:
            return ensure_utc(state.params.due_at)
        return state.now + timedelta(minutes=self.config.default_follow_up_minutes)

    def _add(self, state: _Transition, kind: TaskKind, due_at: datetime, **kwargs) -> Task:
        kwargs.setdefault("origin", TaskOrigin.OUTCOME)
        task = self.scheduler.add_task(
            state.lead, kind, due_at, actor_id=state.actor_id, **kwargs
        )
        state.tasks.append(task)
        return task

    def _add_follow_up(self, state: _Transition) -> None:
        self._add(
            state,
            TaskKind.FOLLOW_UP,
            self._follow_up_due(state),
            description=state.params.notes or f"Follow-up after: {state.definition.label}",
        )

    def _add_closure(self, state: _Transition, description: str) -> None:
        self._add(
            state,
            TaskKind.CLOSURE,
            state.now + timedelta(hours=self.config.closure_due_hours),
            description=description,
            allow_terminal=True,
        )

    def _on_call_back_request(self, state: _Transition) -> None:
        self._add_follow_up(state)

    def _on_no_answer(self, state: _Transition) -> None:
        lead = state.lead
        lead.unreachable_count = (lead.unreachable_count or 0) + 1

        if lead.unreachable_count < self.config.unreachable_threshold:
            self._add_follow_up(state)
            return

        from_stage = lead.stage
        lead.stage = LeadStage.LOST
        lead.lost_reason = UNREACHABLE_REASON_LABEL
        state.escalated = True
        self._synthetic_record(
            lead,
            SystemTag.AUTO_LOST_UNREACHABLE,
            from_stage,
            LeadStage.LOST,
            state.now,
            actor_id=state.actor_id,
            reason_id=UNREACHABLE_REASON_ID,
            db_outcome=ReportingOutcome.NOT_INTERESTED,
            notes=f"{lead.unreachable_count} consecutive unanswered attempts",
        )
        self._add_closure(state, f"Lead lost: {UNREACHABLE_REASON_LABEL}")
        logger.info(
            f"Lead auto-escalated to lost after {lead.unreachable_count} "
            f"unanswered attempts: lead={lead.id}"
        )

    def _on_interested(self, state: _Transition) -> None:
        state.lead.stage = LeadStage.QUALIFIED
        self._add_follow_up(state)

    def _on_meeting_scheduled(self, state: _Transition) -> None:
        lead = state.lead
        lead.stage = LeadStage.QUALIFIED
        meeting_at = self._follow_up_due(state)
        self._add(state, TaskKind.MEETING, meeting_at, description=state.params.notes)

        confirm_at = meeting_at - timedelta(hours=self.config.meeting_confirmation_hours_before)
        if confirm_at < state.now:
            confirm_at = state.now
        self._add(
            state,
            TaskKind.FOLLOW_UP,
            confirm_at,
            title=f"Confirm meeting with {lead.name or 'lead'}",
            description=f"Confirm meeting at {meeting_at.isoformat()}",
            origin=TaskOrigin.CONFIRMATION,
        )

    def _on_under_offer(self, state: _Transition) -> None:
        state.lead.stage = LeadStage.NEGOTIATING
        self._add_follow_up(state)

    def _on_deal_won(self, state: _Transition) -> None:
        state.lead.stage = LeadStage.WON
        self._add_closure(state, "Deal won: complete closing documentation")

    def _on_deal_lost(self, state: _Transition) -> None:
        lead = state.lead
        label = reason_label(OutcomeTag.DEAL_LOST, state.params.reason_id)

        if state.params.client_still_with_us:
            lead.stage = LeadStage.NEW
            lead.set_selected_outcomes(())
            lead.restarted_from_lost = True
            lead.previous_lost_reason = label
            lead.lost_reason = None
            self._add(
                state,
                TaskKind.FOLLOW_UP,
                state.now + timedelta(hours=self.config.restart_follow_up_hours),
                description=f"Restarted after lost deal ({label}); find a new option",
            )
            return

        lead.stage = LeadStage.LOST
        lead.lost_reason = label
        self._add_closure(state, f"Deal lost: {label}")

    def _on_invalid(self, state: _Transition) -> None:
        state.lead.invalid_flag = True
        state.lead.invalid_at = state.now

    # =========================================================================
    # Helpers
    # =========================================================================

    def _synthetic_record(
        self,
        lead: Lead,
        tag: SystemTag,
        from_stage: LeadStage,
        to_stage: LeadStage,
        now: datetime,
        actor_id: Optional[UUID] = None,
        reason_id: Optional[str] = None,
        db_outcome: Optional[ReportingOutcome] = None,
        notes: Optional[str] = None,
    ) -> OutcomeRecord:
        record = OutcomeRecord(
            id=uuid.uuid4(),
            lead_id=lead.id,
            outcome_tag=tag.value,
            db_outcome=db_outcome.value if db_outcome else None,
            reason_id=reason_id,
            notes=notes,
            from_stage=from_stage.value,
            to_stage=to_stage.value,
            is_synthetic=True,
            created_at=now,
            created_by=actor_id,
        )
        self.db.add(record)
        return record
