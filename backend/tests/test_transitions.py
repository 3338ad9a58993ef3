from datetime import timedelta
from uuid import uuid4

import pytest

from leadflow.core.exceptions import (
    ClientStatusRequiredError,
    ConcurrentUpdateError,
    InvalidTargetStageError,
    LeadNotFoundError,
    LeadNotTerminalError,
    NotLeadOwnerError,
    OutcomeNotAvailableError,
    ReasonRequiredError,
    TerminalLeadError,
    UnknownOutcome,
)
from leadflow.core.transactions import transaction
from leadflow.models import (
    Lead,
    LeadActivity,
    LeadStage,
    OutcomeRecord,
    Task,
    TaskKind,
    TaskOrigin,
)
from leadflow.services.sla import SlaState
from leadflow.services.workflow import WorkflowService

from conftest import T0


def tasks_of(db, lead):
    return db.query(Task).filter(Task.lead_id == lead.id).order_by(Task.due_at).all()


def records_of(db, lead):
    return (
        db.query(OutcomeRecord)
        .filter(OutcomeRecord.lead_id == lead.id)
        .order_by(OutcomeRecord.created_at, OutcomeRecord.is_synthetic)
        .all()
    )


# =============================================================================
# Reference scenarios
# =============================================================================

def test_call_back_request_on_new_lead(db, clock, workflow, make_lead, agent):
    lead = make_lead()
    clock.advance(minutes=5)

    result = workflow.apply_outcome(
        lead.id, "call_back_request", due_at=T0 + timedelta(hours=1), actor_id=agent.id
    )

    assert result.new_stage == LeadStage.NEW
    assert lead.stage == LeadStage.NEW
    assert lead.first_outcome_at == clock.now()

    tasks = tasks_of(db, lead)
    assert len(tasks) == 1
    assert tasks[0].kind == TaskKind.FOLLOW_UP
    assert tasks[0].due_at == T0 + timedelta(hours=1)
    assert result.created_task_id == tasks[0].id

    sla = workflow.get_sla_status(lead.id)
    assert sla.state == SlaState.OWNED
    assert sla.agent_id == agent.id

    [record] = records_of(db, lead)
    assert record.outcome_tag == "call_back_request"
    assert record.db_outcome == "callback"
    assert record.created_by == agent.id


def test_deal_won_while_negotiating(db, clock, workflow, make_lead):
    lead = make_lead(stage=LeadStage.NEGOTIATING)

    result = workflow.apply_outcome(lead.id, "deal_won")

    assert result.new_stage == LeadStage.WON
    assert result.terminal
    [task] = tasks_of(db, lead)
    assert task.kind == TaskKind.CLOSURE
    assert task.due_at == clock.now() + timedelta(hours=2)
    assert workflow.get_selectable_outcomes(lead.id) == ()
    assert workflow.get_sla_status(lead.id).state == SlaState.NONE


def test_meeting_scheduled_repeats(db, workflow, make_lead):
    lead = make_lead(stage=LeadStage.QUALIFIED, outcomes_selected=["meeting_scheduled"])

    assert "meeting_scheduled" in workflow.get_selectable_outcomes(lead.id)

    workflow.apply_outcome(lead.id, "meeting_scheduled", due_at=T0 + timedelta(days=1))
    assert "meeting_scheduled" in workflow.get_selectable_outcomes(lead.id)


# =============================================================================
# Stage transition table
# =============================================================================

def test_interested_qualifies_with_default_follow_up(db, clock, workflow, make_lead):
    lead = make_lead(stage=LeadStage.CONTACTED)

    result = workflow.apply_outcome(lead.id, "interested")

    assert result.new_stage == LeadStage.QUALIFIED
    [task] = tasks_of(db, lead)
    assert task.kind == TaskKind.FOLLOW_UP
    assert task.origin == TaskOrigin.OUTCOME
    assert task.due_at == clock.now() + timedelta(minutes=60)


def test_interested_twice_is_rejected(db, workflow, make_lead):
    lead = make_lead()
    workflow.apply_outcome(lead.id, "interested")

    with pytest.raises(OutcomeNotAvailableError):
        workflow.apply_outcome(lead.id, "interested")

    assert len(records_of(db, lead)) == 1


def test_one_time_outcome_leaves_selectable_set(workflow, make_lead):
    lead = make_lead()
    workflow.apply_outcome(lead.id, "interested")

    tags = workflow.get_selectable_outcomes(lead.id)
    assert "interested" not in tags
    assert "meeting_scheduled" in tags
    assert lead.selected_outcomes == {"interested"}


def test_meeting_schedules_meeting_and_confirmation(db, clock, workflow, make_lead):
    lead = make_lead()
    meeting_at = clock.now() + timedelta(days=2)

    result = workflow.apply_outcome(lead.id, "meeting_scheduled", due_at=meeting_at)

    assert result.new_stage == LeadStage.QUALIFIED
    assert len(result.created_task_ids) == 2
    confirmation, meeting = tasks_of(db, lead)
    assert meeting.kind == TaskKind.MEETING
    assert meeting.due_at == meeting_at
    assert confirmation.kind == TaskKind.FOLLOW_UP
    assert confirmation.origin == TaskOrigin.CONFIRMATION
    assert confirmation.due_at == meeting_at - timedelta(hours=3)


def test_meeting_confirmation_clamped_to_now(db, clock, workflow, make_lead):
    lead = make_lead()

    workflow.apply_outcome(lead.id, "meeting_scheduled", due_at=clock.now() + timedelta(hours=1))

    confirmation = next(t for t in tasks_of(db, lead) if t.origin == TaskOrigin.CONFIRMATION)
    assert confirmation.due_at == clock.now()


def test_under_offer_moves_to_negotiating(workflow, make_lead):
    lead = make_lead(stage=LeadStage.QUALIFIED)
    result = workflow.apply_outcome(lead.id, "under_offer")
    assert result.new_stage == LeadStage.NEGOTIATING
    assert "deal_won" in workflow.get_selectable_outcomes(lead.id)


def test_deal_won_needs_negotiating(db, workflow, make_lead):
    lead = make_lead(stage=LeadStage.QUALIFIED)
    with pytest.raises(OutcomeNotAvailableError):
        workflow.apply_outcome(lead.id, "deal_won")


# =============================================================================
# Unreachable escalation
# =============================================================================

def test_three_no_answers_lose_the_lead(db, workflow, make_lead):
    lead = make_lead()

    workflow.apply_outcome(lead.id, "no_answer")
    workflow.apply_outcome(lead.id, "no_answer")
    assert lead.unreachable_count == 2
    assert lead.stage == LeadStage.NEW

    result = workflow.apply_outcome(lead.id, "no_answer")

    assert result.new_stage == LeadStage.LOST
    assert result.escalated_unreachable
    assert lead.unreachable_count == 3
    assert lead.lost_reason == "No Answer After Multiple Attempts"

    synthetic = [r for r in records_of(db, lead) if r.is_synthetic]
    assert len(synthetic) == 1
    assert synthetic[0].outcome_tag == "auto_lost_unreachable"
    assert synthetic[0].from_stage == "new"
    assert synthetic[0].to_stage == "lost"

    kinds = [t.kind for t in tasks_of(db, lead)]
    assert kinds.count(TaskKind.FOLLOW_UP) == 2
    assert kinds.count(TaskKind.CLOSURE) == 1

    assert workflow.get_sla_status(lead.id).state == SlaState.UNREACHABLE
    assert workflow.get_selectable_outcomes(lead.id) == ()


def test_other_outcome_resets_unreachable_count(workflow, make_lead):
    lead = make_lead()
    workflow.apply_outcome(lead.id, "no_answer")
    workflow.apply_outcome(lead.id, "no_answer")

    workflow.apply_outcome(lead.id, "call_back_request")
    assert lead.unreachable_count == 0

    workflow.apply_outcome(lead.id, "no_answer")
    assert lead.stage == LeadStage.NEW


# =============================================================================
# Deal lost
# =============================================================================

def test_deal_lost_client_still_with_us_restarts(db, clock, workflow, make_lead):
    lead = make_lead(stage=LeadStage.NEGOTIATING, outcomes_selected=["interested", "under_offer"])

    result = workflow.apply_outcome(
        lead.id, "deal_lost", reason_id="seller_backed_out", client_still_with_us=True
    )

    assert result.new_stage == LeadStage.NEW
    assert not result.terminal
    assert lead.selected_outcomes == frozenset()
    assert lead.restarted_from_lost
    assert lead.previous_lost_reason == "Seller Backed Out"
    [task] = tasks_of(db, lead)
    assert task.kind == TaskKind.FOLLOW_UP
    assert task.due_at == clock.now() + timedelta(hours=24)
    assert "interested" in workflow.get_selectable_outcomes(lead.id)


def test_deal_lost_client_gone_closes(db, clock, workflow, make_lead):
    lead = make_lead(stage=LeadStage.QUALIFIED)

    result = workflow.apply_outcome(
        lead.id, "deal_lost", reason_id="budget_too_low", client_still_with_us=False
    )

    assert result.new_stage == LeadStage.LOST
    assert result.terminal
    assert lead.lost_reason == "Budget Too Low"
    assert workflow.get_selectable_outcomes(lead.id) == ()
    [task] = tasks_of(db, lead)
    assert task.kind == TaskKind.CLOSURE


def test_lost_lead_can_restart_when_client_returns(workflow, make_lead):
    lead = make_lead(stage=LeadStage.QUALIFIED)
    workflow.apply_outcome(lead.id, "deal_lost", reason_id="financing_issues", client_still_with_us=False)

    result = workflow.apply_outcome(
        lead.id, "deal_lost", reason_id="financing_issues", client_still_with_us=True
    )

    assert result.new_stage == LeadStage.NEW
    assert lead.lost_reason is None
    assert lead.previous_lost_reason == "Financing Issues"


def test_lost_lead_rejects_other_outcomes(workflow, make_lead):
    lead = make_lead(stage=LeadStage.LOST)
    with pytest.raises(TerminalLeadError):
        workflow.apply_outcome(lead.id, "interested")


@pytest.mark.parametrize("reason_id", [None, "", "test_junk_data"])
def test_deal_lost_requires_valid_reason(workflow, make_lead, reason_id):
    lead = make_lead(stage=LeadStage.QUALIFIED)
    with pytest.raises(ReasonRequiredError):
        workflow.apply_outcome(lead.id, "deal_lost", reason_id=reason_id, client_still_with_us=False)


def test_deal_lost_requires_client_status(workflow, make_lead):
    lead = make_lead(stage=LeadStage.QUALIFIED)
    with pytest.raises(ClientStatusRequiredError):
        workflow.apply_outcome(lead.id, "deal_lost", reason_id="budget_too_low")


# =============================================================================
# Invalid
# =============================================================================

def test_invalid_closes_without_task(db, clock, workflow, make_lead):
    lead = make_lead(stage=LeadStage.CONTACTED)

    result = workflow.apply_outcome(lead.id, "invalid", reason_id="test_junk_data")

    assert result.terminal
    assert result.created_task_ids == ()
    assert lead.invalid_flag
    assert lead.invalid_at == clock.now()
    assert tasks_of(db, lead) == []
    assert workflow.get_selectable_outcomes(lead.id) == ()

    with pytest.raises(TerminalLeadError):
        workflow.apply_outcome(lead.id, "call_back_request")


def test_invalid_lead_cannot_restart_through_deal_lost(workflow, make_lead):
    lead = make_lead(stage=LeadStage.LOST, invalid_flag=True)
    with pytest.raises(TerminalLeadError):
        workflow.apply_outcome(lead.id, "deal_lost", reason_id="budget_too_low", client_still_with_us=True)


# =============================================================================
# Preconditions
# =============================================================================

def test_unknown_outcome(workflow, make_lead):
    lead = make_lead()
    with pytest.raises(UnknownOutcome):
        workflow.apply_outcome(lead.id, "maybe_later")


def test_missing_lead(workflow):
    with pytest.raises(LeadNotFoundError):
        workflow.apply_outcome(uuid4(), "interested")


def test_rejected_outcome_leaves_no_trace(db, workflow, make_lead):
    lead = make_lead(stage=LeadStage.NEGOTIATING, outcomes_selected=["interested"])
    version = lead.version

    with pytest.raises(ClientStatusRequiredError):
        workflow.apply_outcome(lead.id, "deal_lost", reason_id="budget_too_low")

    db.expire_all()
    assert db.query(OutcomeRecord).count() == 0
    assert db.query(Task).count() == 0
    assert db.query(LeadActivity).count() == 0
    assert lead.stage == LeadStage.NEGOTIATING
    assert lead.version == version
    assert lead.first_outcome_at is None
    assert lead.selected_outcomes == {"interested"}


def test_first_outcome_locks_owner(workflow, make_lead, agent, other_agent):
    lead = make_lead()

    workflow.apply_outcome(lead.id, "call_back_request", actor_id=other_agent.id)
    assert lead.owner_agent_id == other_agent.id

    with pytest.raises(NotLeadOwnerError):
        workflow.apply_outcome(lead.id, "interested", actor_id=agent.id)

    workflow.apply_outcome(lead.id, "interested", actor_id=other_agent.id)
    assert lead.stage == LeadStage.QUALIFIED


def test_outcome_logs_activity(db, workflow, make_lead):
    lead = make_lead()
    workflow.apply_outcome(lead.id, "interested", notes="Wants a 2BR in Marina")

    descriptions = [a.description for a in db.query(LeadActivity).all()]
    assert any("Interested (new → qualified)" in d and "Marina" in d for d in descriptions)
    assert any(d.startswith("Created task") for d in descriptions)


# =============================================================================
# Reopen
# =============================================================================

def test_reopen_lost_lead(db, workflow, make_lead):
    lead = make_lead(stage=LeadStage.QUALIFIED)
    workflow.apply_outcome(lead.id, "deal_lost", reason_id="lost_to_competitor", client_still_with_us=False)

    result = workflow.reopen_lead(lead.id)

    assert result.new_stage == LeadStage.NEW
    assert lead.restarted_from_lost
    assert lead.previous_lost_reason == "Lost to Competitor"
    assert lead.lost_reason is None
    assert lead.selected_outcomes == frozenset()
    assert "deal_lost" in workflow.get_selectable_outcomes(lead.id)

    last = records_of(db, lead)[-1]
    assert last.outcome_tag == "reopened"
    assert last.is_synthetic


def test_reopen_invalid_lead_into_qualified(workflow, make_lead):
    lead = make_lead(stage=LeadStage.CONTACTED)
    workflow.apply_outcome(lead.id, "invalid", reason_id="existing_client")

    workflow.reopen_lead(lead.id, LeadStage.QUALIFIED)

    assert lead.stage == LeadStage.QUALIFIED
    assert not lead.invalid_flag
    assert lead.invalid_at is None


def test_reopen_active_lead_is_rejected(workflow, make_lead):
    lead = make_lead()
    with pytest.raises(LeadNotTerminalError):
        workflow.reopen_lead(lead.id)


@pytest.mark.parametrize("target", ["won", "lost", "archived"])
def test_reopen_into_terminal_stage_is_rejected(workflow, make_lead, target):
    lead = make_lead(stage=LeadStage.WON)
    with pytest.raises(InvalidTargetStageError):
        workflow.reopen_lead(lead.id, target)


# =============================================================================
# Concurrency
# =============================================================================

def test_losing_racer_revalidates(session_factory, clock, settings, make_lead):
    lead = make_lead()
    first = session_factory()
    second = session_factory()
    try:
        # Both sessions have seen the lead before either writes
        second_workflow = WorkflowService(second, clock, settings)
        assert "interested" in second_workflow.get_selectable_outcomes(lead.id)

        WorkflowService(first, clock, settings).apply_outcome(lead.id, "interested")

        with pytest.raises(OutcomeNotAvailableError):
            second_workflow.apply_outcome(lead.id, "interested")
    finally:
        first.close()
        second.close()

    assert WorkflowService(session_factory(), clock, settings).get_lead(lead.id).stage == LeadStage.QUALIFIED


def test_stale_write_is_reported(session_factory, clock, settings, make_lead):
    lead = make_lead()
    writer = session_factory()
    stale = session_factory()
    try:
        stale_lead = stale.get(Lead, lead.id)

        WorkflowService(writer, clock, settings).apply_outcome(lead.id, "interested")

        with pytest.raises(ConcurrentUpdateError):
            with transaction(stale):
                stale_lead.name = "Overwritten"
    finally:
        writer.close()
        stale.close()
