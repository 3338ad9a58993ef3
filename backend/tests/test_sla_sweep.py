from datetime import timedelta

from leadflow.models import AssignmentHistory, LeadActivity, LeadStage
from leadflow.services.sla_sweep import SLA_BREACH_REASON, SlaSweep

from conftest import T0


def sweep(db, clock, settings):
    return SlaSweep(db, clock, settings).reassign_overdue_leads()


def test_overdue_lead_moves_to_another_agent(db, clock, settings, make_lead, agent, other_agent):
    lead = make_lead()
    db.add(AssignmentHistory(lead_id=lead.id, agent_id=agent.id, assigned_at=T0))
    db.commit()
    clock.advance(minutes=31)

    result = sweep(db, clock, settings)

    assert result.reassigned == [lead.id]
    assert lead.owner_agent_id == other_agent.id
    assert lead.assigned_at == clock.now()
    assert lead.assignment_version == 1

    db.expire_all()
    history =db.query(AssignmentHistory).order_by(AssignmentHistory.assigned_at).all()
    assert len(history) == 2
    assert history[0].released_at == clock.now()
    assert history[0].reason == SLA_BREACH_REASON
    assert history[1].agent_id == other_agent.id
    assert history[1].released_at is None
    assert history[1].version == 1

    [entry] = db.query(LeadActivity).all()
    assert "sla_breach" in entry.description


def test_window_boundary_is_overdue(db, clock, settings, make_lead, other_agent):
    lead = make_lead()
    clock.advance(minutes=30)

    assert sweep(db, clock, settings).reassigned == [lead.id]


def test_lead_within_window_is_left_alone(db, clock, settings, make_lead, agent, other_agent):
    lead = make_lead()
    clock.advance(minutes=29)

    result = sweep(db, clock, settings)

    assert result.checked == 0
    assert lead.owner_agent_id == agent.id


def test_owned_lead_is_never_reassigned(db, clock, settings, workflow, make_lead, agent, other_agent):
    lead = make_lead()
    clock.advance(minutes=10)
    workflow.apply_outcome(lead.id, "call_back_request", actor_id=agent.id)
    clock.advance(hours=5)

    result = sweep(db, clock, settings)

    assert result.reassigned == []
    assert lead.owner_agent_id == agent.id
    assert lead.assignment_version == 0


def test_later_stages_and_invalid_leads_are_skipped(db, clock, settings, make_lead, other_agent):
    make_lead(stage=LeadStage.QUALIFIED)
    make_lead(stage=LeadStage.LOST)
    make_lead(stage=LeadStage.CONTACTED, invalid_flag=True)
    contacted = make_lead(stage=LeadStage.CONTACTED)
    clock.advance(hours=1)

    assert sweep(db, clock, settings).reassigned == [contacted.id]


def test_no_other_agent_skips(db, clock, settings, make_lead, agent):
    lead = make_lead()
    clock.advance(hours=1)

    result = sweep(db, clock, settings)

    assert result.checked == 1
    assert result.skipped == 1
    assert result.reassigned == []
    assert lead.owner_agent_id == agent.id
    assert db.query(AssignmentHistory).count() == 0


def test_least_busy_active_agent_wins(db, clock, settings, make_lead, agent, add_agent):
    busy = add_agent("Busy Bee", "busy@example.com")
    idle = add_agent("Idle Ian", "idle@example.com")
    retired = add_agent("Retired Rana", "retired@example.com", is_active=False)

    # busy carries two open leads, idle one; closed leads do not count
    make_lead(owner_agent_id=busy.id, first_outcome_at=T0)
    make_lead(owner_agent_id=busy.id, first_outcome_at=T0)
    make_lead(owner_agent_id=idle.id, first_outcome_at=T0)
    make_lead(stage=LeadStage.WON, owner_agent_id=idle.id, first_outcome_at=T0)
    make_lead(stage=LeadStage.LOST, owner_agent_id=idle.id, first_outcome_at=T0)

    overdue = make_lead()
    clock.advance(hours=1)

    sweep(db, clock, settings)

    assert overdue.owner_agent_id == idle.id
    assert overdue.owner_agent_id != retired.id


def test_invalid_leads_do_not_count_as_workload(db, clock, settings, make_lead, agent, add_agent):
    steady = add_agent("Steady Sam", "steady@example.com")
    cleared = add_agent("Cleared Cara", "cleared@example.com")

    make_lead(owner_agent_id=steady.id, first_outcome_at=T0)
    for _ in range(2):
        make_lead(owner_agent_id=cleared.id, first_outcome_at=T0, invalid_flag=True, invalid_at=T0)

    overdue = make_lead()
    clock.advance(hours=1)

    sweep(db, clock, settings)

    assert overdue.owner_agent_id == cleared.id


def test_least_busy_agent_excludes_current_owner(db, clock, settings, agent, other_agent):
    service = SlaSweep(db, clock, settings)
    assert service.least_busy_agent(exclude=agent.id) == other_agent.id
    assert service.least_busy_agent(exclude=other_agent.id) == agent.id


def test_reassigned_lead_gets_fresh_window(db, clock, settings, make_lead, agent, other_agent):
    lead = make_lead()
    clock.advance(minutes=45)
    sweep(db, clock, settings)
    assert lead.owner_agent_id == other_agent.id

    clock.advance(minutes=10)
    assert sweep(db, clock, settings).checked == 0

    clock.advance(minutes=20)
    sweep(db, clock, settings)
    assert lead.owner_agent_id == agent.id
    assert lead.assignment_version == 2
