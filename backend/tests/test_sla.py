from datetime import timedelta
from uuid import uuid4

from leadflow.models import Lead, LeadStage
from leadflow.services.sla import SlaState, sla_status

from conftest import T0


AGENT = uuid4()


def make(stage=LeadStage.NEW, assigned_at=T0, first_outcome_at=None, unreachable_count=0):
    return Lead(
        stage=stage,
        owner_agent_id=AGENT,
        assigned_at=assigned_at,
        first_outcome_at=first_outcome_at,
        unreachable_count=unreachable_count,
    )


def test_active_counts_down():
    status = sla_status(make(), T0 + timedelta(minutes=12))
    assert status.state == SlaState.ACTIVE
    assert status.elapsed_minutes == 12
    assert status.remaining_minutes == 18
    assert status.agent_id == AGENT


def test_minutes_are_floored():
    status = sla_status(make(), T0 + timedelta(minutes=12, seconds=59))
    assert status.elapsed_minutes == 12
    assert status.remaining_minutes == 17


def test_overdue_at_target():
    status = sla_status(make(), T0 + timedelta(minutes=30))
    assert status.state == SlaState.OVERDUE
    assert status.elapsed_minutes == 30


def test_owned_once_first_outcome_recorded():
    lead = make(first_outcome_at=T0 + timedelta(minutes=5))
    status = sla_status(lead, T0 + timedelta(hours=5))
    assert status.state == SlaState.OWNED
    assert status.agent_id == AGENT


def test_unassigned_lead_has_no_sla():
    assert sla_status(make(assigned_at=None), T0).state == SlaState.NONE


def test_won_lead_has_no_sla():
    assert sla_status(make(stage=LeadStage.WON), T0 + timedelta(days=3)).state == SlaState.NONE
    won_owned = make(stage=LeadStage.WON, first_outcome_at=T0)
    assert sla_status(won_owned, T0 + timedelta(days=3)).state == SlaState.NONE


def test_unreachable_beats_owned():
    lead = make(stage=LeadStage.LOST, first_outcome_at=T0, unreachable_count=3)
    assert sla_status(lead, T0 + timedelta(hours=1)).state == SlaState.UNREACHABLE


def test_unanswered_attempts_below_threshold_are_not_unreachable():
    lead = make(stage=LeadStage.LOST, first_outcome_at=T0, unreachable_count=2)
    assert sla_status(lead, T0).state == SlaState.OWNED


def test_custom_target_and_threshold():
    status = sla_status(make(), T0 + timedelta(minutes=10), sla_target=timedelta(minutes=10))
    assert status.state == SlaState.OVERDUE

    lead = make(stage=LeadStage.LOST, first_outcome_at=T0, unreachable_count=2)
    assert sla_status(lead, T0, unreachable_threshold=2).state == SlaState.UNREACHABLE
