import pytest

from leadflow.models import Lead, LeadStage
from leadflow.services.gating import is_selectable, selectable_outcomes


def lead_in(stage, selected=(), invalid=False):
    return Lead(stage=stage, outcomes_selected=list(selected), invalid_flag=invalid)


def test_new_lead_gets_everything_but_deal_won():
    assert selectable_outcomes(lead_in(LeadStage.NEW)) == (
        "call_back_request",
        "no_answer",
        "interested",
        "meeting_scheduled",
        "under_offer",
        "deal_lost",
        "invalid",
    )


def test_contacted_hides_late_pipeline_outcomes():
    tags = selectable_outcomes(lead_in(LeadStage.CONTACTED))
    assert "under_offer" not in tags
    assert "deal_lost" not in tags
    assert "deal_won" not in tags
    assert "interested" in tags


def test_negotiating_offers_deal_won():
    assert "deal_won" in selectable_outcomes(lead_in(LeadStage.NEGOTIATING))


@pytest.mark.parametrize(
    "stage", [LeadStage.NEW, LeadStage.CONTACTED, LeadStage.QUALIFIED]
)
def test_deal_won_only_while_negotiating(stage):
    assert not is_selectable(lead_in(stage), "deal_won")


@pytest.mark.parametrize("stage", [LeadStage.WON, LeadStage.LOST])
def test_terminal_stage_offers_nothing(stage):
    assert selectable_outcomes(lead_in(stage)) == ()


def test_invalid_lead_offers_nothing():
    assert selectable_outcomes(lead_in(LeadStage.QUALIFIED, invalid=True)) == ()


def test_recorded_one_time_outcome_is_removed():
    tags = selectable_outcomes(lead_in(LeadStage.QUALIFIED, ["interested", "under_offer"]))
    assert "interested" not in tags
    assert "under_offer" not in tags


def test_meeting_scheduled_stays_selectable():
    lead = lead_in(LeadStage.QUALIFIED, ["meeting_scheduled"])
    assert "meeting_scheduled" in selectable_outcomes(lead)


def test_repeatable_contact_outcomes_stay_selectable():
    lead = lead_in(LeadStage.NEW, ["no_answer", "call_back_request"])
    tags = selectable_outcomes(lead)
    assert "no_answer" in tags
    assert "call_back_request" in tags


def test_resolver_is_pure():
    lead = lead_in(LeadStage.NEGOTIATING, ["interested"])
    first = selectable_outcomes(lead)
    assert selectable_outcomes(lead) == first
    assert lead.outcomes_selected == ["interested"]
