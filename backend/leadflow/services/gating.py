"""
Gating resolver: which outcomes an agent may record for a lead right now.

Pure and deterministic; safe to call on every render.
"""

from typing import Tuple

from ..models.lead import Lead, LeadStage
from .outcome_catalog import CATALOG, OutcomeTag


# Outcomes that stay selectable after being recorded. Everything else is a
# one-time milestone. Meetings stay open because they get rescheduled.
REPEATABLE_OUTCOMES = frozenset({
    OutcomeTag.CALL_BACK_REQUEST.value,
    OutcomeTag.NO_ANSWER.value,
    OutcomeTag.MEETING_SCHEDULED.value,
})

HIDDEN_WHILE_CONTACTED = frozenset({
    OutcomeTag.UNDER_OFFER.value,
    OutcomeTag.DEAL_LOST.value,
    OutcomeTag.DEAL_WON.value,
})


def selectable_outcomes(lead: Lead) -> Tuple[str, ...]:
    """
    Outcome tags selectable for lead, in catalog order.

    Terminal leads get nothing; they must go through the reopen flow.
    """
    if lead.is_terminal:
        return ()

    already_recorded = lead.selected_outcomes
    available = []
    for entry in CATALOG:
        tag = entry.tag.value
        if tag == OutcomeTag.DEAL_WON.value and lead.stage != LeadStage.NEGOTIATING:
            continue
        if lead.stage == LeadStage.CONTACTED and tag in HIDDEN_WHILE_CONTACTED:
            continue
        if tag in already_recorded and tag not in REPEATABLE_OUTCOMES:
            continue
        available.append(tag)
    return tuple(available)


def is_selectable(lead: Lead, tag: str) -> bool:
    return tag in selectable_outcomes(lead)
