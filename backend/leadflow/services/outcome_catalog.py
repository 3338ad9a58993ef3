"""
Outcome catalog.

Static table of every business outcome an agent can record, with its
reason requirement and the coarser reporting outcome it maps to.
This is the only place business tags are mapped onto the reporting
taxonomy; callers look entries up instead of branching on tags.
"""

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..core.exceptions import UnknownOutcome


CATALOG_VERSION = 1


class OutcomeTag(str, enum.Enum):
    CALL_BACK_REQUEST = "call_back_request"
    NO_ANSWER = "no_answer"
    INTERESTED = "interested"
    MEETING_SCHEDULED = "meeting_scheduled"
    UNDER_OFFER = "under_offer"
    DEAL_WON = "deal_won"
    DEAL_LOST = "deal_lost"
    INVALID = "invalid"


class ReportingOutcome(str, enum.Enum):
    """Coarse outcome taxonomy used for call reporting."""
    INTERESTED = "interested"
    CALLBACK = "callback"
    NO_ANSWER = "no_answer"
    NOT_INTERESTED = "not_interested"
    INVALID = "invalid"
    OTHER = "other"


class SystemTag(str, enum.Enum):
    """Tags of synthetic outcome records written by the engine itself."""
    AUTO_LOST_UNREACHABLE = "auto_lost_unreachable"
    REOPENED = "reopened"


# =============================================================================
# Reason Lists
# =============================================================================

INVALID_REASONS: Dict[str, str] = {
    "developer": "Developer",
    "agent": "Agent",
    "marketing": "Marketing",
    "job_request": "Job Request",
    "test_junk_data": "Test/Junk Data",
    "incorrect_contact_details": "Incorrect Contact Details",
    "existing_client": "Existing Client",
    "only_researching": "Only Researching/Browsing",
    "no_answer_after_multiple_attempts": "No Answer After Multiple Attempts",
}

DEAL_LOST_REASONS: Dict[str, str] = {
    "property_not_available": "Property Not Available",
    "seller_backed_out": "Seller Backed Out",
    "financing_issues": "Financing Issues",
    "lost_to_competitor": "Lost to Competitor",
    "legal_compliance_issue": "Legal/Compliance Issue",
    "no_suitable_property": "Couldn't Find Suitable Property",
    "no_answer_after_multiple_attempts": "No Answer After Multiple Attempts",
    "offer_rejected": "Offer Rejected (Client Will Not Raise)",
    "budget_too_low": "Budget Too Low",
}

UNREACHABLE_REASON_ID = "no_answer_after_multiple_attempts"
UNREACHABLE_REASON_LABEL = DEAL_LOST_REASONS[UNREACHABLE_REASON_ID]


# =============================================================================
# Catalog
# =============================================================================

@dataclass(frozen=True)
class OutcomeDefinition:
    tag: OutcomeTag
    label: str
    requires_reason: bool
    reasons: Dict[str, str]
    db_outcome: ReportingOutcome

    @property
    def reason_ids(self) -> Tuple[str, ...]:
        return tuple(self.reasons)


_NO_REASONS: Dict[str, str] = {}

# Order here is the order outcomes are offered to agents
CATALOG: Tuple[OutcomeDefinition, ...] = (
    OutcomeDefinition(OutcomeTag.CALL_BACK_REQUEST, "Call Back Request", False,
                      _NO_REASONS, ReportingOutcome.CALLBACK),
    OutcomeDefinition(OutcomeTag.NO_ANSWER, "No Answer", False,
                      _NO_REASONS, ReportingOutcome.NO_ANSWER),
    OutcomeDefinition(OutcomeTag.INTERESTED, "Interested", False,
                      _NO_REASONS, ReportingOutcome.INTERESTED),
    OutcomeDefinition(OutcomeTag.MEETING_SCHEDULED, "Meeting Scheduled", False,
                      _NO_REASONS, ReportingOutcome.INTERESTED),
    OutcomeDefinition(OutcomeTag.UNDER_OFFER, "Under Offer", False,
                      _NO_REASONS, ReportingOutcome.OTHER),
    OutcomeDefinition(OutcomeTag.DEAL_WON, "Deal Won", False,
                      _NO_REASONS, ReportingOutcome.OTHER),
    OutcomeDefinition(OutcomeTag.DEAL_LOST, "Deal Lost", True,
                      DEAL_LOST_REASONS, ReportingOutcome.NOT_INTERESTED),
    OutcomeDefinition(OutcomeTag.INVALID, "Invalid", True,
                      INVALID_REASONS, ReportingOutcome.INVALID),
)

_BY_TAG: Dict[str, OutcomeDefinition] = {entry.tag.value: entry for entry in CATALOG}


def get_outcome(tag) -> OutcomeDefinition:
    """
    Look up a catalog entry.

    Args:
        tag: OutcomeTag or its string value

    Raises:
        UnknownOutcome: If the tag is not in the catalog
    """
    key = tag.value if isinstance(tag, OutcomeTag) else tag
    try:
        return _BY_TAG[key]
    except (KeyError, TypeError):
        raise UnknownOutcome(f"Unknown outcome: {tag!r}")


def all_tags() -> Tuple[str, ...]:
    return tuple(entry.tag.value for entry in CATALOG)


def is_valid_reason(tag, reason_id: Optional[str]) -> bool:
    if not reason_id:
        return False
    return reason_id in get_outcome(tag).reasons


def reason_label(tag, reason_id: Optional[str]) -> Optional[str]:
    if reason_id is None:
        return None
    return get_outcome(tag).reasons.get(reason_id)
