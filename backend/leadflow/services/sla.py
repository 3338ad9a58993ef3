"""
SLA monitor.

Computes the response-time badge for a lead from its timestamps and the
current time. Pure function; the API refreshes it on a timer.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from ..core.clock import ensure_utc
from ..models.lead import Lead, LeadStage


class SlaState(str, enum.Enum):
    UNREACHABLE = "unreachable"
    OWNED = "owned"
    OVERDUE = "overdue"
    ACTIVE = "active"
    NONE = "none"


@dataclass(frozen=True)
class SlaStatus:
    state: SlaState
    agent_id: Optional[UUID] = None
    elapsed_minutes: Optional[int] = None
    remaining_minutes: Optional[int] = None

    @classmethod
    def none(cls) -> "SlaStatus":
        return cls(SlaState.NONE)


def _whole_minutes(delta: timedelta) -> int:
    return max(0, int(delta.total_seconds() // 60))


def sla_status(
    lead: Lead,
    now: datetime,
    sla_target: timedelta = timedelta(minutes=30),
    unreachable_threshold: int = 3,
) -> SlaStatus:
    """
    Compute the SLA status of a lead.

    Order matters: an unreachable lost lead shows as unreachable even though
    it also has a first outcome, and an owned lead never shows a countdown.

    Args:
        lead: Lead to evaluate
        now: Current time
        sla_target: Response window
        unreachable_threshold: No-answer count that marks a lost lead unreachable

    Returns:
        SlaStatus
    """
    if (lead.unreachable_count or 0) >= unreachable_threshold and lead.stage == LeadStage.LOST:
        return SlaStatus(SlaState.UNREACHABLE)

    # Won leads carry no SLA badge at all, overdue or owned
    if lead.stage == LeadStage.WON:
        return SlaStatus.none()

    if lead.first_outcome_at is not None:
        return SlaStatus(SlaState.OWNED, agent_id=lead.owner_agent_id)

    if lead.assigned_at is None:
        return SlaStatus.none()

    elapsed = ensure_utc(now) - ensure_utc(lead.assigned_at)
    if elapsed >= sla_target:
        return SlaStatus(
            SlaState.OVERDUE,
            agent_id=lead.owner_agent_id,
            elapsed_minutes=_whole_minutes(elapsed),
        )

    return SlaStatus(
        SlaState.ACTIVE,
        agent_id=lead.owner_agent_id,
        elapsed_minutes=_whole_minutes(elapsed),
        remaining_minutes=_whole_minutes(sla_target - elapsed),
    )
