"""
SLA sweep.

Hands leads whose response window expired before any outcome was recorded
to the least-busy active agent. Runs periodically from Celery beat.
Ownership-locked leads (first outcome recorded) are never touched.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..core.config import Settings, get_settings
from ..core.exceptions import WorkflowError
from ..core.transactions import transaction
from ..models.agent import Agent, AssignmentHistory
from ..models.lead import Lead, LeadStage, TERMINAL_STAGES
from .activity import ActivityService
from .locking import lock_lead


logger = logging.getLogger(__name__)


SWEEPABLE_STAGES = (LeadStage.NEW, LeadStage.CONTACTED)
SLA_BREACH_REASON = "sla_breach"


@dataclass
class SweepResult:
    checked: int = 0
    reassigned: List[UUID] = field(default_factory=list)
    skipped: int = 0
    failed: int = 0

    @property
    def reassigned_count(self) -> int:
        return len(self.reassigned)


class SlaSweep:
    """
    Periodic SLA reassignment.

    Each lead is handed over in its own transaction so one failure does not
    hold back the rest of the sweep.

    Example usage:
        result = SlaSweep(db).reassign_overdue_leads()
    """

    def __init__(self, db: Session, clock: Clock = system_clock, config: Optional[Settings] = None):
        self.db = db
        self.clock = clock
        self.config = config or get_settings()
        self.activity = ActivityService(db, clock)

    @property
    def sla_target(self) -> timedelta:
        return timedelta(minutes=self.config.sla_target_minutes)

    def _is_overdue(self, lead: Lead, now: datetime) -> bool:
        return (
            lead.first_outcome_at is None
            and lead.assigned_at is not None
            and not lead.invalid_flag
            and lead.stage in SWEEPABLE_STAGES
            and now - lead.assigned_at >= self.sla_target
        )

    def find_overdue_lead_ids(self, now: datetime) -> List[UUID]:
        cutoff = now - self.sla_target
        return list(
            self.db.execute(
                select(Lead.id)
                .where(
                    Lead.first_outcome_at.is_(None),
                    Lead.assigned_at.is_not(None),
                    Lead.assigned_at <= cutoff,
                    Lead.invalid_flag.is_(False),
                    Lead.stage.in_(SWEEPABLE_STAGES),
                )
                .order_by(Lead.assigned_at)
            ).scalars()
        )

    def least_busy_agent(self, exclude: Optional[UUID] = None) -> Optional[UUID]:
        """
        Active agent with the fewest open leads (not won, lost or invalid).

        Ties go to the agent created first.
        """
        open_leads = func.count(Lead.id)
        query = (
            select(Agent.id)
            .outerjoin(
                Lead,
                (Lead.owner_agent_id == Agent.id)
                & Lead.stage.not_in(list(TERMINAL_STAGES))
                & Lead.invalid_flag.is_(False),
            )
            .where(Agent.is_active.is_(True))
            .group_by(Agent.id, Agent.created_at)
            .order_by(open_leads, Agent.created_at, Agent.id)
        )
        if exclude is not None:
            query = query.where(Agent.id != exclude)
        return self.db.execute(query.limit(1)).scalar_one_or_none()

    def reassign_overdue_leads(self) -> SweepResult:
        now = self.clock.now()
        result = SweepResult()

        for lead_id in self.find_overdue_lead_ids(now):
            result.checked += 1
            try:
                with transaction(self.db):
                    if self._reassign(lead_id, now):
                        result.reassigned.append(lead_id)
                    else:
                        result.skipped += 1
            except WorkflowError as e:
                result.failed += 1
                logger.warning(f"SLA sweep skipped lead {lead_id}: {e.message}")

        logger.info(
            f"SLA sweep finished: checked={result.checked} "
            f"reassigned={result.reassigned_count} skipped={result.skipped} "
            f"failed={result.failed}"
        )
        return result

    def _reassign(self, lead_id: UUID, now: datetime) -> bool:
        lead = lock_lead(self.db, lead_id)

        # Re-check on the locked row; an outcome may have landed meanwhile
        if not self._is_overdue(lead, now):
            return False

        new_agent = self.least_busy_agent(exclude=lead.owner_agent_id)
        if new_agent is None:
            logger.warning(f"SLA sweep found no agent to take lead {lead.id}")
            return False

        previous_agent = lead.owner_agent_id
        (
            self.db.query(AssignmentHistory)
            .filter(
                AssignmentHistory.lead_id == lead.id,
                AssignmentHistory.released_at.is_(None),
            )
            .update(
                {"released_at": now, "reason": SLA_BREACH_REASON},
                synchronize_session=False,
            )
        )

        lead.owner_agent_id = new_agent
        lead.assigned_at = now
        lead.assignment_version = (lead.assignment_version or 0) + 1
        lead.updated_at = now

        self.db.add(AssignmentHistory(
            lead_id=lead.id,
            agent_id=new_agent,
            assigned_at=now,
            version=lead.assignment_version,
        ))
        self.activity.log_reassigned(lead.id, previous_agent, new_agent, SLA_BREACH_REASON)

        logger.info(
            f"Lead reassigned on SLA breach: lead={lead.id} "
            f"{previous_agent} -> {new_agent} version={lead.assignment_version}"
        )
        return True
