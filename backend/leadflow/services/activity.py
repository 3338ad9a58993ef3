"""
Lead activity logging service.

Writes the human-readable timeline shown on a lead. Entries are added to
the caller's session and committed with the change they describe, never on
their own.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..core.clock import Clock, system_clock
from ..models.activity import LeadActivity, ActivityType
from ..models.task import Task


def _fmt(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")


class ActivityService:
    """
    Service for appending lead timeline entries.

    Example usage:
        activity = ActivityService(db, clock)
        activity.log_outcome(lead.id, "interested", "new", "qualified", actor_id)
    """

    def __init__(self, db: Session, clock: Clock = system_clock):
        self.db = db
        self.clock = clock

    def _create_entry(
        self,
        lead_id: UUID,
        activity_type: ActivityType,
        description: str,
        actor_id: Optional[UUID] = None,
    ) -> LeadActivity:
        entry = LeadActivity(
            lead_id=lead_id,
            activity_type=activity_type,
            description=description,
            created_by=actor_id,
            created_at=self.clock.now(),
        )
        self.db.add(entry)
        return entry

    def log_outcome(
        self,
        lead_id: UUID,
        outcome_label: str,
        from_stage: str,
        to_stage: str,
        actor_id: Optional[UUID] = None,
        notes: Optional[str] = None,
        workflow_ended: bool = False,
    ) -> LeadActivity:
        """Log a recorded outcome: 'Follow-up outcome: Interested (new → qualified)'."""
        description = f"Follow-up outcome: {outcome_label} ({from_stage} → {to_stage})"
        if notes:
            description += f" • {notes}"
        if workflow_ended:
            description += " • Workflow completed"
        return self._create_entry(lead_id, ActivityType.OUTCOME, description, actor_id)

    def log_task_created(self, task: Task, actor_id: Optional[UUID] = None) -> LeadActivity:
        description = f"Created task: {task.title} - Due: {_fmt(task.due_at)}"
        return self._create_entry(task.lead_id, ActivityType.TASK_CREATED, description, actor_id)

    def log_task_completed(self, task: Task, actor_id: Optional[UUID] = None) -> LeadActivity:
        description = f"Task completed: {task.title}"
        return self._create_entry(task.lead_id, ActivityType.TASK_COMPLETED, description, actor_id)

    def log_task_rescheduled(self, task: Task, actor_id: Optional[UUID] = None) -> LeadActivity:
        description = f'Task "{task.title}" rescheduled to {_fmt(task.due_at)}'
        return self._create_entry(task.lead_id, ActivityType.TASK_RESCHEDULED, description, actor_id)

    def log_reassigned(
        self,
        lead_id: UUID,
        from_agent_id: Optional[UUID],
        to_agent_id: UUID,
        reason: str,
    ) -> LeadActivity:
        description = f"Lead reassigned from {from_agent_id or 'nobody'} to {to_agent_id} ({reason})"
        return self._create_entry(lead_id, ActivityType.LEAD_REASSIGNED, description)

    def log_reopened(
        self,
        lead_id: UUID,
        from_state: str,
        to_stage: str,
        actor_id: Optional[UUID] = None,
    ) -> LeadActivity:
        description = f"Lead reopened: {from_state} → {to_stage}"
        return self._create_entry(lead_id, ActivityType.LEAD_REOPENED, description, actor_id)

    def list_for_lead(self, lead_id: UUID) -> List[LeadActivity]:
        return (
            self.db.query(LeadActivity)
            .filter(LeadActivity.lead_id == lead_id)
            .order_by(LeadActivity.created_at, LeadActivity.id)
            .all()
        )
