"""
Follow-up task and calendar event models.

Every task carries a linked calendar entry so the agent's calendar shows
the same due time; the two are kept in step by the task scheduler.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, Uuid, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..core.database import Base
from .lead import enum_values
from .types import UTCDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enum Definitions
# =============================================================================

class TaskKind(str, enum.Enum):
    """What the agent has to do."""
    FOLLOW_UP = "follow_up"
    MEETING = "meeting"
    UNDER_OFFER = "under_offer"
    CLOSURE = "closure"


class TaskStatus(str, enum.Enum):
    OPEN = "open"
    COMPLETED = "completed"


class TaskOrigin(str, enum.Enum):
    """Which code path created the task."""
    OUTCOME = "outcome"              # Side effect of a recorded outcome
    MANUAL = "manual"                # Scheduled directly by an agent
    AUTO_FOLLOWUP = "auto_followup"  # Auto-chained after a completed task
    CONFIRMATION = "confirmation"    # Meeting confirmation call


class CalendarEventStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"


# =============================================================================
# Task Model
# =============================================================================

class Task(Base):
    """
    Follow-up action for a lead.

    Transitions open -> completed exactly once.
    """

    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(
        Uuid,
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    kind = Column(
        SQLEnum(TaskKind, name="task_kind", native_enum=False, length=20,
                values_callable=enum_values),
        nullable=False,
    )
    status = Column(
        SQLEnum(TaskStatus, name="task_status", native_enum=False, length=20,
                values_callable=enum_values),
        nullable=False,
        default=TaskStatus.OPEN,
        index=True,
    )
    origin = Column(
        SQLEnum(TaskOrigin, name="task_origin", native_enum=False, length=20,
                values_callable=enum_values),
        nullable=False,
        default=TaskOrigin.MANUAL,
    )

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_at = Column(UTCDateTime, nullable=False, index=True)
    completed_at = Column(UTCDateTime, nullable=True)

    linked_event_id = Column(Uuid, nullable=True)

    created_by = Column(Uuid, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    lead = relationship("Lead", backref="tasks", foreign_keys=[lead_id])

    @property
    def is_open(self) -> bool:
        return self.status == TaskStatus.OPEN

    def __repr__(self) -> str:
        return (
            f"<Task(id={self.id}, lead_id={self.lead_id}, kind={self.kind.value}, "
            f"status={self.status.value}, due_at={self.due_at})>"
        )


# =============================================================================
# Calendar Event Model
# =============================================================================

class CalendarEvent(Base):
    """Calendar entry mirroring a task's due time."""

    __tablename__ = "calendar_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(
        Uuid,
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    task_id = Column(
        Uuid,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    title = Column(String(255), nullable=False)
    event_type = Column(String(30), nullable=False)
    start_at = Column(UTCDateTime, nullable=False)
    end_at = Column(UTCDateTime, nullable=False)
    status = Column(
        SQLEnum(CalendarEventStatus, name="calendar_event_status", native_enum=False,
                length=20, values_callable=enum_values),
        nullable=False,
        default=CalendarEventStatus.SCHEDULED,
    )
    agent_id = Column(Uuid, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<CalendarEvent(id={self.id}, task_id={self.task_id}, "
            f"start={self.start_at}, status={self.status.value})>"
        )
