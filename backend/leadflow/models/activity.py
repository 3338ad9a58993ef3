"""
Lead activity model.

Human-readable timeline of what happened to a lead. Each entry is an
immutable log row written in the same transaction as the change it
describes; entries are never overwritten.
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


class ActivityType(str, enum.Enum):
    OUTCOME = "outcome"
    TASK_CREATED = "task_created"
    TASK_COMPLETED = "task_completed"
    TASK_RESCHEDULED = "task_rescheduled"
    LEAD_REASSIGNED = "lead_reassigned"
    LEAD_REOPENED = "lead_reopened"


class LeadActivity(Base):
    """Timeline entry for a lead."""

    __tablename__ = "lead_activities"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(
        Uuid,
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    activity_type = Column(
        SQLEnum(ActivityType, name="activity_type", native_enum=False, length=30,
                values_callable=enum_values),
        nullable=False,
        index=True,
    )
    description = Column(Text, nullable=False)

    # Null for system-generated entries (sweeps, auto-chaining)
    created_by = Column(Uuid, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    lead = relationship("Lead", backref="activities", foreign_keys=[lead_id])

    def __repr__(self) -> str:
        return (
            f"<LeadActivity(id={self.id}, lead_id={self.lead_id}, "
            f"type={self.activity_type.value})>"
        )
