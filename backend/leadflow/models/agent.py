"""
Agent roster and assignment history.

Agents themselves are managed by the external user service; this table is
the roster the SLA sweep picks replacement owners from.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, Integer, Uuid, ForeignKey

from ..core.database import Base
from .types import UTCDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Agent(Base):
    """Sales agent who can own leads."""

    __tablename__ = "agents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, name={self.name}, active={self.is_active})>"


class AssignmentHistory(Base):
    """
    One ownership period of a lead.

    The open row (released_at is NULL) is the current assignment.
    """

    __tablename__ = "assignment_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(
        Uuid,
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    agent_id = Column(Uuid, nullable=True)
    assigned_at = Column(UTCDateTime, nullable=False, default=utcnow)
    released_at = Column(UTCDateTime, nullable=True)
    reason = Column(String(50), nullable=True)  # e.g. "sla_breach"
    version = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<AssignmentHistory(lead_id={self.lead_id}, agent_id={self.agent_id}, "
            f"version={self.version}, released={self.released_at is not None})>"
        )
