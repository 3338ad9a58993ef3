"""
Outcome record model.

Append-only audit trail of every applied transition. Never updated or
deleted. Forced transitions (unreachable escalation, reopen) are written
as synthetic records so the trail explains every stage change.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Boolean, Text, Uuid, ForeignKey
from sqlalchemy.orm import relationship

from ..core.database import Base
from .types import UTCDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OutcomeRecord(Base):
    """
    One recorded outcome for a lead.

    Attributes:
        outcome_tag: Catalog tag, or a system tag for synthetic records
        db_outcome: Coarse reporting outcome from the catalog
        reason_id: Reason slug for outcomes that require one
        client_still_with_us: Only set for 'deal_lost'
        due_at: Follow-up time implied by the outcome
        from_stage / to_stage: Stage before and after the transition
        is_synthetic: True for transitions the engine forced on its own
    """

    __tablename__ = "lead_outcomes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    lead_id = Column(
        Uuid,
        ForeignKey("leads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    outcome_tag = Column(String(50), nullable=False, index=True)
    db_outcome = Column(String(30), nullable=True)
    reason_id = Column(String(100), nullable=True)
    client_still_with_us = Column(Boolean, nullable=True)
    notes = Column(Text, nullable=True)
    due_at = Column(UTCDateTime, nullable=True)

    from_stage = Column(String(20), nullable=False)
    to_stage = Column(String(20), nullable=False)
    is_synthetic = Column(Boolean, nullable=False, default=False)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    created_by = Column(Uuid, nullable=True)

    lead = relationship("Lead", backref="outcome_records", foreign_keys=[lead_id])

    def __repr__(self) -> str:
        return (
            f"<OutcomeRecord(id={self.id}, lead_id={self.lead_id}, "
            f"tag={self.outcome_tag}, {self.from_stage}->{self.to_stage}, "
            f"synthetic={self.is_synthetic})>"
        )
