"""
Lead database model.

A lead is a pipeline record owned by one agent. Its stage, outcome history
and terminal flags are written only by the follow-up workflow engine.
"""

import enum
import uuid
from datetime import datetime, timezone
from typing import FrozenSet, Iterable

from sqlalchemy import (
    Column,
    String,
    Boolean,
    Integer,
    JSON,
    Uuid,
    Enum as SQLEnum,
)

from ..core.database import Base
from .types import UTCDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def enum_values(enum_cls):
    """Persist enum values (lower-case) rather than member names."""
    return [member.value for member in enum_cls]


# =============================================================================
# Enum Definitions
# =============================================================================

class LeadStage(str, enum.Enum):
    """Pipeline position of a lead."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    NEGOTIATING = "negotiating"
    WON = "won"
    LOST = "lost"


# Stages that end the workflow on their own (invalid is a flag, not a stage)
TERMINAL_STAGES = frozenset({LeadStage.WON, LeadStage.LOST})

ACTIVE_STAGES = frozenset(stage for stage in LeadStage if stage not in TERMINAL_STAGES)


# =============================================================================
# Lead Model
# =============================================================================

class Lead(Base):
    """
    Sales pipeline lead.

    Attributes:
        id: UUID primary key
        stage: Current pipeline stage
        owner_agent_id: Agent responsible for the lead
        assigned_at: Start of the SLA response window
        first_outcome_at: First recorded outcome (ownership lock), or None
        last_outcome: Tag of the most recent outcome
        unreachable_count: Consecutive 'No Answer' outcomes
        outcomes_selected: Outcome tags already recorded (idempotency guard)
        lost_reason: Why the lead is currently lost
        invalid_flag / invalid_at: Permanent closure outside won/lost
        restarted_from_lost / previous_lost_reason: Restart provenance
        assignment_version: Bumped on every SLA reassignment
        version: Optimistic lock counter, checked on every UPDATE
    """

    __tablename__ = "leads"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False, default="")

    stage = Column(
        SQLEnum(
            LeadStage,
            name="lead_stage",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=LeadStage.NEW,
        index=True,
    )

    # Ownership & SLA
    owner_agent_id = Column(Uuid, nullable=True, index=True)
    assigned_at = Column(UTCDateTime, nullable=True)
    first_outcome_at = Column(UTCDateTime, nullable=True)
    assignment_version = Column(Integer, nullable=False, default=0)

    # Outcome tracking
    last_outcome = Column(String(50), nullable=True)
    unreachable_count = Column(Integer, nullable=False, default=0)
    outcomes_selected = Column(JSON, nullable=False, default=list)

    # Closure / restart
    lost_reason = Column(String(100), nullable=True)
    invalid_flag = Column(Boolean, nullable=False, default=False)
    invalid_at = Column(UTCDateTime, nullable=True)
    restarted_from_lost = Column(Boolean, nullable=False, default=False)
    previous_lost_reason = Column(String(100), nullable=True)

    # Timestamps
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        """Won, lost or invalid leads accept no further outcomes."""
        return self.stage in TERMINAL_STAGES or bool(self.invalid_flag)

    @property
    def is_ownership_locked(self) -> bool:
        return self.first_outcome_at is not None

    @property
    def selected_outcomes(self) -> FrozenSet[str]:
        return frozenset(self.outcomes_selected or ())

    def set_selected_outcomes(self, tags: Iterable[str]) -> None:
        # Assign a new list so the JSON column is flagged dirty
        self.outcomes_selected = sorted(set(tags))

    def __repr__(self) -> str:
        return (
            f"<Lead(id={self.id}, "
            f"stage={self.stage.value if self.stage else None}, "
            f"owner={self.owner_agent_id}, "
            f"invalid={self.invalid_flag})>"
        )

    def to_safe_dict(self) -> dict:
        """
        Convert to a dictionary for logging/debugging.

        Returns:
            Dictionary of workflow fields
        """
        return {
            "id": str(self.id),
            "stage": self.stage.value if self.stage else None,
            "owner_agent_id": str(self.owner_agent_id) if self.owner_agent_id else None,
            "unreachable_count": self.unreachable_count,
            "outcomes_selected": sorted(self.selected_outcomes),
            "invalid": bool(self.invalid_flag),
            "first_outcome_at": self.first_outcome_at.isoformat() if self.first_outcome_at else None,
        }
