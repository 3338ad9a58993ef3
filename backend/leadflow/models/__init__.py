"""
SQLAlchemy ORM models for LeadFlow.

Contains database table definitions and relationships.
"""

from .lead import Lead, LeadStage, TERMINAL_STAGES, ACTIVE_STAGES
from .outcome import OutcomeRecord
from .task import Task, TaskKind, TaskStatus, TaskOrigin, CalendarEvent, CalendarEventStatus
from .agent import Agent, AssignmentHistory
from .activity import LeadActivity, ActivityType

__all__ = [
    # Lead model and enums
    "Lead",
    "LeadStage",
    "TERMINAL_STAGES",
    "ACTIVE_STAGES",
    # Outcome audit trail
    "OutcomeRecord",
    # Task scheduling
    "Task",
    "TaskKind",
    "TaskStatus",
    "TaskOrigin",
    "CalendarEvent",
    "CalendarEventStatus",
    # Agents
    "Agent",
    "AssignmentHistory",
    # Timeline
    "LeadActivity",
    "ActivityType",
]
