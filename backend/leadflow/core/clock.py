"""
Clock abstraction and timestamp normalization.

Services never call datetime.now() directly; they receive a Clock so that
SLA windows and due dates can be tested against fixed instants.
Callers submit local wall-clock values in the business timezone; everything
is normalized to aware UTC before it reaches the workflow.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


class Clock:
    """Source of the current UTC time."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """Clock frozen at a given instant; advance() moves it forward."""

    def __init__(self, instant: datetime):
        self._instant = ensure_utc(instant)

    def now(self) -> datetime:
        return self._instant

    def set(self, instant: datetime) -> None:
        self._instant = ensure_utc(instant)

    def advance(self, **kwargs) -> datetime:
        self._instant = self._instant + timedelta(**kwargs)
        return self._instant


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Return value as an aware UTC datetime.

    Naive values are assumed to already be UTC (this is how timestamps come
    back from databases that drop the offset).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_to_utc(value: Optional[datetime], tz_name: str) -> Optional[datetime]:
    """
    Normalize a caller-submitted timestamp to UTC.

    Naive values are local wall-clock time in tz_name; aware values keep
    their own offset.

    Args:
        value: Timestamp submitted by a caller
        tz_name: IANA name of the business timezone

    Returns:
        Aware UTC datetime, or None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=ZoneInfo(tz_name))
    return value.astimezone(timezone.utc)


system_clock = SystemClock()
