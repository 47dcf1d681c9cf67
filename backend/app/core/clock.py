"""
Clock abstraction.

All temporal logic (pass durations, escalation timestamps, audit timestamps)
reads time through a Clock so tests can freeze and advance it.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return an aware UTC datetime (SQLite hands back naive values)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock:
    """Time source."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock(Clock):
    """
    Manually driven clock.

    Usage:
        clock = FrozenClock(datetime(2024, 9, 3, 10, 0, tzinfo=timezone.utc))
        clock.advance(minutes=15)
    """

    def __init__(self, at: Optional[datetime] = None):
        self._now = ensure_utc(at) if at else datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, at: datetime) -> None:
        self._now = ensure_utc(at)

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now


system_clock = SystemClock()
