"""
Clock Abstraction

Every component that needs "now" takes a clock: a zero-argument callable
returning a timezone-aware UTC datetime. Expiry of rate-limit windows and
blocks is decided lazily by comparing stored timestamps with the clock, so
tests can move time forward with FrozenClock instead of sleeping.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Production clock."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    SQLite does not keep tzinfo, so values read back are naive; they were
    written as UTC and are tagged as such here.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class FrozenClock:
    """Manually driven clock for tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = ensure_utc(start) if start else utc_now()

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        """Move forward by a timedelta built from kwargs (minutes=15, seconds=1, ...)."""
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = ensure_utc(value)
