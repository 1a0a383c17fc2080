"""
Clock abstraction so time-dependent logic can run against simulated time.
"""
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Clock:
    """Wall clock. Subclasses override ``now``."""

    def now(self) -> datetime:
        return utc_now()

    def now_ms(self) -> int:
        """Current time as integer epoch milliseconds."""
        return int(self.now().timestamp() * 1000)


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used by tests and backtests to step through cooldown windows without
    real waits.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, milliseconds: int = 0, **kwargs) -> datetime:
        """Move the clock forward by ``milliseconds`` plus any timedelta kwargs."""
        delta = timedelta(milliseconds=milliseconds, **kwargs)
        if delta < timedelta(0):
            raise ValueError("ManualClock cannot move backwards")
        with self._lock:
            self._now = self._now + delta
            return self._now

    def set(self, when: datetime) -> None:
        with self._lock:
            self._now = when
