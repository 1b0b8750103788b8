"""
clock.py - Clock Sources

The orchestrator reads time through a Clock so that holding periods can be
tested without waiting. Both clocks are monotonic: time never moves backwards.
"""

from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current time."""
        ...


class SystemClock:
    """UTC wall clock, clamped so that successive readings never decrease."""

    def __init__(self):
        self._last: Optional[datetime] = None

    def now(self) -> datetime:
        current = datetime.now(timezone.utc)
        if self._last is not None and current < self._last:
            current = self._last
        self._last = current
        return current


class ManualClock:
    """
    Logical clock advanced explicitly by the caller.

    Example:
        clock = ManualClock(datetime(2025, 1, 1))
        clock.advance(86_400)            # one day later
        clock.advance_to(datetime(2025, 3, 1))
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

    def now(self) -> datetime:
        return self._current_time

    def advance(self, seconds: float) -> datetime:
        """Move the clock forward by seconds and return the new time."""
        if seconds < 0:
            raise ValueError(f"Cannot move time backwards by {seconds}s")
        self._current_time = self._current_time + timedelta(seconds=seconds)
        return self._current_time

    def advance_to(self, new_time: datetime) -> datetime:
        """
        Move the clock to new_time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time
        return self._current_time
