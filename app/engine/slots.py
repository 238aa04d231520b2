"""
Slot generation and time-of-day arithmetic.

Times are handled as minutes since midnight so that intervals can be
compared and stepped without dragging a date along.
"""

from __future__ import annotations

from datetime import time

from app.models import DayHours

MINUTES_PER_DAY = 24 * 60


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> time:
    """Inverse of ``to_minutes``; raises ``ValueError`` past the end of the day."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def add_minutes(t: time, minutes: int) -> time | None:
    """Shift *t* by *minutes*, or return ``None`` if that leaves the day."""
    total = to_minutes(t) + minutes
    if not 0 <= total < MINUTES_PER_DAY:
        return None
    return from_minutes(total)


def generate_slots(window: DayHours, granularity_minutes: int) -> list[time]:
    """
    Enumerate slot start times inside *window*.

    Yields every ``t`` with ``open <= t`` and ``t + granularity <= close``,
    ascending.  A closed day, or a window shorter than one slot, gives an
    empty list.  The granularity does not have to divide the window
    evenly; generation simply stops at the last slot that fits.
    """
    if granularity_minutes <= 0:
        raise ValueError("granularity_minutes must be positive")
    if window.closed or window.open is None or window.close is None:
        return []

    start = to_minutes(window.open)
    close = to_minutes(window.close)
    return [
        from_minutes(t)
        for t in range(start, close - granularity_minutes + 1, granularity_minutes)
    ]
