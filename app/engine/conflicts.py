"""
Conflict detection between half-open booking intervals.

The caller supplies the confirmed bookings for one resource and date;
nothing here reads storage.
"""

from __future__ import annotations

from typing import Iterable

from app.models import BookingInterval, Interval


def overlaps(a: Interval, b: Interval) -> bool:
    """``[s1, e1)`` and ``[s2, e2)`` overlap iff ``s1 < e2 and s2 < e1``."""
    return a.start < b.end and b.start < a.end


def find_conflicts(
    candidate: Interval,
    existing: Iterable[BookingInterval],
) -> list[BookingInterval]:
    """Return the bookings in *existing* that overlap *candidate*."""
    return [booking for booking in existing if overlaps(candidate, booking.interval)]


def has_conflict(candidate: Interval, existing: Iterable[BookingInterval]) -> bool:
    """True if *candidate* overlaps any booking in *existing*.

    Touching intervals (one ends exactly when the other starts) do not
    conflict.
    """
    return any(overlaps(candidate, booking.interval) for booking in existing)
