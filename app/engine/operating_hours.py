"""
Operating calendar resolution.

Turns a weekly schedule into the concrete open/close window of a single
calendar date.  Resource-level overrides win over the organization's
schedule for the weekdays they name.
"""

from __future__ import annotations

from datetime import date
from typing import Mapping

from app.models import DayHours, Weekday, WeeklySchedule

CLOSED = DayHours(closed=True)


def resolve_day(
    schedule: WeeklySchedule | None,
    day: date,
    overrides: Mapping[Weekday, DayHours] | None = None,
) -> DayHours:
    """Return the window for *day*, or ``CLOSED`` when there is none."""
    weekday = Weekday.of(day)

    hours: DayHours | None = None
    if overrides:
        hours = overrides.get(weekday)
    if hours is None and schedule is not None:
        hours = schedule.for_weekday(weekday)

    if hours is None or hours.closed:
        return CLOSED
    return hours
