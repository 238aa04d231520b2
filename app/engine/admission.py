"""
Booking admission: one request in, one decision out.

Composes the engine components in request-time order:

    interval shape → resource state → calendar window / slot grid
        → conflict detection → tier policy → pricing

Everything is passed in explicitly (a consistent storage snapshot and
"now"), so the function is pure and safe to call concurrently.  Making
the decision stick is the caller's job; see
``app.services.booking_service``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from fractions import Fraction
from typing import Iterable, Mapping

from app.engine import policy as tier_policy
from app.engine.conflicts import find_conflicts
from app.engine.errors import ErrorKind
from app.engine.operating_hours import resolve_day
from app.engine.pricing import price
from app.engine.slots import add_minutes, generate_slots
from app.models import (
    BookingInterval,
    BookingPolicy,
    BookingRequest,
    DayHours,
    Interval,
    PriceQuote,
    Resource,
    ValidationResult,
    Weekday,
    WeeklySchedule,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Admission:
    """Decision plus, when accepted, the interval to reserve and its price."""
    result: ValidationResult
    interval: Interval | None = None
    quote: PriceQuote | None = None

    @property
    def accepted(self) -> bool:
        return self.result.valid


def _reject(reason: ErrorKind, message: str) -> Admission:
    return Admission(result=ValidationResult.reject(reason, message))


def requested_interval(request: BookingRequest) -> Interval | None:
    """The ``[start, end)`` interval a request asks for, or None if it has no valid shape."""
    # Times are organization-local wall-clock times; an offset has no meaning here.
    if request.start_time.tzinfo is not None or request.duration_minutes <= 0:
        return None
    end = add_minutes(request.start_time, request.duration_minutes)
    if end is None:
        return None
    return Interval(start=request.start_time, end=end)


def admit(
    request: BookingRequest,
    *,
    resource: Resource,
    schedule: WeeklySchedule | None,
    existing: Iterable[BookingInterval],
    bookings_today: int,
    now: datetime,
    policy: BookingPolicy | None = None,
    overrides: Mapping[Weekday, DayHours] | None = None,
) -> Admission:
    """
    Decide whether *request* may be reserved.

    *existing* must be the confirmed bookings of the same resource and
    date; *bookings_today* the requester's confirmed bookings on that
    date within the organization.  *overrides* defaults to the
    resource's own hour overrides.
    """
    policy = policy or BookingPolicy()
    granularity = policy.slot_granularity_minutes

    # 1. Interval shape
    if request.start_time.tzinfo is not None:
        logger.warning(
            "Booking request from %s carries a UTC offset: start=%s",
            request.requester_id, request.start_time,
        )
        return _reject(
            ErrorKind.INVALID_INTERVAL,
            "Start times are local to the club and must not carry a UTC offset.",
        )
    candidate = requested_interval(request)
    if candidate is None or request.duration_minutes % granularity:
        logger.warning(
            "Malformed booking request from %s: start=%s duration=%d (granularity %d)",
            request.requester_id, request.start_time, request.duration_minutes, granularity,
        )
        return _reject(
            ErrorKind.INVALID_INTERVAL,
            f"Bookings must last a positive multiple of {granularity} minutes "
            "and end on the same day.",
        )

    # 2. Resource state
    if not resource.active:
        return _reject(
            ErrorKind.RESOURCE_INACTIVE,
            f"{resource.label} is not available for booking.",
        )

    # 3. Not in the past
    if datetime.combine(request.booking_date, request.start_time) < now:
        return _reject(ErrorKind.START_IN_PAST, "Cannot book past time slots.")

    # 4. Calendar window and slot grid
    window = resolve_day(
        schedule,
        request.booking_date,
        resource.hours_overrides if overrides is None else overrides,
    )
    if window.closed:
        weekday = Weekday.of(request.booking_date).value.title()
        return _reject(
            ErrorKind.OUTSIDE_OPERATING_HOURS,
            f"{resource.label} is closed on {weekday}.",
        )
    if candidate.start < window.open or candidate.end > window.close:
        return _reject(
            ErrorKind.OUTSIDE_OPERATING_HOURS,
            f"{resource.label} is open {window.open:%H:%M}-{window.close:%H:%M} that day.",
        )
    if candidate.start not in generate_slots(window, granularity):
        logger.warning(
            "Off-grid booking request from %s: start=%s (granularity %d, open %s)",
            request.requester_id, request.start_time, granularity, window.open,
        )
        return _reject(
            ErrorKind.INVALID_INTERVAL,
            f"Bookings must start on the {granularity}-minute slot grid.",
        )

    # 5. Conflicts
    conflicts = find_conflicts(candidate, existing)
    if conflicts:
        logger.info(
            "Booking request by %s for %s %s-%s conflicts with %d booking(s)",
            request.requester_id, request.booking_date,
            candidate.start, candidate.end, len(conflicts),
        )
        return _reject(
            ErrorKind.SLOT_CONFLICT,
            "This time slot is already booked. Please choose a different time.",
        )

    # 6. Tier policy
    result = tier_policy.evaluate(
        request,
        request.privileges,
        bookings_today,
        now=now,
        policy=policy,
    )
    if not result.valid:
        return Admission(result=result)

    # 7. Price
    quote = price(
        request.privileges.price_per_hour,
        Fraction(request.duration_minutes, 60),
        request.privileges.discount_percentage,
    )
    return Admission(result=result, interval=candidate, quote=quote)
