"""
Tier policy engine.

Evaluates a booking request against the privileges of the requester's
membership tier.  The checks run in a fixed order and stop at the first
failure; the order decides which limit a member is told about first, so
it is part of the contract:

1.  advance window      → OUTSIDE_ADVANCE_WINDOW
2.  duration bounds     → DURATION_OUT_OF_BOUNDS
3.  prime-time gating   → PRIME_TIME_RESTRICTED
4.  weekend gating      → WEEKEND_RESTRICTED
5.  daily quota         → DAILY_QUOTA_EXCEEDED
6.  guest limits        → GUEST_NOT_ALLOWED / GUEST_LIMIT_EXCEEDED

Every rejection message names the tier and the limit so the caller can
render an upgrade prompt.  The engine never reads storage: the count of
the requester's bookings on the requested date is computed by the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Callable, Optional

from app.engine.errors import ErrorKind
from app.models import BookingPolicy, BookingRequest, TierPrivileges, ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PolicyContext:
    """Inputs shared by every rule."""
    request: BookingRequest
    privileges: TierPrivileges
    existing_bookings_today: int
    now: datetime
    policy: BookingPolicy

    @property
    def tier_name(self) -> str:
        return tier_display_name(self.request.tier)


PolicyRule = Callable[[PolicyContext], Optional[ValidationResult]]


# ── Formatting helpers ────────────────────────────────────────────────────


def tier_display_name(tier: str) -> str:
    """``"day_pass"`` → ``"Day Pass"``."""
    return tier.replace("_", " ").replace("-", " ").title()


def _format_hours(hours: float) -> str:
    value = int(hours) if float(hours).is_integer() else hours
    return f"{value} hour" if value == 1 else f"{value} hours"


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def days_ahead(day: date, now: datetime) -> int:
    """Calendar days from *now*'s date to *day* (negative for the past)."""
    return (day - now.date()).days


# ── Rules ─────────────────────────────────────────────────────────────────


def check_advance_window(ctx: PolicyContext) -> ValidationResult | None:
    limit = ctx.privileges.max_days_in_advance
    if days_ahead(ctx.request.booking_date, ctx.now) > limit:
        return ValidationResult.reject(
            ErrorKind.OUTSIDE_ADVANCE_WINDOW,
            f"Your {ctx.tier_name} membership can only book {limit} days in advance. "
            "Upgrade to book further ahead.",
        )
    return None


def check_duration_bounds(ctx: PolicyContext) -> ValidationResult | None:
    minutes = ctx.request.duration_minutes
    low = ctx.privileges.min_booking_duration
    high = ctx.privileges.max_booking_duration
    if minutes < low * 60:
        return ValidationResult.reject(
            ErrorKind.DURATION_OUT_OF_BOUNDS,
            f"Minimum booking duration for your {ctx.tier_name} membership "
            f"is {_format_hours(low)}.",
        )
    if minutes > high * 60:
        return ValidationResult.reject(
            ErrorKind.DURATION_OUT_OF_BOUNDS,
            f"Your {ctx.tier_name} membership allows bookings of at most "
            f"{_format_hours(high)}. Upgrade for longer sessions.",
        )
    return None


def check_prime_time(ctx: PolicyContext) -> ValidationResult | None:
    if ctx.privileges.allow_prime_time_booking:
        return None
    if ctx.policy.is_prime_time(ctx.request.start_time):
        band = (
            f"{ctx.policy.prime_time_start_hour:02d}:00-"
            f"{ctx.policy.prime_time_end_hour:02d}:59"
        )
        return ValidationResult.reject(
            ErrorKind.PRIME_TIME_RESTRICTED,
            f"Prime time starts ({band}) are not included in your {ctx.tier_name} "
            "membership. View plans to access peak hours.",
        )
    return None


def check_weekend(ctx: PolicyContext) -> ValidationResult | None:
    if ctx.privileges.allow_weekend_booking:
        return None
    if ctx.policy.is_weekend(ctx.request.booking_date):
        return ValidationResult.reject(
            ErrorKind.WEEKEND_RESTRICTED,
            f"Weekend bookings are not included in your {ctx.tier_name} membership. "
            "Upgrade to book weekends.",
        )
    return None


def check_daily_quota(ctx: PolicyContext) -> ValidationResult | None:
    limit = ctx.privileges.max_bookings_per_day
    if ctx.existing_bookings_today >= limit:
        return ValidationResult.reject(
            ErrorKind.DAILY_QUOTA_EXCEEDED,
            f"You've reached the daily limit of {limit} bookings for your "
            f"{ctx.tier_name} membership. Upgrade for more bookings per day.",
        )
    return None


def check_guests(ctx: PolicyContext) -> ValidationResult | None:
    guests = ctx.request.guest_count
    if guests <= 0:
        return None
    if not ctx.privileges.allow_guests:
        return ValidationResult.reject(
            ErrorKind.GUEST_NOT_ALLOWED,
            f"Your {ctx.tier_name} membership does not allow guests. "
            "Upgrade to bring guests.",
        )
    limit = ctx.privileges.max_guests_per_booking
    if guests > limit:
        return ValidationResult.reject(
            ErrorKind.GUEST_LIMIT_EXCEEDED,
            f"Your {ctx.tier_name} membership allows at most {limit} guests per booking.",
        )
    return None


# Evaluation order. Changing it changes which error members see first.
POLICY_RULES: tuple[PolicyRule, ...] = (
    check_advance_window,
    check_duration_bounds,
    check_prime_time,
    check_weekend,
    check_daily_quota,
    check_guests,
)


# ── Entry points ──────────────────────────────────────────────────────────


def evaluate(
    request: BookingRequest,
    privileges: TierPrivileges,
    existing_bookings_today: int,
    *,
    now: datetime,
    policy: BookingPolicy | None = None,
) -> ValidationResult:
    """Run every tier rule in order; return the first rejection or an acceptance."""
    ctx = PolicyContext(
        request=request,
        privileges=privileges,
        existing_bookings_today=existing_bookings_today,
        now=now,
        policy=policy or BookingPolicy(),
    )

    for rule in POLICY_RULES:
        rejection = rule(ctx)
        if rejection is not None:
            logger.info(
                "Booking request by %s rejected by tier %s: %s",
                request.requester_id, request.tier, rejection.reason.value,
            )
            return rejection

    warnings: list[str] = []
    limit = privileges.max_bookings_per_day
    if existing_bookings_today == limit - 1:
        warnings.append(
            f"This will be your {_ordinal(limit)} and last booking today ({limit} max)."
        )
    return ValidationResult.accept(warnings)


def is_date_selectable(
    day: date,
    privileges: TierPrivileges,
    *,
    now: datetime,
    policy: BookingPolicy | None = None,
) -> bool:
    """Whether the tier may book anything at all on *day*."""
    policy = policy or BookingPolicy()
    if policy.is_weekend(day) and not privileges.allow_weekend_booking:
        return False
    ahead = days_ahead(day, now)
    return 0 <= ahead <= privileges.max_days_in_advance


def is_start_allowed(
    start: time,
    privileges: TierPrivileges,
    policy: BookingPolicy | None = None,
) -> bool:
    """Whether the tier may start a booking at *start* (prime-time gating)."""
    policy = policy or BookingPolicy()
    return privileges.allow_prime_time_booking or not policy.is_prime_time(start)
