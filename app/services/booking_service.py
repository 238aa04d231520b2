"""
Booking service – ties the admission engine to storage.

The engine decides; this module makes the decision stick.  ``book``
reads a snapshot of the resource's day, runs admission against it and
then asks storage to reserve *only if the snapshot is still current*.
Losing that race means somebody else reserved on the same resource and
date in between, or the same member booked another court that day.  The
snapshot is then re-read and admission re-run, at most
``RESERVE_MAX_RETRIES`` times.

Per-request rejections are returned as values (``ValidationResult``);
only configuration problems and storage failures raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from fractions import Fraction
from zoneinfo import ZoneInfo

from app import db
from app.config import RESERVE_MAX_RETRIES
from app.engine.admission import admit
from app.engine.cancellation import evaluate_cancellation
from app.engine.conflicts import has_conflict
from app.engine.errors import ErrorKind
from app.engine.operating_hours import resolve_day
from app.engine.policy import is_date_selectable, is_start_allowed
from app.engine.pricing import price
from app.engine.slots import add_minutes, generate_slots
from app.models import (
    AvailabilityResponse,
    BookingCreate,
    BookingInterval,
    BookingPolicy,
    BookingRequest,
    BookingStatus,
    CancellationDecision,
    Interval,
    OrganizationConfig,
    PriceQuote,
    Resource,
    SlotAvailability,
    TierPrivileges,
    ValidationResult,
)

logger = logging.getLogger(__name__)

SLOT_FREE = "free"
SLOT_BOOKED = "booked"
SLOT_RESTRICTED = "restricted"


# ── Outcomes ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Access:
    """A member's resolved tier in one organization, or why there is none."""
    tier: str | None = None
    privileges: TierPrivileges | None = None
    rejection: ValidationResult | None = None

    @property
    def granted(self) -> bool:
        return self.rejection is None


@dataclass(frozen=True)
class BookingOutcome:
    result: ValidationResult
    booking: BookingInterval | None = None
    quote: PriceQuote | None = None
    attempts: int = 0

    @property
    def accepted(self) -> bool:
        return self.booking is not None


@dataclass(frozen=True)
class CancellationOutcome:
    booking: BookingInterval
    decision: CancellationDecision
    already_canceled: bool = False


# ── Helpers ───────────────────────────────────────────────────────────────


def local_now(policy: BookingPolicy) -> datetime:
    """Wall-clock time in the organization's timezone, as a naive datetime."""
    return datetime.now(ZoneInfo(policy.timezone)).replace(tzinfo=None)


def _no_membership(message: str) -> Access:
    return Access(rejection=ValidationResult.reject(ErrorKind.NO_ACTIVE_MEMBERSHIP, message))


def _recorded_terms(booking: BookingInterval, message: str | None = None) -> CancellationDecision:
    """The terms stored on a canceled booking."""
    return CancellationDecision(
        allowed=True,
        refund_eligible=bool(booking.refund_eligible),
        fee=booking.cancellation_fee or 0,
        message=message,
    )


# ── Membership ────────────────────────────────────────────────────────────


async def resolve_privileges(org: OrganizationConfig, user_id: str) -> Access:
    """
    Look up the member's active tier in *org* and its privileges.

    Everything that isn't an active membership in a tier the
    organization offers resolves to ``NO_ACTIVE_MEMBERSHIP``.
    """
    member = await db.get_member(user_id)
    if member is None or org.id not in member.organization_ids:
        return _no_membership(f"You are not a member of {org.name}.")

    membership = await db.get_membership(user_id, org.id)
    if membership is None or not membership.is_active:
        return _no_membership(
            f"You need an active membership at {org.name} to book courts."
        )

    privileges = org.tiers.get(membership.tier)
    if privileges is None:
        logger.warning(
            "Member %s holds tier %r which %s does not offer",
            user_id, membership.tier, org.id,
        )
        return _no_membership(
            f"Your membership tier is not offered by {org.name} anymore."
        )

    return Access(tier=membership.tier, privileges=privileges)


# ── Availability ──────────────────────────────────────────────────────────


async def list_availability(
    org: OrganizationConfig,
    resource: Resource,
    booking_date: date,
    user_id: str,
    *,
    now: datetime | None = None,
) -> AvailabilityResponse:
    """
    The resource's slot grid for one date, annotated for the caller.

    A slot is ``booked`` if a confirmed booking overlaps it, ``restricted``
    if the caller's tier cannot book it (or it is in the past), else
    ``free``.  Prices are per slot, for callers with a tier.
    """
    now = now or local_now(org.policy)
    access = await resolve_privileges(org, user_id)
    privileges = access.privileges
    granularity = org.policy.slot_granularity_minutes

    window = resolve_day(org.schedule, booking_date, resource.hours_overrides)
    selectable = (
        resource.active
        and privileges is not None
        and is_date_selectable(booking_date, privileges, now=now, policy=org.policy)
    )
    response = AvailabilityResponse(
        org_id=org.id,
        resource_id=resource.id,
        booking_date=booking_date,
        closed=window.closed,
        open=window.open,
        close=window.close,
        date_selectable=selectable,
    )
    if window.closed:
        return response

    slot_price = None
    if privileges is not None:
        slot_price = price(
            privileges.price_per_hour,
            Fraction(granularity, 60),
            privileges.discount_percentage,
        ).final

    existing = await db.get_confirmed_bookings(resource.id, booking_date)
    slots = []
    for start in generate_slots(window, granularity):
        slot = Interval(start=start, end=add_minutes(start, granularity))
        if has_conflict(slot, existing):
            status = SLOT_BOOKED
        elif (
            not selectable
            or datetime.combine(booking_date, start) < now
            or not is_start_allowed(start, privileges, org.policy)
        ):
            status = SLOT_RESTRICTED
        else:
            status = SLOT_FREE
        slots.append(SlotAvailability(
            start_time=slot.start, end_time=slot.end, status=status, price=slot_price,
        ))

    return response.model_copy(update={"slots": slots})


# ── Booking ───────────────────────────────────────────────────────────────


async def book(
    org: OrganizationConfig,
    resource: Resource,
    user_id: str,
    payload: BookingCreate,
    *,
    now: datetime | None = None,
) -> BookingOutcome:
    """Admit and reserve one booking for *user_id*."""
    access = await resolve_privileges(org, user_id)
    if not access.granted:
        logger.info("Booking by %s in %s refused: no active membership", user_id, org.id)
        return BookingOutcome(result=access.rejection)

    request = BookingRequest(
        resource_id=resource.id,
        booking_date=payload.booking_date,
        start_time=payload.start_time,
        duration_minutes=payload.duration_minutes,
        guest_count=payload.guest_count,
        requester_id=user_id,
        tier=access.tier,
        privileges=access.privileges,
    )

    for attempt in range(1, RESERVE_MAX_RETRIES + 1):
        current = now or local_now(org.policy)
        snapshot = await db.get_day_snapshot(resource.id, request.booking_date)
        member_day = await db.get_member_day(user_id, org.id, request.booking_date)

        admission = admit(
            request,
            resource=resource,
            schedule=org.schedule,
            existing=snapshot.bookings,
            bookings_today=member_day.bookings,
            now=current,
            policy=org.policy,
        )
        if not admission.accepted:
            return BookingOutcome(result=admission.result, attempts=attempt)

        booking = await db.atomic_reserve(
            org_id=org.id,
            resource_id=resource.id,
            booking_date=request.booking_date,
            interval=admission.interval,
            owner_id=user_id,
            expected_version=snapshot.version,
            expected_member_version=member_day.version,
            price=admission.quote.final,
            currency=org.currency,
            guest_count=request.guest_count,
        )
        if booking is not None:
            logger.info(
                "Booked %s on %s %s-%s for %s (%s, %d cents)",
                resource.id, booking.booking_date, booking.start_time, booking.end_time,
                user_id, access.tier, booking.price,
            )
            return BookingOutcome(
                result=admission.result,
                booking=booking,
                quote=admission.quote,
                attempts=attempt,
            )

        logger.info(
            "Contention on %s %s for %s, re-checking (attempt %d/%d)",
            resource.id, request.booking_date, user_id, attempt, RESERVE_MAX_RETRIES,
        )

    logger.info(
        "Giving up on %s %s for %s after %d attempts",
        resource.id, request.booking_date, user_id, RESERVE_MAX_RETRIES,
    )
    return BookingOutcome(
        result=ValidationResult.reject(
            ErrorKind.SLOT_CONFLICT,
            "This time slot was just booked by someone else. Please choose a different time.",
        ),
        attempts=RESERVE_MAX_RETRIES,
    )


# ── Cancellation ──────────────────────────────────────────────────────────


async def _owner_privileges(org: OrganizationConfig, user_id: str) -> TierPrivileges | None:
    # Cancellation terms follow the owner's tier even if the membership has lapsed.
    membership = await db.get_membership(user_id, org.id)
    if membership is None:
        return None
    return org.tiers.get(membership.tier)


async def cancellation_terms(
    org: OrganizationConfig,
    booking: BookingInterval,
    *,
    now: datetime | None = None,
) -> CancellationDecision:
    """What canceling *booking* right now would cost. Changes nothing."""
    if booking.status == BookingStatus.CANCELED:
        return _recorded_terms(booking, "Booking was already canceled.")

    now = now or local_now(org.policy)
    if booking.starts_at <= now:
        return CancellationDecision(
            allowed=False,
            refund_eligible=False,
            message="Booking has already started.",
        )

    privileges = await _owner_privileges(org, booking.owner_id)
    if privileges is None:
        return CancellationDecision(
            allowed=True,
            refund_eligible=False,
            message="No membership on record; the booking is not refundable.",
        )

    return evaluate_cancellation(
        booking.starts_at, now, privileges, late_fee=org.policy.late_cancellation_fee,
    )


async def cancel(
    org: OrganizationConfig,
    booking: BookingInterval,
    *,
    now: datetime | None = None,
) -> CancellationOutcome:
    """
    Cancel a confirmed booking.

    Canceling an already canceled booking is a no-op that returns the
    terms recorded the first time.  When the decision does not allow
    cancellation, the booking is returned unchanged.
    """
    if booking.status == BookingStatus.CANCELED:
        return CancellationOutcome(
            booking=booking,
            decision=_recorded_terms(booking, "Booking was already canceled."),
            already_canceled=True,
        )

    decision = await cancellation_terms(org, booking, now=now)
    if not decision.allowed:
        return CancellationOutcome(booking=booking, decision=decision)

    updated = await db.cancel_booking(
        booking.id,
        refund_eligible=decision.refund_eligible,
        cancellation_fee=decision.fee,
    )
    logger.info(
        "Canceled booking %s (refund %s, fee %d)",
        booking.id, "yes" if updated.refund_eligible else "no", updated.cancellation_fee or 0,
    )
    return CancellationOutcome(
        booking=updated,
        decision=_recorded_terms(updated, decision.message),
    )
