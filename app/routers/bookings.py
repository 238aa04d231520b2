"""
Booking endpoints – admission, listing and cancellation.

Admission rejections come back from the booking service as values and
are turned into HTTP errors here, with an ``Error`` body whose ``error``
field is the rejection kind.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app import db
from app.dependencies import (
    CurrentOrganization,
    CurrentUser,
    PaginationParams,
    get_resource_or_404,
    paginate,
)
from app.engine.errors import TIER_REJECTIONS, ErrorKind
from app.models import (
    BookingCreate,
    BookingInterval,
    BookingListResponse,
    BookingResponse,
    BookingStatus,
    CancellationResponse,
    Error,
    OrganizationConfig,
    ValidationResult,
)
from app.rate_limit import BOOKING, limiter
from app.services import booking_service

router = APIRouter(prefix="/api/orgs/{org_id}/bookings", tags=["bookings"])

_STATUS_BY_KIND = {
    ErrorKind.SLOT_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.NO_ACTIVE_MEMBERSHIP: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_INTERVAL: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.OUTSIDE_OPERATING_HOURS: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.START_IN_PAST: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.RESOURCE_INACTIVE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.CONFIGURATION_INVALID: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(kind: ErrorKind) -> int:
    if kind in TIER_REJECTIONS:
        return status.HTTP_403_FORBIDDEN
    return _STATUS_BY_KIND.get(kind, status.HTTP_422_UNPROCESSABLE_ENTITY)


def _rejection(result: ValidationResult, **details) -> HTTPException:
    return HTTPException(
        status_code=status_for(result.reason),
        detail=Error(
            error=result.reason.value,
            message=result.message or "Booking rejected",
            details=details or None,
        ).model_dump(),
    )


async def _own_booking_or_404(
    org: OrganizationConfig, booking_id: str, user_id: str
) -> BookingInterval:
    booking = await db.get_booking(booking_id)
    if booking is None or booking.org_id != org.id or booking.owner_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Booking {booking_id} not found",
        )
    return booking


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="createBooking",
    summary="Request a booking; admitted only if every rule passes",
)
@limiter.limit(BOOKING)
async def create_booking(
    request: Request,
    org_id: str,
    body: BookingCreate,
    user: CurrentUser,
    org: CurrentOrganization,
) -> BookingResponse:
    resource = await get_resource_or_404(org, body.resource_id)
    outcome = await booking_service.book(org, resource, user.user_id, body)
    if not outcome.accepted:
        raise _rejection(outcome.result, resource_id=resource.id, attempts=outcome.attempts)

    return BookingResponse(
        booking=outcome.booking,
        quote=outcome.quote,
        warnings=outcome.result.warnings,
    )


@router.get(
    "",
    response_model=BookingListResponse,
    operation_id="listMyBookings",
    summary="List the caller's bookings in an organization",
)
async def list_bookings(
    org_id: str,
    user: CurrentUser,
    org: CurrentOrganization,
    pagination: PaginationParams = Depends(PaginationParams),
    booking_status: BookingStatus | None = Query(None, alias="status", description="Filter by status"),
) -> BookingListResponse:
    bookings = await db.list_user_bookings(user.user_id, org.id, status=booking_status)
    return paginate(bookings, pagination, BookingListResponse)


@router.get(
    "/{booking_id}/cancellation",
    response_model=CancellationResponse,
    operation_id="previewCancellation",
    summary="Preview the refund and fee for canceling a booking now",
)
async def preview_cancellation(
    org_id: str,
    booking_id: str,
    user: CurrentUser,
    org: CurrentOrganization,
) -> CancellationResponse:
    booking = await _own_booking_or_404(org, booking_id, user.user_id)
    decision = await booking_service.cancellation_terms(org, booking)
    return CancellationResponse(
        booking=booking,
        decision=decision,
        already_canceled=booking.status == BookingStatus.CANCELED,
    )


@router.post(
    "/{booking_id}/cancel",
    response_model=CancellationResponse,
    operation_id="cancelBooking",
    summary="Cancel a booking (idempotent)",
)
async def cancel_booking(
    org_id: str,
    booking_id: str,
    user: CurrentUser,
    org: CurrentOrganization,
) -> CancellationResponse:
    booking = await _own_booking_or_404(org, booking_id, user.user_id)
    outcome = await booking_service.cancel(org, booking)
    if not outcome.decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=Error(
                error="cancellation_not_allowed",
                message=outcome.decision.message or "Booking cannot be canceled",
            ).model_dump(),
        )

    return CancellationResponse(
        booking=outcome.booking,
        decision=outcome.decision,
        already_canceled=outcome.already_canceled,
    )
