"""
Court endpoints – listing and per-day availability.
"""

from datetime import date

from fastapi import APIRouter, Query

from app import db
from app.dependencies import CurrentOrganization, CurrentUser, get_resource_or_404
from app.models import AvailabilityResponse, Resource
from app.services import booking_service

router = APIRouter(prefix="/api/orgs/{org_id}/resources", tags=["resources"])


@router.get(
    "",
    response_model=list[Resource],
    operation_id="listResources",
    summary="List courts of an organization",
)
async def list_resources(
    org_id: str,
    org: CurrentOrganization,
    active: bool | None = Query(None, description="Only active (or inactive) courts"),
) -> list[Resource]:
    return await db.list_resources(org.id, active=active)


@router.get(
    "/{resource_id}/availability",
    response_model=AvailabilityResponse,
    operation_id="getResourceAvailability",
    summary="Slot grid of a court for one date, annotated for the caller's tier",
)
async def get_availability(
    org_id: str,
    resource_id: str,
    user: CurrentUser,
    org: CurrentOrganization,
    booking_date: date = Query(..., alias="date", description="Calendar date (YYYY-MM-DD)"),
) -> AvailabilityResponse:
    resource = await get_resource_or_404(org, resource_id)
    return await booking_service.list_availability(org, resource, booking_date, user.user_id)
