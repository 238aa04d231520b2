import logging
from datetime import UTC, datetime
from typing import Annotated

import jwt
from fastapi import Cookie, Depends, HTTPException, Query, status

from app import db
from app.config import JWT_ALGORITHM, JWT_SECRET
from app.models import OrganizationConfig, PaginationMeta, Resource, UserInfo

logger = logging.getLogger(__name__)


# ── Pagination ─────────────────────────────────────────────────────────────


class PaginationParams:
    def __init__(
        self,
        page: Annotated[int, Query(ge=1, description="Page number (1-indexed)")] = 1,
        page_size: Annotated[int, Query(ge=1, le=100, description="Items per page")] = 20,
    ):
        self.page = page
        self.page_size = page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def paginate(items: list, pagination: PaginationParams, response_cls: type):
    total = len(items)
    start = pagination.offset
    end = start + pagination.page_size
    return response_cls(
        items=items[start:end],
        meta=PaginationMeta(
            page=pagination.page,
            page_size=pagination.page_size,
            total_items=total,
            total_pages=max(1, -(-total // pagination.page_size)),
        ),
    )


# ── JWT / Session ──────────────────────────────────────────────────────────


async def get_current_user(
    session: Annotated[str | None, Cookie()] = None,
) -> UserInfo:
    """Verify the `session` cookie. Sessions are issued by the sign-in service, not here."""
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )

    try:
        payload = jwt.decode(session, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please log in again.",
        ) from None
    except jwt.PyJWTError:
        logger.info("Rejected session cookie with an invalid signature or payload")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session. Please log in again.",
        ) from None

    user_id: str | None = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload.",
        )

    return UserInfo(
        user_id=user_id,
        issued_at=datetime.fromtimestamp(payload.get("iat", 0), tz=UTC),
    )


CurrentUser = Annotated[UserInfo, Depends(get_current_user)]


# ── Organization lookup ────────────────────────────────────────────────────


async def get_organization(org_id: str) -> OrganizationConfig:
    """
    Load the organization named in the path.

    A stored configuration that no longer validates raises
    ``ConfigurationError``, which the app maps to 503.
    """
    org = await db.get_organization(org_id)
    if org is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Organization {org_id} not found",
        )
    return org


async def get_resource_or_404(org: OrganizationConfig, resource_id: str) -> Resource:
    resource = await db.get_resource(resource_id)
    if resource is None or resource.org_id != org.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Court {resource_id} not found in organization {org.id}",
        )
    return resource


CurrentOrganization = Annotated[OrganizationConfig, Depends(get_organization)]
