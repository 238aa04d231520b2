"""
Seeding helpers for tests that go through the real SQLite layer.

All helpers expect ``app.db`` to be initialized (the ``database`` or
``client`` fixture does that).
"""

from __future__ import annotations

from app import db
from app.models import OrganizationConfig, Resource
from tests.mocks.models import MOCK_COURTS, MOCK_ORG


async def seed_org(
    org: OrganizationConfig = MOCK_ORG,
    resources: list[Resource] | None = None,
) -> OrganizationConfig:
    """Store *org* and its courts (the mock courts by default)."""
    await db.upsert_organization(org)
    for resource in MOCK_COURTS if resources is None else resources:
        await db.create_resource(
            org.id,
            resource.label,
            resource_id=resource.id,
            surface=resource.surface,
            indoor=resource.indoor,
            active=resource.active,
            hours_overrides=resource.hours_overrides,
        )
    return org


async def seed_member(
    user_id: str,
    org_id: str = "test-org",
    tier: str | None = "monthly",
    status: str = "active",
) -> None:
    """A member of *org_id*, with a membership in *tier* unless tier is None."""
    await db.upsert_member(user_id, email=f"{user_id}@example.com", organizations=[org_id])
    if tier is not None:
        await db.set_membership(user_id, org_id, {"tier": tier, "status": status})
