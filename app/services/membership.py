"""
Membership record normalization.

Membership documents have been stored in more than one shape over time:

* the tier lives either at ``membership.tier`` or, in older records, at
  ``membership.plan.tier``;
* a member's organizations are either a single id string or a list.

Both are normalized here, once, at the storage boundary.  Everything
past ``app.db`` only ever sees ``Membership`` and ``Member`` models.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from app.models import Member, Membership

logger = logging.getLogger(__name__)


def normalize_org_ids(value: str | Iterable[str] | None) -> frozenset[str]:
    """Canonical set of organization ids from a string, a list, or nothing."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        return frozenset({value}) if value else frozenset()
    return frozenset(str(v) for v in value if v)


def extract_tier(raw: Mapping[str, Any]) -> str | None:
    """Tier name from either the current or the legacy membership shape."""
    tier = raw.get("tier")
    if not tier:
        plan = raw.get("plan")
        if isinstance(plan, Mapping):
            tier = plan.get("tier")
    return str(tier) if tier else None


def normalize_membership(
    user_id: str,
    org_id: str,
    raw: Mapping[str, Any] | None,
) -> Membership | None:
    """
    Build a ``Membership`` from a raw membership document.

    Returns None when the document is missing or has no tier in either
    shape.  A missing status is treated as inactive.
    """
    if not raw:
        return None

    tier = extract_tier(raw)
    if tier is None:
        logger.error("Membership %s/%s has no tier field", org_id, user_id)
        return None

    return Membership(
        user_id=user_id,
        org_id=org_id,
        tier=tier,
        status=str(raw.get("status") or "inactive"),
    )


def normalize_member(
    user_id: str,
    email: str | None,
    organizations: str | Iterable[str] | None,
) -> Member:
    return Member(id=user_id, email=email, organization_ids=normalize_org_ids(organizations))
