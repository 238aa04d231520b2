"""
Rejection taxonomy for booking admission.

Every per-request rejection is returned as a value (see
``app.models.ValidationResult``).  ``ConfigurationError`` is the only
kind that is raised: a malformed schedule or tier record stops all
evaluation for the organization until an administrator fixes it.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Why a booking request (or an organization's configuration) was rejected."""

    CONFIGURATION_INVALID = "configuration_invalid"

    # Tier policy, in evaluation order
    OUTSIDE_ADVANCE_WINDOW = "outside_advance_window"
    DURATION_OUT_OF_BOUNDS = "duration_out_of_bounds"
    PRIME_TIME_RESTRICTED = "prime_time_restricted"
    WEEKEND_RESTRICTED = "weekend_restricted"
    DAILY_QUOTA_EXCEEDED = "daily_quota_exceeded"
    GUEST_NOT_ALLOWED = "guest_not_allowed"
    GUEST_LIMIT_EXCEEDED = "guest_limit_exceeded"

    SLOT_CONFLICT = "slot_conflict"
    NO_ACTIVE_MEMBERSHIP = "no_active_membership"
    INVALID_INTERVAL = "invalid_interval"

    # Calendar and resource state
    OUTSIDE_OPERATING_HOURS = "outside_operating_hours"
    START_IN_PAST = "start_in_past"
    RESOURCE_INACTIVE = "resource_inactive"


# Rejections the member can fix by upgrading their membership tier.
TIER_REJECTIONS: frozenset[ErrorKind] = frozenset({
    ErrorKind.OUTSIDE_ADVANCE_WINDOW,
    ErrorKind.DURATION_OUT_OF_BOUNDS,
    ErrorKind.PRIME_TIME_RESTRICTED,
    ErrorKind.WEEKEND_RESTRICTED,
    ErrorKind.DAILY_QUOTA_EXCEEDED,
    ErrorKind.GUEST_NOT_ALLOWED,
    ErrorKind.GUEST_LIMIT_EXCEEDED,
})


class ConfigurationError(ValueError):
    """An organization's schedule or tier configuration cannot be evaluated."""

    kind = ErrorKind.CONFIGURATION_INVALID

    def __init__(self, org_id: str | None, message: str) -> None:
        self.org_id = org_id
        self.message = message
        prefix = f"Organization {org_id}: " if org_id else ""
        super().__init__(f"{prefix}{message}")
