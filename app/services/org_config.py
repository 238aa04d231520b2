"""
Organization configuration loader.

Builds a validated ``OrganizationConfig`` from a raw mapping (a YAML/JSON
file, or the JSON stored in the database).  Configuration problems are
caught here, before any booking request is evaluated, and reported as a
``ConfigurationError``.

The loader owns the tier-name → default privileges table.  Defaults are
only used when a tier is offered without any privilege record at all;
a record that is present but incomplete is an error, never patched up
field by field.

Accepted raw shape (snake_case or the camelCase keys the previous
system stored)::

    id: riverside
    name: Riverside Tennis Club
    currency: USD
    schedule:                 # or operatingHours
      monday: {open: "07:00", close: "22:00"}
      ...
      sunday: {closed: true}
    policy:
      slot_granularity_minutes: 30
      prime_time_start_hour: 17
      prime_time_end_hour: 21
    tiers:                    # or membershipTiers
      day_pass: null          # → default day-pass privileges
      monthly:
        privileges: {...}     # full TierPrivileges record
      annual: {...}           # privileges may also be given inline
"""

from __future__ import annotations

import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml
from pydantic import ValidationError

from app.engine.errors import ConfigurationError
from app.models import OrganizationConfig, TierPrivileges, Weekday

logger = logging.getLogger(__name__)

# ── Default privileges ────────────────────────────────────────────────────

DEFAULT_TIER_PRIVILEGES: Mapping[str, TierPrivileges] = MappingProxyType({
    "day_pass": TierPrivileges(
        max_days_in_advance=3,
        max_bookings_per_day=1,
        min_booking_duration=1,
        max_booking_duration=1,
        price_per_hour=3000,
        allow_prime_time_booking=False,
        allow_weekend_booking=True,
        priority_booking=False,
        cancellation_window_hours=24,
        allow_free_cancellation=False,
        allow_guests=False,
        max_guests_per_booking=0,
        discount_percentage=0,
    ),
    "monthly": TierPrivileges(
        max_days_in_advance=14,
        max_bookings_per_day=3,
        min_booking_duration=1,
        max_booking_duration=2,
        price_per_hour=2500,
        allow_prime_time_booking=True,
        allow_weekend_booking=True,
        priority_booking=False,
        cancellation_window_hours=12,
        allow_free_cancellation=True,
        allow_guests=True,
        max_guests_per_booking=2,
        discount_percentage=10,
    ),
    "annual": TierPrivileges(
        max_days_in_advance=30,
        max_bookings_per_day=999,
        min_booking_duration=1,
        max_booking_duration=3,
        price_per_hour=2000,
        allow_prime_time_booking=True,
        allow_weekend_booking=True,
        priority_booking=True,
        cancellation_window_hours=2,
        allow_free_cancellation=True,
        allow_guests=True,
        max_guests_per_booking=4,
        discount_percentage=20,
    ),
})

# Keys renamed since the previous system's privilege documents.
_LEGACY_PRIVILEGE_KEYS = {"bookingPricePerHour": "pricePerHour"}


# ── Helpers ───────────────────────────────────────────────────────────────


def _describe(exc: ValidationError) -> str:
    """Compact, single-line summary of a pydantic validation error."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _clock(org_id: str | None, weekday: str, value: Any) -> Any:
    # YAML 1.1 reads an unquoted 08:00 as the sexagesimal integer 480.  Such
    # integers are at least 60 (1:00); any other number is a mistake.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    if isinstance(value, int) and value >= 60:
        return f"{value // 60:02d}:{value % 60:02d}"
    raise ConfigurationError(
        org_id, f"{weekday}: {value!r} is not a clock time; write it as \"HH:MM\""
    )


def normalize_hours(
    raw: Mapping[str, Any] | None, org_id: str | None = None,
) -> dict[str, Any]:
    """Lower-case weekday keys and recover clock values YAML read as numbers."""
    if not raw:
        return {}
    hours: dict[str, Any] = {}
    for weekday, entry in raw.items():
        key = (weekday.value if isinstance(weekday, Weekday) else str(weekday)).lower()
        if isinstance(entry, Mapping):
            entry = {
                k: _clock(org_id, key, v) if k in ("open", "close") else v
                for k, v in entry.items()
            }
        hours[key] = entry
    return hours


def default_privileges(tier: str) -> TierPrivileges | None:
    """Built-in privileges for a well-known tier name, if any."""
    return DEFAULT_TIER_PRIVILEGES.get(tier)


def _tier_privileges(org_id: str | None, tier: str, entry: Any) -> TierPrivileges:
    raw = entry.get("privileges") if isinstance(entry, Mapping) and "privileges" in entry else entry

    if raw is None:
        defaults = default_privileges(tier)
        if defaults is None:
            raise ConfigurationError(
                org_id, f"tier {tier!r} has no privileges and no built-in defaults"
            )
        return defaults

    if not isinstance(raw, Mapping):
        raise ConfigurationError(org_id, f"tier {tier!r} privileges must be a mapping")

    data = {_LEGACY_PRIVILEGE_KEYS.get(k, k): v for k, v in raw.items()}
    try:
        return TierPrivileges.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(
            org_id, f"tier {tier!r} privileges are incomplete or invalid: {_describe(exc)}"
        ) from exc


# ── Loading ───────────────────────────────────────────────────────────────


def load_organization_config(raw: Mapping[str, Any]) -> OrganizationConfig:
    """Validate a raw organization record. Raises ``ConfigurationError``."""
    if not isinstance(raw, Mapping):
        raise ConfigurationError(None, "organization configuration must be a mapping")

    org_id = raw.get("id")
    if not org_id:
        raise ConfigurationError(None, "organization configuration has no id")

    raw_tiers = raw.get("tiers", raw.get("membershipTiers")) or {}
    if not isinstance(raw_tiers, Mapping):
        raise ConfigurationError(org_id, "tiers must be a mapping of tier name to privileges")
    tiers = {
        str(tier): _tier_privileges(org_id, str(tier), entry)
        for tier, entry in raw_tiers.items()
    }

    policy = dict(raw.get("policy") or {})
    slot_interval = (raw.get("bookingSettings") or {}).get("slotInterval")
    if slot_interval and "slot_granularity_minutes" not in policy:
        policy["slot_granularity_minutes"] = slot_interval

    try:
        config = OrganizationConfig.model_validate({
            "id": org_id,
            "name": raw.get("name") or org_id,
            "currency": raw.get("currency", "USD"),
            "schedule": normalize_hours(raw.get("schedule", raw.get("operatingHours")), org_id),
            "policy": policy,
            "tiers": tiers,
        })
    except ValidationError as exc:
        raise ConfigurationError(org_id, _describe(exc)) from exc

    logger.info(
        "Loaded configuration for organization %s (%d tiers, %d-minute slots)",
        config.id, len(config.tiers), config.policy.slot_granularity_minutes,
    )
    return config


def load_organization_config_file(path: str | Path) -> OrganizationConfig:
    """Load an organization configuration from a YAML (or JSON) file."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        try:
            raw = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigurationError(None, f"{path}: not valid YAML ({exc})") from exc
    return load_organization_config(raw)


def config_to_record(config: OrganizationConfig) -> dict[str, Any]:
    """Serialize a validated configuration back to its raw (storable) shape."""
    return config.model_dump(mode="json")
