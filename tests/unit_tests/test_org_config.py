"""Tests for loading and validating organization configuration."""

from datetime import time

import pytest

from app.engine.errors import ConfigurationError, ErrorKind
from app.models import Weekday
from app.services.org_config import (
    DEFAULT_TIER_PRIVILEGES,
    config_to_record,
    load_organization_config,
    load_organization_config_file,
)
from tests.mocks.models import MOCK_ORG, MOCK_ORG_RAW


def _raw(**changes):
    raw = dict(MOCK_ORG_RAW)
    raw.update(changes)
    return raw


class TestLoadOrganizationConfig:
    def test_loads_source_shaped_record(self):
        config = load_organization_config(MOCK_ORG_RAW)
        assert config.id == "raw-org"
        assert config.currency == "EUR"
        assert config.policy.slot_granularity_minutes == 30
        assert config.schedule.sunday.closed is True
        assert config.schedule.monday.open == time(8, 0)

    def test_missing_tier_record_uses_defaults(self):
        config = load_organization_config(MOCK_ORG_RAW)
        assert config.tiers["day_pass"] == DEFAULT_TIER_PRIVILEGES["day_pass"]

    def test_camel_case_and_legacy_price_key(self):
        premium = load_organization_config(MOCK_ORG_RAW).tiers["premium"]
        assert premium.max_days_in_advance == 21
        assert premium.price_per_hour == 1800
        assert premium.min_booking_duration == 0.5

    def test_partial_privileges_are_rejected(self):
        raw = _raw(tiers={"premium": {"privileges": {"maxDaysInAdvance": 5}}})
        with pytest.raises(ConfigurationError) as excinfo:
            load_organization_config(raw)
        assert excinfo.value.kind is ErrorKind.CONFIGURATION_INVALID
        assert excinfo.value.org_id == "raw-org"
        assert "premium" in excinfo.value.message

    def test_unknown_tier_without_record_is_rejected(self):
        with pytest.raises(ConfigurationError, match="no built-in defaults"):
            load_organization_config(_raw(tiers={"platinum": None}))

    def test_missing_weekday_is_rejected(self):
        hours = dict(MOCK_ORG_RAW["operatingHours"])
        del hours["Sunday"]
        with pytest.raises(ConfigurationError, match="sunday"):
            load_organization_config(_raw(operatingHours=hours))

    def test_open_after_close_is_rejected(self):
        hours = dict(MOCK_ORG_RAW["operatingHours"])
        hours["Monday"] = {"open": "20:00", "close": "08:00"}
        with pytest.raises(ConfigurationError):
            load_organization_config(_raw(operatingHours=hours))

    def test_bare_number_is_not_a_clock_time(self):
        hours = dict(MOCK_ORG_RAW["operatingHours"])
        hours["Monday"] = {"open": 8, "close": "20:00"}
        with pytest.raises(ConfigurationError, match="monday: 8 is not a clock time"):
            load_organization_config(_raw(operatingHours=hours))

    def test_fractional_number_is_not_a_clock_time(self):
        hours = dict(MOCK_ORG_RAW["operatingHours"])
        hours["Tuesday"] = {"open": "08:00", "close": 20.5}
        with pytest.raises(ConfigurationError, match="tuesday"):
            load_organization_config(_raw(operatingHours=hours))

    def test_min_duration_above_max_is_rejected(self):
        privileges = DEFAULT_TIER_PRIVILEGES["monthly"].model_dump()
        privileges["min_booking_duration"] = 3
        with pytest.raises(ConfigurationError):
            load_organization_config(_raw(tiers={"monthly": privileges}))

    def test_unknown_timezone_is_rejected(self):
        with pytest.raises(ConfigurationError, match="timezone"):
            load_organization_config(_raw(policy={"timezone": "Mars/Olympus"}))

    def test_missing_id(self):
        with pytest.raises(ConfigurationError):
            load_organization_config({"name": "Nameless"})

    def test_round_trips_through_record(self):
        assert load_organization_config(config_to_record(MOCK_ORG)) == MOCK_ORG


class TestLoadFromFile:
    def test_yaml_with_unquoted_times(self, tmp_path):
        path = tmp_path / "org.yaml"
        days = "\n".join(
            f"  {day.value}:\n    open: 07:30\n    close: 21:00" for day in Weekday
        )
        path.write_text(f"id: yaml-org\nname: YAML Club\nschedule:\n{days}\ntiers:\n  annual: null\n")

        config = load_organization_config_file(path)
        assert config.schedule.friday.open == time(7, 30)
        assert config.schedule.friday.close == time(21, 0)
        assert set(config.tiers) == {"annual"}

    def test_yaml_with_hour_only_is_rejected(self, tmp_path):
        path = tmp_path / "org.yaml"
        days = "\n".join(
            f"  {day.value}:\n    open: 8\n    close: 21:00" for day in Weekday
        )
        path.write_text(f"id: yaml-org\nschedule:\n{days}\ntiers:\n  annual: null\n")

        with pytest.raises(ConfigurationError, match="is not a clock time") as excinfo:
            load_organization_config_file(path)
        assert excinfo.value.org_id == "yaml-org"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("id: [unterminated\n")
        with pytest.raises(ConfigurationError, match="not valid YAML"):
            load_organization_config_file(path)
