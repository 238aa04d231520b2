"""Tests for the tier policy engine."""

from datetime import time, timedelta

import pytest

from app.engine import policy
from app.engine.errors import ErrorKind
from app.models import BookingPolicy, Weekday
from tests.mocks.models import (
    ANNUAL,
    DAY_PASS,
    MONTHLY,
    NOW,
    SATURDAY,
    TODAY,
    make_privileges,
    make_request,
)


def _evaluate(request, existing=0, **kwargs):
    return policy.evaluate(request, request.privileges, existing, now=NOW, **kwargs)


class TestRuleOrder:
    def test_rule_order_is_fixed(self):
        assert policy.POLICY_RULES == (
            policy.check_advance_window,
            policy.check_duration_bounds,
            policy.check_prime_time,
            policy.check_weekend,
            policy.check_daily_quota,
            policy.check_guests,
        )

    def test_first_failing_rule_wins(self):
        # Too far ahead *and* too long: the advance window is reported.
        request = make_request(
            booking_date=TODAY + timedelta(days=5), duration_minutes=180, tier="day_pass",
        )
        result = _evaluate(request)
        assert result.reason is ErrorKind.OUTSIDE_ADVANCE_WINDOW

    def test_quota_reported_before_guests(self):
        request = make_request(tier="day_pass", guest_count=2)
        assert _evaluate(request, existing=1).reason is ErrorKind.DAILY_QUOTA_EXCEEDED


class TestAdvanceWindow:
    def test_day_pass_five_days_out(self):
        request = make_request(booking_date=TODAY + timedelta(days=5), tier="day_pass")
        result = _evaluate(request)
        assert result.valid is False
        assert result.reason is ErrorKind.OUTSIDE_ADVANCE_WINDOW
        assert "Day Pass" in result.message
        assert "3 days" in result.message

    def test_exactly_at_limit_is_allowed(self):
        request = make_request(booking_date=TODAY + timedelta(days=3), tier="day_pass")
        assert _evaluate(request).valid is True


class TestDurationBounds:
    def test_too_long(self):
        result = _evaluate(make_request(duration_minutes=180, tier="monthly"))
        assert result.reason is ErrorKind.DURATION_OUT_OF_BOUNDS
        assert "2 hours" in result.message

    def test_too_short(self):
        result = _evaluate(make_request(duration_minutes=30, tier="monthly"))
        assert result.reason is ErrorKind.DURATION_OUT_OF_BOUNDS
        assert "Minimum" in result.message

    def test_fractional_bounds(self):
        privileges = make_privileges(MONTHLY, min_booking_duration=0.5, max_booking_duration=1.5)
        assert _evaluate(make_request(duration_minutes=90, privileges=privileges)).valid is True
        result = _evaluate(make_request(duration_minutes=120, privileges=privileges))
        assert result.reason is ErrorKind.DURATION_OUT_OF_BOUNDS
        assert "1.5 hours" in result.message


class TestPrimeTime:
    def test_annual_at_18_passes(self):
        assert _evaluate(make_request(start="18:00", tier="annual", privileges=ANNUAL)).valid

    def test_monthly_without_privilege_is_restricted(self):
        privileges = make_privileges(MONTHLY, allow_prime_time_booking=False)
        result = _evaluate(make_request(start="18:00", privileges=privileges))
        assert result.reason is ErrorKind.PRIME_TIME_RESTRICTED
        assert "Monthly" in result.message

    @pytest.mark.parametrize("start,restricted", [
        ("16:00", False),
        ("17:00", True),
        ("21:00", True),
        ("22:00", False),
    ])
    def test_band_includes_end_hour(self, start, restricted):
        result = _evaluate(make_request(start=start, tier="day_pass"))
        assert (result.reason is ErrorKind.PRIME_TIME_RESTRICTED) is restricted

    def test_band_comes_from_organization_policy(self):
        early = BookingPolicy(prime_time_start_hour=6, prime_time_end_hour=8)
        result = _evaluate(make_request(start="07:00", tier="day_pass"), policy=early)
        assert result.reason is ErrorKind.PRIME_TIME_RESTRICTED


class TestWeekend:
    def test_weekend_restricted(self):
        privileges = make_privileges(MONTHLY, allow_weekend_booking=False)
        result = _evaluate(make_request(booking_date=SATURDAY, privileges=privileges))
        assert result.reason is ErrorKind.WEEKEND_RESTRICTED

    def test_weekdays_are_not_weekend(self):
        privileges = make_privileges(MONTHLY, allow_weekend_booking=False)
        assert _evaluate(make_request(privileges=privileges)).valid is True

    def test_weekend_days_come_from_organization_policy(self):
        privileges = make_privileges(MONTHLY, allow_weekend_booking=False)
        fri_sat = BookingPolicy(weekend_days={Weekday.FRIDAY, Weekday.SATURDAY})
        friday = TODAY + timedelta(days=4)
        result = _evaluate(make_request(booking_date=friday, privileges=privileges), policy=fri_sat)
        assert result.reason is ErrorKind.WEEKEND_RESTRICTED


class TestDailyQuota:
    def test_at_limit_is_rejected(self):
        result = _evaluate(make_request(tier="monthly"), existing=3)
        assert result.reason is ErrorKind.DAILY_QUOTA_EXCEEDED
        assert "3 bookings" in result.message

    def test_last_booking_warns(self):
        result = _evaluate(make_request(tier="monthly"), existing=2)
        assert result.valid is True
        assert result.warnings == ["This will be your 3rd and last booking today (3 max)."]

    def test_no_warning_below_last(self):
        result = _evaluate(make_request(tier="monthly"), existing=1)
        assert result.valid is True
        assert result.warnings == []


class TestGuests:
    def test_guests_not_allowed(self):
        result = _evaluate(make_request(tier="day_pass", guest_count=1))
        assert result.reason is ErrorKind.GUEST_NOT_ALLOWED

    def test_guest_limit(self):
        result = _evaluate(make_request(tier="monthly", guest_count=3))
        assert result.reason is ErrorKind.GUEST_LIMIT_EXCEEDED
        assert "2 guests" in result.message

    def test_within_guest_limit(self):
        assert _evaluate(make_request(tier="monthly", guest_count=2)).valid is True


class TestSelectability:
    def test_date_within_window(self):
        assert policy.is_date_selectable(TODAY + timedelta(days=3), DAY_PASS, now=NOW) is True

    def test_date_beyond_window(self):
        assert policy.is_date_selectable(TODAY + timedelta(days=4), DAY_PASS, now=NOW) is False

    def test_past_date(self):
        assert policy.is_date_selectable(TODAY - timedelta(days=1), ANNUAL, now=NOW) is False

    def test_weekend_without_privilege(self):
        privileges = make_privileges(MONTHLY, allow_weekend_booking=False)
        assert policy.is_date_selectable(SATURDAY, privileges, now=NOW) is False

    def test_start_allowed(self):
        assert policy.is_start_allowed(time(18, 0), DAY_PASS) is False
        assert policy.is_start_allowed(time(18, 0), ANNUAL) is True
        assert policy.is_start_allowed(time(10, 0), DAY_PASS) is True
