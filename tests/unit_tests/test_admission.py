"""Tests for the composed admission decision."""

from datetime import time, timedelta, timezone

from app.engine.admission import admit, requested_interval
from app.engine.errors import ErrorKind
from app.models import BookingPolicy, DayHours
from tests.mocks.models import (
    MOCK_COURT,
    MOCK_COURT_INACTIVE,
    MOCK_COURT_SHORT_MONDAY,
    MOCK_SCHEDULE,
    MONTHLY,
    NOW,
    TODAY,
    make_booking,
    make_privileges,
    make_request,
    make_schedule,
)


def _admit(request, *, resource=MOCK_COURT, schedule=MOCK_SCHEDULE, existing=(), bookings_today=0,
           policy=None):
    return admit(
        request,
        resource=resource,
        schedule=schedule,
        existing=list(existing),
        bookings_today=bookings_today,
        now=NOW,
        policy=policy,
    )


class TestIntervalShape:
    def test_zero_duration(self):
        assert _admit(make_request(duration_minutes=0)).result.reason is ErrorKind.INVALID_INTERVAL

    def test_duration_not_multiple_of_granularity(self):
        result = _admit(make_request(duration_minutes=45)).result
        assert result.reason is ErrorKind.INVALID_INTERVAL

    def test_crossing_midnight(self):
        result = _admit(make_request(start="23:00", duration_minutes=120)).result
        assert result.reason is ErrorKind.INVALID_INTERVAL

    def test_start_with_utc_offset(self):
        request = make_request().model_copy(
            update={"start_time": time(10, 0, tzinfo=timezone(timedelta(hours=2)))}
        )
        result = _admit(request).result
        assert result.reason is ErrorKind.INVALID_INTERVAL
        assert "offset" in result.message
        assert requested_interval(request) is None

    def test_requested_interval(self):
        interval = requested_interval(make_request(start="10:00", duration_minutes=90))
        assert (interval.start, interval.end) == (time(10, 0), time(11, 30))


class TestResourceAndCalendar:
    def test_inactive_resource(self):
        result = _admit(make_request(), resource=MOCK_COURT_INACTIVE).result
        assert result.reason is ErrorKind.RESOURCE_INACTIVE

    def test_start_in_past(self):
        result = _admit(make_request(start="08:00", booking_date=TODAY)).result
        assert result.reason is ErrorKind.START_IN_PAST

    def test_later_today_is_fine(self):
        assert _admit(make_request(start="10:00", booking_date=TODAY)).accepted

    def test_closed_day(self):
        schedule = make_schedule(tuesday=DayHours(closed=True))
        result = _admit(make_request(), schedule=schedule).result
        assert result.reason is ErrorKind.OUTSIDE_OPERATING_HOURS
        assert "Tuesday" in result.message

    def test_before_opening(self):
        result = _admit(make_request(start="06:00")).result
        assert result.reason is ErrorKind.OUTSIDE_OPERATING_HOURS

    def test_past_closing(self):
        result = _admit(make_request(start="21:00", duration_minutes=120)).result
        assert result.reason is ErrorKind.OUTSIDE_OPERATING_HOURS

    def test_resource_override(self):
        monday = TODAY + timedelta(days=7)
        request = make_request(start="10:00", booking_date=monday, resource_id="court-4")
        result = _admit(request, resource=MOCK_COURT_SHORT_MONDAY).result
        assert result.reason is ErrorKind.OUTSIDE_OPERATING_HOURS
        assert "12:00-16:00" in result.message

    def test_off_grid_start(self):
        result = _admit(make_request(start="10:30")).result
        assert result.reason is ErrorKind.INVALID_INTERVAL

    def test_finer_grid(self):
        privileges = make_privileges(MONTHLY, min_booking_duration=0.5)
        request = make_request(start="10:30", duration_minutes=90, privileges=privileges)
        admission = _admit(request, policy=BookingPolicy(slot_granularity_minutes=30))
        assert admission.accepted
        assert admission.interval.end == time(12, 0)


class TestConflicts:
    def test_overlap_is_rejected(self):
        existing = [make_booking("10:30", "11:30")]
        result = _admit(make_request(start="10:00"), existing=existing).result
        assert result.reason is ErrorKind.SLOT_CONFLICT

    def test_touching_is_admitted(self):
        existing = [make_booking("09:00", "10:00"), make_booking("11:00", "12:00")]
        assert _admit(make_request(start="10:00"), existing=existing).accepted

    def test_conflict_reported_before_tier_rules(self):
        existing = [make_booking("10:00", "11:00")]
        request = make_request(start="10:00", tier="day_pass", guest_count=3)
        result = _admit(request, existing=existing, bookings_today=5).result
        assert result.reason is ErrorKind.SLOT_CONFLICT


class TestTierAndPrice:
    def test_tier_rejection_passes_through(self):
        result = _admit(make_request(tier="day_pass"), bookings_today=1).result
        assert result.reason is ErrorKind.DAILY_QUOTA_EXCEEDED

    def test_accepted_with_quote(self):
        admission = _admit(make_request(start="10:00", duration_minutes=120, tier="monthly"))
        assert admission.accepted
        assert admission.quote.original == 5000
        assert admission.quote.discount_amount == 500
        assert admission.quote.final == 4500
        assert admission.interval.start == time(10, 0)
        assert admission.interval.end == time(12, 0)

    def test_warning_carried_on_acceptance(self):
        admission = _admit(make_request(tier="monthly"), bookings_today=2)
        assert admission.accepted
        assert len(admission.result.warnings) == 1

    def test_rejection_has_no_quote(self):
        admission = _admit(make_request(start="10:30"))
        assert admission.quote is None and admission.interval is None
