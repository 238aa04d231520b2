"""Tests for resolving a calendar date to its operating window."""

from datetime import date, time

from app.engine.operating_hours import CLOSED, resolve_day
from app.models import DayHours, Weekday
from tests.mocks.models import MOCK_SCHEDULE, SATURDAY, TODAY, make_schedule


class TestResolveDay:
    def test_uses_organization_schedule(self):
        window = resolve_day(MOCK_SCHEDULE, TODAY)
        assert window.closed is False
        assert window.open == time(7, 0)
        assert window.close == time(22, 0)

    def test_closed_day(self):
        schedule = make_schedule(sunday=DayHours(closed=True))
        assert resolve_day(schedule, date(2026, 3, 8)) == CLOSED

    def test_override_wins_for_its_weekday(self):
        overrides = {Weekday.MONDAY: DayHours(open="12:00", close="16:00")}
        window = resolve_day(MOCK_SCHEDULE, TODAY, overrides)
        assert (window.open, window.close) == (time(12, 0), time(16, 0))

    def test_override_for_other_weekday_is_ignored(self):
        overrides = {Weekday.MONDAY: DayHours(closed=True)}
        window = resolve_day(MOCK_SCHEDULE, SATURDAY, overrides)
        assert window.open == time(7, 0)

    def test_override_can_close_an_open_day(self):
        overrides = {Weekday.MONDAY: DayHours(closed=True)}
        assert resolve_day(MOCK_SCHEDULE, TODAY, overrides).closed is True

    def test_no_schedule_and_no_override_is_closed(self):
        assert resolve_day(None, TODAY) == CLOSED

    def test_weekday_of_follows_calendar(self):
        assert Weekday.of(TODAY) is Weekday.MONDAY
        assert Weekday.of(SATURDAY) is Weekday.SATURDAY
