"""Tests for shared types and the error taxonomy."""

from __future__ import annotations

from datetime import date, time

import pytest

from conftest import MONDAY, dt, make_rule_set, window


class TestWindow:

    def test_validity(self):
        assert window(MONDAY, "09:00", "10:00").is_valid
        assert not window(MONDAY, "10:00", "10:00").is_valid
        assert not window(MONDAY, "11:00", "10:00").is_valid

    def test_duration(self):
        assert window(MONDAY, "09:00", "10:30").duration_minutes == 90

    def test_overlaps_is_half_open(self):
        w = window(MONDAY, "09:00", "10:00")
        assert w.overlaps(dt(MONDAY, "09:30"), dt(MONDAY, "11:00"))
        assert not w.overlaps(dt(MONDAY, "10:00"), dt(MONDAY, "11:00"))
        assert not w.overlaps(dt(MONDAY, "08:00"), dt(MONDAY, "09:00"))

    def test_contains(self):
        w = window(MONDAY, "09:00", "17:00")
        assert w.contains(dt(MONDAY, "09:00"), dt(MONDAY, "17:00"))
        assert not w.contains(dt(MONDAY, "08:59"), dt(MONDAY, "10:00"))


class TestDateRange:

    def test_single_day(self):
        from dayplanner.types import DateRange

        assert DateRange(MONDAY, MONDAY).first_day == MONDAY

    def test_inverted_rejected(self):
        from dayplanner.types import DateRange

        with pytest.raises(ValueError):
            DateRange(MONDAY, date(2024, 6, 2))


class TestResource:

    @pytest.mark.parametrize("capacity", [0, -1])
    def test_non_positive_capacity_rejected(self, capacity):
        from dayplanner.types import Resource, ResourceConfigError

        with pytest.raises(ResourceConfigError):
            Resource("r", capacity, "UTC", make_rule_set("always_open"))

    def test_unbounded(self):
        from dayplanner.types import Resource

        assert not Resource("r", None, "UTC", make_rule_set("always_open")).is_bounded
        assert Resource("r", 1, "UTC", make_rule_set("always_open")).is_bounded


class TestRuleSetConstruction:
    """Rule values built in code are held to the same ranges as loaded ones."""

    @pytest.mark.parametrize(
        "kwargs,fragment",
        [
            ({"excluded_weekdays": frozenset({7})}, "excluded_weekdays"),
            ({"excluded_weekdays": frozenset({-1})}, "excluded_weekdays"),
            ({"excluded_months": frozenset({13})}, "excluded_months"),
            ({"excluded_months": frozenset({0})}, "excluded_months"),
        ],
        ids=["weekday_7", "weekday_negative", "month_13", "month_0"],
    )
    def test_out_of_range_numbers_rejected(self, kwargs, fragment):
        from dayplanner.rules import RuleSet
        from dayplanner.types import RuleSetConfigError

        with pytest.raises(RuleSetConfigError) as exc_info:
            RuleSet(**kwargs)
        assert any(fragment in e for e in exc_info.value.errors)

    def test_every_bad_number_reported(self):
        from dayplanner.rules import RuleSet
        from dayplanner.types import RuleSetConfigError

        with pytest.raises(RuleSetConfigError) as exc_info:
            RuleSet(excluded_weekdays=frozenset({7, 8}), excluded_months=frozenset({13}))
        assert len(exc_info.value.errors) == 3

    @pytest.mark.parametrize(
        "start,end",
        [(time(10, 0), time(9, 0)), (time(9, 0), time(9, 0))],
        ids=["inverted", "empty"],
    )
    def test_time_range_must_run_forward(self, start, end):
        from dayplanner.rules import TimeRange
        from dayplanner.types import RuleSetConfigError

        with pytest.raises(RuleSetConfigError, match="must be after"):
            TimeRange(start, end)

    def test_time_range_to_midnight_accepted(self):
        from dayplanner.rules import TimeRange

        assert TimeRange(time(22, 0), time(0, 0)).end_minute == 24 * 60

    def test_exclusion_weekday_out_of_range(self):
        from dayplanner.rules import TimeExclusion, TimeRange
        from dayplanner.types import RuleSetConfigError

        with pytest.raises(RuleSetConfigError):
            TimeExclusion(TimeRange(time(9, 0), time(10, 0)), weekday=7)


class TestErrors:

    @pytest.mark.parametrize(
        "error,code,retryable",
        [
            ("InvalidWindow", "invalid_window", False),
            ("InvalidParticipantCount", "invalid_participant_count", False),
            ("ResourceNotFound", "resource_not_found", False),
            ("BookingNotFound", "booking_not_found", False),
            ("AssignmentNotFound", "assignment_not_found", False),
            ("ResourceClosed", "resource_closed", False),
            ("CapacityExceeded", "capacity_exceeded", False),
            ("ConcurrentConflict", "concurrent_conflict", True),
        ],
        ids=lambda v: v if isinstance(v, str) else None,
    )
    def test_codes(self, error, code, retryable):
        from dayplanner import types

        cls = getattr(types, error)
        assert issubclass(cls, types.SchedulingError)
        assert cls.code == code
        assert cls.retryable is retryable

    def test_messages_carry_details(self):
        from dayplanner.types import CapacityExceeded, ConcurrentConflict

        assert "1 used + 2 requested > 2" in str(CapacityExceeded("room-1", 2, 1, 2))
        assert "lock_timeout" in str(ConcurrentConflict("room-1", "lock_timeout"))

    def test_configuration_error_lists_every_message(self):
        from dayplanner.types import RuleSetConfigError

        err = RuleSetConfigError("rules.json", ["first", "second"])
        assert isinstance(err, ValueError)
        assert "  - first" in str(err)
        assert "  - second" in str(err)
