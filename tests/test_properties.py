"""Hypothesis property-based tests.

Properties that must hold for all valid inputs, verified by random generation.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from hypothesis import given, settings, assume
from hypothesis import strategies as st

from conftest import MONDAY, make_booking, make_resource, make_scheduler


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

# Half-hour aligned ranges; an end of index 48 is midnight.
@st.composite
def _time_ranges(draw):
    from dayplanner.rules import TimeRange

    start = draw(st.integers(min_value=0, max_value=46))
    end = draw(st.integers(min_value=start + 1, max_value=48))
    end_time = time(0, 0) if end == 48 else time(end // 2, (end % 2) * 30)
    return TimeRange(time(start // 2, (start % 2) * 30), end_time)


# Days in the reference fortnight starting Sunday 2024-06-02
_days = st.integers(min_value=0, max_value=13).map(lambda n: date(2024, 6, 2) + timedelta(days=n))


@st.composite
def _rule_sets(draw):
    from dayplanner.rules import DayState, Override, RuleSet, TimeExclusion

    states = st.sampled_from([DayState.OPEN, DayState.CLOSED])
    exclusions = st.lists(
        st.builds(
            TimeExclusion,
            _time_ranges(),
            st.one_of(st.none(), st.integers(min_value=0, max_value=6)),
        ),
        max_size=3,
    )
    overrides = st.lists(
        st.builds(Override, _days, states, st.one_of(st.none(), _time_ranges())),
        max_size=4,
    )
    return RuleSet(
        default_state=draw(states),
        excluded_weekdays=frozenset(draw(st.sets(st.integers(min_value=0, max_value=6), max_size=3))),
        excluded_months=frozenset(draw(st.sets(st.integers(min_value=1, max_value=12), max_size=2))),
        excluded_time_ranges=tuple(draw(exclusions)),
        overrides=tuple(draw(overrides)),
    )


# ---------------------------------------------------------------------------
# Property: resolver output shape
# ---------------------------------------------------------------------------
class TestResolverShape:

    @given(rule_set=_rule_sets(), d=_days)
    @settings(max_examples=100)
    def test_intervals_sorted_disjoint_within_day(self, rule_set, d):
        """Maximal intervals: ordered, non-touching, inside [d 00:00, d+1 00:00]."""
        from dayplanner.resolver import AvailabilityResolver

        intervals = AvailabilityResolver().resolve(rule_set, d, d)
        day_start = datetime.combine(d, time(0, 0))
        day_end = day_start + timedelta(days=1)

        for iv in intervals:
            assert day_start <= iv.start < iv.end <= day_end
        for prev, nxt in zip(intervals, intervals[1:]):
            assert prev.end < nxt.start

    @given(rule_set=_rule_sets(), d=_days)
    @settings(max_examples=50)
    def test_cached_and_uncached_agree(self, rule_set, d):
        from dayplanner.resolver import AvailabilityCache, AvailabilityResolver

        cached = AvailabilityResolver(AvailabilityCache())
        assert cached.periods_for_date(rule_set, d) == AvailabilityResolver().periods_for_date(
            rule_set, d
        )
        # Second read comes from the cache and must not differ.
        assert cached.periods_for_date(rule_set, d) == AvailabilityResolver().periods_for_date(
            rule_set, d
        )


# ---------------------------------------------------------------------------
# Property: whole-day overrides win
# ---------------------------------------------------------------------------
class TestOverridePrecedence:

    @given(rule_set=_rule_sets(), d=_days)
    @settings(max_examples=100)
    def test_closed_whole_day_override_closes_day(self, rule_set, d):
        from dayplanner.resolver import AvailabilityResolver
        from dayplanner.rules import DayState, Override, RuleSet

        # Only whole-day overrides on d, so nothing can reopen part of it.
        stripped = RuleSet(
            default_state=rule_set.default_state,
            excluded_weekdays=rule_set.excluded_weekdays,
            excluded_months=rule_set.excluded_months,
            excluded_time_ranges=rule_set.excluded_time_ranges,
            overrides=tuple(o for o in rule_set.overrides if o.date != d),
        )
        closed = stripped.with_override(Override(d, DayState.CLOSED))
        assert AvailabilityResolver().periods_for_date(closed, d) == []

    @given(rule_set=_rule_sets(), d=_days)
    @settings(max_examples=100)
    def test_open_whole_day_override_opens_day(self, rule_set, d):
        from dayplanner.resolver import AvailabilityResolver
        from dayplanner.rules import DayState, Override, RuleSet

        stripped = RuleSet(
            default_state=rule_set.default_state,
            excluded_weekdays=rule_set.excluded_weekdays,
            excluded_months=rule_set.excluded_months,
            excluded_time_ranges=rule_set.excluded_time_ranges,
            overrides=tuple(o for o in rule_set.overrides if o.date != d),
        )
        opened = stripped.with_override(Override(d, DayState.OPEN))
        assert AvailabilityResolver().periods_for_date(opened, d) == [(time(0, 0), time(0, 0))]


# ---------------------------------------------------------------------------
# Property: is_window_open agrees with resolve
# ---------------------------------------------------------------------------
class TestWindowOpen:

    @given(
        rule_set=_rule_sets(),
        d=_days,
        start=st.integers(min_value=0, max_value=46),
        length=st.integers(min_value=1, max_value=8),
    )
    @settings(max_examples=100)
    def test_open_window_inside_single_interval(self, rule_set, d, start, length):
        from dayplanner.resolver import AvailabilityResolver
        from dayplanner.types import Window

        assume(start + length <= 48)
        day_start = datetime.combine(d, time(0, 0))
        win = Window(
            day_start + timedelta(minutes=30 * start),
            day_start + timedelta(minutes=30 * (start + length)),
        )
        resolver = AvailabilityResolver()
        expected = any(
            iv.contains(win.start, win.end) for iv in resolver.resolve(rule_set, d, d)
        )
        assert resolver.is_window_open(rule_set, win) is expected


# ---------------------------------------------------------------------------
# Property: capacity is never exceeded
# ---------------------------------------------------------------------------

_ops = st.lists(
    st.tuples(
        st.sampled_from(["allocate", "cancel"]),
        st.integers(min_value=0, max_value=20),  # start half-hour
        st.integers(min_value=1, max_value=6),  # length in half-hours
        st.integers(min_value=1, max_value=3),  # participants
    ),
    min_size=1,
    max_size=25,
)


class TestCapacityInvariant:

    @given(capacity=st.integers(min_value=1, max_value=4), ops=_ops)
    @settings(max_examples=60, deadline=None)
    def test_load_never_exceeds_capacity(self, capacity, ops):
        from dayplanner.types import SchedulingError, Window

        scheduler, storage = make_scheduler()
        storage.save_resource(make_resource(capacity=capacity))
        storage.save_booking(make_booking())

        day_start = datetime.combine(MONDAY, time(8, 0))
        live = []
        for kind, start, length, count in ops:
            if kind == "cancel":
                if live:
                    scheduler.cancel(live.pop(start % len(live)).id)
                continue
            win = Window(
                day_start + timedelta(minutes=30 * start),
                day_start + timedelta(minutes=30 * (start + length)),
            )
            try:
                live.append(scheduler.allocate("room-1", "booking-1", win, count))
            except SchedulingError:
                pass

            # Check every half-hour slot of the working span.
            for slot in range(0, 26):
                slot_win = Window(
                    day_start + timedelta(minutes=30 * slot),
                    day_start + timedelta(minutes=30 * (slot + 1)),
                )
                assert scheduler.ledger.peak_usage("room-1", slot_win) <= capacity

    @given(count=st.integers(min_value=1, max_value=3))
    @settings(max_examples=20, deadline=None)
    def test_cancel_twice_is_harmless(self, count):
        from dayplanner.types import CancelOutcome, Window

        scheduler, storage = make_scheduler()
        storage.save_resource(make_resource(capacity=3))
        storage.save_booking(make_booking())
        win = Window(datetime.combine(MONDAY, time(9, 0)), datetime.combine(MONDAY, time(10, 0)))

        a = scheduler.allocate("room-1", "booking-1", win, count)
        assert scheduler.cancel(a.id) is CancelOutcome.CANCELLED
        assert scheduler.cancel(a.id) is CancelOutcome.ALREADY_CANCELLED
        assert scheduler.ledger.peak_usage("room-1", win) == 0
