"""AvailabilityResolver: RuleSet + dates -> open intervals.

Days are resolved one at a time through a fixed pipeline over minute-of-day
spans, then converted to naive datetimes in the resource's local time.
Half-open intervals throughout: [start, end).
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from threading import Lock
from typing import Iterator, Optional

from dayplanner.rules import MINUTES_PER_DAY, DayState, RuleSet
from dayplanner.types import Interval, InvalidWindow, Window

Span = tuple[int, int]


def _merge(spans: list[Span]) -> list[Span]:
    """Sort and merge overlapping or touching spans; drop empty ones."""
    merged: list[Span] = []
    for start, end in sorted(s for s in spans if s[0] < s[1]):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _subtract(spans: list[Span], lo: int, hi: int) -> list[Span]:
    result: list[Span] = []
    for start, end in spans:
        if end <= lo or hi <= start:
            result.append((start, end))
            continue
        if start < lo:
            result.append((start, lo))
        if hi < end:
            result.append((hi, end))
    return result


def _minute_to_time(minute: int) -> time:
    if minute >= MINUTES_PER_DAY:
        return time(0, 0)
    return time(minute // 60, minute % 60)


class AvailabilityCache:
    """Caller-owned cache of resolved days, keyed by RuleSet value and date.

    RuleSets are immutable, so an edited rule set is a new key and can
    never read stale days. Least recently used rule sets are evicted past
    max_rule_sets.
    """

    def __init__(self, max_rule_sets: int = 256) -> None:
        self._max_rule_sets = max_rule_sets
        self._entries: OrderedDict[RuleSet, dict[date, tuple[Span, ...]]] = OrderedDict()
        self._lock = Lock()
        self.hits = 0
        self.misses = 0

    def get(self, rule_set: RuleSet, d: date) -> Optional[tuple[Span, ...]]:
        with self._lock:
            days = self._entries.get(rule_set)
            if days is None or d not in days:
                self.misses += 1
                return None
            self._entries.move_to_end(rule_set)
            self.hits += 1
            return days[d]

    def put(self, rule_set: RuleSet, d: date, spans: tuple[Span, ...]) -> None:
        with self._lock:
            days = self._entries.setdefault(rule_set, {})
            days[d] = spans
            self._entries.move_to_end(rule_set)
            while len(self._entries) > self._max_rule_sets:
                self._entries.popitem(last=False)

    def invalidate(self, rule_set: Optional[RuleSet] = None) -> None:
        """Drop one rule set's days, or everything when rule_set is None."""
        with self._lock:
            if rule_set is None:
                self._entries.clear()
            else:
                self._entries.pop(rule_set, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class AvailabilityResolver:
    """Stateless rule evaluation. Caching only through an explicit cache."""

    def __init__(self, cache: Optional[AvailabilityCache] = None) -> None:
        self.cache = cache

    def _open_spans(self, rule_set: RuleSet, d: date) -> tuple[Span, ...]:
        if self.cache is not None:
            cached = self.cache.get(rule_set, d)
            if cached is not None:
                return cached

        spans = self._evaluate(rule_set, d)

        if self.cache is not None:
            self.cache.put(rule_set, d, spans)
        return spans

    @staticmethod
    def _evaluate(rule_set: RuleSet, d: date) -> tuple[Span, ...]:
        """Precedence pipeline for a single date, lowest rule first."""
        # 1. Default state
        if rule_set.default_state is DayState.OPEN:
            spans: list[Span] = [(0, MINUTES_PER_DAY)]
        else:
            spans = []

        # 2. Whole-day weekday / month exclusions
        if rule_set.is_day_excluded(d):
            spans = []

        # 3. Sub-day blackouts only shrink what is open
        for exclusion in rule_set.excluded_time_ranges:
            if exclusion.applies_to(d):
                tr = exclusion.time_range
                spans = _subtract(spans, tr.start_minute, tr.end_minute)

        # 4. Date-exact overrides: whole-day first, then sub-ranges in order
        overrides = rule_set.overrides_for(d)
        for override in overrides:
            if override.is_whole_day:
                spans = [(0, MINUTES_PER_DAY)] if override.state is DayState.OPEN else []
        for override in overrides:
            if override.is_whole_day:
                continue
            tr = override.time_range
            if override.state is DayState.OPEN:
                spans = _merge(spans + [(tr.start_minute, tr.end_minute)])
            else:
                spans = _subtract(spans, tr.start_minute, tr.end_minute)

        # 5. Maximal open spans
        return tuple(_merge(spans))

    def periods_for_date(self, rule_set: RuleSet, d: date) -> list[tuple[time, time]]:
        """Open (start, end) time pairs for d. An end of 00:00 means midnight."""
        return [
            (_minute_to_time(start), _minute_to_time(end))
            for start, end in self._open_spans(rule_set, d)
        ]

    def _datetime_intervals_for_date(self, rule_set: RuleSet, d: date) -> list[Interval]:
        midnight = datetime.combine(d, time(0, 0))
        return [
            Interval(midnight + timedelta(minutes=start), midnight + timedelta(minutes=end))
            for start, end in self._open_spans(rule_set, d)
        ]

    def resolve(self, rule_set: RuleSet, first_day: date, last_day: date) -> list[Interval]:
        """Open intervals for every day in [first_day, last_day], clipped per day."""
        result: list[Interval] = []
        current = first_day
        while current <= last_day:
            result.extend(self._datetime_intervals_for_date(rule_set, current))
            current += timedelta(days=1)
        return result

    def intervals_in_range(
        self, rule_set: RuleSet, start: datetime, end: datetime
    ) -> Iterator[Interval]:
        """Yield open intervals clipped to [start, end)."""
        current_date = start.date()
        end_date = end.date()

        while current_date <= end_date:
            for iv in self._datetime_intervals_for_date(rule_set, current_date):
                effective_start = max(iv.start, start)
                effective_end = min(iv.end, end)
                if effective_start < effective_end:
                    yield Interval(effective_start, effective_end)

            current_date += timedelta(days=1)

    def is_window_open(self, rule_set: RuleSet, window: Window) -> bool:
        """True iff window lies entirely inside one run of open time.

        Open intervals on consecutive days that meet at midnight count as one
        run, so a window may cross midnight when both sides are open.
        """
        if not window.is_valid:
            raise InvalidWindow(window.start, window.end)

        # The window's last instant decides the last day it touches.
        last_day = (window.end - timedelta(microseconds=1)).date()
        runs: list[Interval] = []
        for iv in self.resolve(rule_set, window.start.date(), last_day):
            if runs and runs[-1].end == iv.start:
                runs[-1] = Interval(runs[-1].start, iv.end)
            else:
                runs.append(iv)

        return any(run.contains(window.start, window.end) for run in runs)
