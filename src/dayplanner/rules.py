"""RuleSet: immutable availability configuration for one resource.

Weekday numbers follow the booking admin convention: 0 = Sunday ... 6 = Saturday.
A time range ending at 00:00 runs to the end of the day.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, time
from typing import Optional

from dayplanner.schema import check_numbers, check_time_order
from dayplanner.types import RuleSetConfigError

MINUTES_PER_DAY = 24 * 60


class DayState(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


def weekday_number(d: date) -> int:
    """Weekday of d with 0 = Sunday, 6 = Saturday."""
    return d.isoweekday() % 7


def time_to_minute(t: time, is_end: bool = False) -> int:
    """Minute of day for t. As an end bound, 00:00 means midnight (1440)."""
    minute = t.hour * 60 + t.minute
    if is_end and minute == 0:
        return MINUTES_PER_DAY
    return minute


@dataclass(frozen=True)
class TimeRange:
    """Sub-day range [start, end). end == 00:00 means end of day."""

    start: time
    end: time

    def __post_init__(self) -> None:
        errors = check_time_order(self.start, self.end, "time range")
        if errors:
            raise RuleSetConfigError("time range", errors)

    @property
    def start_minute(self) -> int:
        return time_to_minute(self.start)

    @property
    def end_minute(self) -> int:
        return time_to_minute(self.end, is_end=True)


@dataclass(frozen=True)
class TimeExclusion:
    """Blackout window, for one weekday or every day (weekday=None)."""

    time_range: TimeRange
    weekday: Optional[int] = None

    def __post_init__(self) -> None:
        if self.weekday is not None:
            errors = check_numbers([self.weekday], "weekday", 0, 6)
            if errors:
                raise RuleSetConfigError("time exclusion", errors)

    def applies_to(self, d: date) -> bool:
        return self.weekday is None or self.weekday == weekday_number(d)


@dataclass(frozen=True)
class Override:
    """Date-exact rule. Without time_range it governs the whole day."""

    date: date
    state: DayState
    time_range: Optional[TimeRange] = None

    @property
    def is_whole_day(self) -> bool:
        return self.time_range is None


@dataclass(frozen=True)
class RuleSet:
    """Declarative availability rules. Immutable and hashable.

    Precedence for a date, highest first:
        1. overrides for that exact date
        2. excluded weekdays / months, then excluded time ranges
        3. default_state
    """

    default_state: DayState = DayState.OPEN
    excluded_weekdays: frozenset[int] = field(default_factory=frozenset)
    excluded_months: frozenset[int] = field(default_factory=frozenset)
    excluded_time_ranges: tuple[TimeExclusion, ...] = ()
    overrides: tuple[Override, ...] = ()

    def __post_init__(self) -> None:
        errors = check_numbers(self.excluded_weekdays, "excluded_weekdays", 0, 6)
        errors += check_numbers(self.excluded_months, "excluded_months", 1, 12)
        if errors:
            raise RuleSetConfigError("rule set", errors)

    def overrides_for(self, d: date) -> list[Override]:
        """Overrides for exactly d, in declared order."""
        return [o for o in self.overrides if o.date == d]

    def is_day_excluded(self, d: date) -> bool:
        return (
            weekday_number(d) in self.excluded_weekdays
            or d.month in self.excluded_months
        )

    def with_override(self, override: Override) -> RuleSet:
        """Return a copy with override appended (it wins over earlier ones)."""
        return RuleSet(
            default_state=self.default_state,
            excluded_weekdays=self.excluded_weekdays,
            excluded_months=self.excluded_months,
            excluded_time_ranges=self.excluded_time_ranges,
            overrides=self.overrides + (override,),
        )


ALWAYS_OPEN = RuleSet()
