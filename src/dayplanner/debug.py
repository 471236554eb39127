"""ASCII visualisation for development-time checks of rules and occupancy.

Dev-only; nothing in the scheduling path imports this module.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from dayplanner.types import AssignmentFilter, DateRange, Window

if TYPE_CHECKING:
    from dayplanner.resolver import AvailabilityResolver
    from dayplanner.rules import RuleSet
    from dayplanner.scheduler import AssignmentScheduler

DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

# Each char = 30 minutes, 48 chars per day
CHARS_PER_DAY = 48
MINUTES_PER_CHAR = 30


def _header() -> str:
    hours = "".join(f"{h:02d}" if h % 3 == 0 else "  " for h in range(24))
    return f"{'':>10s}  {hours}"


def _label(d: date) -> str:
    return f"{DAY_NAMES[d.isoweekday() % 7]} {d.strftime('%d %b')}"


def _slot_bounds(d: date, idx: int) -> tuple[datetime, datetime]:
    start = datetime.combine(d, time(0, 0)) + timedelta(minutes=idx * MINUTES_PER_CHAR)
    return start, start + timedelta(minutes=MINUTES_PER_CHAR)


def show_availability(
    resolver: AvailabilityResolver,
    rule_set: RuleSet,
    first_day: date,
    last_day: date,
) -> str:
    """Render one row per day: '#' = open for the whole slot, '.' = closed.

    Slots only partly open render as '+'.
    """
    lines = [_header()]
    current = first_day
    while current <= last_day:
        intervals = resolver.resolve(rule_set, current, current)
        row = []
        for idx in range(CHARS_PER_DAY):
            slot_start, slot_end = _slot_bounds(current, idx)
            if any(iv.contains(slot_start, slot_end) for iv in intervals):
                row.append("#")
            elif any(iv.overlaps(slot_start, slot_end) for iv in intervals):
                row.append("+")
            else:
                row.append(".")
        lines.append(f"{_label(current):>10s}  {''.join(row)}")
        current += timedelta(days=1)
    return "\n".join(lines)


def show_occupancy(
    scheduler: AssignmentScheduler,
    resource_id: str,
    first_day: date,
    last_day: date,
) -> str:
    """Render open time with committed load per slot.

    Legend: '.' = closed, '-' = open and free, '1'-'9' = peak participants
    in the slot ('*' for 10 or more), '!' = booked while closed.
    """
    resource = scheduler.get_resource(resource_id)
    capacity = resource.capacity if resource.is_bounded else "unbounded"
    lines = [f"=== {resource.title or resource.id} (capacity: {capacity}) ===", _header()]

    current = first_day
    while current <= last_day:
        intervals = scheduler.resolver.resolve(resource.rule_set, current, current)
        row = []
        for idx in range(CHARS_PER_DAY):
            slot_start, slot_end = _slot_bounds(current, idx)
            is_open = any(iv.overlaps(slot_start, slot_end) for iv in intervals)
            load = scheduler.ledger.peak_usage(resource_id, Window(slot_start, slot_end))
            if load and not is_open:
                row.append("!")
            elif load:
                row.append(str(load) if load < 10 else "*")
            else:
                row.append("-" if is_open else ".")
        lines.append(f"{_label(current):>10s}  {''.join(row)}")
        current += timedelta(days=1)

    count = len(
        scheduler.list_assignments(
            AssignmentFilter(resource_id=resource_id, date_range=DateRange(first_day, last_day))
        )
    )
    lines.append(f"\n{count} active assignment(s)")
    return "\n".join(lines)
