"""Input validation for raw rule sets and resource definitions.

Validators return a list of error messages (empty = valid) so an admin
caller can report every problem at once. Nothing is clamped or dropped.
"""

from __future__ import annotations

from datetime import date, time
from typing import Any, Iterable

import pytz

_STATES = ("open", "closed")


def parse_clock(value: str, is_end: bool = False) -> time:
    """Parse 'HH:MM'. '24:00' is accepted as an end bound (end of day)."""
    if is_end and value == "24:00":
        return time(0, 0)
    return time.fromisoformat(value)


def _validate_time_pair(raw: dict, where: str, errors: list[str]) -> None:
    start = end = None
    try:
        start = parse_clock(raw["start"])
    except KeyError:
        errors.append(f"{where}: missing 'start'")
    except (ValueError, TypeError):
        errors.append(f"{where}: invalid start time {raw['start']!r}")
    try:
        end = parse_clock(raw["end"], is_end=True)
    except KeyError:
        errors.append(f"{where}: missing 'end'")
    except (ValueError, TypeError):
        errors.append(f"{where}: invalid end time {raw['end']!r}")

    if start is None or end is None:
        return
    errors.extend(check_time_order(start, end, where))


def check_time_order(start: time, end: time, where: str) -> list[str]:
    """Errors for a start/end pair that does not run forward."""
    # 00:00 as an end bound means midnight, which is after any start.
    if end != time(0, 0) and end <= start:
        return [
            f"{where}: end {end.strftime('%H:%M')} must be after "
            f"start {start.strftime('%H:%M')}"
        ]
    return []


def check_numbers(values: Iterable[Any], key: str, low: int, high: int) -> list[str]:
    """Errors for members of *values* that are not integers in [low, high]."""
    errors = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, int):
            errors.append(f"'{key}': {value!r} is not an integer")
        elif not low <= value <= high:
            errors.append(f"'{key}': {value} out of range (must be {low}-{high})")
    return errors


def _validate_numbers(
    values: Any, key: str, low: int, high: int, errors: list[str]
) -> None:
    if not isinstance(values, list):
        errors.append(f"'{key}' must be a list, got {type(values).__name__}")
        return
    errors.extend(check_numbers(values, key, low, high))


def _validate_override(raw: Any, i: int, errors: list[str]) -> None:
    where = f"override {i}"
    if not isinstance(raw, dict):
        errors.append(f"{where}: expected an object, got {raw!r}")
        return

    state = raw.get("state", raw.get("mode"))
    if state not in _STATES:
        errors.append(f"{where}: state must be 'open' or 'closed', got {state!r}")

    if "date" in raw:
        try:
            date.fromisoformat(raw["date"])
        except (ValueError, TypeError):
            errors.append(f"{where}: invalid date {raw['date']!r}")
    elif "from" in raw or "to" in raw:
        try:
            first = date.fromisoformat(raw["from"])
            last = date.fromisoformat(raw["to"])
        except KeyError as e:
            errors.append(f"{where}: date range is missing {e.args[0]!r}")
            return
        except (ValueError, TypeError):
            errors.append(
                f"{where}: invalid date range {raw.get('from')!r} - {raw.get('to')!r}"
            )
            return
        if last < first:
            errors.append(f"{where}: 'to' {last} is before 'from' {first}")
    else:
        errors.append(f"{where}: needs 'date' or a 'from'/'to' range")

    if "start" in raw or "end" in raw:
        _validate_time_pair(raw, where, errors)


def validate_rule_set(raw: Any) -> list[str]:
    """Validate a raw rule set mapping. Returns list of error messages.

    Checks:
    - default is 'open' or 'closed'
    - weekday numbers are 0-6 and month numbers 1-12
    - excluded time ranges have valid, ordered times and optional weekday
    - overrides have a date (or from/to range), a state and valid times
    """
    if not isinstance(raw, dict):
        return [f"rule set must be an object, got {type(raw).__name__}"]

    errors: list[str] = []

    default = raw.get("default", "open")
    if default not in _STATES:
        errors.append(f"'default' must be 'open' or 'closed', got {default!r}")

    _validate_numbers(raw.get("exclude_weekdays", []), "exclude_weekdays", 0, 6, errors)
    _validate_numbers(raw.get("exclude_months", []), "exclude_months", 1, 12, errors)

    exclude_times = raw.get("exclude_times", [])
    if not isinstance(exclude_times, list):
        errors.append("'exclude_times' must be a list")
        exclude_times = []
    for i, entry in enumerate(exclude_times):
        where = f"exclude_times {i}"
        if not isinstance(entry, dict):
            errors.append(f"{where}: expected an object, got {entry!r}")
            continue
        weekday = entry.get("weekday")
        if weekday is not None and (
            isinstance(weekday, bool)
            or not isinstance(weekday, int)
            or not 0 <= weekday <= 6
        ):
            errors.append(f"{where}: weekday {weekday!r} out of range (must be 0-6)")
        _validate_time_pair(entry, where, errors)

    overrides = raw.get("overrides", [])
    if not isinstance(overrides, list):
        errors.append("'overrides' must be a list")
        overrides = []
    for i, entry in enumerate(overrides):
        _validate_override(entry, i, errors)

    return errors


def validate_resource(raw: Any) -> list[str]:
    """Validate a raw resource definition, including its rule set."""
    if not isinstance(raw, dict):
        return [f"resource must be an object, got {type(raw).__name__}"]

    errors: list[str] = []

    if not raw.get("id"):
        errors.append("missing 'id'")

    capacity = raw.get("capacity")
    if capacity is not None:
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            errors.append(f"capacity {capacity!r} is not an integer")
        elif capacity <= 0:
            # Zero is ambiguous (unlimited vs never bookable); unbounded is null.
            errors.append(
                f"capacity must be > 0 or null for unbounded, got {capacity}"
            )

    tz_name = raw.get("timezone", "UTC")
    if not isinstance(tz_name, str):
        errors.append(f"timezone must be a string, got {tz_name!r}")
    else:
        try:
            pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            errors.append(f"unknown timezone {tz_name!r}")

    errors.extend(validate_rule_set(raw.get("rules", {})))
    return errors
