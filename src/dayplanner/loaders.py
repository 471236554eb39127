"""Loading and dumping rule sets and resources.

The raw format is the one the booking admin editor stores:
{
    "default": "open",
    "exclude_weekdays": [0, 6],
    "exclude_months": [1],
    "exclude_times": [{"weekday": 5, "start": "12:00", "end": "13:00"}],
    "overrides": [
        {"date": "2024-06-03", "state": "open", "start": "09:00", "end": "12:00"},
        {"from": "2024-12-24", "to": "2024-12-26", "mode": "closed"}
    ]
}
"""

from __future__ import annotations

import json
from datetime import date, timedelta
from pathlib import Path
from typing import Any

from dayplanner.rules import DayState, Override, RuleSet, TimeExclusion, TimeRange
from dayplanner.schema import parse_clock, validate_resource, validate_rule_set
from dayplanner.types import Resource, ResourceConfigError, RuleSetConfigError


def _time_range(raw: dict) -> TimeRange:
    return TimeRange(parse_clock(raw["start"]), parse_clock(raw["end"], is_end=True))


def _expand_override(raw: dict) -> list[Override]:
    """One Override per date; {from, to, mode} ranges expand day by day."""
    state = DayState(raw.get("state", raw.get("mode")))
    time_range = _time_range(raw) if "start" in raw else None

    if "date" in raw:
        return [Override(date.fromisoformat(raw["date"]), state, time_range)]

    current = date.fromisoformat(raw["from"])
    last = date.fromisoformat(raw["to"])
    expanded = []
    while current <= last:
        expanded.append(Override(current, state, time_range))
        current += timedelta(days=1)
    return expanded


def rule_set_from_dict(raw: dict, subject: str = "rule set") -> RuleSet:
    """Build a RuleSet from the raw admin format.

    Raises RuleSetConfigError listing every validation problem.
    """
    errors = validate_rule_set(raw)
    if errors:
        raise RuleSetConfigError(subject, errors)

    overrides: list[Override] = []
    for entry in raw.get("overrides", []):
        overrides.extend(_expand_override(entry))

    return RuleSet(
        default_state=DayState(raw.get("default", "open")),
        excluded_weekdays=frozenset(raw.get("exclude_weekdays", [])),
        excluded_months=frozenset(raw.get("exclude_months", [])),
        excluded_time_ranges=tuple(
            TimeExclusion(_time_range(entry), entry.get("weekday"))
            for entry in raw.get("exclude_times", [])
        ),
        overrides=tuple(overrides),
    )


def _clock(t, is_end: bool = False) -> str:
    if is_end and t.hour == 0 and t.minute == 0:
        return "24:00"
    return t.strftime("%H:%M")


def rule_set_to_dict(rule_set: RuleSet) -> dict[str, Any]:
    """Inverse of rule_set_from_dict. Ranges come back as per-date overrides."""
    exclude_times = []
    for exclusion in rule_set.excluded_time_ranges:
        entry: dict[str, Any] = {
            "start": _clock(exclusion.time_range.start),
            "end": _clock(exclusion.time_range.end, is_end=True),
        }
        if exclusion.weekday is not None:
            entry["weekday"] = exclusion.weekday
        exclude_times.append(entry)

    overrides = []
    for override in rule_set.overrides:
        entry = {"date": override.date.isoformat(), "state": override.state.value}
        if override.time_range is not None:
            entry["start"] = _clock(override.time_range.start)
            entry["end"] = _clock(override.time_range.end, is_end=True)
        overrides.append(entry)

    return {
        "default": rule_set.default_state.value,
        "exclude_weekdays": sorted(rule_set.excluded_weekdays),
        "exclude_months": sorted(rule_set.excluded_months),
        "exclude_times": exclude_times,
        "overrides": overrides,
    }


def resource_from_dict(raw: dict) -> Resource:
    """Build a Resource. Raises ResourceConfigError on any invalid field."""
    errors = validate_resource(raw)
    if errors:
        raise ResourceConfigError(str(raw.get("id", "<unknown resource>")), errors)

    return Resource(
        id=str(raw["id"]),
        capacity=raw.get("capacity"),
        timezone=raw.get("timezone", "UTC"),
        rule_set=rule_set_from_dict(raw.get("rules", {}), subject=str(raw["id"])),
        title=raw.get("title", ""),
    )


def load_rule_set_json(path: str | Path) -> RuleSet:
    """Load a RuleSet from a JSON file holding either the rules or {"rules": ...}."""
    path = Path(path)
    with open(path) as f:
        data = json.load(f)

    return rule_set_from_dict(data.get("rules", data), subject=path.name)


def load_resources_json(path: str | Path) -> dict[str, Resource]:
    """Load several resources from a JSON file.

    The JSON must have the format:
    {
        "resources": [
            {"id": "guide-1", "capacity": 8, "timezone": "Europe/Oslo", "rules": {...}},
            ...
        ]
    }
    """
    path = Path(path)
    with open(path) as f:
        data = json.load(f)

    resources: dict[str, Resource] = {}
    for raw in data["resources"]:
        resource = resource_from_dict(raw)
        resources[resource.id] = resource
    return resources
