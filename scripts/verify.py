#!/usr/bin/env python
"""Visual verification report for dayplanner.

Run:  python scripts/verify.py

Produces a formatted report showing:
  1. Rule set configurations (rules as tables, ASCII week)
  2. Resolver scenarios (periods_for_date, is_window_open) -- input/output tables
  3. Allocation walk-through on the fixture resources -- ASCII occupancy
"""

from __future__ import annotations

import json
import sys
from datetime import date, datetime
from pathlib import Path

# ---------------------------------------------------------------------------
# Paths and data loading
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
FIXTURES = ROOT / "data" / "fixtures"
SCENARIOS = FIXTURES / "scenarios"

sys.path.insert(0, str(ROOT / "src"))

from dayplanner.config import Settings
from dayplanner.debug import DAY_NAMES, show_availability, show_occupancy
from dayplanner.loaders import load_resources_json, rule_set_from_dict
from dayplanner.resolver import AvailabilityResolver
from dayplanner.scheduler import AssignmentScheduler
from dayplanner.storage import InMemoryStorage
from dayplanner.types import Booking, BookingStatus, SchedulingError, Window


def _load(path: Path):
    with open(path) as f:
        return json.load(f)


_rule_sets = _load(FIXTURES / "rule_sets.json")

WEEK_START = date(2024, 6, 2)
WEEK_END = date(2024, 6, 8)

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------
WIDTH = 90


def banner(title: str):
    print()
    print("=" * WIDTH)
    print(f"  {title}")
    print("=" * WIDTH)


def heading(title: str):
    print()
    print(f"  {title}")
    print(f"  {'-' * (len(title) + 2)}")


def table(headers: list[str], rows: list[list[str]], indent: int = 4):
    """Print a formatted table with auto-sized columns."""
    col_widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            col_widths[i] = max(col_widths[i], len(cell))

    pad = " " * indent
    fmt = pad + "  ".join(f"{{:<{w}}}" for w in col_widths)
    sep = pad + "  ".join("-" * w for w in col_widths)

    print(fmt.format(*headers))
    print(sep)
    for row in rows:
        padded = row + [""] * (len(headers) - len(row))
        print(fmt.format(*padded))


def _fmt_dt(iso: str) -> str:
    """Format ISO datetime as 'Mon 03 Jun 09:00'."""
    dt = datetime.fromisoformat(iso)
    return f"{DAY_NAMES[dt.isoweekday() % 7]} {dt.strftime('%d %b %H:%M')}"


def _mark(ok: bool) -> str:
    return "PASS" if ok else "FAIL"


# ---------------------------------------------------------------------------
# Section 1: Rule sets
# ---------------------------------------------------------------------------
def section_rule_sets(resolver: AvailabilityResolver):
    banner("RULE SET CONFIGURATIONS")

    for name, raw in _rule_sets.items():
        heading(f"Rule set: {name}")
        rows = [
            ["default", raw.get("default", "open")],
            ["exclude_weekdays", ", ".join(DAY_NAMES[d] for d in raw.get("exclude_weekdays", [])) or "(none)"],
            ["exclude_months", ", ".join(str(m) for m in raw.get("exclude_months", [])) or "(none)"],
        ]
        for entry in raw.get("exclude_times", []):
            day = DAY_NAMES[entry["weekday"]] if "weekday" in entry else "every day"
            rows.append(["exclude_times", f"{entry['start']}-{entry['end']} ({day})"])
        for entry in raw.get("overrides", []):
            when = entry.get("date") or f"{entry['from']}..{entry['to']}"
            hours = f" {entry['start']}-{entry['end']}" if "start" in entry else ""
            rows.append(["override", f"{when} {entry.get('state', entry.get('mode'))}{hours}"])
        table(["Rule", "Value"], rows)

        print()
        print(show_availability(
            resolver, rule_set_from_dict(raw, subject=name), WEEK_START, WEEK_END
        ))


# ---------------------------------------------------------------------------
# Section 2: Resolver scenarios
# ---------------------------------------------------------------------------
def section_resolver(resolver: AvailabilityResolver) -> int:
    banner("RESOLVER SCENARIOS")
    failures = 0

    heading("Function: resolver.periods_for_date(rule_set, d) -> [(start, end)]")
    rows = []
    for s in _load(SCENARIOS / "periods_for_date.json"):
        rule_set = rule_set_from_dict(_rule_sets[s["rule_set"]], subject=s["rule_set"])
        d = date.fromisoformat(s["date"])
        got = [
            f"{a.strftime('%H:%M')}-{'24:00' if b.hour == b.minute == 0 else b.strftime('%H:%M')}"
            for a, b in resolver.periods_for_date(rule_set, d)
        ]
        expected = [f"{a}-{b}" for a, b in s["expected"]]
        ok = got == expected
        failures += not ok
        rows.append([s["id"], s["rule_set"], s["date"], ", ".join(got) or "(closed)", _mark(ok)])
    table(["ID", "Rule set", "Date", "Open periods", ""], rows)

    heading("Function: resolver.is_window_open(rule_set, window) -> bool")
    rows = []
    for s in _load(SCENARIOS / "is_window_open.json"):
        rule_set = rule_set_from_dict(_rule_sets[s["rule_set"]], subject=s["rule_set"])
        win = Window(datetime.fromisoformat(s["start"]), datetime.fromisoformat(s["end"]))
        got = resolver.is_window_open(rule_set, win)
        ok = got is s["expected"]
        failures += not ok
        rows.append([s["id"], _fmt_dt(s["start"]), _fmt_dt(s["end"]), str(got), _mark(ok)])
    table(["ID", "Start", "End", "Open", ""], rows)
    return failures


# ---------------------------------------------------------------------------
# Section 3: Allocation walk-through
# ---------------------------------------------------------------------------
def section_allocation():
    banner("ALLOCATION WALK-THROUGH")

    storage = InMemoryStorage()
    for resource in load_resources_json(FIXTURES / "resources.json").values():
        storage.save_resource(resource)

    created = datetime(2024, 6, 1, 12, 0)
    for i in range(4):
        storage.save_booking(Booking(
            id=f"booking-{i}",
            status=BookingStatus.CONFIRMED,
            start=datetime(2024, 6, 3),
            end=datetime(2024, 6, 4),
            customer_id=f"customer-{i}",
            created_at=created,
        ))

    scheduler = AssignmentScheduler(
        storage, settings=Settings(database_path=Path("unused.db")), clock=lambda: created
    )
    requests = [
        ("sauna", "booking-0", "2024-06-03T18:00", "2024-06-03T19:00", 2),
        ("sauna", "booking-1", "2024-06-03T18:30", "2024-06-03T19:30", 1),
        ("sauna", "booking-1", "2024-06-03T19:00", "2024-06-03T20:00", 1),
        ("guide-anna", "booking-2", "2024-06-02T10:00", "2024-06-02T12:00", 3),
        ("guide-anna", "booking-2", "2024-06-03T07:00", "2024-06-03T09:00", 3),
        ("guide-anna", "booking-3", "2024-06-03T09:00", "2024-06-03T12:00", 6),
        ("kayak-fleet", "booking-3", "2024-06-03T09:00", "2024-06-03T12:00", 40),
    ]

    heading("Function: scheduler.allocate(resource, booking, window, n)")
    rows = []
    for resource_id, booking_id, start, end, count in requests:
        win = Window(datetime.fromisoformat(start), datetime.fromisoformat(end))
        try:
            assignment = scheduler.allocate(resource_id, booking_id, win, count)
            outcome = f"ok ({assignment.id[:8]})"
        except SchedulingError as exc:
            outcome = exc.code
        rows.append([resource_id, booking_id, _fmt_dt(start), _fmt_dt(end), str(count), outcome])
    table(["Resource", "Booking", "Start", "End", "N", "Outcome"], rows)

    for resource_id in ("sauna", "guide-anna"):
        print()
        print(show_occupancy(scheduler, resource_id, WEEK_START, WEEK_END))


def main() -> int:
    resolver = AvailabilityResolver()
    section_rule_sets(resolver)
    failures = section_resolver(resolver)
    section_allocation()

    banner(f"SUMMARY: {failures} scenario failure(s)")
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
