"""Shared test fixtures and data loading for dayplanner.

All rule set data lives in data/fixtures/ as JSON files.  This module loads
that data and exposes helper functions + pytest fixtures for the tests.

Reference week: Sun 2024-06-02 through Sat 2024-06-08 (Mon = 2024-06-03).
All datetimes are resource-local and naive unless a test says otherwise.
"""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import date, datetime, time, timedelta
from pathlib import Path

import pytest
import pytz

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
FIXTURES_DIR = Path(__file__).resolve().parent.parent / "data" / "fixtures"
SCENARIOS_DIR = FIXTURES_DIR / "scenarios"


# ---------------------------------------------------------------------------
# Data loaders
# ---------------------------------------------------------------------------
def _load_json(path: Path):
    with open(path) as f:
        return json.load(f)


_rule_sets = _load_json(FIXTURES_DIR / "rule_sets.json")
RULE_SET_NAMES = sorted(_rule_sets)

# Fixed "now" for every scheduler built here; bookings default to this creation time.
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=pytz.utc)

MONDAY = date(2024, 6, 3)


# ---------------------------------------------------------------------------
# Convenience helpers (importable by test modules)
# ---------------------------------------------------------------------------
def dt(day: date, clock: str) -> datetime:
    """Naive datetime from a date and 'HH:MM'.

    >>> dt(MONDAY, "09:30")
    datetime(2024, 6, 3, 9, 30)
    """
    return datetime.combine(day, time.fromisoformat(clock))


def window(day: date, start: str, end: str):
    """Window on one day from 'HH:MM' bounds."""
    from dayplanner.types import Window

    return Window(dt(day, start), dt(day, end))


def parse_time_pair(pair: list[str]) -> tuple[time, time]:
    """Convert ["08:00", "24:00"] to (time(8,0), time(0,0)); 24:00 is midnight."""
    end = time(0, 0) if pair[1] == "24:00" else time.fromisoformat(pair[1])
    return (time.fromisoformat(pair[0]), end)


def raw_rule_set(name: str) -> dict:
    """Raw admin-format rules from rule_sets.json."""
    return _rule_sets[name]


def load_scenarios(name: str):
    """Load a scenario file from data/fixtures/scenarios/{name}.json."""
    return _load_json(SCENARIOS_DIR / f"{name}.json")


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_rule_set(name: str):
    """Build a RuleSet from rule_sets.json by name."""
    from dayplanner.loaders import rule_set_from_dict

    return rule_set_from_dict(_rule_sets[name], subject=name)


def make_resource(
    resource_id: str = "room-1",
    capacity: int | None = 2,
    rule_set: str = "always_open",
    timezone: str = "UTC",
):
    from dayplanner.types import Resource

    return Resource(
        id=resource_id,
        capacity=capacity,
        timezone=timezone,
        rule_set=make_rule_set(rule_set),
    )


def make_booking(
    booking_id: str = "booking-1",
    status=None,
    created_at: datetime = NOW,
    customer_id: str = "customer-1",
):
    from dayplanner.types import Booking, BookingStatus

    return Booking(
        id=booking_id,
        status=status or BookingStatus.CONFIRMED,
        start=dt(MONDAY, "00:00"),
        end=dt(MONDAY + timedelta(days=1), "00:00"),
        customer_id=customer_id,
        created_at=created_at,
    )


def build_settings(**overrides):
    """Settings independent of the environment, with short lock waits."""
    from dayplanner.config import Settings

    base = Settings(lock_timeout_seconds=2.0, draft_hold_minutes=15)
    return replace(base, **overrides)


def make_scheduler(storage=None, clock=None, **settings_overrides):
    """Scheduler over an InMemoryStorage (or the given store) with a fixed clock."""
    from dayplanner.scheduler import AssignmentScheduler
    from dayplanner.storage import InMemoryStorage

    storage = storage if storage is not None else InMemoryStorage()
    scheduler = AssignmentScheduler(
        storage,
        settings=build_settings(**settings_overrides),
        clock=clock or (lambda: NOW),
    )
    return scheduler, storage


# ---------------------------------------------------------------------------
# pytest fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def resolver():
    from dayplanner.resolver import AvailabilityResolver

    return AvailabilityResolver()


@pytest.fixture
def storage():
    from dayplanner.storage import InMemoryStorage

    return InMemoryStorage()


@pytest.fixture
def scheduler(storage):
    """Scheduler with room-1 (capacity 2, always open) and confirmed booking-1."""
    sched, _ = make_scheduler(storage)
    storage.save_resource(make_resource())
    storage.save_booking(make_booking())
    return sched


@pytest.fixture
def sqlite_storage(tmp_path):
    from dayplanner.sqlite_storage import SQLiteStorage

    store = SQLiteStorage(build_settings(database_path=tmp_path / "dayplanner.db"))
    store.initialize_database()
    return store
