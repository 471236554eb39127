"""Boundary: caller datetimes -> resource-local naive datetimes.

Rules, assignments and ledger arithmetic all use naive datetimes in the
resource's own timezone. Aware datetimes are converted here, once.
"""

from __future__ import annotations

from datetime import datetime

import pytz

from dayplanner.types import Window


def resource_tz(name: str) -> pytz.BaseTzInfo:
    """Look up a timezone. Raises pytz.UnknownTimeZoneError."""
    return pytz.timezone(name)


def to_resource_local(dt: datetime, tz_name: str) -> datetime:
    """Aware dt -> naive wall-clock time in tz_name. Naive dt passes through."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(resource_tz(tz_name)).replace(tzinfo=None)


def window_to_local(window: Window, tz_name: str) -> Window:
    """Convert both bounds to resource-local wall-clock time.

    Across a DST fall-back an ordered aware window can map to a local end at
    or before its local start (01:30 EDT to 01:10 EST). The local end is then
    held at start + elapsed time, so the window keeps its real length and
    its order. An inverted input stays inverted.
    """
    start = to_resource_local(window.start, tz_name)
    end = to_resource_local(window.end, tz_name)
    if (
        window.start.tzinfo is not None
        and window.end.tzinfo is not None
        and window.start < window.end
    ):
        end = max(end, start + (window.end - window.start))
    return Window(start, end)


def as_utc(dt: datetime) -> datetime:
    """Aware dt in UTC. A naive dt is taken to be UTC already."""
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def utc_now() -> datetime:
    return datetime.now(pytz.utc)
