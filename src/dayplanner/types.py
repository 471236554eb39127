"""Shared types: windows, records, statuses and the scheduling error taxonomy."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from dayplanner.rules import RuleSet


class BookingStatus(str, enum.Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class AssignmentRole(str, enum.Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class CancelOutcome(str, enum.Enum):
    """Result of a cancel call. ALREADY_CANCELLED is informational."""

    CANCELLED = "cancelled"
    ALREADY_CANCELLED = "already_cancelled"


# Statuses whose assignments may count against capacity.
ACTIVE_STATUSES = frozenset({BookingStatus.DRAFT, BookingStatus.CONFIRMED})


@dataclass(frozen=True)
class Window:
    """Half-open time window [start, end).

    Construction does not validate ordering; callers check `is_valid`
    (the scheduler turns an invalid window into InvalidWindow).
    """

    start: datetime
    end: datetime

    @property
    def is_valid(self) -> bool:
        return self.start < self.end

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds()) // 60

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start < end and start < self.end

    def contains(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end


# Open intervals are windows too; the alias keeps resolver signatures readable.
Interval = Window


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar dates."""

    first_day: date
    last_day: date

    def __post_init__(self) -> None:
        if self.last_day < self.first_day:
            raise ValueError(
                f"DateRange last_day {self.last_day} is before first_day {self.first_day}"
            )


@dataclass(frozen=True)
class Resource:
    """Bookable unit. capacity=None means unbounded."""

    id: str
    capacity: Optional[int]
    timezone: str
    rule_set: RuleSet
    title: str = ""

    def __post_init__(self) -> None:
        if self.capacity is not None and self.capacity <= 0:
            raise ResourceConfigError(
                self.id,
                [
                    f"capacity must be a positive integer or None (unbounded), "
                    f"got {self.capacity}"
                ],
            )

    @property
    def is_bounded(self) -> bool:
        return self.capacity is not None


@dataclass(frozen=True)
class Booking:
    id: str
    status: BookingStatus
    start: datetime
    end: datetime
    customer_id: str
    created_at: datetime


@dataclass(frozen=True)
class Assignment:
    """Binding of a booking to a resource for a window and participant count.

    Invariants:
        - start < end, both in the resource's local time (naive)
        - participant_count >= 1
        - time/resource never change; only voided_at is ever set
    """

    id: str
    booking_id: str
    resource_id: str
    start: datetime
    end: datetime
    participant_count: int
    role: AssignmentRole = AssignmentRole.PRIMARY
    created_at: Optional[datetime] = None
    voided_at: Optional[datetime] = None

    @property
    def window(self) -> Window:
        return Window(self.start, self.end)

    @property
    def is_active(self) -> bool:
        return self.voided_at is None


@dataclass(frozen=True)
class Commitment:
    """Assignment joined with its owning booking, as read by the ledger."""

    assignment: Assignment
    booking_status: BookingStatus
    booking_created_at: datetime


@dataclass(frozen=True)
class AssignmentFilter:
    resource_id: Optional[str] = None
    booking_id: Optional[str] = None
    date_range: Optional[DateRange] = None
    include_voided: bool = False


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class SchedulingError(Exception):
    """Base class for request-level scheduling failures."""

    code = "scheduling_error"
    retryable = False


class InvalidWindow(SchedulingError):
    code = "invalid_window"

    def __init__(self, start: datetime, end: datetime) -> None:
        self.start = start
        self.end = end
        super().__init__(
            f"Invalid window: end {end.isoformat()} must be after "
            f"start {start.isoformat()}"
        )


class InvalidParticipantCount(SchedulingError):
    code = "invalid_participant_count"

    def __init__(self, participant_count: int) -> None:
        self.participant_count = participant_count
        super().__init__(
            f"participant_count must be >= 1, got {participant_count}"
        )


class ResourceNotFound(SchedulingError):
    code = "resource_not_found"

    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(f"Resource {resource_id!r} not found")


class BookingNotFound(SchedulingError):
    code = "booking_not_found"

    def __init__(self, booking_id: str, reason: str = "missing") -> None:
        self.booking_id = booking_id
        self.reason = reason
        super().__init__(f"Booking {booking_id!r} not usable (reason: {reason})")


class AssignmentNotFound(SchedulingError):
    code = "assignment_not_found"

    def __init__(self, assignment_id: str, booking_id: Optional[str] = None) -> None:
        self.assignment_id = assignment_id
        self.booking_id = booking_id
        detail = f" for booking {booking_id!r}" if booking_id is not None else ""
        super().__init__(f"Active assignment {assignment_id!r} not found{detail}")


class ResourceClosed(SchedulingError):
    code = "resource_closed"

    def __init__(self, resource_id: str, window: Window) -> None:
        self.resource_id = resource_id
        self.window = window
        super().__init__(
            f"Resource {resource_id!r} is not open for the whole window "
            f"{window.start.isoformat()} - {window.end.isoformat()}"
        )


class CapacityExceeded(SchedulingError):
    code = "capacity_exceeded"

    def __init__(
        self,
        resource_id: str,
        capacity: int,
        used: int,
        requested: int,
    ) -> None:
        self.resource_id = resource_id
        self.capacity = capacity
        self.used = used
        self.requested = requested
        super().__init__(
            f"Capacity exceeded on {resource_id!r}: {used} used + "
            f"{requested} requested > {capacity}"
        )


class ConcurrentConflict(SchedulingError):
    """A concurrent writer won the race or the resource lock timed out."""

    code = "concurrent_conflict"
    retryable = True

    def __init__(self, resource_id: str, reason: str) -> None:
        self.resource_id = resource_id
        self.reason = reason
        super().__init__(
            f"Concurrent conflict on resource {resource_id!r} (reason: {reason}); "
            f"retry the whole operation"
        )


class ConfigurationError(ValueError):
    """Raised when stored configuration is invalid. Carries every message."""

    def __init__(self, subject: str, errors: list[str]) -> None:
        self.subject = subject
        self.errors = list(errors)
        super().__init__(
            f"Invalid configuration for {subject}:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


class RuleSetConfigError(ConfigurationError):
    pass


class ResourceConfigError(ConfigurationError):
    pass
