"""Storage Port: the persistence interface the scheduler depends on.

The scheduler reads and writes records only through StoragePort. Concrete
stores also expose administrative writes (resources, bookings) used by the
collaborators that own those records.
"""

from __future__ import annotations

import abc
from dataclasses import replace
from datetime import datetime, time, timedelta
from threading import RLock
from typing import Callable, Optional

from dayplanner.types import (
    ACTIVE_STATUSES,
    Assignment,
    AssignmentFilter,
    Booking,
    BookingStatus,
    Commitment,
    ConcurrentConflict,
    DateRange,
    Resource,
    Window,
)


def assignment_sort_key(assignment: Assignment) -> tuple[datetime, str]:
    """Ledger order: start ascending, ties broken by id."""
    return (assignment.start, assignment.id)


def date_range_window(date_range: DateRange) -> Window:
    """[first_day 00:00, day after last_day 00:00)."""
    return Window(
        datetime.combine(date_range.first_day, time(0, 0)),
        datetime.combine(date_range.last_day + timedelta(days=1), time(0, 0)),
    )


# Decides, from the commitments overlapping a new assignment, whether it fits.
AdmissionCheck = Callable[[list[Commitment]], bool]


class StoragePort(abc.ABC):
    """Records the scheduler needs. Implementations must be thread-safe."""

    @abc.abstractmethod
    def get_resource(self, resource_id: str) -> Optional[Resource]:
        ...

    @abc.abstractmethod
    def get_booking(self, booking_id: str) -> Optional[Booking]:
        ...

    @abc.abstractmethod
    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        ...

    @abc.abstractmethod
    def insert_assignment(self, assignment: Assignment) -> Assignment:
        """Atomically persist a new assignment and return the stored record."""

    @abc.abstractmethod
    def insert_assignment_checked(
        self, assignment: Assignment, admit: AdmissionCheck
    ) -> Assignment:
        """Insert assignment only if admit accepts the load it would join.

        admit receives query_assignments(resource, [start, end)) as seen by
        this write. Reading that load and inserting are one atomic step
        against every other writer on the same store. Raises
        ConcurrentConflict("capacity_taken") when admit refuses; nothing is
        written then.
        """

    @abc.abstractmethod
    def void_assignment(self, assignment_id: str, voided_at: datetime) -> bool:
        """Mark an assignment void. False if missing or already void."""

    @abc.abstractmethod
    def query_assignments(
        self,
        resource_id: str,
        window: Window,
        active_statuses_only: bool = True,
    ) -> list[Commitment]:
        """Non-void assignments on resource_id overlapping window.

        With active_statuses_only, only assignments whose booking is DRAFT or
        CONFIRMED. Ordered by start, then id.
        """

    @abc.abstractmethod
    def list_assignments(self, flt: AssignmentFilter) -> list[Assignment]:
        """Assignments matching flt, ordered by start, then id."""


class InMemoryStorage(StoragePort):
    """Dict-backed store for tests and single-process embedding."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._resources: dict[str, Resource] = {}
        self._bookings: dict[str, Booking] = {}
        self._assignments: dict[str, Assignment] = {}

    # -- administrative writes ------------------------------------------------

    def save_resource(self, resource: Resource) -> Resource:
        with self._lock:
            self._resources[resource.id] = resource
            return resource

    def save_booking(self, booking: Booking) -> Booking:
        with self._lock:
            self._bookings[booking.id] = booking
            return booking

    def set_booking_status(self, booking_id: str, status: BookingStatus) -> Booking:
        with self._lock:
            booking = self._bookings[booking_id]
            updated = replace(booking, status=status)
            self._bookings[booking_id] = updated
            return updated

    # -- StoragePort ----------------------------------------------------------

    def get_resource(self, resource_id: str) -> Optional[Resource]:
        with self._lock:
            return self._resources.get(resource_id)

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            return self._bookings.get(booking_id)

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        with self._lock:
            return self._assignments.get(assignment_id)

    def insert_assignment(self, assignment: Assignment) -> Assignment:
        with self._lock:
            if assignment.id in self._assignments:
                raise ValueError(f"Assignment {assignment.id!r} already exists")
            self._assignments[assignment.id] = assignment
            return assignment

    def insert_assignment_checked(
        self, assignment: Assignment, admit: AdmissionCheck
    ) -> Assignment:
        with self._lock:
            window = Window(assignment.start, assignment.end)
            if not admit(self.query_assignments(assignment.resource_id, window)):
                raise ConcurrentConflict(assignment.resource_id, "capacity_taken")
            return self.insert_assignment(assignment)

    def void_assignment(self, assignment_id: str, voided_at: datetime) -> bool:
        with self._lock:
            assignment = self._assignments.get(assignment_id)
            if assignment is None or not assignment.is_active:
                return False
            self._assignments[assignment_id] = replace(assignment, voided_at=voided_at)
            return True

    def query_assignments(
        self,
        resource_id: str,
        window: Window,
        active_statuses_only: bool = True,
    ) -> list[Commitment]:
        with self._lock:
            commitments = []
            for assignment in self._assignments.values():
                if assignment.resource_id != resource_id or not assignment.is_active:
                    continue
                if not window.overlaps(assignment.start, assignment.end):
                    continue
                # Same semantics as an inner join: orphaned rows never count.
                booking = self._bookings.get(assignment.booking_id)
                if booking is None:
                    continue
                if active_statuses_only and booking.status not in ACTIVE_STATUSES:
                    continue
                commitments.append(
                    Commitment(assignment, booking.status, booking.created_at)
                )
        commitments.sort(key=lambda c: assignment_sort_key(c.assignment))
        return commitments

    def list_assignments(self, flt: AssignmentFilter) -> list[Assignment]:
        span = date_range_window(flt.date_range) if flt.date_range else None
        with self._lock:
            selected = [
                a
                for a in self._assignments.values()
                if (flt.resource_id is None or a.resource_id == flt.resource_id)
                and (flt.booking_id is None or a.booking_id == flt.booking_id)
                and (flt.include_voided or a.is_active)
                and (span is None or span.overlaps(a.start, a.end))
            ]
        selected.sort(key=assignment_sort_key)
        return selected
