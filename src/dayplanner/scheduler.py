"""AssignmentScheduler: validated, per-resource serialized allocation.

Allocation is check-then-act. The checks run once optimistically (cheap,
fails fast without taking a lock) and the capacity check runs again inside
the resource's critical section, as part of the store's conditional
insert. Different resources never share a lock; there is no cross-resource
transaction.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Optional
from uuid import uuid4

from dayplanner.config import Settings, get_settings
from dayplanner.ledger import CapacityPolicy, CommitmentLedger, peak_concurrent
from dayplanner.localtime import utc_now, window_to_local
from dayplanner.locks import KeyedLockTable
from dayplanner.logger import get_logger
from dayplanner.resolver import AvailabilityCache, AvailabilityResolver
from dayplanner.storage import AdmissionCheck, StoragePort
from dayplanner.types import (
    Assignment,
    AssignmentFilter,
    AssignmentNotFound,
    AssignmentRole,
    Booking,
    BookingNotFound,
    BookingStatus,
    CancelOutcome,
    CapacityExceeded,
    Commitment,
    ConcurrentConflict,
    Interval,
    InvalidParticipantCount,
    InvalidWindow,
    Resource,
    ResourceClosed,
    ResourceNotFound,
    SchedulingError,
    Window,
)


logger = get_logger(__name__)


def _new_id() -> str:
    return uuid4().hex


class AssignmentScheduler:
    """Entry point for checkout, admin and API collaborators."""

    def __init__(
        self,
        storage: StoragePort,
        settings: Optional[Settings] = None,
        resolver: Optional[AvailabilityResolver] = None,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._settings = settings or get_settings()
        self._storage = storage
        self._clock = clock
        self._id_factory = id_factory
        self.resolver = resolver or AvailabilityResolver(
            AvailabilityCache(self._settings.cache_max_rule_sets)
        )
        self.ledger = CommitmentLedger(
            storage,
            CapacityPolicy(draft_hold=timedelta(minutes=self._settings.draft_hold_minutes)),
            clock=clock,
        )
        self.locks = KeyedLockTable(default_timeout=self._settings.lock_timeout_seconds)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _load_resource(self, resource_id: str) -> Resource:
        resource = self._storage.get_resource(resource_id)
        if resource is None:
            raise ResourceNotFound(resource_id)
        return resource

    def get_resource(self, resource_id: str) -> Resource:
        """Resource by id. Raises ResourceNotFound."""
        return self._load_resource(resource_id)

    def _load_booking(self, booking_id: str) -> Booking:
        booking = self._storage.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        if booking.status is BookingStatus.CANCELLED:
            raise BookingNotFound(booking_id, reason="cancelled")
        return booking

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def resolve_availability(
        self, resource_id: str, first_day: date, last_day: date
    ) -> list[Interval]:
        """Open intervals for the resource, in its local time."""
        resource = self._load_resource(resource_id)
        return self.resolver.resolve(resource.rule_set, first_day, last_day)

    @staticmethod
    def _local_window(window: Window, resource: Resource) -> Window:
        """Window in resource-local time. Raises InvalidWindow unless start < end."""
        # Order is judged on the caller's instants; wall-clock time folds
        # back across a DST change.
        same_kind = (window.start.tzinfo is None) == (window.end.tzinfo is None)
        if same_kind and not window.is_valid:
            raise InvalidWindow(window.start, window.end)
        local = window_to_local(window, resource.timezone)
        if not local.is_valid:
            raise InvalidWindow(window.start, window.end)
        return local

    def is_window_open(self, resource_id: str, window: Window) -> bool:
        resource = self._load_resource(resource_id)
        return self.resolver.is_window_open(
            resource.rule_set, self._local_window(window, resource)
        )

    def invalidate_availability(self) -> None:
        """Forget every cached day, e.g. after bulk rule edits."""
        if self.resolver.cache is not None:
            self.resolver.cache.invalidate()

    # ------------------------------------------------------------------
    # Allocate / cancel / reschedule
    # ------------------------------------------------------------------

    def _check_capacity(
        self, resource: Resource, window: Window, participant_count: int
    ) -> Optional[int]:
        """Return current peak usage if the request does not fit, else None."""
        if not resource.is_bounded:
            return None
        used = self.ledger.peak_usage(resource.id, window)
        if used + participant_count > resource.capacity:
            return used
        return None

    def _admission(
        self, resource: Resource, window: Window, participant_count: int
    ) -> AdmissionCheck:
        """Capacity check run by the store inside its write transaction."""

        def admit(commitments: list[Commitment]) -> bool:
            if not resource.is_bounded:
                return True
            peak = peak_concurrent(self.ledger.counting(commitments), window)
            return peak + participant_count <= resource.capacity

        return admit

    def allocate(
        self,
        resource_id: str,
        booking_id: str,
        window: Window,
        participant_count: int,
        role: AssignmentRole = AssignmentRole.PRIMARY,
        timeout: Optional[float] = None,
    ) -> Assignment:
        """Commit a new assignment or raise a SchedulingError.

        Capacity is compared with the peak simultaneous load inside the
        window, not the sum of every overlapping assignment: two assignments
        that overlap the window but not each other never add up.

        The final capacity check and the insert are one storage step, so
        schedulers in other threads or processes sharing the store cannot
        overbook between them.

        Raises:
            ResourceNotFound, InvalidWindow, InvalidParticipantCount,
            BookingNotFound, ResourceClosed, CapacityExceeded: terminal.
            ConcurrentConflict: another allocation won, or the resource lock
                was not acquired within timeout. Safe to retry.
        """
        resource = self._load_resource(resource_id)
        local = self._local_window(window, resource)
        if participant_count < 1:
            raise InvalidParticipantCount(participant_count)

        self._load_booking(booking_id)

        if not self.resolver.is_window_open(resource.rule_set, local):
            logger.info(
                "Rejected %s on %s: closed for %s - %s",
                booking_id, resource_id, local.start, local.end,
            )
            raise ResourceClosed(resource_id, local)

        used = self._check_capacity(resource, local, participant_count)
        if used is not None:
            logger.info(
                "Rejected %s on %s: %s used + %s requested > %s",
                booking_id, resource_id, used, participant_count, resource.capacity,
            )
            raise CapacityExceeded(resource_id, resource.capacity, used, participant_count)

        with self.locks.hold(resource_id, timeout) as acquired:
            if not acquired:
                raise ConcurrentConflict(resource_id, "lock_timeout")

            # Re-check against whatever committed since the optimistic check.
            try:
                assignment = self._storage.insert_assignment_checked(
                    Assignment(
                        id=self._id_factory(),
                        booking_id=booking_id,
                        resource_id=resource_id,
                        start=local.start,
                        end=local.end,
                        participant_count=participant_count,
                        role=role,
                        created_at=self._clock(),
                    ),
                    self._admission(resource, local, participant_count),
                )
            except ConcurrentConflict as exc:
                logger.warning(
                    "Concurrent allocation on %s blocked %s (%s)",
                    resource_id, booking_id, exc.reason,
                )
                raise

        logger.info(
            "Allocated %s: booking %s on %s %s - %s x%s",
            assignment.id, booking_id, resource_id,
            assignment.start, assignment.end, participant_count,
        )
        return assignment

    def cancel(self, assignment_id: str, timeout: Optional[float] = None) -> CancelOutcome:
        """Void an assignment. Idempotent.

        Returns ALREADY_CANCELLED (not an error) when the assignment is
        already void or unknown. Takes the resource lock so the freed
        capacity is visible to the next allocation on that resource.
        """
        assignment = self._storage.get_assignment(assignment_id)
        if assignment is None or not assignment.is_active:
            logger.debug("Cancel of %s: already cancelled or unknown", assignment_id)
            return CancelOutcome.ALREADY_CANCELLED

        with self.locks.hold(assignment.resource_id, timeout) as acquired:
            if not acquired:
                raise ConcurrentConflict(assignment.resource_id, "lock_timeout")
            voided = self._storage.void_assignment(assignment_id, self._clock())

        if not voided:
            return CancelOutcome.ALREADY_CANCELLED
        logger.info("Cancelled %s on %s", assignment_id, assignment.resource_id)
        return CancelOutcome.CANCELLED

    def reschedule(
        self,
        booking_id: str,
        assignment_id: str,
        window: Window,
        participant_count: Optional[int] = None,
        resource_id: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> Assignment:
        """Cancel then allocate. Not atomic.

        If the new allocation fails, the old assignment stays cancelled and
        the error propagates; the caller decides what to do next.
        """
        self._load_booking(booking_id)
        current = self._storage.get_assignment(assignment_id)
        if current is None or not current.is_active or current.booking_id != booking_id:
            raise AssignmentNotFound(assignment_id, booking_id)

        self.cancel(assignment_id, timeout)
        try:
            return self.allocate(
                resource_id or current.resource_id,
                booking_id,
                window,
                participant_count if participant_count is not None else current.participant_count,
                role=current.role,
                timeout=timeout,
            )
        except SchedulingError as exc:
            logger.warning(
                "Reschedule of %s failed after cancel; left cancelled (%s)",
                assignment_id, exc.code,
            )
            raise

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_assignments(self, flt: Optional[AssignmentFilter] = None) -> list[Assignment]:
        """Assignments matching flt, ordered by start then id."""
        return self._storage.list_assignments(flt or AssignmentFilter())
