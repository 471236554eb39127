"""CommitmentLedger: read model over a resource's counting assignments.

Read-only over the Storage Port and holds no state between calls, so every
answer reflects the latest committed writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from dayplanner.localtime import as_utc, utc_now
from dayplanner.storage import StoragePort
from dayplanner.types import Assignment, BookingStatus, Commitment, Window


@dataclass(frozen=True)
class CapacityPolicy:
    """Which commitments count against capacity.

    CONFIRMED always counts. DRAFT is a soft hold that counts until
    draft_hold has elapsed since the booking was created; a zero hold means
    drafts never count. CANCELLED never counts. Naive timestamps are read
    as UTC so stores that drop tzinfo compare cleanly with an aware clock.
    """

    draft_hold: timedelta = timedelta(minutes=15)

    def counts(self, commitment: Commitment, now: datetime) -> bool:
        if commitment.booking_status is BookingStatus.CONFIRMED:
            return True
        if commitment.booking_status is BookingStatus.DRAFT:
            expires = as_utc(commitment.booking_created_at) + self.draft_hold
            return as_utc(now) < expires
        return False


class CommitmentLedger:

    def __init__(
        self,
        storage: StoragePort,
        policy: Optional[CapacityPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._storage = storage
        self.policy = policy or CapacityPolicy()
        self._clock = clock

    def counting(self, commitments: list[Commitment]) -> list[Assignment]:
        """The assignments among commitments that count right now."""
        now = self._clock()
        return [c.assignment for c in commitments if self.policy.counts(c, now)]

    def overlapping(self, resource_id: str, window: Window) -> list[Assignment]:
        """Counting assignments overlapping window, by start then id."""
        return self.counting(
            self._storage.query_assignments(resource_id, window, active_statuses_only=True)
        )

    def capacity_used(self, resource_id: str, window: Window) -> int:
        """Sum of participant_count over every overlapping assignment.

        An upper bound on the load at any instant: assignments that overlap
        the window but not each other are all added.
        """
        return sum(a.participant_count for a in self.overlapping(resource_id, window))

    def peak_usage(self, resource_id: str, window: Window) -> int:
        """Largest simultaneous participant count at any instant in window."""
        return peak_concurrent(self.overlapping(resource_id, window), window)


def peak_concurrent(assignments: list[Assignment], window: Window) -> int:
    """Sweep line over [start, end) edges clipped to window.

    Ends sort before starts at the same instant: back-to-back assignments
    never overlap.
    """
    events: list[tuple[datetime, int, int]] = []
    for a in assignments:
        start = max(a.start, window.start)
        end = min(a.end, window.end)
        if start < end:
            events.append((start, 1, a.participant_count))
            events.append((end, 0, -a.participant_count))
    events.sort()

    current = peak = 0
    for _, _, delta in events:
        current += delta
        peak = max(peak, current)
    return peak
