"""Reference composition: allocate a multi-resource itinerary for one booking.

This module shows how a checkout flow composes the scheduler's primitives.
Each resource is allocated independently; if any item fails, the
allocations already made for the itinerary are cancelled and the error is
re-raised. It is a compensating rollback, not a cross-resource transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from dayplanner.logger import get_logger
from dayplanner.scheduler import AssignmentScheduler
from dayplanner.types import Assignment, AssignmentRole, SchedulingError, Window


logger = get_logger(__name__)


@dataclass(frozen=True)
class ItineraryItem:
    """One resource slot in an itinerary."""

    resource_id: str
    window: Window
    participant_count: int = 1
    role: AssignmentRole = AssignmentRole.PRIMARY


def allocate_itinerary(
    scheduler: AssignmentScheduler,
    booking_id: str,
    items: list[ItineraryItem],
    timeout: Optional[float] = None,
) -> list[Assignment]:
    """Allocate items in input order, all or nothing.

    Args:
        scheduler: Scheduler to allocate through.
        booking_id: Booking that owns every assignment.
        items: Ordered itinerary. Earlier items are allocated first.
        timeout: Per-resource lock timeout passed to each allocate call.

    Returns:
        Assignments in the same order as items.

    Raises:
        SchedulingError: The first failure, after rolling back earlier items.
    """
    made: list[Assignment] = []
    for item in items:
        try:
            made.append(
                scheduler.allocate(
                    item.resource_id,
                    booking_id,
                    item.window,
                    item.participant_count,
                    role=item.role,
                    timeout=timeout,
                )
            )
        except SchedulingError as exc:
            logger.info(
                "Itinerary for %s failed on %s (%s); rolling back %s allocation(s)",
                booking_id, item.resource_id, exc.code, len(made),
            )
            for assignment in reversed(made):
                scheduler.cancel(assignment.id, timeout=timeout)
            raise
    return made
