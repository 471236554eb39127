"""dayplanner: availability resolution and conflict-free assignment scheduling."""

from dayplanner.itinerary import ItineraryItem, allocate_itinerary
from dayplanner.ledger import CapacityPolicy, CommitmentLedger
from dayplanner.loaders import (
    load_resources_json,
    load_rule_set_json,
    resource_from_dict,
    rule_set_from_dict,
)
from dayplanner.resolver import AvailabilityCache, AvailabilityResolver
from dayplanner.rules import DayState, Override, RuleSet, TimeExclusion, TimeRange
from dayplanner.scheduler import AssignmentScheduler
from dayplanner.sqlite_storage import SQLiteStorage
from dayplanner.storage import InMemoryStorage, StoragePort
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
    ConcurrentConflict,
    DateRange,
    Interval,
    InvalidParticipantCount,
    InvalidWindow,
    Resource,
    ResourceClosed,
    ResourceConfigError,
    ResourceNotFound,
    RuleSetConfigError,
    SchedulingError,
    Window,
)

__all__ = [
    "Assignment",
    "AssignmentFilter",
    "AssignmentNotFound",
    "AssignmentRole",
    "AssignmentScheduler",
    "AvailabilityCache",
    "AvailabilityResolver",
    "Booking",
    "BookingNotFound",
    "BookingStatus",
    "CancelOutcome",
    "CapacityExceeded",
    "CapacityPolicy",
    "CommitmentLedger",
    "ConcurrentConflict",
    "DateRange",
    "DayState",
    "InMemoryStorage",
    "Interval",
    "InvalidParticipantCount",
    "InvalidWindow",
    "ItineraryItem",
    "Override",
    "Resource",
    "ResourceClosed",
    "ResourceConfigError",
    "ResourceNotFound",
    "RuleSet",
    "RuleSetConfigError",
    "SQLiteStorage",
    "SchedulingError",
    "StoragePort",
    "TimeExclusion",
    "TimeRange",
    "Window",
    "allocate_itinerary",
    "load_resources_json",
    "load_rule_set_json",
    "resource_from_dict",
    "rule_set_from_dict",
]
