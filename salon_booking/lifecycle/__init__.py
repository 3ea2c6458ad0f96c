from salon_booking.lifecycle.aggregator import aggregate, aggregate_services
from salon_booking.lifecycle.alternatives import AlternativeStaffResolver
from salon_booking.lifecycle.engine import (
    BookingLifecycleEngine,
    RevisedBooking,
    ServiceAssignment,
)
from salon_booking.lifecycle.overlap import overlaps
from salon_booking.lifecycle.slot_conflicts import SlotClaim, SlotConflictValidator
from salon_booking.lifecycle.state_machine import BookingStateMachine, TransitionTrigger

__all__ = [
    "BookingLifecycleEngine",
    "RevisedBooking",
    "ServiceAssignment",
    "BookingStateMachine",
    "TransitionTrigger",
    "SlotConflictValidator",
    "SlotClaim",
    "AlternativeStaffResolver",
    "aggregate",
    "aggregate_services",
    "overlaps",
]
