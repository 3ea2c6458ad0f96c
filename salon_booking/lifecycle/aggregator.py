"""
Service approval aggregation.

Computes the booking-level status from the per-service approval statuses of
a multi-service booking. The engine calls this after every service mutation
and stores the result verbatim, so the booking status never drifts from its
services.
"""

from collections.abc import Iterable

from salon_booking.schemas.booking_schema import (
    ApprovalStatus,
    BookingService,
    BookingStatus,
)


def aggregate(statuses: Iterable[ApprovalStatus]) -> BookingStatus:
    """Derive the booking status from a collection of approval statuses.

    A single rejection outranks any acceptance: the booking leaves the
    approval pipeline until the rejected service is reassigned or the
    booking is canceled.
    """
    values = [ApprovalStatus.normalize(s) for s in statuses]
    if not values:
        return BookingStatus.AWAITING_STAFF_APPROVAL
    if all(v == ApprovalStatus.ACCEPTED for v in values):
        return BookingStatus.CONFIRMED
    if any(v == ApprovalStatus.REJECTED for v in values):
        return BookingStatus.STAFF_REJECTED
    if any(v == ApprovalStatus.ACCEPTED for v in values):
        return BookingStatus.PARTIALLY_APPROVED
    return BookingStatus.AWAITING_STAFF_APPROVAL


def aggregate_services(services: Iterable[BookingService]) -> BookingStatus:
    """Convenience wrapper over :func:`aggregate` for service models."""
    return aggregate(s.approval_status for s in services)
