"""
Slot conflict validation.

A booking is expanded into one claim per service (or one for an unsplit
booking). Each candidate claim is tested against the claims of every
slot-blocking booking on the same tenant and day. Two claims collide when
their intervals overlap and their staff match, where an unassigned side
matches anyone: an "any available" slot cannot be proven free.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from salon_booking.collaborators.storage import InMemoryBookingStore
from salon_booking.config import settings
from salon_booking.errors import DependencyUnavailable, SlotConflict
from salon_booking.lifecycle.overlap import overlaps
from salon_booking.schemas.booking_schema import Booking
from salon_booking.utils import format_minutes, parse_hhmm

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SlotClaim:
    """One reserved interval on one day, in minutes since midnight."""
    staff_id: Optional[str]
    start: int
    end: int
    label: str
    booking_id: Optional[str] = None
    service_id: Optional[str] = None

    def collides_with(self, other: "SlotClaim") -> bool:
        if self.staff_id and other.staff_id and self.staff_id != other.staff_id:
            return False
        return overlaps(self.start, self.end, other.start, other.end)


def expand_booking(
    booking: Booking, service_ids: Optional[Iterable[str]] = None
) -> list[SlotClaim]:
    """Split a booking into slot claims.

    A service without its own time or duration inherits the booking's.
    ``service_ids`` limits the expansion to those services.
    """
    if not booking.services:
        start = parse_hhmm(booking.time)
        return [SlotClaim(
            staff_id=booking.staff_id,
            start=start,
            end=start + booking.duration,
            label=booking.service_name or "Service",
            booking_id=booking.booking_id,
            service_id=booking.service_id,
        )]

    wanted = {str(s) for s in service_ids} if service_ids is not None else None
    claims = []
    for service in booking.services:
        if wanted is not None and service.service_id not in wanted:
            continue
        start = parse_hhmm(service.time or booking.time)
        claims.append(SlotClaim(
            staff_id=service.staff_id,
            start=start,
            end=start + (service.duration or booking.duration),
            label=service.display_name,
            booking_id=booking.booking_id,
            service_id=service.service_id,
        ))
    return claims


class SlotConflictValidator:
    """Rejects candidate bookings that collide with active bookings."""

    def __init__(
        self,
        store: InMemoryBookingStore,
        fail_closed: Optional[bool] = None,
    ) -> None:
        self._store = store
        if fail_closed is None:
            fail_closed = settings.lifecycle.slot_conflict_fail_closed
        self._fail_closed = fail_closed

    def check(
        self, candidate: Booking, service_ids: Optional[Iterable[str]] = None
    ) -> None:
        """Raise SlotConflict if any claim of ``candidate`` collides.

        Existing records of the candidate itself are ignored, so a booking
        being reassigned does not conflict with its own previous state.

        Raises:
            SlotConflict: On the first colliding pair found.
            DependencyUnavailable: If existing bookings cannot be read and the
                validator fails closed.
        """
        claims = expand_booking(candidate, service_ids)
        if not claims:
            return

        try:
            existing = self._store.query_active_bookings(candidate.tenant_id, candidate.date)
        except DependencyUnavailable:
            if self._fail_closed:
                logger.error(
                    "Existing bookings unavailable for %s on %s; rejecting",
                    candidate.tenant_id, candidate.date,
                )
                raise
            logger.warning(
                "Existing bookings unavailable for %s on %s; skipping conflict check",
                candidate.tenant_id, candidate.date,
            )
            return

        for booking in existing:
            if booking.booking_id == candidate.booking_id or not booking.status.blocks_slots:
                continue
            for theirs in expand_booking(booking):
                for ours in claims:
                    if ours.collides_with(theirs):
                        raise self._conflict(ours, theirs, booking)

        logger.debug("No slot conflicts for %s (%d claims)", candidate.booking_id, len(claims))

    @staticmethod
    def _conflict(ours: SlotClaim, theirs: SlotClaim, booking: Booking) -> SlotConflict:
        if ours.staff_id and theirs.staff_id:
            who = f"staff {ours.staff_id} is already booked"
        else:
            who = "an unassigned booking may need the same staff"
        detail = (
            f"{ours.label} {format_minutes(ours.start)}-{format_minutes(ours.end)} overlaps "
            f"{theirs.label} {format_minutes(theirs.start)}-{format_minutes(theirs.end)} "
            f"in booking {booking.booking_code}; {who}"
        )
        logger.info("Slot conflict: %s", detail)
        return SlotConflict(
            time=format_minutes(ours.start),
            detail=detail,
            conflicting_booking_id=booking.booking_id,
            staff_id=ours.staff_id or theirs.staff_id,
        )
