"""
In-memory booking store.

In production this is a document store (one document per booking) that
supports single-document atomic read-modify-write. This implementation
gives the engine the same guarantees in-process: a per-booking lock for
read-modify-write and a version check on every write.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from typing import Optional

from salon_booking.errors import BookingNotFound, DependencyUnavailable, StorageConflict
from salon_booking.schemas.booking_schema import Booking, BookingStatus

logger = logging.getLogger(__name__)

_Key = tuple[str, str]


class InMemoryBookingStore:
    """Tenant-scoped booking records with optimistic versioning."""

    def __init__(self) -> None:
        self._bookings: dict[_Key, Booking] = {}
        self._tentative: dict[_Key, Booking] = {}
        self._locks: dict[_Key, threading.RLock] = {}
        self._guard = threading.Lock()
        # Outage switches for tests and demos
        self.fail_reads = False
        self.fail_writes = False
        self.fail_queries = False

    @contextmanager
    def locked(self, tenant_id: str, key: str) -> Iterator[None]:
        """Serialize read-modify-write on one booking (or any other key)."""
        with self._guard:
            lock = self._locks.setdefault((tenant_id, key), threading.RLock())
        with lock:
            yield

    def get_booking(self, tenant_id: str, booking_id: str) -> Booking:
        """Return a private copy of the stored booking.

        Raises:
            BookingNotFound: If no such booking exists for the tenant.
            DependencyUnavailable: If the store is unreachable.
        """
        if self.fail_reads:
            raise DependencyUnavailable("booking store read failed")
        booking = self._bookings.get((tenant_id, booking_id))
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return booking.model_copy(deep=True)

    def put_booking(
        self,
        tenant_id: str,
        booking: Booking,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """Commit a booking and return the stored copy with its new version.

        ``expected_version=None`` means create: the booking must not exist yet.

        Raises:
            StorageConflict: If the stored version differs from ``expected_version``.
            DependencyUnavailable: If the store is unreachable.
        """
        if self.fail_writes:
            raise DependencyUnavailable("booking store write failed")
        key = (tenant_id, booking.booking_id)
        with self._guard:
            current = self._bookings.get(key)
            if expected_version is None and current is not None:
                raise StorageConflict(f"Booking {booking.booking_id} already exists")
            if expected_version is not None:
                if current is None:
                    raise BookingNotFound(f"Booking {booking.booking_id} not found")
                if current.version != expected_version:
                    raise StorageConflict(
                        f"Booking {booking.booking_id} changed concurrently "
                        f"(expected v{expected_version}, found v{current.version})"
                    )
            stored = booking.model_copy(
                deep=True,
                update={"version": (current.version if current else 0) + 1},
            )
            self._bookings[key] = stored
        logger.debug("Committed %s v%d (%s)", booking.booking_id, stored.version, stored.status.value)
        return stored.model_copy(deep=True)

    def add_tentative(self, tenant_id: str, booking: Booking) -> None:
        """Hold a slot for an unconfirmed submission (e.g. a checkout in progress)."""
        with self._guard:
            self._tentative[(tenant_id, booking.booking_id)] = booking.model_copy(deep=True)

    def release_tentative(self, tenant_id: str, booking_id: str) -> None:
        with self._guard:
            self._tentative.pop((tenant_id, booking_id), None)

    def query_active_bookings(self, tenant_id: str, on_date: date) -> list[Booking]:
        """Slot-blocking bookings (committed and tentative) for one tenant and day.

        Raises:
            DependencyUnavailable: If the store is unreachable.
        """
        if self.fail_queries:
            raise DependencyUnavailable("booking store query failed")
        with self._guard:
            snapshot = list(self._tentative.items()) + list(self._bookings.items())
        found: dict[str, Booking] = {}
        for (tenant, booking_id), booking in snapshot:
            if tenant != tenant_id or booking.date != on_date:
                continue
            if booking.status.blocks_slots:
                found[booking_id] = booking.model_copy(deep=True)
        return list(found.values())

    def list_bookings(
        self, tenant_id: str, status: Optional[BookingStatus] = None
    ) -> list[Booking]:
        """All committed bookings of a tenant, optionally filtered by status."""
        with self._guard:
            snapshot = sorted(self._bookings.items())
        return [
            b.model_copy(deep=True)
            for (tenant, _), b in snapshot
            if tenant == tenant_id and (status is None or b.status == status)
        ]

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        with self._guard:
            self._bookings.clear()
            self._tentative.clear()
            self._locks.clear()
        self.fail_reads = self.fail_writes = self.fail_queries = False
