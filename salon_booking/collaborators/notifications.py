"""
Notification subscriber.

Turns lifecycle events into customer, staff, and admin messages. In
production the sender pushes to FCM / email; by default messages are kept
in an in-memory outbox.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from salon_booking.collaborators.message_templates import (
    build_admin_message,
    build_customer_status_message,
    build_staff_assignment_message,
)
from salon_booking.events.bus import EventBus
from salon_booking.schemas.booking_schema import BookingStatus
from salon_booking.schemas.event_schema import LifecycleEvent, LifecycleEventType

logger = logging.getLogger(__name__)

E = LifecycleEventType


@dataclass(frozen=True)
class Notification:
    """A rendered message ready for delivery."""
    recipient_type: str  # "customer" | "staff" | "admin"
    recipient_id: str
    title: str
    message: str
    event_type: LifecycleEventType
    tenant_id: str
    booking_id: str


class NotificationService:
    """Renders and sends notifications for lifecycle events."""

    def __init__(self, sender: Optional[Callable[[Notification], None]] = None) -> None:
        self.outbox: list[Notification] = []
        self._sender = sender or self.outbox.append

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(self.handle, name="notifications")

    def handle(self, event: LifecycleEvent) -> None:
        for notification in self.render(event):
            self._sender(notification)
        logger.debug("Notifications sent for %s on %s", event.event_type.value, event.booking_id)

    def render(self, event: LifecycleEvent) -> list[Notification]:
        """Build every notification an event calls for."""
        t = event.event_type
        out: list[Notification] = []

        if t == E.BOOKING_CREATED:
            out.append(self._customer(event, event.new_status))
            if event.new_status in (
                BookingStatus.AWAITING_STAFF_APPROVAL,
                BookingStatus.PARTIALLY_APPROVED,
            ):
                out.extend(self._staff_assignments(event, is_reassignment=False))
            if not event.staff_ids:
                out.append(self._admin(event, "needs_assignment"))
        elif t == E.SERVICE_ACCEPTED:
            out.append(self._admin(event, "staff_accepted"))
        elif t == E.SERVICE_REJECTED:
            out.append(self._admin(event, "staff_rejected"))
        elif t == E.BOOKING_CONFIRMED:
            out.append(self._customer(event, BookingStatus.CONFIRMED))
        elif t == E.BOOKING_AUTO_CANCELED:
            out.append(self._customer(event, BookingStatus.CANCELED))
            out.append(self._admin(event, "auto_canceled"))
        elif t == E.BOOKING_NEEDS_REASSIGNMENT:
            out.append(self._customer(event, BookingStatus.STAFF_REJECTED))
        elif t == E.BOOKING_REASSIGNED:
            out.extend(self._staff_assignments(event, is_reassignment=True))
        elif t == E.BOOKING_STATUS_CHANGED:
            out.append(self._customer(event, event.new_status))
        elif t == E.SERVICE_COMPLETED:
            out.append(self._admin(event, "service_completed"))
        elif t == E.BOOKING_COMPLETED:
            out.append(self._customer(event, BookingStatus.COMPLETED))
        return out

    def _customer(self, event: LifecycleEvent, status: BookingStatus) -> Notification:
        title, message = build_customer_status_message(
            status,
            event.booking_code,
            event.service_names,
            event.booking_date,
            event.booking_time,
        )
        client = event.client
        recipient = client.customer_uid or client.email or client.phone or client.name
        return self._make("customer", recipient, title, message, event)

    def _staff_assignments(
        self, event: LifecycleEvent, is_reassignment: bool
    ) -> list[Notification]:
        title, message = build_staff_assignment_message(
            event.booking_code,
            event.client.name,
            event.service_names,
            event.booking_date,
            event.booking_time,
            is_reassignment=is_reassignment,
        )
        return [self._make("staff", sid, title, message, event) for sid in event.staff_ids]

    def _admin(self, event: LifecycleEvent, kind: str) -> Notification:
        staff_name = event.actor.display_name if event.actor else "Staff"
        title, message = build_admin_message(
            kind,
            event.booking_code,
            event.client.name,
            staff_name=staff_name,
            service_names=event.service_names,
            reason=event.reason,
        )
        return self._make("admin", event.tenant_id, title, message, event)

    @staticmethod
    def _make(
        recipient_type: str,
        recipient_id: str,
        title: str,
        message: str,
        event: LifecycleEvent,
    ) -> Notification:
        return Notification(
            recipient_type=recipient_type,
            recipient_id=recipient_id,
            title=title,
            message=message,
            event_type=event.event_type,
            tenant_id=event.tenant_id,
            booking_id=event.booking_id,
        )
