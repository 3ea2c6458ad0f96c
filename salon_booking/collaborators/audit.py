"""Audit subscriber: one (actor, action, entity, before, after) row per lifecycle event."""

import logging
from collections.abc import Callable
from typing import Optional

from salon_booking.events.bus import EventBus
from salon_booking.schemas.event_schema import AuditEntry, LifecycleEvent, LifecycleEventType

logger = logging.getLogger(__name__)

ACTION_LABELS: dict[LifecycleEventType, str] = {
    LifecycleEventType.BOOKING_CREATED: "booking_created",
    LifecycleEventType.SERVICE_ACCEPTED: "booking_staff_accepted",
    LifecycleEventType.SERVICE_REJECTED: "booking_staff_rejected",
    LifecycleEventType.BOOKING_CONFIRMED: "booking_confirmed",
    LifecycleEventType.BOOKING_AUTO_CANCELED: "booking_auto_canceled",
    LifecycleEventType.BOOKING_NEEDS_REASSIGNMENT: "booking_needs_reassignment",
    LifecycleEventType.BOOKING_REASSIGNED: "booking_reassigned",
    LifecycleEventType.BOOKING_STATUS_CHANGED: "booking_status_changed",
    LifecycleEventType.SERVICE_COMPLETED: "booking_service_completed",
    LifecycleEventType.BOOKING_COMPLETED: "booking_completed",
}


def build_audit_entry(event: LifecycleEvent) -> AuditEntry:
    details: list[str] = []
    if event.service_names:
        details.append("services: " + ", ".join(event.service_names))
    if event.reason:
        details.append(f"reason: {event.reason}")
    actor = event.actor
    return AuditEntry(
        tenant_id=event.tenant_id,
        actor_id=actor.actor_id if actor else None,
        actor_name=actor.display_name if actor else None,
        actor_role=actor.role if actor else None,
        action=ACTION_LABELS[event.event_type],
        entity=f"booking:{event.booking_id}",
        before_status=event.previous_status,
        after_status=event.new_status,
        details="; ".join(details) or None,
    )


class AuditRecorder:
    """Appends audit entries to a sink (an in-memory list by default)."""

    def __init__(self, sink: Optional[Callable[[AuditEntry], None]] = None) -> None:
        self.entries: list[AuditEntry] = []
        self._sink = sink or self.entries.append

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(self.handle, name="audit")

    def handle(self, event: LifecycleEvent) -> None:
        entry = build_audit_entry(event)
        self._sink(entry)
        logger.debug("Audit: %s %s (%s -> %s)", entry.action, entry.entity,
                     entry.before_status, entry.after_status.value)
