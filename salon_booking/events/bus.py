"""
In-process lifecycle event bus.

Subscribers (notifications, audit logging, push delivery) register here
instead of being called directly by the engine. The engine only guarantees
that an event is published after its status change is committed; every
subscriber is called independently, and one failing subscriber neither
blocks the others nor reaches the caller.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Optional

from salon_booking.schemas.event_schema import LifecycleEvent, LifecycleEventType

logger = logging.getLogger(__name__)

EventHandler = Callable[[LifecycleEvent], None]


@dataclass(frozen=True)
class Subscription:
    name: str
    handler: EventHandler
    event_types: Optional[frozenset[LifecycleEventType]] = None

    def wants(self, event: LifecycleEvent) -> bool:
        return self.event_types is None or event.event_type in self.event_types


class EventBus:
    """Fan-out of lifecycle events to registered subscribers."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self,
        handler: EventHandler,
        event_types: Optional[Iterable[LifecycleEventType]] = None,
        name: Optional[str] = None,
    ) -> Subscription:
        """Register a handler for all events, or only for ``event_types``."""
        subscription = Subscription(
            name=name or getattr(handler, "__qualname__", repr(handler)),
            handler=handler,
            event_types=frozenset(event_types) if event_types is not None else None,
        )
        self._subscriptions.append(subscription)
        logger.debug("Subscriber registered: %s", subscription.name)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.remove(subscription)

    def get_subscribers(self) -> list[str]:
        """Return names of all registered subscribers."""
        return [s.name for s in self._subscriptions]

    def publish(self, event: LifecycleEvent) -> int:
        """Deliver an event to every interested subscriber.

        Returns:
            The number of subscribers that handled the event without error.
        """
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.wants(event):
                continue
            try:
                subscription.handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "Subscriber %s failed on %s for booking %s",
                    subscription.name, event.event_type.value, event.booking_id,
                )
        return delivered

    def publish_all(self, events: Iterable[LifecycleEvent]) -> None:
        """Publish events in order."""
        for event in events:
            self.publish(event)
