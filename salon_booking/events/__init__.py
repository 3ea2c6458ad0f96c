from salon_booking.events.bus import EventBus, EventHandler, Subscription

__all__ = ["EventBus", "EventHandler", "Subscription"]
