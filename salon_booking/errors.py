"""
Error taxonomy for the booking lifecycle engine.

Validation and transition errors are raised straight to the caller with
enough detail to act on. Dependency failures inside best-effort side steps
(notifications, audit) never surface here: the event bus logs and drops them.
"""

from typing import Any, Optional


class BookingError(Exception):
    """Base class for every error the lifecycle engine raises deliberately."""

    code = "booking_error"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": str(self)}


class ValidationError(BookingError):
    """Malformed or missing booking fields; raised before any state change."""

    code = "validation_error"


class SlotConflict(BookingError):
    """A candidate booking collides in time with an active booking."""

    code = "slot_conflict"

    def __init__(
        self,
        time: str,
        detail: str,
        conflicting_booking_id: Optional[str] = None,
        staff_id: Optional[str] = None,
    ) -> None:
        super().__init__(f"Slot conflict at {time}: {detail}")
        self.time = time
        self.detail = detail
        self.conflicting_booking_id = conflicting_booking_id
        self.staff_id = staff_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": str(self),
            "conflict": {
                "time": self.time,
                "detail": self.detail,
                "conflicting_booking_id": self.conflicting_booking_id,
                "staff_id": self.staff_id,
            },
        }


class InvalidTransition(BookingError):
    """A status change that is not in the allowed edge set."""

    code = "invalid_transition"

    def __init__(self, current: str, requested: str, reason: str = "") -> None:
        message = f"Invalid transition {current} -> {requested}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.current = current
        self.requested = requested


class NotAssigned(BookingError):
    """A staff actor responded to a service or booking they are not assigned to."""

    code = "not_assigned"


class NotAuthorized(BookingError):
    """The actor's role may not perform the requested action."""

    code = "not_authorized"


class BookingNotFound(BookingError):
    """No booking exists under the given tenant and identifier."""

    code = "not_found"


class StorageConflict(BookingError):
    """A write lost an optimistic-concurrency race on the booking record."""

    code = "storage_conflict"


class DependencyUnavailable(BookingError):
    """Storage or staff-directory lookup failed."""

    code = "dependency_unavailable"


def error_payload(exc: Exception, debug: bool = False) -> dict[str, Any]:
    """Build the user-visible error body for an exception.

    Unexpected failures collapse to a generic "Internal error" unless
    debug output is enabled.
    """
    if isinstance(exc, BookingError):
        return exc.to_dict()
    message = "Internal error"
    if debug and str(exc):
        message = str(exc)
    return {"error": "internal_error", "message": message}
