"""
Finite state machine for booking status transitions.

Every booking-level status change must match an explicit edge in the
transition table. Per-service approval changes are held to their own,
smaller table. Anything else is rejected with InvalidTransition and the
caller must not persist the attempted change.

Usage:
    sm = BookingStateMachine(BookingStatus.AWAITING_STAFF_APPROVAL)
    sm.transition_to(BookingStatus.CONFIRMED)
    assert sm.is_terminal() is False
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from salon_booking.errors import InvalidTransition
from salon_booking.schemas.booking_schema import ApprovalStatus, BookingStatus

logger = logging.getLogger(__name__)


class TransitionTrigger(str, Enum):
    """Why a booking moved between two statuses."""
    ROUTED_TO_STAFF = "routed_to_staff"
    PARTIALLY_ACCEPTED = "partially_accepted"
    ALL_ACCEPTED = "all_accepted"
    STAFF_REJECTED = "staff_rejected"
    REASSIGNED = "reassigned"
    CANCELED = "canceled"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Transition:
    """A single valid status transition."""
    from_state: BookingStatus
    to_state: BookingStatus
    trigger: TransitionTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a status visit."""
    state: BookingStatus
    entered_at: datetime
    trigger: Optional[TransitionTrigger] = None


S = BookingStatus
T = TransitionTrigger

TRANSITIONS: list[Transition] = [
    # --- Customer submission routed by an admin ---
    Transition(S.PENDING, S.AWAITING_STAFF_APPROVAL, T.ROUTED_TO_STAFF),
    Transition(S.PENDING, S.CANCELED, T.CANCELED),

    # --- Staff approval ---
    Transition(S.AWAITING_STAFF_APPROVAL, S.PARTIALLY_APPROVED, T.PARTIALLY_ACCEPTED),
    Transition(S.AWAITING_STAFF_APPROVAL, S.CONFIRMED, T.ALL_ACCEPTED),
    Transition(S.AWAITING_STAFF_APPROVAL, S.STAFF_REJECTED, T.STAFF_REJECTED),
    Transition(S.AWAITING_STAFF_APPROVAL, S.CANCELED, T.CANCELED),

    # --- Partial approval ---
    Transition(S.PARTIALLY_APPROVED, S.CONFIRMED, T.ALL_ACCEPTED),
    Transition(S.PARTIALLY_APPROVED, S.STAFF_REJECTED, T.STAFF_REJECTED),
    Transition(S.PARTIALLY_APPROVED, S.CANCELED, T.CANCELED),

    # --- Rejection handling ---
    Transition(S.STAFF_REJECTED, S.AWAITING_STAFF_APPROVAL, T.REASSIGNED),
    Transition(S.STAFF_REJECTED, S.PARTIALLY_APPROVED, T.REASSIGNED),
    Transition(S.STAFF_REJECTED, S.CANCELED, T.CANCELED),

    # --- Confirmed booking ---
    Transition(S.CONFIRMED, S.COMPLETED, T.COMPLETED),
    Transition(S.CONFIRMED, S.CANCELED, T.CANCELED),
]

# Per-service approval edges. Reassignment resets to PENDING separately.
SERVICE_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.NEEDS_ASSIGNMENT: frozenset({ApprovalStatus.ACCEPTED}),
    ApprovalStatus.PENDING: frozenset({ApprovalStatus.ACCEPTED, ApprovalStatus.REJECTED}),
    ApprovalStatus.ACCEPTED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}


def find_transition(current: BookingStatus, requested: BookingStatus) -> Optional[Transition]:
    for t in TRANSITIONS:
        if t.from_state == current and t.to_state == requested:
            return t
    return None


def can_transition(current: BookingStatus, requested: BookingStatus) -> bool:
    """Whether ``current -> requested`` is an edge of the transition table."""
    return find_transition(current, requested) is not None


def valid_targets(current: BookingStatus) -> list[BookingStatus]:
    """All statuses reachable in one step from ``current``."""
    return [t.to_state for t in TRANSITIONS if t.from_state == current]


def can_revise_service(current: ApprovalStatus, requested: ApprovalStatus) -> bool:
    """Whether a staff response may move a service from ``current`` to ``requested``."""
    return requested in SERVICE_TRANSITIONS[current]


def assert_service_transition(
    service_id: str, current: ApprovalStatus, requested: ApprovalStatus
) -> None:
    """Raise InvalidTransition unless the service-level edge is allowed."""
    if not can_revise_service(current, requested):
        raise InvalidTransition(
            current.value,
            requested.value,
            f"service {service_id} cannot move from {current.value} to {requested.value}",
        )


class BookingStateMachine:
    """
    Tracks one booking's status through validated transitions.

    The engine builds one per operation from the persisted status, applies
    the status it computed, and only writes the booking back if every step
    was accepted. A status that does not change is not a transition and is
    accepted silently.
    """

    def __init__(self, initial: BookingStatus) -> None:
        self._current_state = initial
        self._history: list[StateEntry] = [
            StateEntry(state=initial, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> BookingStatus:
        return self._current_state

    def transition_to(self, requested: BookingStatus) -> BookingStatus:
        """
        Move to ``requested``.

        Returns:
            The new booking status.

        Raises:
            InvalidTransition: If no edge leads from the current status to ``requested``.
        """
        if requested == self._current_state:
            return self._current_state

        t = find_transition(self._current_state, requested)
        if t is None:
            valid = [s.value for s in self.get_valid_targets()]
            logger.warning(
                "Rejected transition %s -> %s (valid: %s)",
                self._current_state.value, requested.value, valid,
            )
            raise InvalidTransition(
                self._current_state.value,
                requested.value,
                f"valid targets are {valid}",
            )

        old_state = self._current_state
        self._current_state = t.to_state
        self._history.append(StateEntry(
            state=self._current_state,
            entered_at=datetime.now(timezone.utc),
            trigger=t.trigger,
        ))
        logger.debug(
            "Status transition: %s -> %s (trigger: %s)",
            old_state.value, self._current_state.value, t.trigger.value,
        )
        return self._current_state

    def get_valid_targets(self) -> list[BookingStatus]:
        """Return all statuses reachable from the current status."""
        return valid_targets(self._current_state)

    def get_history(self) -> list[StateEntry]:
        """Return the full transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of status names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        """Check if the booking has reached a terminal status."""
        return self._current_state.is_terminal
