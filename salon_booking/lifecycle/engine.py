"""
Booking lifecycle engine.

Orchestrates creation, staff responses, reassignment, manual status changes,
and completion. Every mutation is a read-modify-write of the whole booking
record under a per-booking lock, ending in a versioned write. The booking
status of a multi-service booking is recomputed from its services on every
mutation. Lifecycle events are published only after the write commits, in a
fixed order: service-level events first, then booking-level events.

Usage:
    engine = BookingLifecycleEngine(store, directory, bus)
    booking = engine.create_booking("salon-1", request, actor=admin)
    revised = engine.respond("salon-1", booking.booking_id, staff, "accept")
"""

import random
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Union

import pydantic

from salon_booking.collaborators.staff_directory import InMemoryStaffDirectory
from salon_booking.collaborators.storage import InMemoryBookingStore
from salon_booking.config import AppConfig, settings
from salon_booking.errors import (
    InvalidTransition,
    NotAssigned,
    NotAuthorized,
    ValidationError,
)
from salon_booking.events.bus import EventBus
from salon_booking.lifecycle.aggregator import aggregate_services
from salon_booking.lifecycle.alternatives import AlternativeStaffResolver
from salon_booking.lifecycle.slot_conflicts import SlotConflictValidator
from salon_booking.lifecycle.state_machine import (
    BookingStateMachine,
    assert_service_transition,
)
from salon_booking.logging_context import get_request_logger
from salon_booking.schemas.booking_schema import (
    ApprovalStatus,
    Booking,
    BookingRequest,
    BookingService,
    BookingStatus,
    CompletionStatus,
    ServiceRequest,
    StaffAction,
)
from salon_booking.schemas.event_schema import Actor, LifecycleEvent, LifecycleEventType
from salon_booking.utils import MINUTES_PER_DAY, generate_booking_code, parse_hhmm

logger = get_request_logger(__name__)

E = LifecycleEventType


@dataclass
class RevisedBooking:
    """Outcome of one committed lifecycle mutation."""
    booking: Booking
    previous_status: Optional[BookingStatus]
    events: list[LifecycleEvent] = field(default_factory=list)

    @property
    def status(self) -> BookingStatus:
        return self.booking.status

    @property
    def event_types(self) -> list[LifecycleEventType]:
        return [e.event_type for e in self.events]


@dataclass(frozen=True)
class ServiceAssignment:
    """New staff for one service of a booking."""
    staff_id: str
    staff_name: Optional[str] = None


class BookingLifecycleEngine:
    """Drives bookings through their lifecycle against the storage and staff collaborators."""

    # Booking statuses in which staff may still accept or reject services
    RESPONDABLE_STATUSES = frozenset({
        BookingStatus.AWAITING_STAFF_APPROVAL,
        BookingStatus.PARTIALLY_APPROVED,
        BookingStatus.STAFF_REJECTED,
    })

    def __init__(
        self,
        store: InMemoryBookingStore,
        directory: InMemoryStaffDirectory,
        bus: Optional[EventBus] = None,
        config: Optional[AppConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._bus = bus or EventBus()
        self._config = config or settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng
        self._validator = SlotConflictValidator(
            store, fail_closed=self._config.lifecycle.slot_conflict_fail_closed
        )
        self._resolver = AlternativeStaffResolver(directory)

    @property
    def bus(self) -> EventBus:
        return self._bus

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_booking(self, tenant_id: str, booking_id: str) -> Booking:
        return self._store.get_booking(tenant_id, booking_id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_booking(
        self,
        tenant_id: str,
        request: Union[BookingRequest, Mapping[str, Any]],
        actor: Optional[Actor] = None,
    ) -> Booking:
        """Validate, conflict-check, and persist a new booking.

        Staff creating a booking vouch for it: every service is accepted and
        the booking is confirmed at once, with unassigned services going to
        the creating staff member. Admin-created bookings go to their assigned
        staff for approval. A single-slot booking with nobody assigned, or one
        made by a customer, starts as Pending.

        Raises:
            ValidationError: If the request is malformed.
            SlotConflict: If the booking collides with an active booking.
            DependencyUnavailable: If existing bookings cannot be checked and
                conflict checking fails closed.
        """
        if not isinstance(request, BookingRequest):
            try:
                request = BookingRequest.model_validate(request)
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid booking request: {e}") from e
        self._check_durations(request)

        now = self._clock()
        by_staff = actor is not None and actor.is_staff
        by_admin = actor is not None and actor.is_admin

        services = [self._new_service(s, actor, now) for s in request.services]
        staff_id, staff_name = request.staff_id, request.staff_name
        if by_staff and not services and not staff_id:
            staff_id, staff_name = actor.actor_id, actor.name or None

        if by_staff:
            status = BookingStatus.CONFIRMED
        elif services:
            status = aggregate_services(services)
        elif by_admin and staff_id:
            status = BookingStatus.AWAITING_STAFF_APPROVAL
        else:
            status = BookingStatus.PENDING

        first = request.services[0] if request.services else None
        booking = Booking(
            tenant_id=tenant_id,
            booking_id=uuid.uuid4().hex,
            booking_code=generate_booking_code(
                self._config.salon.booking_code_prefix, now=now, rng=self._rng
            ),
            date=request.date,
            time=request.time,
            duration=request.duration,
            starts_at_utc=request.starts_at_utc,
            client=request.client,
            service_id=request.service_id or (first.service_id if first else None),
            service_name=request.service_name or (first.name if first else None),
            staff_id=staff_id,
            staff_name=staff_name,
            branch_id=request.branch_id,
            branch_name=request.branch_name,
            services=services,
            status=status,
            created_by=actor.actor_id if actor else None,
            created_at=now,
            updated_at=now,
        )

        with self._store.locked(tenant_id, self._slot_key(booking)):
            self._validator.check(booking)
            stored = self._store.put_booking(tenant_id, booking)

        logger.info(
            "Booking %s (%s) created as %s by %s",
            stored.booking_code, stored.booking_id, stored.status.value,
            actor.role.value if actor else "anonymous",
        )
        self._bus.publish(self._event(E.BOOKING_CREATED, stored, actor, None))
        return stored

    def _new_service(
        self, request: ServiceRequest, actor: Optional[Actor], now: datetime
    ) -> BookingService:
        staff_id, staff_name = request.staff_id, request.staff_name
        if actor is not None and actor.is_staff:
            if not staff_id:
                staff_id, staff_name = actor.actor_id, actor.name or None
            return BookingService(
                service_id=request.service_id,
                name=request.name,
                staff_id=staff_id,
                staff_name=staff_name,
                time=request.time,
                duration=request.duration,
                approval_status=ApprovalStatus.ACCEPTED,
                responded_by_staff_id=actor.actor_id,
                responded_at=now,
            )
        return BookingService(
            service_id=request.service_id,
            name=request.name,
            staff_id=staff_id,
            staff_name=staff_name,
            time=request.time,
            duration=request.duration,
            approval_status=(
                ApprovalStatus.PENDING if staff_id else ApprovalStatus.NEEDS_ASSIGNMENT
            ),
        )

    def _check_durations(self, request: BookingRequest) -> None:
        limit = self._config.lifecycle.max_booking_duration_minutes
        slots = [(request.time, request.duration, "booking")]
        slots += [
            (s.time or request.time, s.duration or request.duration, f"service {s.service_id}")
            for s in request.services
        ]
        for time, duration, label in slots:
            if duration > limit:
                raise ValidationError(
                    f"Duration of {label} is {duration} minutes; the maximum is {limit}"
                )
            if parse_hhmm(time) + duration > MINUTES_PER_DAY:
                raise ValidationError(f"The {label} must end on the day it starts")

    # ------------------------------------------------------------------
    # Staff responses
    # ------------------------------------------------------------------

    def respond(
        self,
        tenant_id: str,
        booking_id: str,
        actor: Actor,
        action: Union[StaffAction, str],
        service_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> RevisedBooking:
        """Apply a staff member's accept/reject to their services.

        With no ``service_id``, every service of the booking still pending
        for this staff member is answered at once.

        Raises:
            NotAuthorized: If the actor is not staff.
            NotAssigned: If the actor is not assigned to the targeted service(s).
            InvalidTransition: If the booking or service is not awaiting a response.
            ValidationError: If a rejection carries no reason while one is required.
        """
        if not actor.is_staff:
            raise NotAuthorized(f"Only staff may respond to bookings (actor role {actor.role.value})")
        try:
            action = StaffAction(str(getattr(action, "value", action)).strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown staff action: {action!r}") from None
        new_status = (
            ApprovalStatus.ACCEPTED if action == StaffAction.ACCEPT else ApprovalStatus.REJECTED
        )

        with self._store.locked(tenant_id, booking_id):
            booking = self._store.get_booking(tenant_id, booking_id)
            if booking.services:
                if service_id is not None:
                    targets = [self._owned_service(booking, service_id, actor)]
                else:
                    targets = self._pending_services_of(booking, actor, new_status)
            else:
                self._check_single_slot_owner(booking, actor)
                targets = []
            result = self._revise(booking, targets, new_status, actor, reason)

        self._bus.publish_all(result.events)
        return result

    def revise_service(
        self,
        tenant_id: str,
        booking_id: str,
        service_id: str,
        new_status: Union[ApprovalStatus, str],
        actor: Actor,
        reason: Optional[str] = None,
    ) -> RevisedBooking:
        """Set one service's approval status and recompute the booking atomically.

        Staff may revise only services assigned to them; admins may revise
        any service. For a single-slot booking ``service_id`` names the
        booking's own service.

        Raises:
            NotAuthorized: If the actor is neither staff nor admin.
            NotAssigned: If a staff actor does not own the service.
            InvalidTransition: If the approval or booking edge is not allowed.
            ValidationError: If the service or status is unknown.
        """
        if not (actor.is_staff or actor.is_admin):
            raise NotAuthorized(f"Role {actor.role.value} may not revise services")
        try:
            new_status = ApprovalStatus.normalize(new_status)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        with self._store.locked(tenant_id, booking_id):
            booking = self._store.get_booking(tenant_id, booking_id)
            if booking.services:
                targets = [self._owned_service(booking, service_id, actor)]
            else:
                if booking.service_id is not None and str(service_id) != booking.service_id:
                    raise ValidationError(
                        f"Service {service_id} is not part of booking {booking.booking_code}"
                    )
                if actor.is_staff:
                    self._check_single_slot_owner(booking, actor)
                targets = []
            result = self._revise(booking, targets, new_status, actor, reason)

        self._bus.publish_all(result.events)
        return result

    def _owned_service(self, booking: Booking, service_id: str, actor: Actor) -> BookingService:
        service = booking.find_service(service_id)
        if service is None:
            raise ValidationError(
                f"Service {service_id} is not part of booking {booking.booking_code}"
            )
        if actor.is_staff and service.staff_id != actor.actor_id:
            raise NotAssigned(
                f"Staff {actor.actor_id} is not assigned to {service.display_name} "
                f"in booking {booking.booking_code}"
            )
        return service

    def _pending_services_of(
        self, booking: Booking, actor: Actor, new_status: ApprovalStatus
    ) -> list[BookingService]:
        mine = [s for s in booking.services if s.staff_id == actor.actor_id]
        if not mine:
            raise NotAssigned(
                f"Staff {actor.actor_id} has no services in booking {booking.booking_code}"
            )
        pending = [s for s in mine if s.approval_status == ApprovalStatus.PENDING]
        if not pending:
            raise InvalidTransition(
                booking.status.value,
                new_status.value,
                f"staff {actor.actor_id} has no pending services in booking {booking.booking_code}",
            )
        return pending

    @staticmethod
    def _check_single_slot_owner(booking: Booking, actor: Actor) -> None:
        if booking.staff_id != actor.actor_id:
            raise NotAssigned(
                f"Staff {actor.actor_id} is not assigned to booking {booking.booking_code}"
            )

    def _revise(
        self,
        booking: Booking,
        targets: list[BookingService],
        new_status: ApprovalStatus,
        actor: Actor,
        reason: Optional[str],
    ) -> RevisedBooking:
        """Apply ``new_status`` to ``targets`` (or to an unsplit booking) and commit.

        Must be called with the booking lock held.
        """
        previous = booking.status
        if previous not in self.RESPONDABLE_STATUSES:
            raise InvalidTransition(
                previous.value, new_status.value, "booking is not awaiting staff responses"
            )
        rejecting = new_status == ApprovalStatus.REJECTED
        if rejecting:
            reason = (reason or "").strip() or None
            if reason is None and self._config.lifecycle.require_rejection_reason:
                raise ValidationError("A reason is required to reject a booking")

        now = self._clock()
        # (service id, service name, assigned staff) of each freshly rejected deliverable
        rejected: list[tuple[Optional[str], str, str]] = []

        if booking.services:
            for service in targets:
                assert_service_transition(service.service_id, service.approval_status, new_status)
            for service in targets:
                service.approval_status = new_status
                service.responded_by_staff_id = actor.actor_id
                service.responded_at = now
                service.rejection_reason = reason if rejecting else None
                if rejecting:
                    rejected.append((
                        service.service_id,
                        service.display_name,
                        service.staff_id or actor.actor_id,
                    ))
            computed = aggregate_services(booking.services)
        else:
            assert_service_transition(
                booking.service_id or booking.booking_id,
                self._single_slot_approval(booking),
                new_status,
            )
            if rejecting:
                rejected.append((
                    booking.service_id,
                    booking.service_name or "Service",
                    booking.staff_id or actor.actor_id,
                ))
            computed = BookingStatus.STAFF_REJECTED if rejecting else BookingStatus.CONFIRMED

        canceled_for: Optional[str] = None
        if rejected and self._config.lifecycle.auto_cancel_without_alternative:
            for service_id, name, rejecting_staff in rejected:
                if not self._resolver.has_alternative(
                    booking.tenant_id, service_id, rejecting_staff, booking.branch_id, booking.date
                ):
                    canceled_for = name
                    break
        if canceled_for is not None:
            computed = BookingStatus.CANCELED

        sm = BookingStateMachine(previous)
        booking.status = sm.transition_to(computed)
        if rejecting:
            booking.rejected_by_staff_id = actor.actor_id
            booking.rejection_reason = reason
        booking.updated_at = now

        stored = self._store.put_booking(
            booking.tenant_id, booking, expected_version=booking.version
        )
        logger.info(
            "Booking %s: %s by %s -> %s (was %s)",
            stored.booking_code, new_status.value, actor.actor_id,
            stored.status.value, previous.value,
        )

        events: list[LifecycleEvent] = []
        service_event = E.SERVICE_REJECTED if rejecting else E.SERVICE_ACCEPTED
        if targets:
            for service in targets:
                events.append(self._event(
                    service_event, stored, actor, previous,
                    reason=reason,
                    service_names=[service.display_name],
                    staff_ids=[actor.actor_id],
                    staff_names=[actor.display_name],
                ))
        else:
            events.append(self._event(
                service_event, stored, actor, previous,
                reason=reason,
                staff_ids=[actor.actor_id],
                staff_names=[actor.display_name],
            ))

        if canceled_for is not None:
            logger.warning(
                "Booking %s auto-canceled: no alternative staff for %s",
                stored.booking_code, canceled_for,
            )
            events.append(self._event(
                E.BOOKING_AUTO_CANCELED, stored, actor, previous,
                reason=f"No alternative staff available for {canceled_for}",
            ))
        elif stored.status == BookingStatus.CONFIRMED and previous != BookingStatus.CONFIRMED:
            events.append(self._event(E.BOOKING_CONFIRMED, stored, actor, previous))
        elif rejected and stored.status == BookingStatus.STAFF_REJECTED:
            events.append(self._event(
                E.BOOKING_NEEDS_REASSIGNMENT, stored, actor, previous,
                reason=reason,
                service_names=[name for _, name, _ in rejected],
            ))

        return RevisedBooking(booking=stored, previous_status=previous, events=events)

    @staticmethod
    def _single_slot_approval(booking: Booking) -> ApprovalStatus:
        """Approval status implied by an unsplit booking's status."""
        if booking.status == BookingStatus.STAFF_REJECTED:
            return ApprovalStatus.REJECTED
        if booking.status in (BookingStatus.CONFIRMED, BookingStatus.COMPLETED):
            return ApprovalStatus.ACCEPTED
        if booking.staff_id:
            return ApprovalStatus.PENDING
        return ApprovalStatus.NEEDS_ASSIGNMENT

    # ------------------------------------------------------------------
    # Admin actions
    # ------------------------------------------------------------------

    def reassign_services(
        self,
        tenant_id: str,
        booking_id: str,
        actor: Actor,
        staff_id: Optional[str] = None,
        staff_name: Optional[str] = None,
        services: Optional[Mapping[str, ServiceAssignment]] = None,
    ) -> RevisedBooking:
        """Give rejected or unassigned work to new staff and send it back for approval.

        ``staff_id`` reassigns an unsplit booking; ``services`` maps service
        ids of a multi-service booking to their new staff. Reassigned
        services return to ``pending`` with rejection details cleared, and
        only they are re-checked for slot conflicts.

        Raises:
            NotAuthorized: If the actor is not an owner or admin.
            ValidationError: If the assignment names unknown services or staff.
            InvalidTransition: If an accepted service or a settled booking is targeted.
            SlotConflict: If the new staff is already booked at that time.
        """
        self._require_admin(actor, "reassign bookings")

        with self._store.locked(tenant_id, booking_id):
            booking = self._store.get_booking(tenant_id, booking_id)
            previous = booking.status
            if previous.is_terminal or previous == BookingStatus.CONFIRMED:
                raise InvalidTransition(
                    previous.value,
                    BookingStatus.AWAITING_STAFF_APPROVAL.value,
                    "only bookings still awaiting staff can be reassigned",
                )

            if booking.services:
                if not services:
                    raise ValidationError("No service assignments given")
                changed = []
                for sid, assignment in services.items():
                    service = booking.find_service(sid)
                    if service is None:
                        raise ValidationError(
                            f"Service {sid} is not part of booking {booking.booking_code}"
                        )
                    if service.approval_status == ApprovalStatus.ACCEPTED:
                        raise InvalidTransition(
                            service.approval_status.value,
                            ApprovalStatus.PENDING.value,
                            f"service {sid} is already accepted",
                        )
                    name = self._assignable_staff_name(tenant_id, assignment.staff_id)
                    service.staff_id = assignment.staff_id
                    service.staff_name = assignment.staff_name or name
                    service.approval_status = ApprovalStatus.PENDING
                    service.responded_by_staff_id = None
                    service.responded_at = None
                    service.rejection_reason = None
                    changed.append(service)
                computed = aggregate_services(booking.services)
                still_rejected = any(
                    s.approval_status == ApprovalStatus.REJECTED for s in booking.services
                )
                new_staff = list(dict.fromkeys(s.staff_id for s in changed))
                new_names = [s.staff_name for s in changed if s.staff_name]
                changed_names = [s.display_name for s in changed]
                check_ids: Optional[list[str]] = [s.service_id for s in changed]
            else:
                if not staff_id:
                    raise ValidationError("A staff id is required to reassign a booking")
                name = self._assignable_staff_name(tenant_id, staff_id)
                booking.staff_id = staff_id
                booking.staff_name = staff_name or name
                computed = BookingStatus.AWAITING_STAFF_APPROVAL
                still_rejected = False
                new_staff = [staff_id]
                new_names = [booking.staff_name] if booking.staff_name else []
                changed_names = booking.service_names()
                check_ids = None

            sm = BookingStateMachine(previous)
            booking.status = sm.transition_to(computed)
            if not still_rejected:
                booking.rejected_by_staff_id = None
                booking.rejection_reason = None
            booking.updated_at = self._clock()

            with self._store.locked(tenant_id, self._slot_key(booking)):
                self._validator.check(booking, service_ids=check_ids)
                stored = self._store.put_booking(
                    tenant_id, booking, expected_version=booking.version
                )

        logger.info(
            "Booking %s reassigned to %s by %s -> %s",
            stored.booking_code, ", ".join(new_staff), actor.actor_id, stored.status.value,
        )
        event = self._event(
            E.BOOKING_REASSIGNED, stored, actor, previous,
            service_names=changed_names,
            staff_ids=new_staff,
            staff_names=new_names,
        )
        self._bus.publish(event)
        return RevisedBooking(booking=stored, previous_status=previous, events=[event])

    def _assignable_staff_name(self, tenant_id: str, staff_id: str) -> str:
        record = self._directory.get_staff(tenant_id, staff_id)
        if record is None or not record.is_active:
            raise ValidationError(f"Staff {staff_id} is not an active member of this salon")
        return record.name

    def change_status(
        self,
        tenant_id: str,
        booking_id: str,
        new_status: Union[BookingStatus, str],
        actor: Actor,
        reason: Optional[str] = None,
    ) -> RevisedBooking:
        """Manually move a booking along one edge of the transition table.

        The status of a multi-service booking follows its services, so only
        Canceled and Completed may be set on one by hand. A StaffRejected
        booking only leaves by cancellation; reopening it goes through
        reassign_services. Non-terminal moves re-check the slot.

        Raises:
            NotAuthorized: If the actor is not an owner or admin.
            ValidationError: If ``new_status`` names no known status.
            InvalidTransition: If the edge is not allowed; nothing is written.
            SlotConflict: If a reopened slot is now taken by another booking.
        """
        self._require_admin(actor, "change booking status")
        try:
            new_status = BookingStatus.normalize(new_status)
        except ValueError as e:
            raise ValidationError(str(e)) from None

        with self._store.locked(tenant_id, booking_id):
            booking = self._store.get_booking(tenant_id, booking_id)
            previous = booking.status
            if new_status == previous:
                raise InvalidTransition(
                    previous.value, new_status.value, "booking is already in this status"
                )
            if booking.services and not new_status.is_terminal:
                raise InvalidTransition(
                    previous.value,
                    new_status.value,
                    "the status of a multi-service booking follows its service approvals",
                )
            if previous == BookingStatus.STAFF_REJECTED and not new_status.is_terminal:
                raise InvalidTransition(
                    previous.value,
                    new_status.value,
                    "a rejected booking reopens only through reassignment",
                )
            if new_status == BookingStatus.AWAITING_STAFF_APPROVAL and not booking.staff_id:
                raise InvalidTransition(
                    previous.value, new_status.value, "assign a staff member before routing"
                )

            sm = BookingStateMachine(previous)
            booking.status = sm.transition_to(new_status)
            now = self._clock()
            if new_status == BookingStatus.COMPLETED:
                booking.completed_at = now
                booking.completed_by_staff_id = actor.actor_id
                for service in booking.services:
                    if service.completion_status != CompletionStatus.COMPLETED:
                        service.completion_status = CompletionStatus.COMPLETED
                        service.completed_at = now
                        service.completed_by_staff_id = actor.actor_id
            booking.updated_at = now
            if new_status.is_terminal:
                stored = self._store.put_booking(
                    tenant_id, booking, expected_version=booking.version
                )
            else:
                with self._store.locked(tenant_id, self._slot_key(booking)):
                    self._validator.check(booking)
                    stored = self._store.put_booking(
                        tenant_id, booking, expected_version=booking.version
                    )

        logger.info(
            "Booking %s status changed %s -> %s by %s",
            stored.booking_code, previous.value, stored.status.value, actor.actor_id,
        )
        event = self._event(E.BOOKING_STATUS_CHANGED, stored, actor, previous, reason=reason)
        self._bus.publish(event)
        return RevisedBooking(booking=stored, previous_status=previous, events=[event])

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def complete_service(
        self,
        tenant_id: str,
        booking_id: str,
        actor: Actor,
        service_id: Optional[str] = None,
    ) -> RevisedBooking:
        """Mark delivered work done; the booking completes with its last service.

        Staff complete their own services (all of them when ``service_id`` is
        omitted); admins may complete any.

        Raises:
            NotAuthorized: If the actor is neither staff nor admin.
            NotAssigned: If a staff actor does not own the service.
            InvalidTransition: If the booking is not confirmed or the service is done.
        """
        if not (actor.is_staff or actor.is_admin):
            raise NotAuthorized(f"Role {actor.role.value} may not complete services")

        with self._store.locked(tenant_id, booking_id):
            booking = self._store.get_booking(tenant_id, booking_id)
            previous = booking.status
            if previous != BookingStatus.CONFIRMED:
                raise InvalidTransition(
                    previous.value,
                    BookingStatus.COMPLETED.value,
                    "only confirmed bookings can be completed",
                )
            now = self._clock()

            if booking.services:
                if service_id is not None:
                    targets = [self._owned_service(booking, service_id, actor)]
                elif actor.is_staff:
                    targets = [s for s in booking.services if s.staff_id == actor.actor_id]
                    if not targets:
                        raise NotAssigned(
                            f"Staff {actor.actor_id} has no services in booking "
                            f"{booking.booking_code}"
                        )
                else:
                    targets = list(booking.services)
                targets = [
                    s for s in targets if s.completion_status != CompletionStatus.COMPLETED
                ]
                if not targets:
                    raise InvalidTransition(
                        CompletionStatus.COMPLETED.value,
                        CompletionStatus.COMPLETED.value,
                        "nothing left to complete",
                    )
                for service in targets:
                    service.completion_status = CompletionStatus.COMPLETED
                    service.completed_at = now
                    service.completed_by_staff_id = actor.actor_id
                done = all(
                    s.completion_status == CompletionStatus.COMPLETED for s in booking.services
                )
                completed_names = [s.display_name for s in targets]
            else:
                if actor.is_staff:
                    self._check_single_slot_owner(booking, actor)
                done = True
                completed_names = booking.service_names()

            if done:
                sm = BookingStateMachine(previous)
                booking.status = sm.transition_to(BookingStatus.COMPLETED)
                booking.completed_at = now
                booking.completed_by_staff_id = actor.actor_id
            booking.updated_at = now
            stored = self._store.put_booking(tenant_id, booking, expected_version=booking.version)

        logger.info(
            "Booking %s: %s completed by %s%s",
            stored.booking_code, ", ".join(completed_names), actor.actor_id,
            " (booking completed)" if done else "",
        )
        events = [self._event(
            E.SERVICE_COMPLETED, stored, actor, previous,
            service_names=completed_names,
            staff_ids=[actor.actor_id],
            staff_names=[actor.display_name],
        )]
        if done:
            events.append(self._event(E.BOOKING_COMPLETED, stored, actor, previous))
        self._bus.publish_all(events)
        return RevisedBooking(booking=stored, previous_status=previous, events=events)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require_admin(actor: Actor, what: str) -> None:
        if not actor.is_admin:
            raise NotAuthorized(f"Role {actor.role.value} may not {what}")

    @staticmethod
    def _slot_key(booking: Booking) -> str:
        return f"slots:{booking.date.isoformat()}"

    @staticmethod
    def _event(
        event_type: LifecycleEventType,
        booking: Booking,
        actor: Optional[Actor],
        previous: Optional[BookingStatus],
        reason: Optional[str] = None,
        service_names: Optional[list[str]] = None,
        staff_ids: Optional[list[str]] = None,
        staff_names: Optional[list[str]] = None,
    ) -> LifecycleEvent:
        return LifecycleEvent(
            event_type=event_type,
            tenant_id=booking.tenant_id,
            booking_id=booking.booking_id,
            booking_code=booking.booking_code,
            client=booking.client,
            booking_date=booking.date,
            booking_time=booking.time,
            branch_name=booking.branch_name,
            service_names=service_names if service_names is not None else booking.service_names(),
            staff_ids=staff_ids if staff_ids is not None else booking.assigned_staff_ids(),
            staff_names=staff_names if staff_names is not None else booking.assigned_staff_names(),
            actor=actor,
            previous_status=previous,
            new_status=booking.status,
            reason=reason,
        )
