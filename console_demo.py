"""
Offline console demo: replays booking lifecycle scenarios in the terminal.

Everything runs against the in-memory store and staff directory, with the
notification and audit subscribers attached to the event bus. No database,
no push delivery, no network calls.

Usage:
    python console_demo.py
    python console_demo.py --scenario autocancel
    python console_demo.py --scenario partial
"""

import argparse
from datetime import date
from typing import Callable, Optional

from salon_booking.collaborators.audit import AuditRecorder
from salon_booking.collaborators.notifications import NotificationService
from salon_booking.collaborators.staff_directory import InMemoryStaffDirectory
from salon_booking.collaborators.storage import InMemoryBookingStore
from salon_booking.config import settings
from salon_booking.errors import BookingError, error_payload
from salon_booking.events import EventBus
from salon_booking.lifecycle import BookingLifecycleEngine, ServiceAssignment
from salon_booking.logging_context import set_request_id
from salon_booking.schemas.booking_schema import Booking
from salon_booking.schemas.event_schema import Actor, ActorRole, LifecycleEvent
from salon_booking.schemas.staff_schema import StaffRecord

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

TENANT = "demo-salon"
DAY = date(2024, 3, 10)
BRANCH = "branch-city"


class DemoSalon:
    """One salon with three stylists, wired to a fresh engine."""

    def __init__(self) -> None:
        self.store = InMemoryBookingStore()
        self.directory = InMemoryStaffDirectory()
        self.bus = EventBus()
        self.notifications = NotificationService()
        self.audit = AuditRecorder()
        self.notifications.attach(self.bus)
        self.audit.attach(self.bus)
        self.bus.subscribe(self._print_event, name="console")
        self.engine = BookingLifecycleEngine(self.store, self.directory, self.bus)

        self.owner = Actor(actor_id="owner-1", name="Olivia (owner)", role=ActorRole.OWNER)
        self.s1 = Actor(actor_id="S1", name="Sam", role=ActorRole.STAFF)
        self.s2 = Actor(actor_id="S2", name="Priya", role=ActorRole.STAFF)
        for actor in (self.s1, self.s2):
            self.directory.add_staff(TENANT, StaffRecord(
                staff_id=actor.actor_id, name=actor.name, branch_id=BRANCH,
            ))
        self.directory.add_staff(TENANT, StaffRecord(
            staff_id="S3", name="Jordan", branch_id=BRANCH,
        ))

    def _print_event(self, event: LifecycleEvent) -> None:
        who = event.actor.display_name if event.actor else "system"
        print(f"{YELLOW}  event {event.event_type.value}{RESET} {DIM}by {who}, "
              f"status -> {event.new_status.value}{RESET}")

    def step(self, text: str) -> None:
        print(f"\n{BLUE}{BOLD}>{RESET} {BLUE}{text}{RESET}")

    def show(self, booking: Booking) -> None:
        print(f"{GREEN}  {booking.booking_code}: {booking.status.value}{RESET}")
        for service in booking.services:
            print(f"{DIM}    - {service.display_name} [{service.staff_id or 'unassigned'}] "
                  f"{service.approval_status.value}{RESET}")

    def attempt(self, label: str, action: Callable[[], Booking]) -> Optional[Booking]:
        """Run an action, printing the user-facing error payload on failure."""
        self.step(label)
        try:
            booking = action()
        except BookingError as e:
            payload = error_payload(e, debug=settings.debug_errors)
            print(f"{RED}  rejected: {payload['error']}: {payload['message']}{RESET}")
            return None
        self.show(booking)
        return booking

    def two_service_booking(self) -> Booking:
        return self.engine.create_booking(TENANT, {
            "client": {"name": "Alex Morgan", "phone": "0412 345 678"},
            "date": DAY.isoformat(),
            "time": "10:00",
            "duration": 90,
            "branch_id": BRANCH,
            "services": [
                {"service_id": "cut", "name": "Haircut", "staff_id": "S1", "duration": 45},
                {"service_id": "colour", "name": "Colour", "staff_id": "S2",
                 "time": "10:45", "duration": 45},
            ],
        }, actor=self.owner)

    def single(self, time: str, duration: int, staff_id: str = "S1") -> Booking:
        return self.engine.create_booking(TENANT, {
            "client": {"name": "Casey Lee"},
            "date": DAY.isoformat(),
            "time": time,
            "duration": duration,
            "service_id": "cut",
            "service_name": "Haircut",
            "staff_id": staff_id,
            "branch_id": BRANCH,
        }, actor=self.owner)

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    def scenario_conflict(self) -> None:
        self.attempt("Book S1 at 10:00 for 60 minutes", lambda: self.single("10:00", 60))
        self.attempt("Book S1 at 10:30 for 30 minutes", lambda: self.single("10:30", 30))

    def scenario_boundary(self) -> None:
        self.attempt("Book S1 at 10:00 for 60 minutes", lambda: self.single("10:00", 60))
        self.attempt("Book S1 at 11:00 for 30 minutes", lambda: self.single("11:00", 30))

    def scenario_partial(self) -> None:
        booking = self.attempt("Owner books haircut (S1) and colour (S2)", self.two_service_booking)
        if booking is None:
            return
        bid = booking.booking_id
        self.attempt("S1 accepts the haircut",
                     lambda: self.engine.respond(TENANT, bid, self.s1, "accept").booking)
        self.attempt("S2 rejects the colour (S3 could take it)",
                     lambda: self.engine.respond(TENANT, bid, self.s2, "reject",
                                                 reason="Fully booked").booking)
        self.attempt("Owner reassigns the colour to S3",
                     lambda: self.engine.reassign_services(
                         TENANT, bid, self.owner,
                         services={"colour": ServiceAssignment(staff_id="S3")}).booking)

    def scenario_autocancel(self) -> None:
        self.directory.set_service_allow_list(TENANT, "colour", ["S2"])
        booking = self.attempt("Owner books haircut (S1) and colour (S2, the only colourist)",
                               self.two_service_booking)
        if booking is None:
            return
        bid = booking.booking_id
        self.attempt("S1 accepts the haircut",
                     lambda: self.engine.respond(TENANT, bid, self.s1, "accept").booking)
        self.attempt("S2 rejects the colour",
                     lambda: self.engine.respond(TENANT, bid, self.s2, "reject",
                                                 reason="On leave").booking)

    def scenario_staff_self(self) -> None:
        self.attempt("S1 books a walk-in for themselves", lambda: self.engine.create_booking(TENANT, {
            "client": {"name": "Walk-in"},
            "date": DAY.isoformat(),
            "time": "14:00",
            "duration": 30,
            "service_id": "cut",
            "service_name": "Haircut",
        }, actor=self.s1))

    def summary(self) -> None:
        print(f"\n{DIM}  notifications: {len(self.notifications.outbox)}, "
              f"audit entries: {len(self.audit.entries)}{RESET}")
        for note in self.notifications.outbox:
            print(f"{DIM}    [{note.recipient_type}:{note.recipient_id}] {note.title}{RESET}")


SCENARIOS: dict[str, Callable[[DemoSalon], None]] = {
    "conflict": DemoSalon.scenario_conflict,
    "boundary": DemoSalon.scenario_boundary,
    "partial": DemoSalon.scenario_partial,
    "autocancel": DemoSalon.scenario_autocancel,
    "staff-self": DemoSalon.scenario_staff_self,
}


def run_scenario(name: str) -> None:
    salon = DemoSalon()
    set_request_id(f"DEMO-{name}")
    print()
    print(f"{BOLD}{'=' * 60}{RESET}")
    print(f"{BOLD}  SALON BOOKING LIFECYCLE - Scenario: {name}{RESET}")
    print(f"{BOLD}  Salon: {settings.salon.name}{RESET}")
    print(f"{BOLD}{'=' * 60}{RESET}")
    SCENARIOS[name](salon)
    salon.summary()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline booking lifecycle demo")
    parser.add_argument(
        "--scenario",
        choices=[*SCENARIOS, "all"],
        default="all",
        help="Replay one scenario, or all of them",
    )
    args = parser.parse_args()

    names = list(SCENARIOS) if args.scenario == "all" else [args.scenario]
    for name in names:
        run_scenario(name)


if __name__ == "__main__":
    main()
