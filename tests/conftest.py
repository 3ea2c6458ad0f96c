"""Shared test fixtures and helpers."""

from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Optional

import pytest

from salon_booking.collaborators.audit import AuditRecorder
from salon_booking.collaborators.notifications import NotificationService
from salon_booking.collaborators.staff_directory import InMemoryStaffDirectory
from salon_booking.collaborators.storage import InMemoryBookingStore
from salon_booking.config import AppConfig
from salon_booking.events import EventBus
from salon_booking.lifecycle.engine import BookingLifecycleEngine
from salon_booking.schemas.booking_schema import (
    ApprovalStatus,
    Booking,
    BookingService,
    BookingStatus,
    ClientInfo,
)
from salon_booking.schemas.event_schema import Actor, ActorRole
from salon_booking.schemas.staff_schema import StaffRecord

TENANT = "salon-1"
DAY = date(2024, 3, 10)  # a Sunday
BRANCH = "branch-1"
FIXED_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def directory():
    d = InMemoryStaffDirectory()
    for staff_id, name in [("S1", "Sam"), ("S2", "Priya"), ("S3", "Jordan")]:
        d.add_staff(TENANT, StaffRecord(staff_id=staff_id, name=name, branch_id=BRANCH))
    return d


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def events(bus):
    """Every event published on the bus, in order."""
    received = []
    bus.subscribe(received.append, name="recorder")
    return received


@pytest.fixture
def notifications(bus):
    service = NotificationService()
    service.attach(bus)
    return service


@pytest.fixture
def audit(bus):
    recorder = AuditRecorder()
    recorder.attach(bus)
    return recorder


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def engine(store, directory, bus, config):
    return BookingLifecycleEngine(store, directory, bus, config=config, clock=lambda: FIXED_NOW)


def make_config(config: AppConfig, **lifecycle_overrides) -> AppConfig:
    """Copy a config with some lifecycle switches changed."""
    return replace(config, lifecycle=replace(config.lifecycle, **lifecycle_overrides))


@pytest.fixture
def owner():
    return Actor(actor_id="owner-1", name="Olivia", role=ActorRole.OWNER)


@pytest.fixture
def customer():
    return Actor(actor_id="cust-1", name="Alex", role=ActorRole.CUSTOMER)


def staff(staff_id: str, name: str = "") -> Actor:
    return Actor(actor_id=staff_id, name=name, role=ActorRole.STAFF)


def single_request(
    time: str = "10:00",
    duration: int = 60,
    staff_id: Optional[str] = "S1",
    **overrides,
) -> dict:
    """Raw request for a one-service booking."""
    request = {
        "client": {"name": "Casey Lee", "email": "casey@example.com"},
        "date": DAY.isoformat(),
        "time": time,
        "duration": duration,
        "service_id": "cut",
        "service_name": "Haircut",
        "staff_id": staff_id,
        "branch_id": BRANCH,
        "branch_name": "City",
    }
    request.update(overrides)
    return request


def two_service_request(
    staff_a: Optional[str] = "S1",
    staff_b: Optional[str] = "S2",
    **overrides,
) -> dict:
    """Raw request for a haircut at 10:00 followed by a colour at 10:45."""
    request = {
        "client": {"name": "Alex Morgan", "customer_uid": "cust-1"},
        "date": DAY.isoformat(),
        "time": "10:00",
        "duration": 90,
        "branch_id": BRANCH,
        "services": [
            {"service_id": "cut", "name": "Haircut", "staff_id": staff_a, "duration": 45},
            {"service_id": "colour", "name": "Colour", "staff_id": staff_b,
             "time": "10:45", "duration": 45},
        ],
    }
    request.update(overrides)
    return request


def make_booking(
    booking_id: str = "b-1",
    status: BookingStatus = BookingStatus.CONFIRMED,
    time: str = "10:00",
    duration: int = 60,
    staff_id: Optional[str] = "S1",
    services: Optional[list[BookingService]] = None,
    on_date: date = DAY,
) -> Booking:
    """Build a booking record directly, bypassing the engine."""
    return Booking(
        tenant_id=TENANT,
        booking_id=booking_id,
        booking_code=f"BK-2024-{booking_id}",
        date=on_date,
        time=time,
        duration=duration,
        client=ClientInfo(name="Existing Client"),
        service_id="cut",
        service_name="Haircut",
        staff_id=staff_id,
        services=services or [],
        status=status,
        branch_id=BRANCH,
    )


def make_service(
    service_id: str,
    staff_id: Optional[str] = "S1",
    approval: ApprovalStatus = ApprovalStatus.PENDING,
    time: Optional[str] = None,
    duration: Optional[int] = None,
) -> BookingService:
    return BookingService(
        service_id=service_id,
        name=service_id.title(),
        staff_id=staff_id,
        approval_status=approval,
        time=time,
        duration=duration,
    )
