"""Actors, lifecycle events, and audit entries."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from salon_booking.schemas.booking_schema import BookingStatus, ClientInfo


class ActorRole(str, Enum):
    OWNER = "salon_owner"
    ADMIN = "salon_admin"
    BRANCH_ADMIN = "salon_branch_admin"
    STAFF = "salon_staff"
    CUSTOMER = "customer"


class Actor(BaseModel):
    """Whoever triggered a lifecycle operation."""
    actor_id: str
    name: str = ""
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role in (ActorRole.OWNER, ActorRole.ADMIN, ActorRole.BRANCH_ADMIN)

    @property
    def is_staff(self) -> bool:
        return self.role == ActorRole.STAFF

    @property
    def display_name(self) -> str:
        return self.name or self.actor_id


class LifecycleEventType(str, Enum):
    BOOKING_CREATED = "BookingCreated"
    SERVICE_ACCEPTED = "ServiceAccepted"
    SERVICE_REJECTED = "ServiceRejected"
    BOOKING_CONFIRMED = "BookingConfirmed"
    BOOKING_AUTO_CANCELED = "BookingAutoCanceled"
    BOOKING_NEEDS_REASSIGNMENT = "BookingNeedsReassignment"
    BOOKING_REASSIGNED = "BookingReassigned"
    BOOKING_STATUS_CHANGED = "BookingStatusChanged"
    SERVICE_COMPLETED = "ServiceCompleted"
    BOOKING_COMPLETED = "BookingCompleted"


class LifecycleEvent(BaseModel):
    """A committed status change, with enough context to render a message."""
    event_type: LifecycleEventType
    tenant_id: str
    booking_id: str
    booking_code: str
    client: ClientInfo
    booking_date: date
    booking_time: str
    branch_name: Optional[str] = None
    service_names: list[str] = Field(default_factory=list)
    staff_ids: list[str] = Field(default_factory=list)
    staff_names: list[str] = Field(default_factory=list)
    actor: Optional[Actor] = None
    previous_status: Optional[BookingStatus] = None
    new_status: BookingStatus
    reason: Optional[str] = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AuditEntry(BaseModel):
    """One compliance log row per lifecycle event."""
    tenant_id: str
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    actor_role: Optional[ActorRole] = None
    action: str
    entity: str
    before_status: Optional[BookingStatus] = None
    after_status: BookingStatus
    details: Optional[str] = None
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
