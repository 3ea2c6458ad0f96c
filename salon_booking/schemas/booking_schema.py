"""Booking, per-service assignment, and booking request data models.

Loosely spelled status strings are normalized exactly once, here, into
closed enumerations. Everything downstream compares enum members only.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from salon_booking.utils import normalize_key, normalize_phone, parse_hhmm, format_minutes

# Staff placeholders meaning "any available staff member"
_UNASSIGNED_STAFF_VALUES = {"", "null", "none", "any", "anyavailable", "anystaff"}


class BookingStatus(str, Enum):
    """Booking-level lifecycle status."""
    PENDING = "Pending"
    AWAITING_STAFF_APPROVAL = "AwaitingStaffApproval"
    PARTIALLY_APPROVED = "PartiallyApproved"
    STAFF_REJECTED = "StaffRejected"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELED = "Canceled"

    @classmethod
    def normalize(cls, value: "str | BookingStatus") -> "BookingStatus":
        """Map any accepted spelling onto a member.

        Raises:
            ValueError: If the value names no known status.
        """
        if isinstance(value, cls):
            return value
        key = normalize_key(value)
        if key == "cancelled":
            key = "canceled"
        for member in cls:
            if normalize_key(member.value) == key:
                return member
        raise ValueError(f"Unknown booking status: {value!r}")

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.COMPLETED, BookingStatus.CANCELED)

    @property
    def blocks_slots(self) -> bool:
        """Whether a booking in this status occupies its time slot."""
        return self not in (
            BookingStatus.CANCELED,
            BookingStatus.COMPLETED,
            BookingStatus.STAFF_REJECTED,
        )


class ApprovalStatus(str, Enum):
    """Per-service staff approval status."""
    NEEDS_ASSIGNMENT = "needs_assignment"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @classmethod
    def normalize(cls, value: "str | ApprovalStatus") -> "ApprovalStatus":
        if isinstance(value, cls):
            return value
        key = normalize_key(value)
        for member in cls:
            if normalize_key(member.value) == key:
                return member
        raise ValueError(f"Unknown approval status: {value!r}")


class CompletionStatus(str, Enum):
    """Per-service completion status."""
    PENDING = "pending"
    COMPLETED = "completed"


class StaffAction(str, Enum):
    """A staff member's response to an assignment."""
    ACCEPT = "accept"
    REJECT = "reject"


def _clean_staff_id(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if normalize_key(value) in _UNASSIGNED_STAFF_VALUES:
        return None
    return value


def _clean_time(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return format_minutes(parse_hhmm(str(value)))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ClientInfo(BaseModel):
    """Customer identity carried on the booking."""
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    customer_uid: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("client name must not be blank")
        return value

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return normalize_phone(value) or None


class BookingService(BaseModel):
    """One deliverable within a multi-service booking."""
    service_id: str
    name: Optional[str] = None
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[int] = Field(default=None, gt=0)
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    responded_by_staff_id: Optional[str] = None
    responded_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    completion_status: CompletionStatus = CompletionStatus.PENDING
    completed_at: Optional[datetime] = None
    completed_by_staff_id: Optional[str] = None

    @field_validator("service_id", mode="before")
    @classmethod
    def _coerce_service_id(cls, value: object) -> str:
        return str(value)

    @field_validator("staff_id", mode="before")
    @classmethod
    def _normalize_staff(cls, value: Optional[str]) -> Optional[str]:
        return _clean_staff_id(value)

    @field_validator("time", mode="before")
    @classmethod
    def _normalize_time(cls, value: Optional[str]) -> Optional[str]:
        return _clean_time(value)

    @field_validator("approval_status", mode="before")
    @classmethod
    def _normalize_approval(cls, value: object) -> ApprovalStatus:
        return ApprovalStatus.normalize(value)  # type: ignore[arg-type]

    @property
    def display_name(self) -> str:
        return self.name or "Service"


class Booking(BaseModel):
    """One customer appointment, owned by exactly one tenant."""
    tenant_id: str
    booking_id: str
    booking_code: str
    date: date
    time: str
    duration: int = Field(gt=0)
    starts_at_utc: Optional[datetime] = None
    client: ClientInfo
    service_id: Optional[str] = None
    service_name: Optional[str] = None
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None
    services: list[BookingService] = Field(default_factory=list)
    status: BookingStatus
    created_by: Optional[str] = None
    rejected_by_staff_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    completed_by_staff_id: Optional[str] = None
    version: int = 0
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> BookingStatus:
        return BookingStatus.normalize(value)  # type: ignore[arg-type]

    @field_validator("staff_id", mode="before")
    @classmethod
    def _normalize_staff(cls, value: Optional[str]) -> Optional[str]:
        return _clean_staff_id(value)

    @field_validator("time", mode="before")
    @classmethod
    def _normalize_time(cls, value: str) -> str:
        return format_minutes(parse_hhmm(str(value)))

    @property
    def is_multi_service(self) -> bool:
        return bool(self.services)

    def find_service(self, service_id: str) -> Optional[BookingService]:
        for service in self.services:
            if service.service_id == str(service_id):
                return service
        return None

    def service_names(self) -> list[str]:
        if self.services:
            return [s.display_name for s in self.services]
        return [self.service_name or "Service"]

    def assigned_staff_ids(self) -> list[str]:
        """Distinct concrete staff ids, in service order."""
        ids = [s.staff_id for s in self.services] if self.services else [self.staff_id]
        seen: list[str] = []
        for staff_id in ids:
            if staff_id and staff_id not in seen:
                seen.append(staff_id)
        return seen

    def assigned_staff_names(self) -> list[str]:
        if self.services:
            names = [s.staff_name for s in self.services if s.staff_name]
        else:
            names = [self.staff_name] if self.staff_name else []
        return list(dict.fromkeys(names))


class ServiceRequest(BaseModel):
    """A service line on a new booking submission."""
    service_id: str
    name: Optional[str] = None
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[int] = Field(default=None, gt=0)

    @field_validator("service_id", mode="before")
    @classmethod
    def _coerce_service_id(cls, value: object) -> str:
        return str(value)

    @field_validator("staff_id", mode="before")
    @classmethod
    def _normalize_staff(cls, value: Optional[str]) -> Optional[str]:
        return _clean_staff_id(value)

    @field_validator("time", mode="before")
    @classmethod
    def _normalize_time(cls, value: Optional[str]) -> Optional[str]:
        return _clean_time(value)


class BookingRequest(BaseModel):
    """Validated booking submission."""
    client: ClientInfo
    date: date
    time: str
    duration: int = Field(gt=0)
    starts_at_utc: Optional[datetime] = None
    service_id: Optional[str] = None
    service_name: Optional[str] = None
    staff_id: Optional[str] = None
    staff_name: Optional[str] = None
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None
    services: list[ServiceRequest] = Field(default_factory=list)

    @field_validator("staff_id", mode="before")
    @classmethod
    def _normalize_staff(cls, value: Optional[str]) -> Optional[str]:
        return _clean_staff_id(value)

    @field_validator("service_id", mode="before")
    @classmethod
    def _coerce_service_id(cls, value: object) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("time", mode="before")
    @classmethod
    def _normalize_time(cls, value: str) -> str:
        return format_minutes(parse_hhmm(str(value)))

    @model_validator(mode="after")
    def _require_service(self) -> "BookingRequest":
        if not self.services and not self.service_id:
            raise ValueError("a booking needs a service_id or at least one service")
        ids = [s.service_id for s in self.services]
        if len(ids) != len(set(ids)):
            raise ValueError("service ids must be unique within a booking")
        return self
