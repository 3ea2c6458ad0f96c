"""Staff directory records and weekly branch schedules."""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from salon_booking.utils import day_name, normalize_key

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


class StaffStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"
    INACTIVE = "Inactive"

    @classmethod
    def normalize(cls, value: "str | StaffStatus") -> "StaffStatus":
        if isinstance(value, cls):
            return value
        key = normalize_key(value)
        for member in cls:
            if normalize_key(member.value) == key:
                return member
        raise ValueError(f"Unknown staff status: {value!r}")


class BranchAssignment(BaseModel):
    """The branch a staff member works at on a given weekday."""
    branch_id: str
    branch_name: Optional[str] = None


class StaffRecord(BaseModel):
    """A staff member as returned by the staff directory."""
    staff_id: str
    name: str
    status: StaffStatus = StaffStatus.ACTIVE
    branch_id: Optional[str] = None
    branch_name: Optional[str] = None
    weekly_schedule: Optional[dict[str, Optional[BranchAssignment]]] = Field(default=None)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: object) -> StaffStatus:
        return StaffStatus.normalize(value)  # type: ignore[arg-type]

    @field_validator("weekly_schedule")
    @classmethod
    def _normalize_days(
        cls, value: Optional[dict[str, Optional[BranchAssignment]]]
    ) -> Optional[dict[str, Optional[BranchAssignment]]]:
        if value is None:
            return None
        normalized: dict[str, Optional[BranchAssignment]] = {}
        for key, assignment in value.items():
            matches = [d for d in WEEKDAYS if d.lower() == key.strip().lower()]
            if not matches:
                raise ValueError(f"Unknown weekday in schedule: {key!r}")
            normalized[matches[0]] = assignment
        return normalized

    @property
    def is_active(self) -> bool:
        return self.status == StaffStatus.ACTIVE

    def works_at(self, branch_id: str, on_date: date) -> bool:
        """Whether this staff member is scheduled at ``branch_id`` on ``on_date``.

        The weekly schedule wins when present; otherwise the single primary
        branch assignment applies every day.
        """
        if self.weekly_schedule:
            assignment = self.weekly_schedule.get(day_name(on_date))
            return assignment is not None and assignment.branch_id == branch_id
        return self.branch_id == branch_id
