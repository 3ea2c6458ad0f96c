"""
Mock staff directory.

In production this reads the tenant's staff collection and the per-service
staff allow-lists from the document store.
"""

import logging
from typing import Optional

from salon_booking.errors import DependencyUnavailable
from salon_booking.schemas.staff_schema import StaffRecord

logger = logging.getLogger(__name__)


class InMemoryStaffDirectory:
    """Staff records and service qualification lists per tenant."""

    def __init__(self) -> None:
        self._staff: dict[str, dict[str, StaffRecord]] = {}
        self._allow_lists: dict[tuple[str, str], list[str]] = {}
        self.fail_lookups = False

    def add_staff(self, tenant_id: str, record: StaffRecord) -> StaffRecord:
        self._staff.setdefault(tenant_id, {})[record.staff_id] = record
        return record

    def set_service_allow_list(
        self, tenant_id: str, service_id: str, staff_ids: list[str]
    ) -> None:
        """Restrict a service to the given staff ids."""
        self._allow_lists[(tenant_id, str(service_id))] = list(staff_ids)

    def get_staff(self, tenant_id: str, staff_id: str) -> Optional[StaffRecord]:
        self._check_available()
        return self._staff.get(tenant_id, {}).get(staff_id)

    def list_active_staff(self, tenant_id: str) -> list[StaffRecord]:
        """Staff of the tenant whose status is active.

        Raises:
            DependencyUnavailable: If the directory is unreachable.
        """
        self._check_available()
        return [s for s in self._staff.get(tenant_id, {}).values() if s.is_active]

    def service_allow_list(self, tenant_id: str, service_id: str) -> Optional[list[str]]:
        """Staff ids qualified for a service, or None when the service is open to all.

        Raises:
            DependencyUnavailable: If the directory is unreachable.
        """
        self._check_available()
        allowed = self._allow_lists.get((tenant_id, str(service_id)))
        return list(allowed) if allowed is not None else None

    def _check_available(self) -> None:
        if self.fail_lookups:
            raise DependencyUnavailable("staff directory lookup failed")

    def reset(self) -> None:
        self._staff.clear()
        self._allow_lists.clear()
        self.fail_lookups = False
