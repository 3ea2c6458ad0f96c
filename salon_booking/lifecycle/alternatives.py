"""
Alternative staff resolver.

Answers "could this rejected service ever be reassigned?" with an existence
check over the staff directory. No free-slot search is made. Any lookup
failure counts as "no alternative", which sends the booking to cancellation
rather than leaving it stuck.
"""

import logging
from datetime import date
from typing import Optional

from salon_booking.collaborators.staff_directory import InMemoryStaffDirectory
from salon_booking.errors import DependencyUnavailable
from salon_booking.schemas.staff_schema import StaffRecord

logger = logging.getLogger(__name__)


class AlternativeStaffResolver:
    """Finds other qualified, scheduled staff for a rejected service."""

    def __init__(self, directory: InMemoryStaffDirectory) -> None:
        self._directory = directory

    def candidates(
        self,
        tenant_id: str,
        service_id: Optional[str],
        rejecting_staff_id: Optional[str],
        branch_id: Optional[str],
        on_date: date,
    ) -> list[StaffRecord]:
        """Active staff who could take the service over.

        Raises:
            DependencyUnavailable: If the staff directory cannot be read.
        """
        staff = [
            s for s in self._directory.list_active_staff(tenant_id)
            if s.staff_id != rejecting_staff_id
        ]
        if service_id:
            allowed = self._directory.service_allow_list(tenant_id, service_id)
            if allowed is not None:
                staff = [s for s in staff if s.staff_id in allowed]
        if branch_id:
            staff = [s for s in staff if s.works_at(branch_id, on_date)]
        return staff

    def has_alternative(
        self,
        tenant_id: str,
        service_id: Optional[str],
        rejecting_staff_id: Optional[str],
        branch_id: Optional[str],
        on_date: date,
    ) -> bool:
        try:
            found = self.candidates(tenant_id, service_id, rejecting_staff_id, branch_id, on_date)
        except (DependencyUnavailable, OSError):
            logger.warning(
                "Staff lookup failed for service %s of tenant %s; assuming no alternative",
                service_id, tenant_id, exc_info=True,
            )
            return False
        logger.debug(
            "%d alternative staff for service %s (rejected by %s)",
            len(found), service_id, rejecting_staff_id,
        )
        return bool(found)
