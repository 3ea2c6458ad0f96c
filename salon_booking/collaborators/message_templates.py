"""Notification copy for customers, staff, and salon admins.

Customer copy never names internal workflow statuses: a booking waiting on
staff is "being processed" and a rejected one is "being rescheduled".
"""

from datetime import date
from typing import Optional

from salon_booking.schemas.booking_schema import BookingStatus


def _service_list(service_names: list[str]) -> str:
    names = [n for n in service_names if n]
    if not names:
        return "your service"
    if len(names) == 1:
        return names[0]
    return ", ".join(names[:-1]) + " and " + names[-1]


def _when(booking_date: Optional[date], booking_time: Optional[str]) -> str:
    if booking_date and booking_time:
        return f" on {booking_date.isoformat()} at {booking_time}"
    if booking_date:
        return f" on {booking_date.isoformat()}"
    return ""


def build_customer_status_message(
    status: BookingStatus,
    booking_code: Optional[str],
    service_names: list[str],
    booking_date: Optional[date] = None,
    booking_time: Optional[str] = None,
) -> tuple[str, str]:
    """Return ``(title, message)`` telling a customer where their booking stands."""
    code = f" ({booking_code})" if booking_code else ""
    services = f" for {_service_list(service_names)}"
    when = _when(booking_date, booking_time)

    if status == BookingStatus.PENDING:
        return (
            "Booking Request Received",
            f"Your booking request{code}{services} has been received successfully! "
            "We'll confirm your appointment soon.",
        )
    if status in (BookingStatus.AWAITING_STAFF_APPROVAL, BookingStatus.PARTIALLY_APPROVED):
        return (
            "Booking Being Processed",
            f"Your booking request{code}{services}{when} is being processed. "
            "We'll notify you once it's confirmed.",
        )
    if status == BookingStatus.STAFF_REJECTED:
        return (
            "Booking Being Rescheduled",
            f"Your booking{code}{services}{when} is being rescheduled. "
            "We'll notify you with updated details soon.",
        )
    if status == BookingStatus.CONFIRMED:
        return (
            "Booking Confirmed",
            f"Your booking{code}{services}{when} has been confirmed. We look forward to seeing you!",
        )
    if status == BookingStatus.COMPLETED:
        return (
            "Booking Completed",
            f"Your booking{code}{services} has been completed. Thank you for visiting us!",
        )
    return (
        "Booking Canceled",
        f"Your booking{code}{services}{when} has been canceled. "
        "Please contact us if you have any questions.",
    )


def build_staff_assignment_message(
    booking_code: Optional[str],
    client_name: str,
    service_names: list[str],
    booking_date: Optional[date] = None,
    booking_time: Optional[str] = None,
    is_reassignment: bool = False,
) -> tuple[str, str]:
    """Return ``(title, message)`` asking a staff member to accept or reject."""
    code = f" ({booking_code})" if booking_code else ""
    services = _service_list(service_names)
    when = _when(booking_date, booking_time)
    if is_reassignment:
        return (
            "Booking Reassigned to You",
            f"A booking{code} for {services} with {client_name}{when} has been reassigned "
            "to you. Please accept or reject.",
        )
    return (
        "New Appointment Request",
        f"You have a new appointment request{code} from {client_name} for {services}{when}. "
        "Please accept or reject.",
    )


def build_admin_message(
    kind: str,
    booking_code: Optional[str],
    client_name: str,
    staff_name: str = "Staff",
    service_names: Optional[list[str]] = None,
    reason: Optional[str] = None,
) -> tuple[str, str]:
    """Return ``(title, message)`` for the salon's owner and branch admins."""
    code = f" ({booking_code})" if booking_code else ""
    services = _service_list(service_names or [])
    if kind == "staff_accepted":
        return (
            "Staff Accepted Booking",
            f"{staff_name} has accepted {services} in booking{code} for {client_name}.",
        )
    if kind == "staff_rejected":
        return (
            "Booking Rejected by Staff",
            f"{staff_name} has rejected {services} in booking{code} for {client_name}. "
            f'Reason: "{reason or "Not specified"}". Please reassign to another staff member.',
        )
    if kind == "auto_canceled":
        return (
            "Booking Automatically Canceled",
            f"Booking{code} for {client_name} was canceled because no other qualified staff "
            f"is available for {services}.",
        )
    if kind == "service_completed":
        return (
            "Service Completed",
            f"{staff_name} has completed {services} in booking{code} for {client_name}.",
        )
    if kind == "needs_assignment":
        return (
            "Staff Assignment Needed",
            f"Booking{code} for {client_name} has services without staff: {services}. "
            "Please assign staff.",
        )
    return ("Booking Update", f"There's an update to booking{code}.")
