"""Admission control: may a new reservation be created for this room and interval?"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Iterable, Optional

from config import BOOKING_HORIZON_DAYS, CLOSE_HOUR, MAX_DURATION_HOURS, OPEN_HOUR, ORG_EMAIL_DOMAIN
from errors import BookingValidationError
from models import ACTIVE_STATUSES, Reservation
from scheduling import at_hour, check_in_window, overlaps


class AdmissionRejection(StrEnum):
    PRIVATE_CONFLICT = "private_conflict"  # someone holds the room privately
    ROOM_OCCUPIED = "room_occupied"  # private request, room not empty
    CAPACITY_REACHED = "capacity_reached"


@dataclass(frozen=True)
class AdmissionDecision:
    accepted: bool
    reason: Optional[AdmissionRejection] = None


ACCEPT = AdmissionDecision(accepted=True)


@dataclass(frozen=True)
class BookingRequest:
    classroom_id: int
    student_email: str
    start_time: datetime
    end_time: datetime
    is_private: bool = False


def normalise_email(email: str) -> str:
    return email.strip().lower()


def is_org_email(email: str) -> bool:
    return normalise_email(email).endswith("@" + ORG_EMAIL_DOMAIN.lower())


def validate_email(email: str) -> None:
    if not is_org_email(email):
        raise BookingValidationError(
            f"Please use your university email ending with @{ORG_EMAIL_DOMAIN}"
        )


def validate_request(request: BookingRequest, now: datetime) -> None:
    """Reject malformed requests before anything is read from the store."""
    validate_email(request.student_email)

    start, end = request.start_time, request.end_time
    if end <= start:
        raise BookingValidationError("A booking must end after it starts")
    if end - start > timedelta(hours=MAX_DURATION_HOURS):
        raise BookingValidationError(f"Maximum booking duration is {MAX_DURATION_HOURS} hours")

    day = start.date()
    if start < at_hour(day, OPEN_HOUR) or end > at_hour(day, CLOSE_HOUR):
        raise BookingValidationError(
            f"Bookings must fall between {OPEN_HOUR}:00 and {CLOSE_HOUR}:00 on a single day"
        )
    if start.minute or start.second or start.microsecond or end.minute or end.second or end.microsecond:
        raise BookingValidationError("Bookings start and end on the hour")

    today = now.date()
    if day < today or day > today + timedelta(days=BOOKING_HORIZON_DAYS):
        raise BookingValidationError(
            f"Bookings can be made from today up to {BOOKING_HORIZON_DAYS} days ahead"
        )
    # same rule as the no-show sweep: nobody could check in any more
    if now > check_in_window(start)[1]:
        raise BookingValidationError("This time slot has already passed")


def evaluate_admission(
    capacity: int,
    is_private: bool,
    start: datetime,
    end: datetime,
    existing: Iterable[Reservation],
) -> AdmissionDecision:
    """Decide whether a candidate interval fits next to the room's active reservations."""
    overlapping = [
        r
        for r in existing
        if r.status in ACTIVE_STATUSES and overlaps(start, end, r.start_time, r.end_time)
    ]

    if any(r.is_private for r in overlapping):
        return AdmissionDecision(False, AdmissionRejection.PRIVATE_CONFLICT)
    if is_private:
        # capacity does not apply to a private booking, only emptiness does
        if overlapping:
            return AdmissionDecision(False, AdmissionRejection.ROOM_OCCUPIED)
        return ACCEPT
    if len(overlapping) >= capacity:
        return AdmissionDecision(False, AdmissionRejection.CAPACITY_REACHED)
    return ACCEPT
