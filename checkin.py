import logging
from datetime import datetime
from typing import TYPE_CHECKING, Sequence

from admission import normalise_email, validate_email
from errors import CheckInTooEarlyError, CheckInWindowExpiredError, ReservationNotFoundError
from models import Reservation, ReservationStatus
from scheduling import check_in_window, day_bounds, in_check_in_window

if TYPE_CHECKING:
    from store import ReservationStore

logger = logging.getLogger(__name__)

# Expired rows are only consulted to tell "too late" apart from "no booking",
# and only those of the current day
CANDIDATE_STATUSES = (ReservationStatus.RESERVED, ReservationStatus.EXPIRED)


def resolve_check_in(candidates: Sequence[Reservation], now: datetime) -> Reservation:
    """Pick the earliest reserved reservation whose check-in window contains `now`."""
    if not candidates:
        raise ReservationNotFoundError("No active reservation found for this email and room")

    pending = [r for r in candidates if r.status == ReservationStatus.RESERVED]
    for reservation in pending:
        if in_check_in_window(reservation.start_time, now):
            return reservation

    upcoming = next((r for r in pending if r.start_time > now), None)
    if upcoming is not None:
        raise CheckInTooEarlyError(opens_at=check_in_window(upcoming.start_time)[0])
    raise CheckInWindowExpiredError()


async def check_in(
    store: "ReservationStore", classroom_id: int, student_email: str, now: datetime
) -> Reservation:
    student_email = normalise_email(student_email)
    validate_email(student_email)
    await store.get_classroom(classroom_id)

    candidates = await store.list_reservations(
        classroom_id=classroom_id,
        student_email=student_email,
        date_range=day_bounds(now.date()),
        statuses=CANDIDATE_STATUSES,
    )
    reservation = resolve_check_in(candidates, now)
    checked_in = await store.update_reservation_status(
        reservation.id, ReservationStatus.CHECKED_IN, now
    )
    logger.info(
        f"{student_email} checked into classroom {classroom_id} "
        f"for {reservation.start_time:%Y-%m-%d %H:%M}"
    )
    return checked_in
