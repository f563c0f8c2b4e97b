"""No-show expiry.

A reservation that nobody checked into is released once its check-in window
closes, not when the booking ends, so an unclaimed three-hour booking stops
blocking the room fifteen minutes after it was due to start.
"""

from datetime import datetime
from typing import Iterable

from sqlalchemy import and_

from config import CHECK_IN_CLOSES_AFTER
from models import Reservation, ReservationStatus
from scheduling import check_in_window


def overdue_clause(now: datetime):
    """SQL form of `is_overdue`, for bulk updates."""
    return and_(
        Reservation.status == ReservationStatus.RESERVED,
        Reservation.start_time < now - CHECK_IN_CLOSES_AFTER,
    )


def check_in_deadline(reservation: Reservation) -> datetime:
    return check_in_window(reservation.start_time)[1]


def is_overdue(reservation: Reservation, now: datetime) -> bool:
    # the deadline itself still belongs to the (inclusive) check-in window
    return reservation.status == ReservationStatus.RESERVED and now > check_in_deadline(reservation)


def sweep(reservations: Iterable[Reservation], now: datetime) -> list[Reservation]:
    """Mark overdue reservations as expired in place and return the ones that changed."""
    expired = []
    for reservation in reservations:
        if is_overdue(reservation, now):
            reservation.status = ReservationStatus.EXPIRED
            reservation.updated_at = now
            expired.append(reservation)
    return expired
