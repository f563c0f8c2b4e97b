"""
Exceptions raised by the booking core and the store.
Caught in main.py and mapped to HTTP responses.
"""

from datetime import datetime


class BookingError(Exception):
    """Base exception for all booking errors."""


class BookingValidationError(BookingError):
    """Raised when a request is malformed; nothing has touched the store yet."""


class SlotUnavailableError(BookingError):
    """Raised when admission rejects a candidate. An expected outcome, not a fault."""

    def __init__(self, reason):
        self.reason = reason
        super().__init__(f"This time slot is not available for the selected booking type ({reason})")


class NotFoundError(BookingError):
    pass


class RoomNotFoundError(NotFoundError):
    def __init__(self, classroom_id):
        self.classroom_id = classroom_id
        super().__init__(f"Classroom {classroom_id} not found")


class ReservationNotFoundError(NotFoundError):
    """Raised when no active reservation matches the email and room."""


class CheckInTooEarlyError(BookingError):
    def __init__(self, opens_at: datetime):
        self.opens_at = opens_at
        super().__init__(f"Check-in opens at {opens_at:%H:%M} (5 minutes before your booking)")


class CheckInWindowExpiredError(BookingError):
    def __init__(self):
        super().__init__("The check-in window has expired for all your reservations in this room")


class InvalidStatusTransitionError(BookingError):
    """Raised when a reservation is not in the status a transition requires."""


class StoreError(BookingError):
    """Raised when the database is unreachable or rejects a write."""
