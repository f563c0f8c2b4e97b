from datetime import date, datetime, time

from models import Classroom, Reservation, ReservationStatus

DAY = date(2026, 3, 10)
NOW = datetime(2026, 3, 10, 7, 30)
DOMAIN = "alumni.esade.edu"


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime.combine(day, time(hour, minute))


def make_classroom(id: int = 1, capacity: int = 2, name: str = "Room A", room_type: str = "study_room") -> Classroom:
    return Classroom(id=id, name=name, capacity=capacity, building="Main", room_type=room_type)


def make_reservation(
    start: datetime,
    end: datetime,
    is_private: bool = False,
    status: ReservationStatus = ReservationStatus.RESERVED,
    classroom_id: int = 1,
    email: str = f"ana@{DOMAIN}",
    id: int | None = None,
) -> Reservation:
    return Reservation(
        id=id,
        classroom_id=classroom_id,
        student_email=email,
        start_time=start,
        end_time=end,
        is_private=is_private,
        status=status,
    )
