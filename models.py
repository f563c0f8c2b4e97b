from datetime import datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, SQLModel

from scheduling import now_local


class RoomType(StrEnum):
    MEETING = "meeting_room"
    CONFERENCE = "conference_room"
    COMPUTER = "computer_room"
    STUDY = "study_room"
    ROOM = "room"

    @classmethod
    def parse(cls, value: str | None) -> "RoomType":
        """Resolve a stored category, falling back to the generic room."""
        try:
            return cls(value)
        except ValueError:
            return cls.ROOM

    @property
    def label(self) -> str:
        return ROOM_TYPE_LABELS[self]


ROOM_TYPE_LABELS = {
    RoomType.MEETING: "Meeting Room",
    RoomType.CONFERENCE: "Conference Room",
    RoomType.COMPUTER: "Computer Room",
    RoomType.STUDY: "Study Room",
    RoomType.ROOM: "Room",
}


class ReservationStatus(StrEnum):
    RESERVED = "reserved"
    CHECKED_IN = "checked_in"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not ReservationStatus.RESERVED


# Reservations that still hold their slot
ACTIVE_STATUSES = (ReservationStatus.RESERVED, ReservationStatus.CHECKED_IN)


class Classroom(SQLModel, table=True):
    __tablename__ = "classrooms"
    __table_args__ = (CheckConstraint("capacity >= 0", name="classroom_capacity_non_negative"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    capacity: int  # max simultaneous shared occupants
    building: str = ""
    room_type: str = RoomType.ROOM.value
    created_at: datetime = Field(default_factory=now_local, sa_type=DateTime)

    @property
    def category(self) -> RoomType:
        return RoomType.parse(self.room_type)


class Reservation(SQLModel, table=True):
    __tablename__ = "reservations"
    __table_args__ = (
        # Database-level protection against empty or inverted intervals
        CheckConstraint("end_time > start_time", name="reservation_positive_duration"),
        Index("ix_reservations_classroom_start", "classroom_id", "start_time"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    classroom_id: int = Field(foreign_key="classrooms.id")
    student_email: str = Field(index=True)
    start_time: datetime = Field(sa_type=DateTime)
    end_time: datetime = Field(sa_type=DateTime)
    is_private: bool = False
    status: ReservationStatus = Field(default=ReservationStatus.RESERVED, index=True)
    created_at: datetime = Field(default_factory=now_local, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=now_local, sa_type=DateTime)
