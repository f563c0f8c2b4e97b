"""Per-room, per-hour availability derived from a reservation snapshot."""

from datetime import date
from enum import StrEnum
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, computed_field

from models import ACTIVE_STATUSES, Classroom, Reservation, RoomType
from scheduling import BOOKABLE_HOURS, overlaps, slot_bounds


class SlotStatus(StrEnum):
    AVAILABLE = "available"
    SHARED = "shared"
    BLOCKED = "blocked"


class RoomStatus(StrEnum):
    AVAILABLE = "available"
    PARTIAL = "partial"
    PRIVATE = "private"
    FULL = "full"


class BookingType(StrEnum):
    SHARED = "shared"
    PRIVATE = "private"


class HourSlot(BaseModel):
    hour: int
    status: SlotStatus
    occupancy: int
    held_privately: bool = False

    @property
    def usable(self) -> bool:
        return self.status is not SlotStatus.BLOCKED


class RoomAvailability(BaseModel):
    """One room on one day; `current_occupancy` is only set when a single hour is selected."""

    classroom_id: int
    name: str
    capacity: int
    building: str
    room_type: RoomType
    room_type_label: str
    status: RoomStatus
    current_occupancy: int = 0
    slots: list[HourSlot]

    @computed_field
    @property
    def available_hours(self) -> list[HourSlot]:
        return [slot for slot in self.slots if slot.usable]


def classify_slot(capacity: int, overlapping: Sequence[Reservation]) -> SlotStatus:
    if any(r.is_private for r in overlapping):
        return SlotStatus.BLOCKED
    if not overlapping:
        # a zero-capacity room can still be taken privately
        return SlotStatus.AVAILABLE
    if len(overlapping) >= capacity:
        return SlotStatus.BLOCKED
    return SlotStatus.SHARED


def hour_slots(capacity: int, day: date, reservations: Sequence[Reservation]) -> list[HourSlot]:
    slots = []
    for hour in BOOKABLE_HOURS:
        slot_start, slot_end = slot_bounds(day, hour)
        overlapping = [
            r for r in reservations if overlaps(r.start_time, r.end_time, slot_start, slot_end)
        ]
        slots.append(
            HourSlot(
                hour=hour,
                status=classify_slot(capacity, overlapping),
                occupancy=len(overlapping),
                held_privately=any(r.is_private for r in overlapping),
            )
        )
    return slots


def overall_status(slots: Sequence[HourSlot]) -> RoomStatus:
    if any(slot.status is SlotStatus.SHARED for slot in slots):
        return RoomStatus.PARTIAL
    if any(slot.status is SlotStatus.AVAILABLE for slot in slots):
        return RoomStatus.AVAILABLE
    if any(slot.held_privately for slot in slots):
        return RoomStatus.PRIVATE
    return RoomStatus.FULL


def room_availability(
    classroom: Classroom,
    day: date,
    reservations: Iterable[Reservation],
    hour: Optional[int] = None,
) -> Optional[RoomAvailability]:
    """Classify every bookable hour of `day` for `classroom`.

    Only active reservations of this classroom are taken into account, the
    rest of the snapshot is ignored. When `hour` is given the result is
    restricted to that hour and None is returned if it cannot be booked.
    """
    own = [r for r in reservations if r.classroom_id == classroom.id and r.status in ACTIVE_STATUSES]
    slots = hour_slots(classroom.capacity, day, own)
    occupancy = 0

    if hour is not None:
        slots = [slot for slot in slots if slot.hour == hour]
        if not slots or not slots[0].usable:
            return None
        occupancy = slots[0].occupancy

    category = classroom.category
    return RoomAvailability(
        classroom_id=classroom.id,
        name=classroom.name,
        capacity=classroom.capacity,
        building=classroom.building,
        room_type=category,
        room_type_label=category.label,
        status=overall_status(slots),
        current_occupancy=occupancy,
        slots=slots,
    )


def supports_booking_type(room: RoomAvailability, booking_type: BookingType) -> bool:
    if booking_type is BookingType.PRIVATE:
        return any(slot.status is SlotStatus.AVAILABLE for slot in room.slots)
    # a shared booking needs a slot with room left for one more occupant
    return any(
        slot.usable and slot.occupancy < room.capacity for slot in room.slots
    )


def summarise(
    classrooms: Iterable[Classroom],
    day: date,
    reservations: Sequence[Reservation],
    hour: Optional[int] = None,
    status: Optional[RoomStatus] = None,
    booking_type: Optional[BookingType] = None,
    room_type: Optional[RoomType] = None,
) -> list[RoomAvailability]:
    """Build the dashboard for `day`, applying the optional filters."""
    rooms = []
    for classroom in classrooms:
        if room_type is not None and classroom.category != room_type:
            continue
        room = room_availability(classroom, day, reservations, hour)
        if room is None:
            continue
        if status is not None and room.status != status:
            continue
        if booking_type is not None and not supports_booking_type(room, booking_type):
            continue
        rooms.append(room)
    return rooms
