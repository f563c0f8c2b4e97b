"""Populate the database with demo classrooms and a day of sample reservations.

Usage: python seed.py [days_ahead]

Reservations go through the same admission rules as the API, so bookings
that would break exclusivity or capacity are reported and skipped.
"""

import asyncio
import logging
import sys
from datetime import timedelta

from sqlalchemy import select

from admission import BookingRequest
from config import ORG_EMAIL_DOMAIN
from database import async_session, init_db
from errors import SlotUnavailableError
from models import Classroom, RoomType
from notifier import ChangeNotifier
from scheduling import at_hour, now_local
from store import ReservationStore

logger = logging.getLogger(__name__)

CLASSROOMS = [
    {"name": "Room A", "capacity": 4, "building": "Main", "room_type": RoomType.STUDY},
    {"name": "Room B", "capacity": 3, "building": "Main", "room_type": RoomType.MEETING},
    {"name": "Room C", "capacity": 3, "building": "North", "room_type": RoomType.COMPUTER},
    {"name": "Room D", "capacity": 6, "building": "North", "room_type": RoomType.CONFERENCE},
    {"name": "Room E", "capacity": 2, "building": "South", "room_type": RoomType.STUDY},
]

# (room, local part of the email, start hour, hours, private)
DEMO_RESERVATIONS = [
    # Room C fills up in the morning, the private request is turned away
    *[("Room C", f"full{hour}{seat}", hour, 1, False) for hour in (8, 9, 10) for seat in "abc"],
    ("Room C", "private9", 9, 1, True),
    # Room A is partly shared, with a private hour in the afternoon
    ("Room A", "shared1", 12, 1, False),
    ("Room A", "shared2", 12, 1, False),
    ("Room A", "private1", 15, 1, True),
    # Room E is almost free
    ("Room E", "free1", 18, 1, False),
    # Room D is held privately for the afternoon
    ("Room D", "privated", 14, 3, True),
    ("Room D", "privated2", 17, 3, True),
    # Room B has a mix
    ("Room B", "sharedb1", 10, 1, False),
    ("Room B", "sharedb2", 10, 1, False),
    ("Room B", "privateb", 12, 2, True),
]


async def seed(days_ahead: int = 1) -> None:
    await init_db()
    day = now_local().date() + timedelta(days=days_ahead)

    async with async_session() as session:
        existing = {c.name for c in (await session.execute(select(Classroom))).scalars().all()}
        for room in CLASSROOMS:
            if room["name"] not in existing:
                session.add(Classroom(**room))
        await session.commit()

        store = ReservationStore(session, ChangeNotifier())
        # plain ids: a rejected booking rolls back and expires loaded rows
        room_ids = {c.name: c.id for c in await store.list_classrooms()}
        created = 0
        for room_name, local_part, hour, hours, is_private in DEMO_RESERVATIONS:
            request = BookingRequest(
                classroom_id=room_ids[room_name],
                student_email=f"{local_part}@{ORG_EMAIL_DOMAIN}",
                start_time=at_hour(day, hour),
                end_time=at_hour(day, hour + hours),
                is_private=is_private,
            )
            try:
                await store.insert_reservation(request, now_local())
                created += 1
            except SlotUnavailableError as exc:
                logger.warning(f"Skipped {room_name} at {hour}:00 for {local_part}: {exc.reason}")

    logger.info(f"Inserted {created} demo reservations for {day}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed(int(sys.argv[1]) if len(sys.argv) > 1 else 1))
