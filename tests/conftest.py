import os

# config fails fast without a database URL; the tests bring their own engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ORG_EMAIL_DOMAIN"] = "alumni.esade.edu"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from admission import BookingRequest
from database import get_session
from main import app, get_notifier, get_now
from models import Classroom
from notifier import ChangeNotifier
from store import ReservationStore
from tests.utils import DOMAIN, NOW, at


class Clock:
    def __init__(self, now):
        self.now = now


@pytest.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture()
def store(session, notifier) -> ReservationStore:
    return ReservationStore(session, notifier)


@pytest.fixture()
def events(notifier) -> list:
    received = []
    notifier.subscribe(received.append)
    return received


@pytest.fixture()
async def classroom(session) -> Classroom:
    room = Classroom(name="Room A", capacity=2, building="Main", room_type="study_room")
    session.add(room)
    await session.commit()
    return room


@pytest.fixture()
def booking():
    """Build a BookingRequest for the `classroom` fixture's day."""

    def _booking(classroom_id, start_hour, end_hour, is_private=False, email=f"ana@{DOMAIN}"):
        return BookingRequest(
            classroom_id=classroom_id,
            student_email=email,
            start_time=at(start_hour),
            end_time=at(end_hour),
            is_private=is_private,
        )

    return _booking


@pytest.fixture()
def clock() -> Clock:
    return Clock(NOW)


@pytest.fixture()
async def client(session_factory, notifier, clock):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_now] = lambda: clock.now
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture()
async def rooms(session_factory) -> dict[str, int]:
    """Classrooms for the API tests, committed and detached from any session."""
    async with session_factory() as session:
        session.add_all(
            [
                Classroom(name="Room A", capacity=2, building="Main", room_type="study_room"),
                Classroom(name="Room B", capacity=1, building="North", room_type="meeting_room"),
                Classroom(name="Room C", capacity=3, building="South", room_type="lab"),
            ]
        )
        await session.commit()
        result = await session.execute(select(Classroom))
        return {room.name: room.id for room in result.scalars()}
