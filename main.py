import asyncio
import logging
from contextlib import suppress
from datetime import date, datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from admission import BookingRequest, normalise_email, validate_request
from availability import BookingType, RoomAvailability, RoomStatus, room_availability, summarise
from checkin import check_in
from config import CLOSE_HOUR, LOG_LEVEL, MAX_DURATION_HOURS, OPEN_HOUR
from database import get_session, init_db
from errors import (
    BookingError,
    BookingValidationError,
    CheckInTooEarlyError,
    CheckInWindowExpiredError,
    InvalidStatusTransitionError,
    NotFoundError,
    SlotUnavailableError,
    StoreError,
)
from models import Classroom, ReservationStatus, RoomType
from notifier import ChangeNotifier
from scheduling import BOOKABLE_HOURS, at_hour, day_bounds, now_local
from store import ReservationStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Classroom Booking System")

# One change feed per process; websocket clients subscribe to it
notifier = ChangeNotifier()


# Pydantic Schemas for Request/Response
class BookingCreate(BaseModel):
    classroom_id: int
    student_email: str
    booking_date: date
    start_hour: int = Field(ge=OPEN_HOUR, lt=CLOSE_HOUR)
    duration_hours: int = Field(default=1, ge=1, le=MAX_DURATION_HOURS)
    is_private: bool = False


class CheckInCreate(BaseModel):
    student_email: str


class ReservationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    classroom_id: int
    student_email: str
    start_time: datetime
    end_time: datetime
    is_private: bool
    status: ReservationStatus
    created_at: datetime
    updated_at: datetime


class ClassroomRead(BaseModel):
    id: int
    name: str
    capacity: int
    building: str
    room_type: RoomType
    room_type_label: str

    @classmethod
    def from_classroom(cls, classroom: Classroom) -> "ClassroomRead":
        category = classroom.category
        return cls(
            id=classroom.id,
            name=classroom.name,
            capacity=classroom.capacity,
            building=classroom.building,
            room_type=category,
            room_type_label=category.label,
        )


class ExpirySweep(BaseModel):
    expired: int


# Dependencies
def get_notifier() -> ChangeNotifier:
    return notifier


def get_store(
    session: AsyncSession = Depends(get_session),
    change_notifier: ChangeNotifier = Depends(get_notifier),
) -> ReservationStore:
    return ReservationStore(session, change_notifier)


def get_now() -> datetime:
    return now_local()


def http_error(exc: BookingError) -> HTTPException:
    """Map a booking error onto the response the client should see."""
    if isinstance(exc, BookingValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, SlotUnavailableError):
        detail = {"code": "unavailable", "reason": exc.reason, "message": str(exc)}
    elif isinstance(exc, CheckInTooEarlyError):
        detail = {"code": "too_early", "opens_at": exc.opens_at.isoformat(), "message": str(exc)}
    elif isinstance(exc, CheckInWindowExpiredError):
        detail = {"code": "window_expired", "message": str(exc)}
    elif isinstance(exc, InvalidStatusTransitionError):
        detail = {"code": "invalid_status", "message": str(exc)}
    elif isinstance(exc, StoreError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    else:
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


@app.on_event("startup")
async def on_startup():
    logging.basicConfig(
        level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    await init_db()


# --- GET /classrooms ---
@app.get("/classrooms", response_model=List[ClassroomRead])
async def list_classrooms(store: ReservationStore = Depends(get_store)):
    try:
        classrooms = await store.list_classrooms()
    except BookingError as exc:
        raise http_error(exc) from exc
    return [ClassroomRead.from_classroom(c) for c in classrooms]


# --- GET /availability ---
@app.get("/availability", response_model=List[RoomAvailability])
async def get_availability(
    target_date: date,
    hour: Optional[int] = None,
    room_status: Optional[RoomStatus] = Query(default=None, alias="status"),
    booking_type: Optional[BookingType] = None,
    room_type: Optional[RoomType] = None,
    store: ReservationStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    if hour is not None and hour not in BOOKABLE_HOURS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid hour. Rooms can be booked {BOOKABLE_HOURS.start}-{BOOKABLE_HOURS.stop}",
        )

    try:
        # Stale no-shows must not block the grid
        await store.expire_overdue_reservations(now)
        classrooms = await store.list_classrooms()
        reservations = await store.list_reservations(date_range=day_bounds(target_date))
    except BookingError as exc:
        raise http_error(exc) from exc

    return summarise(
        classrooms,
        target_date,
        reservations,
        hour=hour,
        status=room_status,
        booking_type=booking_type,
        room_type=room_type,
    )


# --- GET /classrooms/{id}/availability ---
@app.get("/classrooms/{classroom_id}/availability", response_model=RoomAvailability)
async def get_classroom_availability(
    classroom_id: int,
    target_date: date,
    store: ReservationStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    try:
        await store.expire_overdue_reservations(now)
        classroom = await store.get_classroom(classroom_id)
        reservations = await store.list_reservations(
            classroom_id=classroom_id, date_range=day_bounds(target_date)
        )
    except BookingError as exc:
        raise http_error(exc) from exc
    return room_availability(classroom, target_date, reservations)


# --- GET /reservations ---
@app.get("/reservations", response_model=List[ReservationRead])
async def list_reservations(
    classroom_id: Optional[int] = None,
    target_date: Optional[date] = None,
    student_email: Optional[str] = None,
    store: ReservationStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    try:
        await store.expire_overdue_reservations(now)
        return await store.list_reservations(
            classroom_id=classroom_id,
            date_range=day_bounds(target_date) if target_date else None,
            student_email=normalise_email(student_email) if student_email else None,
        )
    except BookingError as exc:
        raise http_error(exc) from exc


# --- POST /reservations ---
@app.post("/reservations", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
async def create_reservation(
    booking_data: BookingCreate,
    store: ReservationStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    day, hour = booking_data.booking_date, booking_data.start_hour
    try:
        start_time, end_time = at_hour(day, hour), at_hour(day, hour + booking_data.duration_hours)
    except OverflowError:
        # only reachable at the very end of the calendar
        raise HTTPException(status_code=400, detail="Booking date is out of range")
    request = BookingRequest(
        classroom_id=booking_data.classroom_id,
        student_email=normalise_email(booking_data.student_email),
        start_time=start_time,
        end_time=end_time,
        is_private=booking_data.is_private,
    )

    try:
        validate_request(request, now)
        return await store.insert_reservation(request, now)
    except BookingError as exc:
        raise http_error(exc) from exc


# --- POST /classrooms/{id}/check-in ---
@app.post("/classrooms/{classroom_id}/check-in", response_model=ReservationRead)
async def check_in_reservation(
    classroom_id: int,
    payload: CheckInCreate,
    store: ReservationStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    try:
        return await check_in(store, classroom_id, payload.student_email, now)
    except BookingError as exc:
        raise http_error(exc) from exc


# --- POST /reservations/expire ---
@app.post("/reservations/expire", response_model=ExpirySweep)
async def expire_reservations(
    store: ReservationStore = Depends(get_store),
    now: datetime = Depends(get_now),
):
    try:
        return ExpirySweep(expired=await store.expire_overdue_reservations(now))
    except BookingError as exc:
        raise http_error(exc) from exc


# --- WS /ws/reservations ---
@app.websocket("/ws/reservations")
async def reservation_feed(
    websocket: WebSocket, change_notifier: ChangeNotifier = Depends(get_notifier)
):
    """Push a message to the client every time a reservation changes."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    # publish() may be called from another thread
    unsubscribe = change_notifier.subscribe(
        lambda change: loop.call_soon_threadsafe(queue.put_nowait, change.as_message())
    )
    await websocket.accept()

    async def forward():
        while True:
            await websocket.send_json(await queue.get())

    forwarder = asyncio.create_task(forward())
    try:
        while True:
            # Only used to notice the client going away
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Reservation feed client disconnected")
    finally:
        unsubscribe()
        forwarder.cancel()
        with suppress(asyncio.CancelledError, WebSocketDisconnect):
            await forwarder


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
