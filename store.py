import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from admission import BookingRequest, evaluate_admission
from errors import InvalidStatusTransitionError, RoomNotFoundError, SlotUnavailableError, StoreError
from expiry import overdue_clause
from models import ACTIVE_STATUSES, Classroom, Reservation, ReservationStatus
from notifier import ChangeKind, ChangeNotifier, ReservationChange

logger = logging.getLogger(__name__)


class ReservationStore:
    """Reads and writes classrooms and reservations through one async session.

    Every mutation is committed before subscribers of the notifier hear
    about it. Database failures surface as StoreError so callers can tell
    them apart from an ordinary admission rejection.
    """

    def __init__(self, session: AsyncSession, notifier: ChangeNotifier):
        self.session = session
        self.notifier = notifier

    @asynccontextmanager
    async def _transaction(self, action: str):
        try:
            yield
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error(f"Store failure during {action}: {exc}")
            raise StoreError(f"Could not {action}, please try again") from exc
        except Exception:
            await self.session.rollback()
            raise

    async def _read(self, statement):
        try:
            result = await self.session.execute(statement)
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error(f"Store failure while reading: {exc}")
            raise StoreError("Could not load bookings, please try again") from exc
        return result.scalars().all()

    # --- Classrooms ---

    async def list_classrooms(self) -> list[Classroom]:
        return list(await self._read(select(Classroom).order_by(Classroom.name)))

    async def get_classroom(self, classroom_id: int) -> Classroom:
        rows = await self._read(select(Classroom).where(Classroom.id == classroom_id))
        if not rows:
            raise RoomNotFoundError(classroom_id)
        return rows[0]

    # --- Reservations ---

    async def list_reservations(
        self,
        classroom_id: Optional[int] = None,
        date_range: Optional[tuple[datetime, datetime]] = None,
        statuses: Iterable[ReservationStatus] = ACTIVE_STATUSES,
        student_email: Optional[str] = None,
    ) -> list[Reservation]:
        """Snapshot of reservations ordered by start time.

        `date_range` keeps reservations overlapping the half-open range.
        """
        statement = select(Reservation).where(Reservation.status.in_(list(statuses)))
        if classroom_id is not None:
            statement = statement.where(Reservation.classroom_id == classroom_id)
        if student_email is not None:
            statement = statement.where(Reservation.student_email == student_email)
        if date_range is not None:
            range_start, range_end = date_range
            statement = statement.where(
                Reservation.start_time < range_end, Reservation.end_time > range_start
            )
        statement = statement.order_by(Reservation.start_time, Reservation.id)
        return list(await self._read(statement))

    async def insert_reservation(self, request: BookingRequest, now: datetime) -> Reservation:
        """Admit and persist a reservation in a single transaction.

        The classroom row is locked first so that two candidates for the same
        room are decided one after the other. Raises SlotUnavailableError when
        admission rejects the candidate; nothing is written in that case.
        """
        async with self._transaction("create the reservation"):
            result = await self.session.execute(
                select(Classroom).where(Classroom.id == request.classroom_id).with_for_update()
            )
            classroom = result.scalars().first()
            if classroom is None:
                raise RoomNotFoundError(request.classroom_id)

            expired = await self._expire(now)

            result = await self.session.execute(
                select(Reservation).where(
                    Reservation.classroom_id == classroom.id,
                    Reservation.status.in_(ACTIVE_STATUSES),
                    Reservation.start_time < request.end_time,
                    Reservation.end_time > request.start_time,
                )
            )
            decision = evaluate_admission(
                classroom.capacity,
                request.is_private,
                request.start_time,
                request.end_time,
                result.scalars().all(),
            )
            if not decision.accepted:
                logger.info(
                    f"Rejected {'private' if request.is_private else 'shared'} booking of "
                    f"{classroom.name} {request.start_time:%Y-%m-%d %H:%M}-{request.end_time:%H:%M}: "
                    f"{decision.reason}"
                )
                raise SlotUnavailableError(decision.reason)

            reservation = Reservation(
                classroom_id=classroom.id,
                student_email=request.student_email,
                start_time=request.start_time,
                end_time=request.end_time,
                is_private=request.is_private,
                status=ReservationStatus.RESERVED,
                created_at=now,
                updated_at=now,
            )
            self.session.add(reservation)
            await self.session.flush()

        logger.info(
            f"Reserved {classroom.name} {reservation.start_time:%Y-%m-%d %H:%M}-"
            f"{reservation.end_time:%H:%M} for {reservation.student_email} (id={reservation.id})"
        )
        if expired:
            self.notifier.publish(ReservationChange(ChangeKind.EXPIRED, count=expired))
        self.notifier.publish(ReservationChange(ChangeKind.INSERTED, reservation_id=reservation.id))
        return reservation

    async def update_reservation_status(
        self, reservation_id: int, new_status: ReservationStatus, now: datetime
    ) -> Reservation:
        """Move a reserved reservation into a terminal status."""
        if not ReservationStatus(new_status).is_terminal:
            raise InvalidStatusTransitionError("A reservation cannot go back to reserved")

        async with self._transaction("update the reservation"):
            result = await self.session.execute(
                update(Reservation)
                .where(
                    Reservation.id == reservation_id,
                    Reservation.status == ReservationStatus.RESERVED,
                )
                .values(status=new_status, updated_at=now)
            )
            if result.rowcount == 0:
                raise InvalidStatusTransitionError(
                    f"Reservation {reservation_id} is no longer awaiting check-in"
                )

        reservation = await self.session.get(Reservation, reservation_id, populate_existing=True)
        kind = ChangeKind.CHECKED_IN if new_status == ReservationStatus.CHECKED_IN else ChangeKind.EXPIRED
        self.notifier.publish(ReservationChange(kind, reservation_id=reservation_id))
        return reservation

    async def expire_overdue_reservations(self, now: datetime) -> int:
        """Expire every reservation whose check-in window has closed. Idempotent."""
        async with self._transaction("expire overdue reservations"):
            expired = await self._expire(now)
        if expired:
            self.notifier.publish(ReservationChange(ChangeKind.EXPIRED, count=expired))
        return expired

    async def _expire(self, now: datetime) -> int:
        result = await self.session.execute(
            update(Reservation)
            .where(overdue_clause(now))
            .values(status=ReservationStatus.EXPIRED, updated_at=now)
        )
        if result.rowcount:
            logger.info(f"Expired {result.rowcount} reservation(s) past their check-in window")
        return result.rowcount

    def subscribe(self, callback: Callable[[ReservationChange], None]) -> Callable[[], None]:
        return self.notifier.subscribe(callback)
