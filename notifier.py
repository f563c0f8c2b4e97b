"""In-process change feed: tells subscribers that reservations changed so they can refetch."""

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ChangeKind(StrEnum):
    INSERTED = "inserted"
    CHECKED_IN = "checked_in"
    EXPIRED = "expired"


@dataclass(frozen=True)
class ReservationChange:
    kind: ChangeKind
    reservation_id: Optional[int] = None
    count: int = 1

    def as_message(self) -> dict:
        return {"event": self.kind.value, "reservation_id": self.reservation_id, "count": self.count}


Subscriber = Callable[[ReservationChange], None]


class ChangeNotifier:
    """Fire-and-forget publish/subscribe.

    Callbacks run synchronously inside `publish`; a failing subscriber is
    logged and skipped. Nothing is queued for late subscribers.
    """

    def __init__(self):
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, change: ReservationChange) -> None:
        for callback in list(self._subscribers):
            try:
                callback(change)
            except Exception:
                logger.exception(f"Subscriber failed to handle {change.kind} notification")

    def __len__(self) -> int:
        return len(self._subscribers)
