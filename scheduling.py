"""Time arithmetic shared by the availability, admission and check-in rules.

All instants are naive wall-clock datetimes in the configured booking timezone.
"""

from datetime import date, datetime, time, timedelta

from config import CHECK_IN_CLOSES_AFTER, CHECK_IN_OPENS_BEFORE, CLOSE_HOUR, OPEN_HOUR, TIMEZONE

# Start hour of every bookable one-hour slot: 8, 9, ... 21
BOOKABLE_HOURS = range(OPEN_HOUR, CLOSE_HOUR)

SLOT_LENGTH = timedelta(hours=1)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Return True when two half-open intervals intersect.

    Touching boundaries (10:00-11:00 and 11:00-12:00) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def now_local() -> datetime:
    return datetime.now(TIMEZONE).replace(tzinfo=None)


def today_local() -> date:
    return now_local().date()


def at_hour(day: date, hour: int) -> datetime:
    return datetime.combine(day, time(0)) + timedelta(hours=hour)


def slot_bounds(day: date, hour: int) -> tuple[datetime, datetime]:
    start = at_hour(day, hour)
    return start, start + SLOT_LENGTH


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time(0))
    return start, start + timedelta(days=1)


def check_in_window(start: datetime) -> tuple[datetime, datetime]:
    """The inclusive window during which a booking starting at `start` can be confirmed."""
    return start - CHECK_IN_OPENS_BEFORE, start + CHECK_IN_CLOSES_AFTER


def in_check_in_window(start: datetime, now: datetime) -> bool:
    opens_at, closes_at = check_in_window(start)
    return opens_at <= now <= closes_at
