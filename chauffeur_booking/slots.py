from __future__ import annotations

from datetime import date, datetime, time, timedelta

from .errors import InvalidRangeError
from .models import DEFAULT_DURATION_MINUTES


def generate_slots(
    day: date,
    granularity_minutes: int,
    open_time: time,
    close_time: time,
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
) -> list[time]:
    """Return the candidate start times for ``day``.

    Slots start at ``open_time`` and are spaced ``granularity_minutes`` apart.
    The last slot leaves room for the whole reservation before ``close_time``,
    so a duration longer than the opening hours yields an empty grid.
    """
    if open_time >= close_time:
        raise InvalidRangeError("open_time must be earlier than close_time")
    if granularity_minutes <= 0:
        raise InvalidRangeError("granularity_minutes must be greater than zero")
    if duration_minutes <= 0:
        raise InvalidRangeError("duration_minutes must be greater than zero")

    cursor = datetime.combine(day, open_time)
    last_start = datetime.combine(day, close_time) - timedelta(minutes=duration_minutes)
    step = timedelta(minutes=granularity_minutes)

    slots: list[time] = []
    while cursor <= last_start:
        slots.append(cursor.time())
        cursor += step
    return slots


def fits_opening_hours(start_time: time, duration_minutes: int, open_time: time, close_time: time) -> bool:
    """Return True when ``[start_time, start_time + duration)`` lies within opening hours on one day."""
    anchor = date(2000, 1, 1)
    start = datetime.combine(anchor, start_time)
    end = start + timedelta(minutes=duration_minutes)
    return start >= datetime.combine(anchor, open_time) and end <= datetime.combine(anchor, close_time)
