"""Overlap predicate shared by slot listing and booking."""

from datetime import datetime, timedelta
from typing import Iterable, NamedTuple


class Interval(NamedTuple):
    """Half-open ``[start, end)`` range of instants."""

    start: datetime
    end: datetime


def occupied_interval(start: datetime, duration_minutes: int) -> Interval:
    return Interval(start, start + timedelta(minutes=duration_minutes))


def overlaps(start: datetime, end: datetime, occupied_start: datetime, occupied_end: datetime) -> bool:
    # Touching ranges do not overlap: [09:00, 10:00) and [10:00, 11:00) are compatible.
    return start < occupied_end and end > occupied_start


def first_conflict(candidate: Interval, occupied: Iterable[Interval]) -> Interval | None:
    for interval in occupied:
        if overlaps(candidate.start, candidate.end, interval.start, interval.end):
            return interval
    return None


def is_free(candidate: Interval, occupied: Iterable[Interval]) -> bool:
    return first_conflict(candidate, occupied) is None
