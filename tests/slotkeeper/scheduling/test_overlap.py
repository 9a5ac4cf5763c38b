from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from slotkeeper.scheduling.overlap import Interval, first_conflict, is_free, occupied_interval, overlaps


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 9, hour, minute, tzinfo=timezone.utc)


def test_occupied_interval_adds_duration() -> None:
    interval = occupied_interval(at(9), 90)

    assert interval == Interval(at(9), at(10, 30))


def test_touching_ranges_do_not_overlap() -> None:
    assert not overlaps(at(9), at(10), at(10), at(11))
    assert not overlaps(at(11), at(12), at(10), at(11))


def test_partial_and_containing_ranges_overlap() -> None:
    assert overlaps(at(9, 30), at(10, 30), at(10), at(11))
    assert overlaps(at(10, 15), at(10, 45), at(10), at(11))
    assert overlaps(at(9), at(12), at(10), at(11))


def test_first_conflict_returns_the_blocking_interval() -> None:
    occupied = [Interval(at(8), at(9)), Interval(at(10), at(11))]

    assert first_conflict(Interval(at(10, 30), at(11, 30)), occupied) == Interval(at(10), at(11))
    assert is_free(Interval(at(9), at(10)), occupied)


def test_overlap_compares_instants_across_offsets() -> None:
    sao_paulo = ZoneInfo('America/Sao_Paulo')
    local_start = datetime(2030, 1, 9, 7, 0, tzinfo=sao_paulo)

    # 07:00 in Sao Paulo is 10:00 UTC.
    assert overlaps(local_start, datetime(2030, 1, 9, 8, 0, tzinfo=sao_paulo), at(10), at(11))
