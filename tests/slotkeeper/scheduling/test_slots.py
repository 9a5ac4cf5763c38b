from datetime import date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from conftest import add_appointment, fixed_clock, seed_clinic, utc
from slotkeeper.models.organization import Organization
from slotkeeper.models.service import Service
from slotkeeper.scheduling.booking import ClientInfo, book_appointment
from slotkeeper.scheduling.eligibility import horizon_problem
from slotkeeper.scheduling.errors import InvalidDuration, ServiceUnavailable
from slotkeeper.scheduling.slots import build_resolver, resolve_slot_starts, resolve_slots
from slotkeeper.scheduling.time_off import TimeOffRegistry

WEDNESDAY = date(2030, 1, 9)
BEFORE_WEDNESDAY = fixed_clock(utc(2029, 12, 1, 12, 0))

FULL_WEDNESDAY = [
    time(9, 0),
    time(9, 30),
    time(10, 0),
    time(10, 30),
    time(11, 0),
    time(14, 0),
    time(14, 30),
    time(15, 0),
    time(15, 30),
    time(16, 0),
    time(16, 30),
    time(17, 0),
]


def test_resolve_slots_lists_every_start_that_fits_a_window(db, clinic) -> None:
    slots = resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)

    assert slots == FULL_WEDNESDAY
    assert time(11, 30) not in slots


def test_resolve_slots_drops_starts_overlapping_an_appointment(db, clinic) -> None:
    add_appointment(db, clinic, utc(2030, 1, 9, 10, 0), duration_minutes=60)

    slots = resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)

    assert [slot for slot in slots if slot < time(12, 0)] == [time(9, 0), time(11, 0)]
    assert slots[2:] == FULL_WEDNESDAY[5:]


def test_resolve_slots_ignores_cancelled_and_no_show_appointments(db, clinic) -> None:
    add_appointment(db, clinic, utc(2030, 1, 9, 10, 0), status='cancelled')
    add_appointment(db, clinic, utc(2030, 1, 9, 14, 0), status='no_show')

    slots = resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)

    assert slots == FULL_WEDNESDAY


def test_resolve_slots_blocks_confirmed_and_in_progress_appointments(db, clinic) -> None:
    add_appointment(db, clinic, utc(2030, 1, 9, 9, 0), status='confirmed')
    add_appointment(db, clinic, utc(2030, 1, 9, 17, 0), status='in_progress')

    slots = resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)

    assert time(9, 0) not in slots
    assert time(16, 30) not in slots
    assert time(17, 0) not in slots
    assert time(10, 0) in slots


def test_resolve_slots_returns_nothing_on_a_time_off_day(db, clinic) -> None:
    TimeOffRegistry(db).add(clinic.professional.id, date(2024, 12, 24), date(2024, 12, 26), 'Holidays')
    clock = fixed_clock(utc(2024, 12, 1, 12, 0))

    assert resolve_slots(db, clinic.professional.id, date(2024, 12, 25), clinic.service.id, clock=clock) == []
    assert resolve_slots(db, clinic.professional.id, date(2024, 12, 26), clinic.service.id, clock=clock) == []
    assert resolve_slots(db, clinic.professional.id, date(2024, 12, 23), clinic.service.id, clock=clock) != []


def test_resolve_slots_returns_nothing_without_windows(db, clinic) -> None:
    saturday = date(2030, 1, 12)

    assert resolve_slots(db, clinic.professional.id, saturday, clinic.service.id, clock=BEFORE_WEDNESDAY) == []


def test_resolve_slots_keeps_only_future_starts_today(db, clinic) -> None:
    clock = fixed_clock(utc(2030, 1, 9, 10, 15))

    slots = resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=clock)

    assert slots == [time(10, 30), time(11, 0)] + FULL_WEDNESDAY[5:]


def test_resolve_slots_returns_nothing_for_past_dates(db, clinic) -> None:
    clock = fixed_clock(utc(2030, 1, 10, 8, 0))

    assert resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=clock) == []


def test_resolve_slots_is_repeatable_without_writes(db, clinic) -> None:
    add_appointment(db, clinic, utc(2030, 1, 9, 15, 0), duration_minutes=30)

    first = resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)
    second = resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)

    assert first == second
    assert first == sorted(set(first))


def test_resolver_steps_by_granularity_that_does_not_divide_the_window(db, clinic) -> None:
    resolver = build_resolver(db, clock=BEFORE_WEDNESDAY)

    starts = resolver.resolve(clinic.professional.id, WEDNESDAY, 60, ZoneInfo('UTC'), granularity_minutes=45)

    assert [start.time() for start in starts] == [
        time(9, 0),
        time(9, 45),
        time(10, 30),
        time(14, 0),
        time(14, 45),
        time(15, 30),
        time(16, 15),
        time(17, 0),
    ]


@pytest.mark.parametrize('duration_minutes', [0, -15])
def test_resolver_rejects_non_positive_duration(db, clinic, duration_minutes: int) -> None:
    resolver = build_resolver(db, clock=BEFORE_WEDNESDAY)

    with pytest.raises(InvalidDuration):
        resolver.resolve(clinic.professional.id, WEDNESDAY, duration_minutes, ZoneInfo('UTC'))


def test_resolver_rejects_non_positive_granularity(db, clinic) -> None:
    resolver = build_resolver(db, clock=BEFORE_WEDNESDAY)

    with pytest.raises(InvalidDuration):
        resolver.resolve(clinic.professional.id, WEDNESDAY, 60, ZoneInfo('UTC'), granularity_minutes=0)


def test_resolve_slots_rejects_service_with_zero_duration(db, clinic) -> None:
    clinic.service.duration_minutes = 0
    db.commit()

    with pytest.raises(InvalidDuration):
        resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)


def test_resolve_slots_rejects_unknown_or_inactive_service(db, clinic) -> None:
    with pytest.raises(ServiceUnavailable):
        resolve_slots(db, clinic.professional.id, WEDNESDAY, 999, clock=BEFORE_WEDNESDAY)

    clinic.service.active = False
    db.commit()

    with pytest.raises(ServiceUnavailable):
        resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)


def test_resolve_slots_rejects_service_of_another_professional(db, clinic) -> None:
    other_service = Service(
        organization_id=clinic.organization.id,
        professional_id=clinic.admin.id,
        name='Consultation',
        duration_minutes=30,
        active=True,
    )
    db.add(other_service)
    db.commit()

    with pytest.raises(ServiceUnavailable):
        resolve_slots(db, clinic.professional.id, WEDNESDAY, other_service.id, clock=BEFORE_WEDNESDAY)


def test_resolve_slot_starts_uses_organization_timezone(db) -> None:
    clinic = seed_clinic(db, timezone_name='America/Sao_Paulo')
    sao_paulo = ZoneInfo('America/Sao_Paulo')
    # 13:00 UTC is 10:00 in Sao Paulo.
    add_appointment(db, clinic, utc(2030, 1, 9, 13, 0), duration_minutes=60)

    starts = resolve_slot_starts(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)

    assert starts[0] == datetime(2030, 1, 9, 9, 0, tzinfo=sao_paulo)
    assert starts[0].utcoffset() == sao_paulo.utcoffset(datetime(2030, 1, 9, 9, 0))
    assert [start.time() for start in starts if start.time() < time(12, 0)] == [time(9, 0), time(11, 0)]


def test_resolve_slot_starts_falls_back_to_default_timezone(db) -> None:
    clinic = seed_clinic(db, timezone_name='Mars/Olympus_Mons')

    starts = resolve_slot_starts(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)

    assert starts[0] == utc(2030, 1, 9, 9, 0)


def test_resolve_slots_stops_at_the_booking_horizon(db, clinic) -> None:
    # The horizon ends 2030-06-04 14:30 UTC, a Tuesday.
    clock = fixed_clock(utc(2029, 12, 3, 14, 30))

    last_day = resolve_slots(db, clinic.professional.id, date(2030, 6, 4), clinic.service.id, clock=clock)
    beyond = resolve_slots(db, clinic.professional.id, date(2030, 9, 4), clinic.service.id, clock=clock)

    assert last_day == FULL_WEDNESDAY[:7]
    assert beyond == []


def test_every_listed_slot_is_within_the_booking_horizon(db, clinic) -> None:
    starts = resolve_slot_starts(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)

    for start in starts:
        assert horizon_problem(start, BEFORE_WEDNESDAY()) is None


def test_resolve_slots_returns_nothing_for_inactive_professional(db, clinic) -> None:
    clinic.professional.is_active = False
    db.commit()

    assert resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY) == []


def test_resolve_slots_returns_nothing_without_online_booking(db, clinic) -> None:
    clinic.professional.accept_online_booking = False
    db.commit()

    assert resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY) == []


def test_resolve_slots_returns_nothing_when_organization_disables_public_booking(db, clinic) -> None:
    clinic.organization.public_booking_enabled = False
    db.commit()

    assert resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY) == []


def test_resolve_slots_returns_nothing_for_professional_of_another_organization(db, clinic) -> None:
    organization = Organization(name='Other Studio', slug='other-studio', timezone='UTC')
    db.add(organization)
    db.flush()
    clinic.professional.organization_id = organization.id
    clinic.service.professional_id = None
    db.commit()

    assert resolve_slots(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY) == []


def test_first_listed_slot_can_be_booked(db, clinic) -> None:
    starts = resolve_slot_starts(db, clinic.professional.id, WEDNESDAY, clinic.service.id, clock=BEFORE_WEDNESDAY)

    outcome = book_appointment(
        db,
        clinic.professional.id,
        clinic.service.id,
        starts[0],
        ClientInfo(name='Maria Souza', email='maria@example.com'),
        clock=BEFORE_WEDNESDAY,
    )

    assert outcome.committed
