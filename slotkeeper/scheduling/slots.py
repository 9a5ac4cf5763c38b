import logging
from datetime import date, datetime, time, timedelta
from typing import Callable
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from slotkeeper.core import config
from slotkeeper.models.service import Service
from slotkeeper.scheduling.calendar import AvailabilityCalendar
from slotkeeper.scheduling.eligibility import horizon_problem, professional_problem
from slotkeeper.scheduling.errors import InvalidDuration, ServiceUnavailable
from slotkeeper.scheduling.ledger import AppointmentLedger
from slotkeeper.scheduling.overlap import is_free, occupied_interval
from slotkeeper.scheduling.time_off import TimeOffRegistry
from slotkeeper.scheduling.timezones import local_instant, organization_timezone, utcnow

logger = logging.getLogger(__name__)


def validate_duration(duration_minutes: int, granularity_minutes: int = 1) -> None:
    if duration_minutes is None or duration_minutes <= 0:
        raise InvalidDuration('Service duration must be a positive number of minutes.')
    if granularity_minutes <= 0:
        raise InvalidDuration('Slot granularity must be a positive number of minutes.')


class SlotResolver:
    """Computes bookable start times for one professional on one date.

    Reads windows, time off and the ledger on every call and writes nothing,
    so two calls with no writes in between return the same slots.
    """

    def __init__(
        self,
        calendar: AvailabilityCalendar,
        time_off: TimeOffRegistry,
        ledger: AppointmentLedger,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.calendar = calendar
        self.time_off = time_off
        self.ledger = ledger
        self.clock = clock

    def resolve(
        self,
        professional_id: int,
        day: date,
        duration_minutes: int,
        tz: ZoneInfo,
        granularity_minutes: int = config.SLOT_GRANULARITY_MINUTES,
    ) -> list[datetime]:
        """Return slot starts as aware datetimes in ``tz``, ordered and without duplicates."""
        validate_duration(duration_minutes, granularity_minutes)

        if self.time_off.is_blocked(professional_id, day):
            return []

        windows = self.calendar.windows_for(professional_id, day.weekday())
        if not windows:
            return []

        occupied = self.ledger.occupied_intervals(professional_id, day, tz)
        now = self.clock()
        duration = timedelta(minutes=duration_minutes)
        step = timedelta(minutes=granularity_minutes)

        accepted: set[datetime] = set()
        for window in windows:
            window_end = local_instant(day, window.end_time, tz)
            candidate = local_instant(day, window.start_time, tz)

            while candidate + duration <= window_end:
                # Only starts between now and the booking horizon are offered.
                bookable = horizon_problem(candidate, now) is None
                if bookable and is_free(occupied_interval(candidate, duration_minutes), occupied):
                    accepted.add(candidate)
                candidate += step

        slots = sorted(accepted)
        logger.debug(
            'Resolved %d slots for professional %s on %s (duration=%s, occupied=%d)',
            len(slots), professional_id, day, duration_minutes, len(occupied),
        )
        return slots


def get_service(db: Session, service_id: int) -> Service:
    service = db.get(Service, service_id)
    if service is None or not service.active:
        raise ServiceUnavailable('Service not found or not available.')
    return service


def build_resolver(db: Session, clock: Callable[[], datetime] = utcnow) -> SlotResolver:
    return SlotResolver(AvailabilityCalendar(db), TimeOffRegistry(db), AppointmentLedger(db), clock=clock)


def resolve_slot_starts(
    db: Session,
    professional_id: int,
    day: date,
    service_id: int,
    clock: Callable[[], datetime] = utcnow,
) -> list[datetime]:
    service = get_service(db, service_id)
    if service.professional_id is not None and service.professional_id != professional_id:
        raise ServiceUnavailable('Service is not offered by this professional.')

    problem = professional_problem(db, professional_id, service.organization_id)
    if problem:
        logger.debug('No slots for professional %s: %s', professional_id, problem)
        return []

    tz = organization_timezone(db, service.organization_id)
    return build_resolver(db, clock).resolve(
        professional_id,
        day,
        service.duration_minutes,
        tz,
        granularity_minutes=config.SLOT_GRANULARITY_MINUTES,
    )


def resolve_slots(
    db: Session,
    professional_id: int,
    day: date,
    service_id: int,
    clock: Callable[[], datetime] = utcnow,
) -> list[time]:
    """Bookable times of day for ``service_id`` with ``professional_id`` on ``day``."""
    return [slot.time() for slot in resolve_slot_starts(db, professional_id, day, service_id, clock)]
