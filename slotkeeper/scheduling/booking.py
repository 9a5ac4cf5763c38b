"""Booking write path.

A booking attempt moves from ``VALIDATING`` to ``COMMITTED`` or ``REJECTED``.
The overlap check and the insert run in one database transaction inside the
professional's critical section, so two attempts for overlapping times cannot
both commit. Rejections are returned, not raised; only ``StorageUnavailable``
escapes, after one retry.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from slotkeeper.core import config
from slotkeeper.database import OVERLAP_CONSTRAINT_NAME
from slotkeeper.models.appointment import Appointment
from slotkeeper.models.service import Service
from slotkeeper.scheduling.calendar import AvailabilityCalendar
from slotkeeper.scheduling.eligibility import horizon_problem, professional_problem
from slotkeeper.scheduling.errors import InvalidDuration, StorageUnavailable
from slotkeeper.scheduling.ledger import AppointmentLedger
from slotkeeper.scheduling.locks import ProfessionalLockRegistry, acquire_advisory_lock, professional_locks
from slotkeeper.scheduling.overlap import Interval, first_conflict, occupied_interval
from slotkeeper.scheduling.slots import validate_duration
from slotkeeper.scheduling.time_off import TimeOffRegistry
from slotkeeper.scheduling.timezones import as_utc, localize, organization_timezone, utcnow

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = 'This time slot is no longer available. Please choose another time.'


class BookingState(str, Enum):
    VALIDATING = 'validating'
    COMMITTED = 'committed'
    REJECTED = 'rejected'


class RejectionReason(str, Enum):
    SLOT_TAKEN = 'slot_taken'
    INVALID_DURATION = 'invalid_duration'
    INVALID_DATE_RANGE = 'invalid_date_range'
    SERVICE_UNAVAILABLE = 'service_unavailable'
    PROFESSIONAL_UNAVAILABLE = 'professional_unavailable'
    OUTSIDE_AVAILABILITY = 'outside_availability'


@dataclass
class ClientInfo:
    name: str
    email: str | None = None
    phone: str | None = None
    notes: str | None = None


@dataclass
class BookingOutcome:
    state: BookingState
    appointment: Appointment | None = None
    reason: RejectionReason | None = None
    message: str | None = None

    @property
    def committed(self) -> bool:
        return self.state is BookingState.COMMITTED


def is_overlap_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, 'orig', None)
    diag = getattr(orig, 'diag', None)
    constraint_name = getattr(diag, 'constraint_name', None) if diag is not None else None
    if constraint_name:
        return constraint_name == OVERLAP_CONSTRAINT_NAME
    return OVERLAP_CONSTRAINT_NAME in str(orig)


@dataclass(frozen=True)
class _ServiceTerms:
    service_id: int
    organization_id: int | None
    duration_minutes: int

    @classmethod
    def of(cls, service: Service) -> "_ServiceTerms":
        return cls(service.id, service.organization_id, service.duration_minutes)


class BookingTransaction:
    """One booking attempt for one professional."""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        locks: ProfessionalLockRegistry = professional_locks,
    ):
        self.db = db
        self.clock = clock
        self.locks = locks
        self.ledger = AppointmentLedger(db)
        self.state = BookingState.VALIDATING

    def execute(
        self,
        professional_id: int,
        service_id: int,
        scheduled_at: datetime,
        client: ClientInfo,
        enforce_availability: bool = True,
    ) -> BookingOutcome:
        service = self.db.get(Service, service_id)
        if service is None or not service.active:
            return self._reject(RejectionReason.SERVICE_UNAVAILABLE, 'Service not found or not available.')
        if service.professional_id is not None and service.professional_id != professional_id:
            return self._reject(RejectionReason.SERVICE_UNAVAILABLE, 'Service is not offered by this professional.')

        try:
            validate_duration(service.duration_minutes)
        except InvalidDuration as exc:
            return self._reject(RejectionReason.INVALID_DURATION, exc.message)

        problem = professional_problem(
            self.db, professional_id, service.organization_id, public=enforce_availability
        )
        if problem:
            return self._reject(RejectionReason.PROFESSIONAL_UNAVAILABLE, problem)

        tz = organization_timezone(self.db, service.organization_id)
        local_start = localize(scheduled_at, tz).replace(second=0, microsecond=0)
        requested = occupied_interval(as_utc(local_start), service.duration_minutes)

        problem = horizon_problem(requested.start, self.clock())
        if problem:
            return self._reject(RejectionReason.INVALID_DATE_RANGE, problem)

        if enforce_availability:
            problem = self._availability_problem(professional_id, local_start, service.duration_minutes)
            if problem:
                return self._reject(RejectionReason.OUTSIDE_AVAILABILITY, problem)

        return self._commit_with_retry(professional_id, _ServiceTerms.of(service), requested, client)

    def _availability_problem(self, professional_id: int, local_start: datetime, duration_minutes: int) -> str | None:
        local_end = local_start + timedelta(minutes=duration_minutes)
        if TimeOffRegistry(self.db).is_blocked(professional_id, local_start.date()):
            return 'Professional is on time off on this date.'
        if local_end.date() != local_start.date() or not AvailabilityCalendar(self.db).contains(
            professional_id, local_start.weekday(), local_start.time(), local_end.time()
        ):
            return 'Requested time is outside the professional\'s working hours.'
        return None

    def _commit_with_retry(
        self,
        professional_id: int,
        terms: _ServiceTerms,
        requested: Interval,
        client: ClientInfo,
    ) -> BookingOutcome:
        attempt = 1
        while True:
            try:
                return self._check_and_insert(professional_id, terms, requested, client)
            except IntegrityError as exc:
                if not is_overlap_violation(exc):
                    raise
                logger.info('Overlap constraint rejected booking for professional %s at %s', professional_id, requested.start)
                return self._reject(RejectionReason.SLOT_TAKEN, SLOT_TAKEN_MESSAGE)
            except DBAPIError as exc:
                if not (isinstance(exc, OperationalError) or exc.connection_invalidated):
                    raise
                if attempt >= 2:
                    logger.exception('Booking for professional %s failed after retry', professional_id)
                    raise StorageUnavailable('Appointment storage is unavailable. Please try again later.') from exc
                logger.warning(
                    'Transient storage failure booking professional %s, retrying in %.2fs: %s',
                    professional_id, config.BOOKING_RETRY_BACKOFF_SECONDS, exc,
                )
                time.sleep(config.BOOKING_RETRY_BACKOFF_SECONDS)
                attempt += 1

    def _check_and_insert(
        self,
        professional_id: int,
        terms: _ServiceTerms,
        requested: Interval,
        client: ClientInfo,
    ) -> BookingOutcome:
        with self.locks.hold(professional_id, config.BOOKING_LOCK_TIMEOUT_SECONDS):
            try:
                acquire_advisory_lock(self.db, professional_id)
                occupied = self.ledger.occupied_between(professional_id, requested.start, requested.end)
                if first_conflict(requested, occupied) is not None:
                    self.db.rollback()
                    logger.info('Slot %s already taken for professional %s', requested.start, professional_id)
                    return self._reject(RejectionReason.SLOT_TAKEN, SLOT_TAKEN_MESSAGE)

                appointment = Appointment(
                    organization_id=terms.organization_id,
                    professional_id=professional_id,
                    service_id=terms.service_id,
                    scheduled_at=requested.start,
                    duration_minutes=terms.duration_minutes,
                    ends_at=requested.end,
                    status='scheduled',
                    client_name=client.name,
                    client_email=client.email,
                    client_phone=client.phone,
                    client_notes=client.notes[:config.MAX_CLIENT_NOTES_LENGTH] if client.notes else None,
                )
                self.ledger.insert(appointment)
                appointment_id = appointment.id
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.state = BookingState.COMMITTED
        logger.info(
            'Booked appointment %s for professional %s at %s (%s min)',
            appointment_id, professional_id, requested.start, terms.duration_minutes,
        )
        return BookingOutcome(state=self.state, appointment=appointment)

    def _reject(self, reason: RejectionReason, message: str) -> BookingOutcome:
        self.state = BookingState.REJECTED
        return BookingOutcome(state=self.state, reason=reason, message=message)


def book_appointment(
    db: Session,
    professional_id: int,
    service_id: int,
    scheduled_at: datetime,
    client_info: ClientInfo,
    enforce_availability: bool = True,
    clock: Callable[[], datetime] = utcnow,
) -> BookingOutcome:
    return BookingTransaction(db, clock=clock).execute(
        professional_id,
        service_id,
        scheduled_at,
        client_info,
        enforce_availability=enforce_availability,
    )
