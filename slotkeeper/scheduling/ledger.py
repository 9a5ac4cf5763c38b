import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from slotkeeper.models.appointment import APPOINTMENT_STATUSES, TIME_CONSUMING_STATUSES, Appointment
from slotkeeper.scheduling.errors import InvalidStatusTransition, RecordNotFound
from slotkeeper.scheduling.overlap import Interval
from slotkeeper.scheduling.timezones import as_utc, day_bounds

logger = logging.getLogger(__name__)

VALID_NEXT = {
    'scheduled': {'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show'},
    'confirmed': {'in_progress', 'completed', 'cancelled', 'no_show'},
    'in_progress': {'completed', 'cancelled', 'no_show'},
    'completed': set(),
    'cancelled': set(),
    'no_show': set(),
}


class AppointmentLedger:
    """Appointments of professionals, as seen by the scheduling core.

    Reads always go to the database; a cached view of the ledger is exactly
    what lets two bookings land on the same slot.
    """

    def __init__(self, db: Session):
        self.db = db

    def occupied_intervals(self, professional_id: int, day: date, tz: ZoneInfo) -> list[Interval]:
        day_start, day_end = day_bounds(day, tz)
        return self.occupied_between(professional_id, day_start, day_end)

    def occupied_between(self, professional_id: int, start: datetime, end: datetime) -> list[Interval]:
        rows = self.db.query(Appointment.scheduled_at, Appointment.ends_at).filter(
            Appointment.professional_id == professional_id,
            Appointment.status.in_(TIME_CONSUMING_STATUSES),
            Appointment.scheduled_at < as_utc(end),
            Appointment.ends_at > as_utc(start),
        ).order_by(Appointment.scheduled_at.asc()).all()

        return [Interval(as_utc(scheduled_at), as_utc(ends_at)) for scheduled_at, ends_at in rows]

    def list_for_professional(self, professional_id: int, start: datetime, end: datetime) -> list[Appointment]:
        return (
            self.db.query(Appointment)
            .filter(
                Appointment.professional_id == professional_id,
                Appointment.scheduled_at < as_utc(end),
                Appointment.ends_at > as_utc(start),
            )
            .order_by(Appointment.scheduled_at.asc())
            .all()
        )

    def get(self, appointment_id: int) -> Appointment:
        appointment = self.db.get(Appointment, appointment_id)
        if appointment is None:
            raise RecordNotFound('Appointment not found.')
        return appointment

    def insert(self, appointment: Appointment) -> Appointment:
        """Stage ``appointment`` in the current transaction; the caller commits."""
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def change_status(self, appointment_id: int, status: str, cancellation_reason: str | None = None) -> Appointment:
        if status not in APPOINTMENT_STATUSES:
            raise InvalidStatusTransition(f'Unknown appointment status: {status}.')

        appointment = self.get(appointment_id)
        if appointment.status == status:
            return appointment

        if status not in VALID_NEXT.get(appointment.status, set()):
            raise InvalidStatusTransition(f'Cannot change appointment from {appointment.status} to {status}.')

        previous = appointment.status
        appointment.status = status
        if status == 'cancelled' and cancellation_reason:
            appointment.cancellation_reason = cancellation_reason.strip()
        self.db.commit()
        self.db.refresh(appointment)
        logger.info('Appointment %s moved from %s to %s', appointment_id, previous, status)
        return appointment

    def delete(self, appointment_id: int) -> None:
        appointment = self.get(appointment_id)
        self.db.delete(appointment)
        self.db.commit()
        logger.info('Appointment %s removed by staff', appointment_id)
