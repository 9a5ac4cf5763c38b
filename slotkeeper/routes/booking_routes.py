import re
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotkeeper.auth.dependencies import ensure_admin, ensure_same_organization, get_current_user
from slotkeeper.core import config
from slotkeeper.models.appointment import Appointment
from slotkeeper.models.user import User
from slotkeeper.rate_limiter import booking_rate_limit
from slotkeeper.routes.common import database_unavailable, ensure_database_ready, get_db, http_error_for
from slotkeeper.scheduling.booking import BookingOutcome, ClientInfo, RejectionReason, book_appointment
from slotkeeper.scheduling.errors import SchedulingError
from slotkeeper.scheduling.ledger import AppointmentLedger
from slotkeeper.scheduling.slots import resolve_slot_starts
from slotkeeper.scheduling.timezones import as_utc, localize, organization_timezone

router = APIRouter(tags=['booking'])

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
MAX_CLIENT_NAME_LENGTH = 100
MAX_CLIENT_EMAIL_LENGTH = 255
MAX_CLIENT_PHONE_LENGTH = 20

REJECTION_STATUS_CODES = {
    RejectionReason.SLOT_TAKEN: status.HTTP_409_CONFLICT,
    RejectionReason.SERVICE_UNAVAILABLE: status.HTTP_404_NOT_FOUND,
    RejectionReason.PROFESSIONAL_UNAVAILABLE: status.HTTP_404_NOT_FOUND,
    RejectionReason.INVALID_DURATION: status.HTTP_400_BAD_REQUEST,
    RejectionReason.INVALID_DATE_RANGE: status.HTTP_400_BAD_REQUEST,
    RejectionReason.OUTSIDE_AVAILABILITY: status.HTTP_400_BAD_REQUEST,
}


class SlotResponse(BaseModel):
    time: time
    start_time: datetime


class CreateBookingRequest(BaseModel):
    professional_id: int
    service_id: int
    scheduled_at: datetime
    client_name: str
    client_email: str
    client_phone: str | None = None
    notes: str | None = None

    @field_validator('client_name')
    @classmethod
    def validate_client_name(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < 2:
            raise ValueError('Client name is required and must be at least 2 characters.')
        if len(normalized) > MAX_CLIENT_NAME_LENGTH:
            raise ValueError('Client name too long.')
        return normalized

    @field_validator('client_email')
    @classmethod
    def validate_client_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Client email is required.')
        if len(normalized) > MAX_CLIENT_EMAIL_LENGTH:
            raise ValueError('Client email too long.')
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError('Invalid email format.')
        return normalized

    @field_validator('client_phone')
    @classmethod
    def validate_client_phone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > MAX_CLIENT_PHONE_LENGTH:
            raise ValueError('Client phone too long.')
        return normalized or None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > config.MAX_CLIENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_CLIENT_NOTES_LENGTH} characters or fewer.')

        return normalized

    def client_info(self) -> ClientInfo:
        return ClientInfo(
            name=self.client_name,
            email=self.client_email,
            phone=self.client_phone,
            notes=self.notes,
        )


class StaffBookingRequest(CreateBookingRequest):
    enforce_availability: bool = True


class StatusChangeRequest(BaseModel):
    status: str
    cancellation_reason: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return value.strip().lower()


class AppointmentResponse(BaseModel):
    id: int
    organization_id: int | None = None
    professional_id: int
    service_id: int | None = None
    scheduled_at: datetime
    ends_at: datetime
    duration_minutes: int
    status: str
    client_name: str | None = None
    client_email: str | None = None
    client_phone: str | None = None
    client_notes: str | None = None
    cancellation_reason: str | None = None

    class Config:
        from_attributes = True

    @field_validator('scheduled_at', 'ends_at')
    @classmethod
    def normalize_instant(cls, value: datetime) -> datetime:
        return as_utc(value)


def raise_for_rejection(outcome: BookingOutcome) -> None:
    if outcome.committed:
        return
    raise HTTPException(
        status_code=REJECTION_STATUS_CODES.get(outcome.reason, status.HTTP_400_BAD_REQUEST),
        detail={'reason': outcome.reason.value, 'message': outcome.message},
    )


@router.get('/slots', response_model=list[SlotResponse])
def list_slots(
    professional_id: int = Query(...),
    service_id: int = Query(...),
    day: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        starts = resolve_slot_starts(db, professional_id, day, service_id)
        return [SlotResponse(time=start.time(), start_time=start) for start in starts]
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post(
    '/appointments',
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_rate_limit)],
)
def create_appointment(data: CreateBookingRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        outcome = book_appointment(
            db,
            data.professional_id,
            data.service_id,
            data.scheduled_at,
            data.client_info(),
        )
        raise_for_rejection(outcome)
        return outcome.appointment
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.post('/staff/appointments', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_staff_appointment(
    data: StaffBookingRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        professional = db.get(User, data.professional_id)
        if professional is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Professional not found.',
            )
        ensure_same_organization(current_user, professional.organization_id)

        outcome = book_appointment(
            db,
            data.professional_id,
            data.service_id,
            data.scheduled_at,
            data.client_info(),
            enforce_availability=data.enforce_availability,
        )
        raise_for_rejection(outcome)
        return outcome.appointment
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/appointments', response_model=list[AppointmentResponse])
def list_appointments(
    professional_id: int = Query(...),
    start: datetime = Query(...),
    end: datetime = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        professional = db.get(User, professional_id)
        if professional is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Professional not found.',
            )
        ensure_same_organization(current_user, professional.organization_id)

        # Naive bounds are wall-clock times in the organization's timezone.
        tz = organization_timezone(db, professional.organization_id)
        start, end = localize(start, tz), localize(end, tz)
        if start >= end:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Start must be before end.',
            )
        return AppointmentLedger(db).list_for_professional(professional_id, start, end)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.patch('/appointments/{appointment_id}/status', response_model=AppointmentResponse)
def change_appointment_status(
    appointment_id: int,
    data: StatusChangeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        ledger = AppointmentLedger(db)
        appointment = ledger.get(appointment_id)
        ensure_same_organization(current_user, appointment.organization_id)
        return ledger.change_status(appointment_id, data.status, data.cancellation_reason)
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/appointments/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_admin(current_user)
    ensure_database_ready()

    try:
        ledger = AppointmentLedger(db)
        appointment: Appointment = ledger.get(appointment_id)
        ensure_same_organization(current_user, appointment.organization_id)
        ledger.delete(appointment_id)
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
