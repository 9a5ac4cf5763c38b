from datetime import date, time

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from slotkeeper.auth.dependencies import ensure_can_manage_professional, get_current_user
from slotkeeper.models.time_off import TimeOffPeriod
from slotkeeper.models.user import User
from slotkeeper.routes.common import database_unavailable, ensure_database_ready, get_db, http_error_for
from slotkeeper.scheduling.calendar import AvailabilityCalendar
from slotkeeper.scheduling.errors import SchedulingError
from slotkeeper.scheduling.time_off import TimeOffRegistry

router = APIRouter(tags=['availability'])

MAX_TIME_OFF_TITLE_LENGTH = 120


class CreateWindowRequest(BaseModel):
    weekday: int
    start_time: time
    end_time: time

    @field_validator('weekday')
    @classmethod
    def validate_weekday(cls, value: int) -> int:
        if value < 0 or value > 6:
            raise ValueError('Weekday must be between 0 (Monday) and 6 (Sunday).')
        return value


class UpdateWindowRequest(BaseModel):
    weekday: int | None = None
    start_time: time | None = None
    end_time: time | None = None
    active: bool | None = None


class WindowResponse(BaseModel):
    id: int
    professional_id: int
    weekday: int
    start_time: time
    end_time: time
    active: bool

    class Config:
        from_attributes = True


class CreateTimeOffRequest(BaseModel):
    title: str
    start_date: date
    end_date: date
    description: str | None = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Title is required.')
        if len(normalized) > MAX_TIME_OFF_TITLE_LENGTH:
            raise ValueError(f'Title must be {MAX_TIME_OFF_TITLE_LENGTH} characters or fewer.')
        return normalized

    @field_validator('description')
    @classmethod
    def validate_description(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class TimeOffResponse(BaseModel):
    id: int
    professional_id: int
    title: str
    description: str | None = None
    start_date: date
    end_date: date

    class Config:
        from_attributes = True


def load_managed_professional(db: Session, current_user: User, professional_id: int) -> User:
    professional = db.get(User, professional_id)
    ensure_can_manage_professional(current_user, professional)
    return professional


@router.get('/professionals/{professional_id}/windows', response_model=list[WindowResponse])
def list_windows(
    professional_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        load_managed_professional(db, current_user, professional_id)
        return AvailabilityCalendar(db).all_windows(professional_id)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post(
    '/professionals/{professional_id}/windows',
    response_model=WindowResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_window(
    professional_id: int,
    data: CreateWindowRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        professional = load_managed_professional(db, current_user, professional_id)
        return AvailabilityCalendar(db).add(
            professional_id,
            data.weekday,
            data.start_time,
            data.end_time,
            organization_id=professional.organization_id,
        )
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.patch('/windows/{window_id}', response_model=WindowResponse)
def update_window(
    window_id: int,
    data: UpdateWindowRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        calendar = AvailabilityCalendar(db)
        window = calendar.get(window_id)
        load_managed_professional(db, current_user, window.professional_id)
        return calendar.update(window_id, **data.model_dump(exclude_unset=True))
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/windows/{window_id}', response_model=WindowResponse)
def remove_window(
    window_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        calendar = AvailabilityCalendar(db)
        window = calendar.get(window_id)
        load_managed_professional(db, current_user, window.professional_id)
        return calendar.remove(window_id)
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/professionals/{professional_id}/time-off', response_model=list[TimeOffResponse])
def list_time_off(
    professional_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        load_managed_professional(db, current_user, professional_id)
        return TimeOffRegistry(db).periods_for(professional_id)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post(
    '/professionals/{professional_id}/time-off',
    response_model=TimeOffResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_time_off(
    professional_id: int,
    data: CreateTimeOffRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        professional = load_managed_professional(db, current_user, professional_id)
        return TimeOffRegistry(db).add(
            professional_id,
            data.start_date,
            data.end_date,
            data.title,
            description=data.description,
            organization_id=professional.organization_id,
        )
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/time-off/{period_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_time_off(
    period_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_database_ready()

    try:
        period = db.get(TimeOffPeriod, period_id)
        if period is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Time off period not found.',
            )
        load_managed_professional(db, current_user, period.professional_id)
        TimeOffRegistry(db).remove(period_id)
    except SchedulingError as exc:
        raise http_error_for(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
