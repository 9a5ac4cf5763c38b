import os
from datetime import datetime, time, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from slotkeeper.database import Base  # noqa: E402
from slotkeeper.models.appointment import Appointment  # noqa: E402
from slotkeeper.models.availability import AvailabilityWindow  # noqa: E402
from slotkeeper.models.organization import Organization  # noqa: E402
from slotkeeper.models.service import Service  # noqa: E402
from slotkeeper.models.time_off import TimeOffPeriod  # noqa: E402,F401
from slotkeeper.models.user import User  # noqa: E402
from slotkeeper.rate_limiter import reset_rate_limits  # noqa: E402

WEEKDAY_SHIFTS = ((time(9, 0), time(12, 0)), (time(14, 0), time(18, 0)))


def fixed_clock(value: datetime):
    return lambda: value


def seed_clinic(db, timezone_name: str = 'UTC', duration_minutes: int = 60) -> SimpleNamespace:
    organization = Organization(name='Studio Aurora', slug='studio-aurora', timezone=timezone_name)
    db.add(organization)
    db.flush()

    professional = User(
        email='ana@studio-aurora.com',
        role='professional',
        organization_id=organization.id,
        is_active=True,
        accept_online_booking=True,
    )
    admin = User(
        email='owner@studio-aurora.com',
        role='admin',
        organization_id=organization.id,
        is_active=True,
        accept_online_booking=False,
    )
    db.add_all([professional, admin])
    db.flush()

    service = Service(
        organization_id=organization.id,
        professional_id=professional.id,
        name='Haircut',
        duration_minutes=duration_minutes,
        active=True,
    )
    db.add(service)

    for weekday in range(5):
        for start, end in WEEKDAY_SHIFTS:
            db.add(
                AvailabilityWindow(
                    organization_id=organization.id,
                    professional_id=professional.id,
                    weekday=weekday,
                    start_time=start,
                    end_time=end,
                    active=True,
                )
            )

    db.commit()
    return SimpleNamespace(organization=organization, professional=professional, admin=admin, service=service)


def add_appointment(db, clinic, start: datetime, duration_minutes: int = 60, status: str = 'scheduled') -> Appointment:
    appointment = Appointment(
        organization_id=clinic.organization.id,
        professional_id=clinic.professional.id,
        service_id=clinic.service.id,
        scheduled_at=start,
        duration_minutes=duration_minutes,
        ends_at=start + timedelta(minutes=duration_minutes),
        status=status,
        client_name='Existing Client',
    )
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clinic(db):
    return seed_clinic(db)


@pytest.fixture(autouse=True)
def clear_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()
