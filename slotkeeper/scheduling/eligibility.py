"""Checks shared by slot listing and booking.

A start time that slot listing offers must pass these same checks at booking
time, so both paths call them instead of repeating the rules.
"""

from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from slotkeeper.core import config
from slotkeeper.models.organization import Organization
from slotkeeper.models.user import User


def horizon_problem(start: datetime, now: datetime) -> str | None:
    """Why ``start`` cannot be booked at ``now``, or None inside the booking horizon."""
    if start <= now:
        return 'Cannot book appointments in the past.'
    if start > now + timedelta(days=config.BOOKING_MAX_ADVANCE_DAYS):
        return f'Cannot book appointments more than {config.BOOKING_MAX_ADVANCE_DAYS} days in advance.'
    return None


def professional_problem(
    db: Session,
    professional_id: int,
    organization_id: int | None,
    public: bool = True,
) -> str | None:
    professional = db.get(User, professional_id)
    if (
        professional is None
        or not professional.is_active
        or (organization_id is not None and professional.organization_id != organization_id)
    ):
        return 'Professional not found.'

    if not public:
        return None

    if not professional.accept_online_booking:
        return 'Professional does not accept online bookings.'
    if organization_id is not None:
        organization = db.get(Organization, organization_id)
        if organization is not None and organization.public_booking_enabled is False:
            return 'Online booking is disabled for this organization.'
    return None
