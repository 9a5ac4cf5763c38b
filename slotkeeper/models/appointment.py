"""Appointment model definitions."""

from datetime import datetime, timezone

from sqlalchemy import Column, Integer, DateTime, ForeignKey, String
from slotkeeper.database import Base

APPOINTMENT_STATUSES = ('scheduled', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')
TIME_CONSUMING_STATUSES = ('scheduled', 'confirmed', 'in_progress')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Appointment(Base):
    """Represents a booked appointment.

    ``duration_minutes`` is copied from the service at booking time and
    ``ends_at`` is stored so the occupied range can be indexed and constrained.
    """
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"))
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"))
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, default='scheduled')
    client_name = Column(String)
    client_email = Column(String)
    client_phone = Column(String)
    client_notes = Column(String)
    cancellation_reason = Column(String)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
