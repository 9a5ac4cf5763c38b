"""Availability model definitions."""

from sqlalchemy import Column, Integer, Time, Boolean, ForeignKey
from slotkeeper.database import Base


class AvailabilityWindow(Base):
    """Represents a recurring weekly interval in which a professional accepts bookings."""
    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"))
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    weekday = Column(Integer, nullable=False)  # 0 = Monday, as date.weekday()
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
