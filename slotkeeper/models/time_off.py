"""Time-off model definitions."""

from sqlalchemy import Column, Integer, Date, String, ForeignKey
from slotkeeper.database import Base


class TimeOffPeriod(Base):
    """Represents an inclusive date range in which a professional takes no bookings."""
    __tablename__ = "time_off"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"))
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    title = Column(String, nullable=False)
    description = Column(String)
