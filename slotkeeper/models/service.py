"""Service model definitions."""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from slotkeeper.database import Base


class Service(Base):
    """Represents a bookable service and the duration it occupies."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), index=True)
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    name = Column(String, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)
    active = Column(Boolean, default=True)
