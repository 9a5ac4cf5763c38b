"""Organization model definitions."""

from sqlalchemy import Column, Integer, String, Boolean
from slotkeeper.database import Base


class Organization(Base):
    """Represents a tenant of the storefront."""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, index=True)
    timezone = Column(String)  # IANA zone, e.g. America/Sao_Paulo
    public_booking_enabled = Column(Boolean, default=True)
