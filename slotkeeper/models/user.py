"""User model definitions."""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey
from slotkeeper.database import Base


class User(Base):
    """Represents a professional or staff member of an organization."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String)  # admin/professional/staff
    organization_id = Column(Integer, ForeignKey("organizations.id"), index=True)
    is_active = Column(Boolean, default=True)
    accept_online_booking = Column(Boolean, default=True)
