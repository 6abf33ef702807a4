"""Notification model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from clinicapp.database import Base, generate_id


class Notification(Base):
    """Represents an in-app message addressed to a single user."""
    __tablename__ = "notifications"

    id = Column(String(32), primary_key=True, default=generate_id)
    user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
    clinic_id = Column(String(32), ForeignKey("clinics.id"))
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    icon = Column(String)
    read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)
