"""Clinic model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String
from clinicapp.database import Base, generate_id


class Clinic(Base):
    """Represents a tenant clinic that owns staff, patients and services."""
    __tablename__ = "clinics"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    address = Column(String)
    phone = Column(String)
    email = Column(String)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)
