"""Service model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String
from clinicapp.database import Base, generate_id


class Service(Base):
    """Represents a clinic procedure with a fixed price and duration."""
    __tablename__ = "services"

    id = Column(String(32), primary_key=True, default=generate_id)
    clinic_id = Column(String(32), ForeignKey("clinics.id"), index=True)  # null when unlinked
    name = Column(String, nullable=False)
    description = Column(String, default='')
    duration = Column(Integer, nullable=False)  # minutes
    price = Column(Float, nullable=False, default=0.0)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)
