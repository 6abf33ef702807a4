"""Patient model definitions."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, String
from clinicapp.database import Base, generate_id


class Patient(Base):
    """Represents a patient registered at a clinic."""
    __tablename__ = "patients"

    id = Column(String(32), primary_key=True, default=generate_id)
    clinic_id = Column(String(32), ForeignKey("clinics.id"), index=True)
    user_id = Column(String(32), ForeignKey("users.id"))  # portal account, optional
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    date_of_birth = Column(Date)
    gender = Column(String)
    email = Column(String)
    phone = Column(String, nullable=False)
    address = Column(String)
    created_at = Column(DateTime, default=datetime.now)
