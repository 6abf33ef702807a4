"""User model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String
from clinicapp.database import Base, generate_id

ADMIN_ROLE = 'ADMIN'
DOCTOR_ROLE = 'DOCTOR'
RECEPTIONIST_ROLE = 'RECEPTIONIST'
PATIENT_ROLE = 'PATIENT'

STAFF_ROLES = (ADMIN_ROLE, DOCTOR_ROLE, RECEPTIONIST_ROLE)
USER_ROLES = STAFF_ROLES + (PATIENT_ROLE,)


class User(Base):
    """Represents a staff member or a patient portal account."""
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String)
    phone = Column(String)
    role = Column(String, nullable=False, default=PATIENT_ROLE)
    clinic_id = Column(String(32), ForeignKey("clinics.id"), index=True)  # null when unlinked
    created_at = Column(DateTime, default=datetime.now)
