"""Appointment model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from clinicapp.database import Base, generate_id

SCHEDULED = 'SCHEDULED'
CONFIRMED = 'CONFIRMED'
COMPLETED = 'COMPLETED'
CANCELLED = 'CANCELLED'
NO_SHOW = 'NO_SHOW'

APPOINTMENT_STATUSES = (SCHEDULED, CONFIRMED, COMPLETED, CANCELLED, NO_SHOW)

# Statuses a new appointment may be booked with.
BOOKABLE_STATUSES = (SCHEDULED, CONFIRMED)

# Appointments in these statuses no longer occupy the doctor's time.
RELEASED_STATUSES = (CANCELLED, NO_SHOW)

STATUS_TRANSITIONS = {
    SCHEDULED: {CONFIRMED, CANCELLED, NO_SHOW},
    CONFIRMED: {COMPLETED, CANCELLED, NO_SHOW},
    COMPLETED: set(),
    CANCELLED: set(),
    NO_SHOW: set(),
}

MAX_NOTES_LENGTH = 500


def can_transition(current: str, target: str) -> bool:
    if current == target:
        return True
    return target in STATUS_TRANSITIONS.get(current, set())


class Appointment(Base):
    """Represents a booked visit between a patient and a doctor."""
    __tablename__ = "appointments"

    id = Column(String(32), primary_key=True, default=generate_id)
    clinic_id = Column(String(32), ForeignKey("clinics.id"), index=True)
    patient_id = Column(String(32), ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(String(32), ForeignKey("users.id"), nullable=False)
    service_id = Column(String(32), ForeignKey("services.id"))
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=SCHEDULED)
    notes = Column(String(MAX_NOTES_LENGTH))
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    patient = relationship("Patient")
    doctor = relationship("User")
    service = relationship("Service")
