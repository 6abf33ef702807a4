"""Validation of the appointment booking form.

The form carries a calendar date plus two time-of-day strings, the way a
browser's date and time inputs submit them. :func:`validate_appointment_form`
either accepts the values as an :class:`AppointmentForm` or reports one
message per offending field; it never touches the network.
"""

from datetime import datetime

from pydantic import BaseModel, ValidationError, ValidationInfo, field_validator

from clinicapp.booking.duration import format_time_of_day, parse_time_of_day
from clinicapp.core.errors import field_errors
from clinicapp.models.appointment import BOOKABLE_STATUSES, MAX_NOTES_LENGTH, SCHEDULED

DATE_FORMAT = '%Y-%m-%d'


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


class AppointmentForm(BaseModel):
    patient_id: str | None = None
    doctor_id: str | None = None
    service_id: str | None = None
    date: str | None = None
    start_time: str | None = None
    end_time: str | None = None
    notes: str | None = None
    status: str | None = SCHEDULED

    class Config:
        validate_default = True

    @field_validator('patient_id')
    @classmethod
    def validate_patient_id(cls, value: str | None) -> str:
        if _is_blank(value):
            raise ValueError('Please select a patient')
        return value.strip()

    @field_validator('doctor_id')
    @classmethod
    def validate_doctor_id(cls, value: str | None) -> str:
        if _is_blank(value):
            raise ValueError('Please select a doctor')
        return value.strip()

    @field_validator('service_id')
    @classmethod
    def validate_service_id(cls, value: str | None) -> str | None:
        if _is_blank(value):
            return None
        return value.strip()

    @field_validator('date')
    @classmethod
    def validate_date(cls, value: str | None) -> str:
        if _is_blank(value):
            raise ValueError('Date is required')
        try:
            return datetime.strptime(value.strip(), DATE_FORMAT).date().isoformat()
        except ValueError as exc:
            raise ValueError('Date must be in YYYY-MM-DD format') from exc

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: str | None) -> str:
        if _is_blank(value):
            raise ValueError('Start time is required')
        try:
            return format_time_of_day(parse_time_of_day(value))
        except ValueError as exc:
            raise ValueError('Start time must be in HH:MM format') from exc

    @field_validator('end_time')
    @classmethod
    def validate_end_time(cls, value: str | None, info: ValidationInfo) -> str:
        if _is_blank(value):
            raise ValueError('End time is required')
        try:
            end_time = parse_time_of_day(value)
        except ValueError as exc:
            raise ValueError('End time must be in HH:MM format') from exc

        start_time = info.data.get('start_time')
        if start_time is not None and end_time <= parse_time_of_day(start_time):
            raise ValueError('End time must be after start time')
        return format_time_of_day(end_time)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str:
        if value is None:
            return ''
        if len(value) > MAX_NOTES_LENGTH:
            raise ValueError('Notes are too long')
        return value

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str:
        if value is None or value.strip() not in BOOKABLE_STATUSES:
            raise ValueError('Please select a status')
        return value.strip()

    def start_datetime(self) -> datetime:
        return datetime.strptime(f'{self.date} {self.start_time}', f'{DATE_FORMAT} %H:%M')

    def end_datetime(self) -> datetime:
        return datetime.strptime(f'{self.date} {self.end_time}', f'{DATE_FORMAT} %H:%M')

    def to_payload(self) -> dict:
        """Request body for the appointment create and update endpoints."""
        return {
            'patientId': self.patient_id,
            'doctorId': self.doctor_id,
            'serviceId': self.service_id,
            'startTime': self.start_datetime().isoformat(),
            'endTime': self.end_datetime().isoformat(),
            'notes': self.notes,
            'status': self.status,
        }


def validate_appointment_form(values: dict) -> tuple[AppointmentForm | None, dict[str, str]]:
    try:
        return AppointmentForm(**values), {}
    except ValidationError as exc:
        return None, field_errors(exc.errors())
