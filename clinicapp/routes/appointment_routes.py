import logging
from datetime import datetime, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import ValidationInfo, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicapp import notifications
from clinicapp.auth.dependencies import get_current_user, require_roles
from clinicapp.database import get_db
from clinicapp.models.appointment import (
    APPOINTMENT_STATUSES,
    BOOKABLE_STATUSES,
    CANCELLED,
    COMPLETED,
    MAX_NOTES_LENGTH,
    RELEASED_STATUSES,
    SCHEDULED,
    Appointment,
    can_transition,
)
from clinicapp.models.patient import Patient
from clinicapp.models.service import Service
from clinicapp.models.user import DOCTOR_ROLE, PATIENT_ROLE, STAFF_ROLES, User
from clinicapp.routes.common import ApiModel, database_unavailable, normalize_optional_text, require_clinic_id

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

PATIENT_CANCELLATION_NOTICE_HOURS = 24


def _validate_notes(value: str | None) -> str | None:
    normalized = normalize_optional_text(value)
    if normalized is not None and len(normalized) > MAX_NOTES_LENGTH:
        raise ValueError(f'Notes must be {MAX_NOTES_LENGTH} characters or fewer.')
    return normalized


def _to_naive_local(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _validate_status(value: str | None, allowed: tuple[str, ...], message: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized not in allowed:
        raise ValueError(message)
    return normalized


class CreateAppointmentRequest(ApiModel):
    patient_id: str
    doctor_id: str
    service_id: str | None = None
    start_time: datetime
    end_time: datetime
    notes: str | None = None
    status: str = SCHEDULED

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: datetime) -> datetime:
        return _to_naive_local(value)

    @field_validator('patient_id', 'doctor_id')
    @classmethod
    def validate_party(cls, value: str, info: ValidationInfo) -> str:
        normalized = value.strip()
        if not normalized:
            party = 'patient' if info.field_name == 'patient_id' else 'doctor'
            raise ValueError(f'Please select a {party}.')
        return normalized

    @field_validator('service_id')
    @classmethod
    def validate_service_id(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)

    @field_validator('end_time')
    @classmethod
    def validate_end_time(cls, value: datetime, info: ValidationInfo) -> datetime:
        value = _to_naive_local(value)
        start_time = info.data.get('start_time')
        if start_time is not None and value <= start_time:
            raise ValueError('End time must be after start time.')
        return value

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _validate_status(value, BOOKABLE_STATUSES, 'New appointments must be SCHEDULED or CONFIRMED.')


class UpdateAppointmentRequest(ApiModel):
    patient_id: str | None = None
    doctor_id: str | None = None
    service_id: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    notes: str | None = None
    status: str | None = None

    @field_validator('patient_id', 'doctor_id', 'service_id')
    @classmethod
    def validate_ids(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, value: datetime | None) -> datetime | None:
        return _to_naive_local(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str | None) -> str | None:
        return _validate_status(value, APPOINTMENT_STATUSES, 'Invalid status value.')


class UpdateAppointmentStatusRequest(ApiModel):
    status: str
    notes: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _validate_status(value, APPOINTMENT_STATUSES, 'Invalid status value.')

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _validate_notes(value)


class AppointmentPatientResponse(ApiModel):
    id: str
    first_name: str
    last_name: str
    phone: str | None = None
    email: str | None = None


class AppointmentDoctorResponse(ApiModel):
    id: str
    name: str
    email: str


class AppointmentServiceResponse(ApiModel):
    id: str
    name: str
    duration: int
    price: float


class AppointmentResponse(ApiModel):
    id: str
    clinic_id: str | None = None
    patient_id: str
    doctor_id: str
    service_id: str | None = None
    start_time: datetime
    end_time: datetime
    status: str
    notes: str | None = None
    patient: AppointmentPatientResponse | None = None
    doctor: AppointmentDoctorResponse | None = None
    service: AppointmentServiceResponse | None = None


class CancelAppointmentResponse(ApiModel):
    message: str
    appointment: AppointmentResponse


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def append_note(existing: str | None, line: str) -> str:
    if not existing:
        return line[:MAX_NOTES_LENGTH]
    room = MAX_NOTES_LENGTH - len(line) - 2
    if room <= 0:
        return line[:MAX_NOTES_LENGTH]
    return f'{existing[:room]}\n\n{line}'


def find_overlapping_appointment(
    db: Session,
    doctor_id: str,
    start_time: datetime,
    end_time: datetime,
    exclude_id: str | None = None,
) -> Appointment | None:
    query = db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.status.not_in(RELEASED_STATUSES),
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)
    return query.first()


def load_patient(db: Session, clinic_id: str, patient_id: str) -> Patient:
    patient = db.query(Patient).filter(Patient.id == patient_id, Patient.clinic_id == clinic_id).first()
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Patient not found.')
    return patient


def load_doctor(db: Session, clinic_id: str, doctor_id: str) -> User:
    doctor = db.query(User).filter(User.id == doctor_id, User.clinic_id == clinic_id).first()
    if not doctor:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Doctor not found.')
    if doctor.role != DOCTOR_ROLE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Selected staff member is not a doctor.',
        )
    return doctor


def load_service(db: Session, clinic_id: str, service_id: str) -> Service:
    service = db.query(Service).filter(Service.id == service_id, Service.clinic_id == clinic_id).first()
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Service not found.')
    if not service.active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Service is not active.')
    return service


def ensure_doctor_is_free(
    db: Session,
    doctor_id: str,
    start_time: datetime,
    end_time: datetime,
    exclude_id: str | None = None,
) -> None:
    if find_overlapping_appointment(db, doctor_id, start_time, end_time, exclude_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail='Doctor has an overlapping appointment at this time.',
        )


def get_visible_appointment(db: Session, user: User, appointment_id: str) -> Appointment:
    query = db.query(Appointment).filter(Appointment.id == appointment_id)
    if user.role == PATIENT_ROLE:
        query = query.join(Patient, Appointment.patient_id == Patient.id).filter(Patient.user_id == user.id)
    else:
        query = query.filter(Appointment.clinic_id == require_clinic_id(user))

    appointment = query.first()
    if not appointment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Appointment not found.')
    return appointment


def ensure_transition_allowed(appointment: Appointment, target_status: str) -> None:
    if not can_transition(appointment.status, target_status):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Cannot change appointment status from {appointment.status} to {target_status}.',
        )


def notify_cancellation(db: Session, appointment: Appointment, reason: str | None) -> None:
    if not appointment.patient or not appointment.patient.user_id:
        return
    try:
        notifications.notify_appointment_cancelled(
            db,
            user_id=appointment.patient.user_id,
            appointment=appointment,
            reason=reason,
        )
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Failed to send cancellation notification for appointment %s', appointment.id)


@router.get('', response_model=list[AppointmentResponse])
def list_appointments(
    start_date: datetime | None = Query(default=None, alias='startDate'),
    end_date: datetime | None = Query(default=None, alias='endDate'),
    doctor_id: str | None = Query(default=None, alias='doctorId'),
    patient_id: str | None = Query(default=None, alias='patientId'),
    status_filter: str | None = Query(default=None, alias='status'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Appointment)
        if current_user.role == PATIENT_ROLE:
            query = query.join(Patient, Appointment.patient_id == Patient.id).filter(
                Patient.user_id == current_user.id,
            )
        else:
            query = query.filter(Appointment.clinic_id == require_clinic_id(current_user))

        if start_date and end_date:
            query = query.filter(
                Appointment.start_time >= _to_naive_local(start_date),
                Appointment.start_time <= _to_naive_local(end_date),
            )
        if doctor_id:
            query = query.filter(Appointment.doctor_id == doctor_id)
        if patient_id:
            query = query.filter(Appointment.patient_id == patient_id)
        if status_filter:
            query = query.filter(Appointment.status == status_filter.strip().upper())

        return query.order_by(Appointment.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    clinic_id = require_clinic_id(current_user)

    try:
        patient = load_patient(db, clinic_id, data.patient_id)
        load_doctor(db, clinic_id, data.doctor_id)
        if data.service_id:
            load_service(db, clinic_id, data.service_id)

        start_time = truncate_to_minute(data.start_time)
        end_time = truncate_to_minute(data.end_time)
        ensure_doctor_is_free(db, data.doctor_id, start_time, end_time)

        appointment = Appointment(
            clinic_id=clinic_id,
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            service_id=data.service_id,
            start_time=start_time,
            end_time=end_time,
            notes=data.notes,
            status=data.status,
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        logger.info('Booked appointment %s for doctor %s at %s', appointment.id, appointment.doctor_id, start_time)
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    if patient.user_id:
        try:
            notifications.notify_appointment_confirmed(db, user_id=patient.user_id, appointment=appointment)
        except SQLAlchemyError:
            db.rollback()
            logger.exception('Failed to send confirmation notification for appointment %s', appointment.id)

    return appointment


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return get_visible_appointment(db, current_user, appointment_id)
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: str,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    clinic_id = require_clinic_id(current_user)
    fields = data.model_fields_set

    try:
        appointment = get_visible_appointment(db, current_user, appointment_id)
        previous_status = appointment.status

        if previous_status == COMPLETED:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='Cannot modify a completed appointment.',
            )

        target_status = data.status or previous_status
        ensure_transition_allowed(appointment, target_status)

        patient_id = data.patient_id or appointment.patient_id
        doctor_id = data.doctor_id or appointment.doctor_id
        service_id = data.service_id if 'service_id' in fields else appointment.service_id
        start_time = truncate_to_minute(data.start_time) if data.start_time else appointment.start_time
        end_time = truncate_to_minute(data.end_time) if data.end_time else appointment.end_time

        if end_time <= start_time:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail='End time must be after start time.',
            )

        if patient_id != appointment.patient_id:
            load_patient(db, clinic_id, patient_id)
        if doctor_id != appointment.doctor_id:
            load_doctor(db, clinic_id, doctor_id)
        if service_id and service_id != appointment.service_id:
            load_service(db, clinic_id, service_id)

        reschedules = (
            doctor_id != appointment.doctor_id
            or start_time != appointment.start_time
            or end_time != appointment.end_time
        )
        if reschedules and target_status not in RELEASED_STATUSES:
            ensure_doctor_is_free(db, doctor_id, start_time, end_time, exclude_id=appointment.id)

        appointment.patient_id = patient_id
        appointment.doctor_id = doctor_id
        appointment.service_id = service_id
        appointment.start_time = start_time
        appointment.end_time = end_time
        appointment.status = target_status
        if 'notes' in fields:
            appointment.notes = data.notes

        db.commit()
        db.refresh(appointment)
        logger.info('Updated appointment %s (status %s -> %s)', appointment.id, previous_status, target_status)
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    if target_status == CANCELLED and previous_status != CANCELLED:
        notify_cancellation(db, appointment, data.notes)

    return appointment


@router.patch('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: str,
    data: UpdateAppointmentStatusRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if current_user.role not in STAFF_ROLES and current_user.role != PATIENT_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Insufficient permissions')

    try:
        appointment = get_visible_appointment(db, current_user, appointment_id)
        previous_status = appointment.status

        if current_user.role == PATIENT_ROLE:
            if data.status != CANCELLED:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail='Patients can only cancel appointments.',
                )
            if appointment.start_time - datetime.now() < timedelta(hours=PATIENT_CANCELLATION_NOTICE_HOURS):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=(
                        f'Cannot cancel appointment less than {PATIENT_CANCELLATION_NOTICE_HOURS} hours '
                        'before scheduled time. Please contact the clinic.'
                    ),
                )

        ensure_transition_allowed(appointment, data.status)

        appointment.status = data.status
        if data.notes:
            appointment.notes = data.notes

        db.commit()
        db.refresh(appointment)
        logger.info('Appointment %s status %s -> %s by %s', appointment.id, previous_status, data.status,
                    current_user.id)
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    if data.status == CANCELLED and previous_status != CANCELLED:
        notify_cancellation(db, appointment, data.notes)

    return appointment


@router.delete('/{appointment_id}', response_model=CancelAppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    try:
        appointment = get_visible_appointment(db, current_user, appointment_id)
        ensure_transition_allowed(appointment, CANCELLED)
        previous_status = appointment.status

        if previous_status != CANCELLED:
            appointment.status = CANCELLED
            appointment.notes = append_note(
                appointment.notes,
                f'Cancelled by {current_user.name} on {datetime.now().isoformat(timespec="minutes")}',
            )
            db.commit()
            db.refresh(appointment)
            logger.info('Cancelled appointment %s', appointment.id)
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    if previous_status != CANCELLED:
        notify_cancellation(db, appointment, None)

    return CancelAppointmentResponse(
        message='Appointment cancelled successfully',
        appointment=AppointmentResponse.model_validate(appointment),
    )
