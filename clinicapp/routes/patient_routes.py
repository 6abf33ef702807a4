import logging
import math
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicapp.auth.dependencies import require_roles
from clinicapp.database import get_db
from clinicapp.models.patient import Patient
from clinicapp.models.user import ADMIN_ROLE, STAFF_ROLES, User
from clinicapp.routes.common import ApiModel, database_unavailable, normalize_optional_text, require_clinic_id

router = APIRouter(tags=['patients'])

logger = logging.getLogger(__name__)

GENDERS = ('MALE', 'FEMALE', 'OTHER')


class CreatePatientRequest(ApiModel):
    first_name: str
    last_name: str
    date_of_birth: date
    phone: str
    gender: str | None = None
    email: str | None = None
    address: str | None = None

    @field_validator('first_name', 'last_name', 'phone')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Missing required fields: firstName, lastName, phone, dateOfBirth')
        return normalized

    @field_validator('gender')
    @classmethod
    def validate_gender(cls, value: str | None) -> str | None:
        normalized = normalize_optional_text(value)
        if normalized is None:
            return None
        normalized = normalized.upper()
        if normalized not in GENDERS:
            raise ValueError('Invalid gender.')
        return normalized

    @field_validator('email', 'address')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)


class PatientResponse(ApiModel):
    id: str
    clinic_id: str | None = None
    user_id: str | None = None
    first_name: str
    last_name: str
    date_of_birth: date | None = None
    gender: str | None = None
    email: str | None = None
    phone: str
    address: str | None = None
    created_at: datetime | None = None


class PaginationResponse(ApiModel):
    total: int
    page: int
    limit: int
    total_pages: int


class PatientListResponse(ApiModel):
    patients: list[PatientResponse]
    pagination: PaginationResponse


def resolve_clinic_filter(user: User, requested_clinic_id: str | None) -> str | None:
    if requested_clinic_id and user.role == ADMIN_ROLE:
        return requested_clinic_id
    return user.clinic_id


@router.get('', response_model=PatientListResponse)
def list_patients(
    search: str = Query(default=''),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    clinic_id: str | None = Query(default=None, alias='clinicId'),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Patient)
        clinic_filter = resolve_clinic_filter(current_user, clinic_id)
        if clinic_filter:
            query = query.filter(Patient.clinic_id == clinic_filter)

        term = search.strip()
        if term:
            pattern = f'%{term}%'
            query = query.filter(or_(
                Patient.first_name.ilike(pattern),
                Patient.last_name.ilike(pattern),
                Patient.email.ilike(pattern),
                Patient.phone.ilike(pattern),
            ))

        total = query.count()
        patients = query.order_by(Patient.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

        return PatientListResponse(
            patients=[PatientResponse.model_validate(patient) for patient in patients],
            pagination=PaginationResponse(
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit),
            ),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc


@router.post('', response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def create_patient(
    data: CreatePatientRequest,
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    clinic_id = require_clinic_id(current_user)

    try:
        patient = Patient(
            clinic_id=clinic_id,
            first_name=data.first_name,
            last_name=data.last_name,
            date_of_birth=data.date_of_birth,
            gender=data.gender,
            email=data.email,
            phone=data.phone,
            address=data.address,
        )
        db.add(patient)
        db.commit()
        db.refresh(patient)
        logger.info('Registered patient %s at clinic %s', patient.id, clinic_id)
        return patient
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/{patient_id}', response_model=PatientResponse)
def get_patient(
    patient_id: str,
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Patient).filter(Patient.id == patient_id)
        if current_user.role != ADMIN_ROLE:
            query = query.filter(Patient.clinic_id == require_clinic_id(current_user))
        patient = query.first()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc

    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Patient not found.')
    return patient
