import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicapp.auth.dependencies import require_roles
from clinicapp.database import get_db
from clinicapp.models.clinic import Clinic
from clinicapp.models.patient import Patient
from clinicapp.models.service import Service
from clinicapp.models.user import ADMIN_ROLE, STAFF_ROLES, User
from clinicapp.routes.common import ApiModel, database_unavailable, normalize_optional_text

router = APIRouter(tags=['clinics'])

logger = logging.getLogger(__name__)


class CreateClinicRequest(ApiModel):
    name: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Clinic name is required.')
        return normalized

    @field_validator('address', 'phone', 'email')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)


class ClinicResponse(ApiModel):
    id: str
    name: str
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    is_active: bool
    created_at: datetime | None = None


class ClinicDetailResponse(ClinicResponse):
    staff_count: int
    service_count: int
    patient_count: int


@router.get('', response_model=list[ClinicResponse])
def list_clinics(
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Clinic)
        if current_user.role != ADMIN_ROLE:
            query = query.filter(Clinic.id == current_user.clinic_id)
        return query.order_by(Clinic.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc


@router.post('', response_model=ClinicResponse, status_code=status.HTTP_201_CREATED)
def create_clinic(
    data: CreateClinicRequest,
    current_user: User = Depends(require_roles(ADMIN_ROLE)),
    db: Session = Depends(get_db),
):
    try:
        clinic = Clinic(name=data.name, address=data.address, phone=data.phone, email=data.email)
        db.add(clinic)
        db.commit()
        db.refresh(clinic)
        logger.info('Created clinic %s', clinic.id)
        return clinic
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/{clinic_id}', response_model=ClinicDetailResponse)
def get_clinic(
    clinic_id: str,
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    if current_user.role != ADMIN_ROLE and current_user.clinic_id != clinic_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Clinic not found.')

    try:
        clinic = db.query(Clinic).filter(Clinic.id == clinic_id).first()
        if not clinic:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Clinic not found.')

        staff_count = db.query(func.count(User.id)).filter(
            User.clinic_id == clinic_id,
            User.role.in_(STAFF_ROLES),
        ).scalar()
        service_count = db.query(func.count(Service.id)).filter(Service.clinic_id == clinic_id).scalar()
        patient_count = db.query(func.count(Patient.id)).filter(Patient.clinic_id == clinic_id).scalar()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc

    return ClinicDetailResponse(
        id=clinic.id,
        name=clinic.name,
        address=clinic.address,
        phone=clinic.phone,
        email=clinic.email,
        is_active=bool(clinic.is_active),
        created_at=clinic.created_at,
        staff_count=staff_count or 0,
        service_count=service_count or 0,
        patient_count=patient_count or 0,
    )
