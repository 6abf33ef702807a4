import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicapp.auth.dependencies import require_roles
from clinicapp.auth.passwords import hash_password
from clinicapp.database import get_db
from clinicapp.models.clinic import Clinic
from clinicapp.models.user import ADMIN_ROLE, DOCTOR_ROLE, RECEPTIONIST_ROLE, STAFF_ROLES, User
from clinicapp.routes.common import (
    ApiModel,
    database_unavailable,
    ensure_clinic_exists,
    normalize_optional_text,
    require_clinic_id,
)

router = APIRouter(tags=['staff'])

# Clinic-scoped listing open to every staff role.
directory_router = APIRouter(tags=['staff'])

logger = logging.getLogger(__name__)

LISTED_STAFF_ROLES = (DOCTOR_ROLE, RECEPTIONIST_ROLE)
MIN_PASSWORD_LENGTH = 8


def _validate_role(value: str) -> str:
    normalized = value.strip().upper()
    if normalized not in STAFF_ROLES:
        raise ValueError('Invalid staff role.')
    return normalized


class CreateStaffRequest(ApiModel):
    name: str
    email: str
    password: str
    role: str
    phone: str | None = None
    clinic_id: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid email is required.')
        return normalized

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters.')
        return value

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        return _validate_role(value)

    @field_validator('phone', 'clinic_id')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)


class UpdateStaffRequest(ApiModel):
    name: str | None = None
    phone: str | None = None
    role: str | None = None
    clinic_id: str | None = None

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _validate_role(value)

    @field_validator('name', 'phone', 'clinic_id')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)


class StaffClinicResponse(ApiModel):
    id: str
    name: str


class StaffResponse(ApiModel):
    id: str
    name: str
    email: str
    phone: str | None = None
    role: str
    clinic_id: str | None = None
    clinic: StaffClinicResponse | None = None
    created_at: datetime | None = None


class StaffListResponse(ApiModel):
    staff: list[StaffResponse]


def to_staff_response(user: User, clinics: dict[str, Clinic]) -> StaffResponse:
    clinic = clinics.get(user.clinic_id) if user.clinic_id else None
    return StaffResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        role=user.role,
        clinic_id=user.clinic_id,
        clinic=StaffClinicResponse(id=clinic.id, name=clinic.name) if clinic else None,
        created_at=user.created_at,
    )


def load_clinics(db: Session, clinic_ids: set[str]) -> dict[str, Clinic]:
    if not clinic_ids:
        return {}
    return {clinic.id: clinic for clinic in db.query(Clinic).filter(Clinic.id.in_(clinic_ids)).all()}


@router.get('', response_model=StaffListResponse)
def list_staff(
    clinic_id: str | None = Query(default=None, alias='clinicId'),
    current_user: User = Depends(require_roles(ADMIN_ROLE)),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(User).filter(User.role.in_(LISTED_STAFF_ROLES))
        if clinic_id:
            query = query.filter(User.clinic_id == clinic_id)
        staff = query.order_by(User.created_at.desc()).all()
        clinics = load_clinics(db, {member.clinic_id for member in staff if member.clinic_id})
        return StaffListResponse(staff=[to_staff_response(member, clinics) for member in staff])
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc


@router.post('', response_model=StaffResponse, status_code=status.HTTP_201_CREATED)
def create_staff(
    data: CreateStaffRequest,
    current_user: User = Depends(require_roles(ADMIN_ROLE)),
    db: Session = Depends(get_db),
):
    try:
        if db.query(User).filter(User.email == data.email).first():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Email already in use.')
        if data.clinic_id:
            ensure_clinic_exists(db, data.clinic_id)

        member = User(
            name=data.name,
            email=data.email,
            hashed_password=hash_password(data.password),
            phone=data.phone,
            role=data.role,
            clinic_id=data.clinic_id,
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        logger.info('Created %s account %s', member.role, member.id)
        return to_staff_response(member, load_clinics(db, {member.clinic_id} if member.clinic_id else set()))
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.put('/{staff_id}', response_model=StaffResponse)
def update_staff(
    staff_id: str,
    data: UpdateStaffRequest,
    current_user: User = Depends(require_roles(ADMIN_ROLE)),
    db: Session = Depends(get_db),
):
    fields = data.model_fields_set

    try:
        member = db.query(User).filter(User.id == staff_id, User.role.in_(STAFF_ROLES)).first()
        if not member:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Staff member not found.')

        if 'clinic_id' in fields:
            if data.clinic_id:
                ensure_clinic_exists(db, data.clinic_id)
            if member.clinic_id != data.clinic_id:
                logger.info('Moving staff %s from clinic %s to %s', member.id, member.clinic_id, data.clinic_id)
            member.clinic_id = data.clinic_id
        if data.name:
            member.name = data.name
        if 'phone' in fields:
            member.phone = data.phone
        if data.role:
            member.role = data.role

        db.commit()
        db.refresh(member)
        return to_staff_response(member, load_clinics(db, {member.clinic_id} if member.clinic_id else set()))
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@directory_router.get('', response_model=StaffListResponse)
def list_clinic_staff(
    role: str | None = Query(default=None),
    clinic_id: str | None = Query(default=None, alias='clinicId'),
    current_user: User = Depends(require_roles(*STAFF_ROLES)),
    db: Session = Depends(get_db),
):
    """List doctors and receptionists of the caller's clinic; admins may name another clinic."""
    if clinic_id and current_user.role == ADMIN_ROLE:
        clinic_filter = clinic_id
    else:
        clinic_filter = require_clinic_id(current_user)

    roles = LISTED_STAFF_ROLES
    if role:
        normalized = role.strip().upper()
        if normalized not in LISTED_STAFF_ROLES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid staff role.')
        roles = (normalized,)

    try:
        staff = db.query(User).filter(User.clinic_id == clinic_filter, User.role.in_(roles)).order_by(
            User.name.asc(),
        ).all()
        clinics = load_clinics(db, {clinic_filter})
        return StaffListResponse(staff=[to_staff_response(member, clinics) for member in staff])
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc
