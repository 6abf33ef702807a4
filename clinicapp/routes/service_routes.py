import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicapp.auth.dependencies import get_current_user, require_roles
from clinicapp.database import get_db
from clinicapp.models.service import Service
from clinicapp.models.user import ADMIN_ROLE, DOCTOR_ROLE, User
from clinicapp.routes.common import ApiModel, database_unavailable, ensure_clinic_exists, normalize_optional_text

router = APIRouter(tags=['services'])

logger = logging.getLogger(__name__)

SERVICE_MANAGER_ROLES = (ADMIN_ROLE, DOCTOR_ROLE)


def _validate_duration(value: int | None) -> int | None:
    if value is not None and value <= 0:
        raise ValueError('Duration must be a positive number of minutes.')
    return value


def _validate_price(value: float | None) -> float | None:
    if value is not None and value < 0:
        raise ValueError('Price cannot be negative.')
    return value


class CreateServiceRequest(ApiModel):
    name: str
    duration: int
    price: float
    clinic_id: str
    description: str = ''
    active: bool = True

    @field_validator('name', 'clinic_id')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Missing required fields')
        return normalized

    @field_validator('duration')
    @classmethod
    def validate_duration(cls, value: int) -> int:
        return _validate_duration(value)

    @field_validator('price')
    @classmethod
    def validate_price(cls, value: float) -> float:
        return _validate_price(value)


class UpdateServiceRequest(ApiModel):
    name: str | None = None
    description: str | None = None
    duration: int | None = None
    price: float | None = None
    clinic_id: str | None = None
    active: bool | None = None

    @field_validator('name', 'clinic_id')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        return normalize_optional_text(value)

    @field_validator('duration')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        return _validate_duration(value)

    @field_validator('price')
    @classmethod
    def validate_price(cls, value: float | None) -> float | None:
        return _validate_price(value)


class ServiceResponse(ApiModel):
    id: str
    clinic_id: str | None = None
    name: str
    description: str | None = None
    duration: int
    price: float
    active: bool
    created_at: datetime | None = None


@router.get('', response_model=list[ServiceResponse])
def list_services(
    clinic_id: str | None = Query(default=None, alias='clinicId'),
    active_only: bool = Query(default=False, alias='activeOnly'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Service)
        if clinic_id:
            query = query.filter(Service.clinic_id == clinic_id)
        if active_only:
            query = query.filter(Service.active.is_(True))
        return query.order_by(Service.created_at.desc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc


@router.post('', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: CreateServiceRequest,
    current_user: User = Depends(require_roles(*SERVICE_MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    try:
        ensure_clinic_exists(db, data.clinic_id)
        service = Service(
            name=data.name,
            description=data.description,
            duration=data.duration,
            price=data.price,
            clinic_id=data.clinic_id,
            active=data.active,
        )
        db.add(service)
        db.commit()
        db.refresh(service)
        logger.info('Created service %s (%s min) at clinic %s', service.id, service.duration, service.clinic_id)
        return service
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/{service_id}', response_model=ServiceResponse)
def get_service(
    service_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        service = db.query(Service).filter(Service.id == service_id).first()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc

    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Service not found.')
    return service


@router.put('/{service_id}', response_model=ServiceResponse)
def update_service(
    service_id: str,
    data: UpdateServiceRequest,
    current_user: User = Depends(require_roles(*SERVICE_MANAGER_ROLES)),
    db: Session = Depends(get_db),
):
    fields = data.model_fields_set

    try:
        service = db.query(Service).filter(Service.id == service_id).first()
        if not service:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Service not found.')

        if 'clinic_id' in fields:
            if data.clinic_id:
                ensure_clinic_exists(db, data.clinic_id)
            service.clinic_id = data.clinic_id
        if data.name:
            service.name = data.name
        if data.description is not None:
            service.description = data.description
        if data.duration is not None:
            service.duration = data.duration
        if data.price is not None:
            service.price = data.price
        if data.active is not None:
            service.active = data.active

        db.commit()
        db.refresh(service)
        logger.info('Updated service %s', service.id)
        return service
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
