from fastapi import HTTPException, status
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from clinicapp.database import DATABASE_UNAVAILABLE_DETAIL
from clinicapp.models.clinic import Clinic
from clinicapp.models.user import User


class ApiModel(BaseModel):
    """Base for request and response bodies exchanged in camelCase."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


def database_unavailable(db: Session | None = None, rollback: bool = True) -> HTTPException:
    if db is not None and rollback:
        db.rollback()
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_clinic_exists(db: Session, clinic_id: str) -> None:
    if not db.query(Clinic).filter(Clinic.id == clinic_id).first():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Clinic not found.')


def require_clinic_id(user: User) -> str:
    if not user.clinic_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Your account is not linked to a clinic.',
        )
    return user.clinic_id


def normalize_optional_text(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None
