import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicapp.auth import jwt_handler
from clinicapp.auth.dependencies import get_current_user
from clinicapp.auth.passwords import verify_password
from clinicapp.database import get_db
from clinicapp.models.user import User
from clinicapp.routes.common import ApiModel, database_unavailable

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)


class LoginRequest(ApiModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return value.strip().lower()


class CurrentUserResponse(ApiModel):
    id: str
    name: str
    email: str
    role: str
    clinic_id: str | None = None


class LoginResponse(ApiModel):
    access_token: str
    token_type: str
    user: CurrentUserResponse


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.email == data.email).first()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc

    if user is None or not verify_password(user.hashed_password, data.password):
        logger.warning("Failed login attempt for %s", data.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    token = jwt_handler.create_access_token(subject=user.id, role=user.role, clinic_id=user.clinic_id)
    return LoginResponse(
        access_token=token,
        token_type="bearer",
        user=CurrentUserResponse.model_validate(user),
    )


@router.get("/me", response_model=CurrentUserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
