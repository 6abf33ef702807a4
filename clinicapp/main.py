import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinicapp.core import config
from clinicapp.core.errors import field_errors
from clinicapp.database import Base, engine, ensure_appointment_schema
from clinicapp.models import appointment, clinic, notification, patient, service, user  # noqa: F401
from clinicapp.routes import (
    appointment_routes,
    auth_routes,
    clinic_routes,
    notification_routes,
    patient_routes,
    service_routes,
    staff_routes,
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
)

logger = logging.getLogger(__name__)

app = FastAPI(title='Clinic API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={'error': exc.detail},
        headers=getattr(exc, 'headers', None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = field_errors(exc.errors())
    message = next(iter(errors.values()), 'Invalid request.')
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'error': message, 'errors': errors},
    )


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(clinic_routes.router, prefix='/api/clinics')
app.include_router(staff_routes.router, prefix='/api/admin/staff')
app.include_router(staff_routes.directory_router, prefix='/api/staff')
app.include_router(patient_routes.router, prefix='/api/patients')
app.include_router(service_routes.router, prefix='/api/services')
app.include_router(appointment_routes.router, prefix='/api/appointments')
app.include_router(notification_routes.router, prefix='/api/notifications')
