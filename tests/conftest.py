import os
from datetime import date
from types import SimpleNamespace

import pytest

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-with-at-least-32-bytes')

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from clinicapp.auth.dependencies import get_current_user  # noqa: E402
from clinicapp.auth.passwords import hash_password  # noqa: E402
from clinicapp.database import Base, get_db  # noqa: E402
from clinicapp.main import app  # noqa: E402
from clinicapp.models.clinic import Clinic  # noqa: E402
from clinicapp.models.patient import Patient  # noqa: E402
from clinicapp.models.service import Service  # noqa: E402
from clinicapp.models.user import User  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clinic_data(db):
    clinic = Clinic(name='Riverside Clinic', phone='555-0100')
    other_clinic = Clinic(name='Hilltop Clinic')
    db.add_all([clinic, other_clinic])
    db.flush()

    admin = User(
        name='Ada Admin',
        email='admin@riverside.test',
        hashed_password=hash_password('admin-password'),
        role='ADMIN',
        clinic_id=clinic.id,
    )
    doctor = User(name='Grey', email='grey@riverside.test', role='DOCTOR', clinic_id=clinic.id)
    other_doctor = User(name='House', email='house@riverside.test', role='DOCTOR', clinic_id=clinic.id)
    receptionist = User(name='Rita', email='rita@riverside.test', role='RECEPTIONIST', clinic_id=clinic.id)
    portal_user = User(name='Pat Portal', email='pat@example.test', role='PATIENT')
    db.add_all([admin, doctor, other_doctor, receptionist, portal_user])
    db.flush()

    patient = Patient(
        clinic_id=clinic.id,
        user_id=portal_user.id,
        first_name='Pat',
        last_name='Portal',
        date_of_birth=date(1990, 4, 2),
        phone='555-0101',
    )
    walk_in = Patient(clinic_id=clinic.id, first_name='Walk', last_name='In', phone='555-0102')
    consultation = Service(clinic_id=clinic.id, name='Consultation', duration=30, price=50.0)
    long_exam = Service(clinic_id=clinic.id, name='Full Exam', duration=90, price=120.0)
    db.add_all([patient, walk_in, consultation, long_exam])
    db.commit()

    return SimpleNamespace(
        clinic=clinic,
        other_clinic=other_clinic,
        admin=admin,
        doctor=doctor,
        other_doctor=other_doctor,
        receptionist=receptionist,
        portal_user=portal_user,
        patient=patient,
        walk_in=walk_in,
        consultation=consultation,
        long_exam=long_exam,
    )


@pytest.fixture
def client_as(db):
    """Return a TestClient whose requests are authenticated as the given user."""

    def override_get_db():
        yield db

    def make_client(user: User) -> TestClient:
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_user] = lambda: user
        return TestClient(app)

    yield make_client
    app.dependency_overrides.clear()
