import pytest
from fastapi import HTTPException

from clinicapp.auth.passwords import verify_password
from clinicapp.models.user import User
from clinicapp.routes.clinic_routes import get_clinic
from clinicapp.routes.patient_routes import resolve_clinic_filter


def test_list_patients_paginates_clinic_patients(clinic_data, client_as) -> None:
    client = client_as(clinic_data.receptionist)

    everyone = client.get('/api/patients').json()
    second_page = client.get('/api/patients', params={'page': 2, 'limit': 1}).json()

    assert {patient['id'] for patient in everyone['patients']} == {clinic_data.patient.id, clinic_data.walk_in.id}
    assert everyone['pagination'] == {'total': 2, 'page': 1, 'limit': 10, 'totalPages': 1}
    assert len(second_page['patients']) == 1
    assert second_page['pagination']['totalPages'] == 2


@pytest.mark.parametrize(('term', 'expected'), [('walk', ['Walk']), ('0101', ['Pat']), ('nobody', [])])
def test_list_patients_searches_names_and_phone(clinic_data, client_as, term: str, expected: list[str]) -> None:
    body = client_as(clinic_data.receptionist).get('/api/patients', params={'search': term}).json()

    assert [patient['firstName'] for patient in body['patients']] == expected


def test_resolve_clinic_filter_only_lets_admin_pick_clinic(clinic_data) -> None:
    assert resolve_clinic_filter(clinic_data.admin, clinic_data.other_clinic.id) == clinic_data.other_clinic.id
    assert resolve_clinic_filter(clinic_data.receptionist, clinic_data.other_clinic.id) == clinic_data.clinic.id


def test_create_patient_registers_at_staff_clinic(clinic_data, client_as) -> None:
    response = client_as(clinic_data.receptionist).post(
        '/api/patients',
        json={
            'firstName': ' Nina ',
            'lastName': 'Nguyen',
            'dateOfBirth': '1985-01-31',
            'phone': '555-0199',
            'gender': 'female',
        },
    )

    assert response.status_code == 201
    body = response.json()
    assert body['firstName'] == 'Nina'
    assert body['gender'] == 'FEMALE'
    assert body['clinicId'] == clinic_data.clinic.id
    assert body['dateOfBirth'] == '1985-01-31'


def test_create_patient_rejects_unknown_gender(clinic_data, client_as) -> None:
    response = client_as(clinic_data.receptionist).post(
        '/api/patients',
        json={'firstName': 'Nina', 'lastName': 'Nguyen', 'dateOfBirth': '1985-01-31', 'phone': '1', 'gender': 'x'},
    )

    assert response.status_code == 400
    assert response.json()['errors'] == {'gender': 'Invalid gender.'}


def test_get_patient_hides_other_clinic_patients(db, clinic_data, client_as) -> None:
    clinic_data.receptionist.clinic_id = clinic_data.other_clinic.id
    db.commit()

    response = client_as(clinic_data.receptionist).get(f'/api/patients/{clinic_data.walk_in.id}')

    assert response.status_code == 404
    assert response.json() == {'error': 'Patient not found.'}


def test_list_staff_returns_doctors_and_receptionists_with_clinic(clinic_data, client_as) -> None:
    body = client_as(clinic_data.admin).get('/api/admin/staff').json()

    assert {member['name'] for member in body['staff']} == {'Grey', 'House', 'Rita'}
    assert all(member['clinic'] == {'id': clinic_data.clinic.id, 'name': 'Riverside Clinic'} for member in body['staff'])


def test_staff_directory_is_admin_only(clinic_data, client_as) -> None:
    response = client_as(clinic_data.doctor).get('/api/admin/staff')

    assert response.status_code == 403


def test_create_staff_hashes_password_and_normalizes_role(db, clinic_data, client_as) -> None:
    response = client_as(clinic_data.admin).post(
        '/api/admin/staff',
        json={'name': 'Dr. Quinn', 'email': 'Quinn@Riverside.test', 'password': 'long-enough', 'role': 'doctor'},
    )

    assert response.status_code == 201
    body = response.json()
    assert body['role'] == 'DOCTOR'
    assert body['email'] == 'quinn@riverside.test'
    assert body['clinic'] is None

    stored = db.query(User).filter(User.id == body['id']).one()
    assert stored.hashed_password != 'long-enough'
    assert verify_password(stored.hashed_password, 'long-enough')


@pytest.mark.parametrize(
    ('overrides', 'error'),
    [
        ({'email': 'grey@riverside.test'}, 'Email already in use.'),
        ({'password': 'short'}, 'Password must be at least 8 characters.'),
        ({'role': 'PATIENT'}, 'Invalid staff role.'),
    ],
)
def test_create_staff_rejects_invalid_accounts(clinic_data, client_as, overrides: dict, error: str) -> None:
    payload = {'name': 'Dr. Quinn', 'email': 'quinn@riverside.test', 'password': 'long-enough', 'role': 'DOCTOR'}
    payload.update(overrides)

    response = client_as(clinic_data.admin).post('/api/admin/staff', json=payload)

    assert response.status_code == 400
    assert response.json()['error'] == error


def test_update_staff_links_and_unlinks_clinic(clinic_data, client_as) -> None:
    client = client_as(clinic_data.admin)

    linked = client.put(f'/api/admin/staff/{clinic_data.doctor.id}', json={'clinicId': clinic_data.other_clinic.id})
    unlinked = client.put(f'/api/admin/staff/{clinic_data.doctor.id}', json={'clinicId': None})

    assert linked.json()['clinic'] == {'id': clinic_data.other_clinic.id, 'name': 'Hilltop Clinic'}
    assert unlinked.status_code == 200
    assert unlinked.json()['clinicId'] is None
    assert unlinked.json()['name'] == 'Grey'


def test_update_staff_rejects_unknown_clinic(clinic_data, client_as) -> None:
    response = client_as(clinic_data.admin).put(
        f'/api/admin/staff/{clinic_data.doctor.id}',
        json={'clinicId': 'missing-clinic'},
    )

    assert response.status_code == 404
    assert response.json() == {'error': 'Clinic not found.'}


def test_list_services_filters_active_and_clinic(db, clinic_data, client_as) -> None:
    clinic_data.long_exam.active = False
    db.commit()
    client = client_as(clinic_data.portal_user)

    all_services = client.get('/api/services').json()
    active = client.get('/api/services', params={'activeOnly': 'true'}).json()
    elsewhere = client.get('/api/services', params={'clinicId': clinic_data.other_clinic.id}).json()

    assert len(all_services) == 2
    assert [service['name'] for service in active] == ['Consultation']
    assert elsewhere == []


def test_doctor_creates_service_and_admin_unlinks_it(clinic_data, client_as) -> None:
    created = client_as(clinic_data.doctor).post(
        '/api/services',
        json={'name': 'Vaccination', 'duration': 15, 'price': 25, 'clinicId': clinic_data.clinic.id},
    )
    service_id = created.json()['id']

    unlinked = client_as(clinic_data.admin).put(f'/api/services/{service_id}', json={'clinicId': None})

    assert created.status_code == 201
    assert created.json()['active'] is True
    assert unlinked.json()['clinicId'] is None
    assert unlinked.json()['duration'] == 15


def test_receptionist_cannot_manage_services(clinic_data, client_as) -> None:
    response = client_as(clinic_data.receptionist).post(
        '/api/services',
        json={'name': 'Vaccination', 'duration': 15, 'price': 25, 'clinicId': clinic_data.clinic.id},
    )

    assert response.status_code == 403


def test_create_service_requires_positive_duration(clinic_data, client_as) -> None:
    response = client_as(clinic_data.admin).post(
        '/api/services',
        json={'name': 'Vaccination', 'duration': 0, 'price': 25, 'clinicId': clinic_data.clinic.id},
    )

    assert response.status_code == 400
    assert response.json()['errors'] == {'duration': 'Duration must be a positive number of minutes.'}


def test_list_clinics_limits_non_admin_to_own_clinic(clinic_data, client_as) -> None:
    admin_view = client_as(clinic_data.admin).get('/api/clinics').json()
    doctor_view = client_as(clinic_data.doctor).get('/api/clinics').json()

    assert [clinic['name'] for clinic in admin_view] == ['Hilltop Clinic', 'Riverside Clinic']
    assert [clinic['id'] for clinic in doctor_view] == [clinic_data.clinic.id]


def test_create_clinic_is_admin_only(clinic_data, client_as) -> None:
    created = client_as(clinic_data.admin).post('/api/clinics', json={'name': ' Lakeside ', 'phone': ''})
    denied = client_as(clinic_data.receptionist).post('/api/clinics', json={'name': 'Lakeside'})

    assert created.status_code == 201
    assert created.json()['name'] == 'Lakeside'
    assert created.json()['phone'] is None
    assert created.json()['isActive'] is True
    assert denied.status_code == 403


def test_get_clinic_reports_counts(db, clinic_data) -> None:
    detail = get_clinic(clinic_id=clinic_data.clinic.id, current_user=clinic_data.admin, db=db)

    assert (detail.staff_count, detail.service_count, detail.patient_count) == (4, 2, 2)


def test_get_clinic_hides_other_clinics_from_staff(clinic_data) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_clinic(clinic_id=clinic_data.other_clinic.id, current_user=clinic_data.doctor, db=None)

    assert exception_info.value.status_code == 404


def test_clinic_staff_listing_is_open_to_staff_and_scoped_to_their_clinic(db, clinic_data, client_as) -> None:
    db.add(User(name='Far', email='far@hilltop.test', role='DOCTOR', clinic_id=clinic_data.other_clinic.id))
    db.commit()
    client = client_as(clinic_data.receptionist)

    doctors = client.get('/api/staff', params={'role': 'doctor'}).json()
    elsewhere = client.get('/api/staff', params={'clinicId': clinic_data.other_clinic.id}).json()

    assert [member['name'] for member in doctors['staff']] == ['Grey', 'House']
    assert {member['name'] for member in elsewhere['staff']} == {'Grey', 'House', 'Rita'}


def test_clinic_staff_listing_rejects_unknown_role(clinic_data, client_as) -> None:
    response = client_as(clinic_data.doctor).get('/api/staff', params={'role': 'PATIENT'})

    assert response.status_code == 400
    assert response.json() == {'error': 'Invalid staff role.'}


def test_clinic_staff_listing_is_closed_to_patients(clinic_data, client_as) -> None:
    response = client_as(clinic_data.portal_user).get('/api/staff')

    assert response.status_code == 403
