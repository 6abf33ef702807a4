import logging
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from clinicapp.booking.form_state import AppointmentFormState
from clinicapp.core import config
from clinicapp.models.appointment import CANCELLED, COMPLETED, CONFIRMED, NO_SHOW
from clinicapp.models.user import DOCTOR_ROLE

logger = logging.getLogger(__name__)

APPOINTMENTS_PATH = '/api/appointments'
PATIENTS_PATH = '/api/patients'
STAFF_PATH = '/api/staff'
ME_PATH = '/auth/me'
SERVICES_PATH = '/api/services'

DEFAULT_SAVE_ERROR = 'Failed to save appointment'
PATIENT_OPTIONS_LIMIT = 100


class BookingError(Exception):
    """Base class for failures surfaced by the booking client."""


class FormValidationError(BookingError):
    def __init__(self, errors: dict[str, str]):
        self.errors = errors
        super().__init__(next(iter(errors.values()), 'Invalid appointment form'))


class SubmissionError(BookingError):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass
class FormOptions:
    patients: list[dict] = field(default_factory=list)
    doctors: list[dict] = field(default_factory=list)
    services: list[dict] = field(default_factory=list)


def extract_error_message(response: httpx.Response, default: str = DEFAULT_SAVE_ERROR) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and body.get('error'):
        return str(body['error'])

    text = response.text.strip()
    return text or response.reason_phrase or default


class AppointmentDispatcher:
    """Sends appointment form submissions to the clinic API, one request per submission."""

    def __init__(
        self,
        client: httpx.Client | None = None,
        base_url: str = config.API_BASE_URL,
        token: str | None = None,
        timeout: float = config.API_TIMEOUT_SECONDS,
    ):
        if client is None:
            headers = {'Authorization': f'Bearer {token}'} if token else {}
            client = httpx.Client(base_url=base_url, headers=headers, timeout=timeout)
        self.client = client

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self.client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning('%s %s failed: %s', method, url, exc)
            raise SubmissionError(str(exc) or DEFAULT_SAVE_ERROR) from exc

    def _get_json(self, url: str, default_error: str, params: dict | None = None):
        response = self._send('GET', url, params=params)
        if not response.is_success:
            raise SubmissionError(extract_error_message(response, default_error), response.status_code)
        return response.json()

    def current_clinic_id(self) -> str | None:
        user = self._get_json(ME_PATH, 'Failed to load current user')
        return user.get('clinicId') if isinstance(user, dict) else None

    def load_options(
        self,
        form: AppointmentFormState | None = None,
        clinic_id: str | None = None,
    ) -> FormOptions:
        """Fetch one clinic's patient, doctor and active service choices and hand the services to ``form``.

        ``clinic_id`` defaults to the signed-in user's clinic.
        """
        if clinic_id is None:
            clinic_id = self.current_clinic_id()
        scope = {'clinicId': clinic_id} if clinic_id else {}

        patients = self._get_json(
            PATIENTS_PATH, 'Failed to load patients', params={'limit': PATIENT_OPTIONS_LIMIT, **scope},
        )
        staff = self._get_json(STAFF_PATH, 'Failed to load staff', params={'role': DOCTOR_ROLE, **scope})
        services = self._get_json(
            SERVICES_PATH, 'Failed to load services', params={'activeOnly': 'true', **scope},
        )

        staff_members = staff.get('staff', []) if isinstance(staff, dict) else []
        options = FormOptions(
            patients=patients.get('patients', []) if isinstance(patients, dict) else [],
            doctors=[member for member in staff_members if member.get('role') == DOCTOR_ROLE],
            services=services if isinstance(services, list) else [],
        )
        if form is not None:
            form.set_services(options.services)
        return options

    def submit(
        self,
        form: AppointmentFormState,
        on_success: Callable[[dict], None] | None = None,
    ) -> dict:
        record, errors = form.validate()
        if errors:
            raise FormValidationError(errors)

        payload = record.to_payload()
        if form.is_editing:
            response = self._send('PUT', f'{APPOINTMENTS_PATH}/{form.appointment_id}', json=payload)
        else:
            response = self._send('POST', APPOINTMENTS_PATH, json=payload)

        if not response.is_success:
            message = extract_error_message(response)
            logger.warning('Saving appointment failed with HTTP %s: %s', response.status_code, message)
            raise SubmissionError(message, response.status_code)

        result = response.json()
        form.reset()
        if on_success is not None:
            on_success(result)
        return result

    def update_status(self, appointment_id: str, status: str, notes: str | None = None) -> dict:
        payload = {'status': status}
        if notes:
            payload['notes'] = notes

        response = self._send('PUT', f'{APPOINTMENTS_PATH}/{appointment_id}', json=payload)
        if not response.is_success:
            raise SubmissionError(
                extract_error_message(response, 'Failed to update appointment'),
                response.status_code,
            )
        return response.json()

    def confirm(self, appointment_id: str) -> dict:
        return self.update_status(appointment_id, CONFIRMED)

    def complete(self, appointment_id: str) -> dict:
        return self.update_status(appointment_id, COMPLETED)

    def cancel(self, appointment_id: str, reason: str | None = None) -> dict:
        return self.update_status(appointment_id, CANCELLED, notes=reason)

    def mark_no_show(self, appointment_id: str) -> dict:
        return self.update_status(appointment_id, NO_SHOW)
