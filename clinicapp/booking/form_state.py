import logging
from collections.abc import Iterable
from datetime import date, datetime

from clinicapp.booking.duration import crosses_midnight, derive_end_time
from clinicapp.booking.validator import AppointmentForm, validate_appointment_form
from clinicapp.models.appointment import SCHEDULED

logger = logging.getLogger(__name__)

FORM_FIELDS = ('patient_id', 'doctor_id', 'service_id', 'date', 'start_time', 'end_time', 'notes', 'status')

# Changing any of these recomputes end_time from the selected service.
DERIVATION_TRIGGERS = frozenset({'service_id', 'start_time'})

DEFAULT_START_TIME = '09:00'
DEFAULT_END_TIME = '09:30'


def _parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace('Z', '+00:00'))


def _format_date(value: str | date) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return _parse_timestamp(value).date().isoformat() if 'T' in value else value


class AppointmentFormState:
    """Editable values of one appointment form, with end time derived from the chosen service.

    ``appointment`` is an API record (camelCase keys) when editing; omit it
    to book a new appointment.
    """

    def __init__(
        self,
        appointment: dict | None = None,
        services: Iterable[dict] = (),
        preselected_date: str | date | None = None,
        preselected_patient: str | None = None,
        today: date | None = None,
    ):
        self.appointment = appointment
        self.preselected_date = preselected_date
        self.preselected_patient = preselected_patient
        self.today = today
        self.services: dict[str, dict] = {}
        self.selected_service: dict | None = None
        # True when the derived end time wrapped past midnight onto the next day's clock.
        self.end_time_wrapped = False
        self.values = self.initial_values()
        self.set_services(services)

    @property
    def appointment_id(self) -> str | None:
        if not self.appointment:
            return None
        return self.appointment.get('id')

    @property
    def is_editing(self) -> bool:
        return self.appointment_id is not None

    def initial_values(self) -> dict[str, str]:
        if self.appointment:
            start = _parse_timestamp(self.appointment['startTime'])
            end = _parse_timestamp(self.appointment['endTime'])
            return {
                'patient_id': self.appointment.get('patientId') or '',
                'doctor_id': self.appointment.get('doctorId') or '',
                'service_id': self.appointment.get('serviceId') or '',
                'date': start.date().isoformat(),
                'start_time': start.strftime('%H:%M'),
                'end_time': end.strftime('%H:%M'),
                'notes': self.appointment.get('notes') or '',
                'status': self.appointment.get('status') or SCHEDULED,
            }

        selected_date = self.preselected_date or self.today or date.today()
        return {
            'patient_id': self.preselected_patient or '',
            'doctor_id': '',
            'service_id': '',
            'date': _format_date(selected_date),
            'start_time': DEFAULT_START_TIME,
            'end_time': DEFAULT_END_TIME,
            'notes': '',
            'status': SCHEDULED,
        }

    def set_services(self, services: Iterable[dict]) -> None:
        self.services = {service['id']: service for service in services}
        self.derive_end_time()

    def set(self, field: str, value: str | None) -> None:
        if field not in FORM_FIELDS:
            raise KeyError(f'Unknown appointment form field: {field}')
        self.values[field] = value
        if field == 'end_time':
            self.end_time_wrapped = False
        if field in DERIVATION_TRIGGERS:
            self.derive_end_time()

    def update(self, **values: str | None) -> None:
        for field, value in values.items():
            self.set(field, value)

    def derive_end_time(self) -> None:
        service_id = self.values.get('service_id')
        start_time = self.values.get('start_time')
        if not service_id:
            self.selected_service = None
            self.end_time_wrapped = False
            return
        if not start_time:
            return

        service = self.services.get(service_id)
        if not service or not service.get('duration'):
            self.selected_service = None
            self.end_time_wrapped = False
            return

        duration = int(service['duration'])
        try:
            self.values['end_time'] = derive_end_time(start_time, duration)
            self.end_time_wrapped = crosses_midnight(start_time, duration)
        except ValueError:
            logger.debug('Not deriving end time from start time %r', start_time)
            return
        self.selected_service = service

    def validate(self) -> tuple[AppointmentForm | None, dict[str, str]]:
        return validate_appointment_form(self.values)

    def reset(self) -> None:
        self.values = self.initial_values()
        self.selected_service = None
        self.end_time_wrapped = False
        self.derive_end_time()
