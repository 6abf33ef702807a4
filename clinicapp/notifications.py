"""Creation of in-app notifications for appointment events."""

import logging

from sqlalchemy.orm import Session

from clinicapp.models.appointment import Appointment
from clinicapp.models.notification import Notification

logger = logging.getLogger(__name__)

APPOINTMENT_NOTIFICATION = 'appointment'


def create_notification(
    db: Session,
    *,
    user_id: str,
    type: str,
    title: str,
    message: str,
    clinic_id: str | None = None,
    icon: str | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        clinic_id=clinic_id,
        type=type,
        title=title,
        message=message,
        icon=icon,
        read=False,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    logger.info('Created %s notification %s for user %s', type, notification.id, user_id)
    return notification


def notify_appointment_confirmed(db: Session, *, user_id: str, appointment: Appointment) -> Notification:
    day = appointment.start_time.strftime('%A, %B %d, %Y')
    time_of_day = appointment.start_time.strftime('%I:%M %p')
    return create_notification(
        db,
        user_id=user_id,
        type=APPOINTMENT_NOTIFICATION,
        title='Appointment Confirmed',
        message=f'Your appointment is confirmed for {day} at {time_of_day}.',
        clinic_id=appointment.clinic_id,
        icon='calendar',
    )


def notify_appointment_cancelled(
    db: Session,
    *,
    user_id: str,
    appointment: Appointment,
    reason: str | None = None,
) -> Notification:
    day = appointment.start_time.strftime('%A, %B %d')
    message = f'Your appointment on {day} has been cancelled.'
    if reason:
        message = f'{message} Reason: {reason}'
    return create_notification(
        db,
        user_id=user_id,
        type=APPOINTMENT_NOTIFICATION,
        title='Appointment Cancelled',
        message=message,
        clinic_id=appointment.clinic_id,
        icon='cancel',
    )
