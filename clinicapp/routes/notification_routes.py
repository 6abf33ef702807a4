from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicapp.auth.dependencies import get_current_user
from clinicapp.database import get_db
from clinicapp.models.notification import Notification
from clinicapp.models.user import User
from clinicapp.routes.common import ApiModel, database_unavailable

router = APIRouter(tags=['notifications'])


class NotificationResponse(ApiModel):
    id: str
    type: str
    title: str
    message: str
    icon: str | None = None
    read: bool
    created_at: datetime | None = None


class MarkAllReadResponse(ApiModel):
    updated: int


@router.get('', response_model=list[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(default=False, alias='unreadOnly'),
    limit: int = Query(default=50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Notification).filter(Notification.user_id == current_user.id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query.order_by(Notification.created_at.desc()).limit(limit).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(db, rollback=False) from exc


@router.patch('/read-all', response_model=MarkAllReadResponse)
def mark_all_notifications_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        updated = db.query(Notification).filter(
            Notification.user_id == current_user.id,
            Notification.read.is_(False),
        ).update({Notification.read: True}, synchronize_session=False)
        db.commit()
        return MarkAllReadResponse(updated=updated)
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.patch('/{notification_id}/read', response_model=NotificationResponse)
def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == current_user.id,
        ).first()
        if not notification:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Notification not found.')

        notification.read = True
        db.commit()
        db.refresh(notification)
        return notification
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
