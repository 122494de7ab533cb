"""
In-app notification endpoints
"""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from plantops.api.v1.deps import get_current_user
from plantops.db.session import get_db
from plantops.exceptions import NotFoundError
from plantops.models import Notification
from plantops.models.user import User
from plantops.schemas.audit import NotificationResponse
from plantops.services import audit_service

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=List[NotificationResponse])
async def list_my_notifications(
    unread_only: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return query.order_by(Notification.id.desc()).limit(200).all()


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == current_user.id)
        .first()
    )
    if not notification:
        raise NotFoundError("Notification", notification_id)
    audit_service.mark_notification_read(db, notification)
    db.commit()
    db.refresh(notification)
    return notification
