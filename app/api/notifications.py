# api/notifications.py
# Notification feed of the caller, and explicit notification creation.

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app import crud
from app import schemas
from app.api.deps import get_current_user_id
from app.core.errors import NotFound
from app.db.session import get_db
from app.realtime import NEW_NOTIFICATION, EventChannel

logger = logging.getLogger(__name__)


def build_router(events: EventChannel) -> APIRouter:
    router = APIRouter()

    @router.get("", response_model=List[schemas.Notification])
    def read_notifications(db: Session = Depends(get_db), user_id: UUID = Depends(get_current_user_id)):
        """
        The caller's latest notifications, newest first.
        """
        return crud.get_notifications(db, user_id)

    @router.post("", response_model=schemas.Notification, status_code=status.HTTP_201_CREATED)
    def create_notification(
        notification_in: schemas.NotificationCreate,
        db: Session = Depends(get_db),
        user_id: UUID = Depends(get_current_user_id),
    ):
        """
        Notify ``userId`` on behalf of ``commenterId`` and push it to the
        recipient's room.
        """
        commenter = crud.get_user(db, notification_in.commenter_id)
        if commenter is None:
            raise NotFound("Commenter")
        if crud.get_user(db, notification_in.user_id) is None:
            raise NotFound("Recipient")

        message = notification_in.message or f"{commenter.name or 'Unknown User'} commented on your post"
        notification = schemas.Notification.model_validate(
            crud.create_notification(db, notification_in.user_id, message)
        )
        logger.debug(f"User {user_id} created notification {notification.id}")
        events.emit(NEW_NOTIFICATION, notification, room=notification_in.user_id)
        return notification

    return router
