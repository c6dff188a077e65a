"""Notification router - the caller's in-app inbox"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Notification, Profile
from ...shared.clock import to_iso
from .service import MAX_PAGE_SIZE, NotificationService

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    metadata: dict[str, Any]
    isRead: bool
    readAt: Optional[str] = None
    createdAt: Optional[str] = None

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            type=notification.type,
            title=notification.title,
            message=notification.message,
            metadata=notification.data or {},
            isRead=notification.is_read,
            readAt=to_iso(notification.read_at),
            createdAt=to_iso(notification.created_at),
        )


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get("")
async def list_notifications(
    unreadOnly: bool = Query(False),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    notifications = service.list_notifications(current_user, unreadOnly, limit, offset)
    return {"notifications": [NotificationResponse.from_notification(n) for n in notifications]}


@router.get("/unread-count")
async def unread_count(
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    return {"count": service.unread_count(current_user)}


@router.post("/read-all")
async def mark_all_read(
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Zero unread is still a success"""
    updated = service.mark_all_read(current_user)
    return {"success": True, "updated": updated}


@router.delete("/read")
async def delete_read(
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    deleted = service.delete_read(current_user)
    return {"success": True, "deleted": deleted}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    notification = service.mark_read(current_user, notification_id)
    return {"success": True, "notification": NotificationResponse.from_notification(notification)}


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: Profile = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    service.delete(current_user, notification_id)
    return {"success": True}
