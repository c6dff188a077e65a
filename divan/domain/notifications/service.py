"""Notification service - inbox reads and housekeeping for the caller"""

import logging

from sqlalchemy.orm import Session

from ...errors import NotFound
from ...models import Notification, Profile
from ...policy import authorize
from ...shared.clock import utcnow
from .repository import NotificationRepository

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class NotificationService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = NotificationRepository()

    def list_notifications(
        self, user: Profile, unread_only: bool = False, limit: int = 20, offset: int = 0
    ) -> list[Notification]:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        return self.repo.list_for_user(self.db, user.id, unread_only, limit, max(0, offset))

    def unread_count(self, user: Profile) -> int:
        return self.repo.count_unread(self.db, user.id)

    def _get_owned(self, user: Profile, notification_id: str) -> Notification:
        # Someone else's notification looks exactly like a missing one
        notification = self.repo.get_notification(self.db, notification_id)
        if not notification or not authorize(user, notification):
            raise NotFound("Notificação não encontrada")
        return notification

    def mark_read(self, user: Profile, notification_id: str) -> Notification:
        notification = self._get_owned(user, notification_id)
        if notification.is_read:
            return notification
        notification.is_read = True
        notification.read_at = utcnow()
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_read(self, user: Profile) -> int:
        updated = self.repo.mark_all_read(self.db, user.id, utcnow())
        self.db.commit()
        if updated:
            logger.info(f"✅ Marked {updated} notification(s) read for {user.id}")
        return updated

    def delete(self, user: Profile, notification_id: str) -> None:
        notification = self._get_owned(user, notification_id)
        self.db.delete(notification)
        self.db.commit()

    def delete_read(self, user: Profile) -> int:
        deleted = self.repo.delete_read(self.db, user.id)
        self.db.commit()
        return deleted
