"""Notification repository - every query is scoped to the owner"""

from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ...models import Notification


class NotificationRepository:
    @staticmethod
    def list_for_user(
        db: Session, user_id: str, unread_only: bool = False, limit: int = 20, offset: int = 0
    ) -> list[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc()).offset(offset).limit(limit).all()

    @staticmethod
    def count_unread(db: Session, user_id: str) -> int:
        return (
            db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
            or 0
        )

    @staticmethod
    def get_notification(db: Session, notification_id: str) -> Optional[Notification]:
        return db.query(Notification).filter(Notification.id == notification_id).first()

    @staticmethod
    def mark_all_read(db: Session, user_id: str, read_at) -> int:
        result = db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    @staticmethod
    def delete_read(db: Session, user_id: str) -> int:
        return (
            db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.is_read.is_(True))
            .delete(synchronize_session=False)
        )
