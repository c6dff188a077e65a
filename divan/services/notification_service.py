"""
In-app notification fan-out
Workflows call notify() inside their own transaction; the row commits with the domain change
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Notification

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = {
    "appointment_new",
    "appointment_cancelled",
    "appointment_rescheduled",
    "payment_pix_validated",
    "credits_released",
    "session_reminder",
    "chat_message",
    "review_received",
    "system",
}

METADATA_KEYS = {
    "appointment_id",
    "order_id",
    "credits_added",
    "chat_appointment_id",
    "sender_name",
    "session_start_at",
    "review_id",
    "link",
}


def notify(
    db: Session,
    user_id: str,
    notification_type: str,
    title: str,
    message: str,
    metadata: Optional[dict] = None,
) -> Notification:
    """Add a notification to the current transaction (caller commits)"""
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {notification_type}")

    data = {k: v for k, v in (metadata or {}).items() if k in METADATA_KEYS and v is not None}
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        data=data,
    )
    db.add(notification)
    logger.debug(f"🔔 Queued {notification_type} notification for {user_id}")
    return notification
