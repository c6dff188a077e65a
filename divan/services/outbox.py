"""
Transactional outbox for emails
Workflows enqueue inside their transaction; dispatch happens after commit
(request background task right away, arq cron as the retry loop).
"""

import logging
from datetime import timedelta

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session, sessionmaker

from ..config import Settings
from ..database import SessionLocal
from ..email_service import (
    send_appointment_cancelled,
    send_appointment_confirmation,
    send_payment_confirmed_email,
)
from ..errors import DomainError
from ..models import OutboxEvent
from ..shared.clock import utcnow

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
CLAIM_TIMEOUT = timedelta(minutes=10)

HANDLERS = {
    "email.payment_confirmed": send_payment_confirmed_email,
    "email.appointment_confirmation": send_appointment_confirmation,
    "email.appointment_cancelled": send_appointment_cancelled,
}


def enqueue(db: Session, kind: str, payload: dict) -> OutboxEvent:
    """Add an outbox event to the current transaction (caller commits)"""
    if kind not in HANDLERS:
        raise ValueError(f"Unknown outbox event kind: {kind}")
    event = OutboxEvent(kind=kind, payload=payload)
    db.add(event)
    return event


def _claimable(now):
    return or_(
        OutboxEvent.status == "pending",
        and_(OutboxEvent.status == "sending", OutboxEvent.claimed_at < now - CLAIM_TIMEOUT),
    )


def claim_event(db: Session, event_id: str, now) -> bool:
    """
    Move one event to 'sending' with a conditional UPDATE; False when another
    dispatcher claimed it first. Claims older than CLAIM_TIMEOUT are taken over.
    """
    result = db.execute(
        update(OutboxEvent)
        .where(OutboxEvent.id == event_id, _claimable(now))
        .values(status="sending", claimed_at=now, attempts=OutboxEvent.attempts + 1)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


async def dispatch_pending_events(
    settings: Settings, session_factory: sessionmaker = SessionLocal, limit: int = 50
) -> dict:
    """Deliver pending events; failures are retried until MAX_ATTEMPTS"""
    db = session_factory()
    summary = {"sent": 0, "retry": 0, "failed": 0}
    try:
        now = utcnow()
        event_ids = [
            row[0]
            for row in db.query(OutboxEvent.id)
            .filter(_claimable(now))
            .order_by(OutboxEvent.created_at.asc())
            .limit(limit)
            .all()
        ]

        for event_id in event_ids:
            if not claim_event(db, event_id, utcnow()):
                logger.debug(f"Outbox event {event_id} claimed by another dispatcher")
                continue

            event = db.get(OutboxEvent, event_id, populate_existing=True)
            handler = HANDLERS[event.kind]
            try:
                await handler(**event.payload, settings=settings)
                event.status = "sent"
                event.sent_at = utcnow()
                event.last_error = None
                summary["sent"] += 1
            except DomainError as e:
                event.last_error = e.message
                if event.attempts >= MAX_ATTEMPTS:
                    event.status = "failed"
                    summary["failed"] += 1
                    logger.error(f"❌ Outbox event {event.id} ({event.kind}) failed permanently: {e.message}")
                else:
                    event.status = "pending"
                    summary["retry"] += 1
                    logger.warning(f"⚠️ Outbox event {event.id} ({event.kind}) attempt {event.attempts} failed: {e.message}")
            db.commit()

        if event_ids:
            logger.info(f"📤 Outbox dispatch: {summary}")
        return summary
    finally:
        db.close()
