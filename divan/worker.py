"""
ARQ Background Worker
Delivers the email outbox and creates session reminders
"""

import logging

from arq.connections import RedisSettings
from arq.cron import cron

from . import models  # noqa: F401 - register tables before any query
from .config import get_settings
from .database import SessionLocal
from .domain.scheduling.service import SchedulingService
from .services.outbox import dispatch_pending_events

logger = logging.getLogger(__name__)


def get_redis_settings() -> RedisSettings:
    """Redis for the worker queue; local defaults when REDIS_URL is unset"""
    redis_url = get_settings().REDIS_URL
    if not redis_url:
        logger.warning("REDIS_URL not set, worker will use localhost:6379")
        return RedisSettings()

    # rediss:// URLs switch on TLS
    settings = RedisSettings.from_dsn(redis_url)
    settings.conn_timeout = 15
    settings.conn_retry_delay = 1
    return settings


async def dispatch_outbox_task(ctx):
    """Send pending outbox emails; failed ones stay pending until MAX_ATTEMPTS"""
    return await dispatch_pending_events(get_settings(), session_factory=SessionLocal)


async def session_reminder_task(ctx):
    """Notify both parties of sessions starting within the next hour"""
    db = SessionLocal()
    try:
        sent = SchedulingService(db).send_due_reminders()
        return {"status": "completed", "reminders": sent}
    except Exception as e:
        logger.error(f"❌ Session reminder run failed: {str(e)}")
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [dispatch_outbox_task, session_reminder_task]
    redis_settings = get_redis_settings()

    max_jobs = 10
    job_timeout = 120
    keep_result = 3600

    cron_jobs = [
        cron(dispatch_outbox_task, minute=set(range(60)), run_at_startup=True),
        cron(session_reminder_task, minute=set(range(0, 60, 5))),
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
