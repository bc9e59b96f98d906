"""Celery app and periodic maintenance tasks."""

import logging

from celery import Celery
from celery.schedules import crontab

from pds_api.core.config import settings

logger = logging.getLogger("pds.tasks")

celery_app = Celery(
    "pds",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_soft_time_limit=300,
    task_time_limit=600,
    beat_schedule={
        "cleanup-expired-tokens": {
            "task": "cleanup_expired_tokens",
            "schedule": crontab(hour=settings.TOKEN_CLEANUP_HOUR, minute=0),
        },
    },
)


@celery_app.task(bind=True, name="cleanup_expired_tokens")
def cleanup_expired_tokens(self) -> dict:
    """Delete expired tokens from the ledger.

    Runs daily from beat; a failure is logged and left for the next run.
    """
    from pds_api.db.session import SessionLocal
    from pds_api.services.token_service import TokenLedger

    db = SessionLocal()
    try:
        deleted = TokenLedger(settings).cleanup_expired(db)
        return {"deleted": deleted}
    except Exception:
        db.rollback()
        logger.exception("Token cleanup failed")
        raise
    finally:
        db.close()
