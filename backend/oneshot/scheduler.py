"""Background scheduler that reclaims storage held by expired secrets."""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from oneshot.config import settings
from oneshot.database import SessionLocal
from oneshot.dependencies import build_secret_service
from oneshot.logging_config import get_logger

logger = get_logger(__name__)

scheduler = BackgroundScheduler()


def cleanup_job(session_factory=SessionLocal) -> int:
    """
    Delete secrets whose expiry has passed.

    Reveals check expiry themselves; this only frees rows nobody asks for.
    """
    db = session_factory()
    try:
        purged = build_secret_service(db).purge_expired()
        if purged:
            logger.info("cleanup_completed", purged=purged)
        return purged
    except Exception as e:
        logger.error("cleanup_failed", error=str(e), exc_info=True)
        return 0
    finally:
        db.close()


def start_scheduler() -> None:
    """Start the background scheduler."""
    scheduler.add_job(
        cleanup_job,
        trigger=IntervalTrigger(minutes=settings.cleanup_interval_minutes),
        id="purge_expired_secrets",
        replace_existing=True,
    )
    scheduler.start()
    logger.info("scheduler_started", interval_minutes=settings.cleanup_interval_minutes)


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("scheduler_stopped")
