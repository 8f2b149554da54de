"""Cron-based cleanup of quizzes that were generated but never submitted."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from cavision.core.config import get_settings
from cavision.db.repositories.quiz_repo import QuizRepository
from cavision.db.session import SessionLocal

logger = logging.getLogger(__name__)


def purge_stale_quizzes(retention_hours: int, session_factory=SessionLocal) -> int:
    cutoff = datetime.now(timezone.utc) - timedelta(hours=retention_hours)
    db = session_factory()
    try:
        return QuizRepository().purge_unsubmitted(db, cutoff)
    finally:
        db.close()


def _job(retention_hours: int) -> None:
    try:
        removed = purge_stale_quizzes(retention_hours)
        logger.info("stale quiz cleanup completed", extra={"removed": removed, "retention_hours": retention_hours})
    except Exception as exc:  # noqa: BLE001
        logger.exception("stale quiz cleanup failed: %s", exc)


def start_scheduler() -> BackgroundScheduler | None:
    settings = get_settings()
    if not settings.enable_quiz_cleanup:
        logger.info("quiz cleanup scheduler disabled via ENABLE_QUIZ_CLEANUP")
        return None

    scheduler = BackgroundScheduler(timezone=pytz.timezone(settings.quiz_cleanup_timezone))
    trigger = CronTrigger.from_crontab(settings.quiz_cleanup_cron, timezone=scheduler.timezone)

    scheduler.add_job(
        _job,
        trigger,
        kwargs={"retention_hours": settings.quiz_retention_hours},
        id="stale_quiz_cleanup",
        replace_existing=True,
    )

    scheduler.start()
    job = scheduler.get_job("stale_quiz_cleanup")
    logger.info(
        "quiz cleanup scheduler started",
        extra={
            "cron": settings.quiz_cleanup_cron,
            "tz": str(scheduler.timezone),
            "retention_hours": settings.quiz_retention_hours,
            "next_run": job.next_run_time if job else None,
        },
    )
    return scheduler


def shutdown_scheduler(scheduler: BackgroundScheduler | None) -> None:
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
