"""Background timers driving the reminder scans."""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.application.use_cases.notifications import (
    JOB_DAILY_SUMMARY,
    JOB_DUE_TODOS,
    JOB_PURGE_EXPIRED,
    JOB_REMINDERS,
    JOB_STALE_ITEMS,
    ReminderScheduler,
)
from app.config import Settings
from app.utils import get_app_timezone

logger = logging.getLogger(__name__)

# Every job runs at most once at a time and missed runs collapse into one.
_JOB_DEFAULTS = {"max_instances": 1, "coalesce": True}


class ReminderJobRunner:
    """Own the APScheduler instance for one application process."""

    def __init__(self, reminders: ReminderScheduler, settings: Settings) -> None:
        self._reminders = reminders
        self._settings = settings
        self._scheduler: BackgroundScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if not self._settings.scheduler_enabled:
            logger.info("Reminder scheduler disabled via settings (SCHEDULER_ENABLED=false)")
            return
        if self._scheduler is not None:
            logger.info("Reminder scheduler already running, skipping initialization")
            return

        settings = self._settings
        jobs = self._reminders.jobs
        scheduler = BackgroundScheduler(
            timezone=get_app_timezone(), job_defaults=_JOB_DEFAULTS
        )
        scheduler.add_job(
            jobs[JOB_DUE_TODOS],
            trigger="interval",
            minutes=settings.due_scan_interval_minutes,
            id=JOB_DUE_TODOS,
            replace_existing=True,
        )
        scheduler.add_job(
            jobs[JOB_REMINDERS],
            trigger="interval",
            minutes=settings.reminder_scan_interval_minutes,
            id=JOB_REMINDERS,
            replace_existing=True,
        )
        scheduler.add_job(
            jobs[JOB_DAILY_SUMMARY],
            trigger="cron",
            hour=settings.daily_summary_hour,
            minute=0,
            id=JOB_DAILY_SUMMARY,
            replace_existing=True,
        )
        scheduler.add_job(
            jobs[JOB_STALE_ITEMS],
            trigger="cron",
            day_of_week=settings.stale_scan_weekday,
            hour=settings.stale_scan_hour,
            minute=0,
            id=JOB_STALE_ITEMS,
            replace_existing=True,
        )
        scheduler.add_job(
            jobs[JOB_PURGE_EXPIRED],
            trigger="interval",
            minutes=settings.purge_interval_minutes,
            id=JOB_PURGE_EXPIRED,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.info(
            "Reminder scheduler started: due scan every %s min, reminders every %s min, "
            "daily summary at %02d:00, stale scan %s %02d:00",
            settings.due_scan_interval_minutes,
            settings.reminder_scan_interval_minutes,
            settings.daily_summary_hour,
            settings.stale_scan_weekday,
            settings.stale_scan_hour,
        )

    def shutdown(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Reminder scheduler stopped")


__all__ = ["ReminderJobRunner"]
