"""Public helpers for emitting and scanning user notifications."""

from .reminders import (
    JOB_DAILY_SUMMARY,
    JOB_DUE_TODOS,
    JOB_PURGE_EXPIRED,
    JOB_REMINDERS,
    JOB_STALE_ITEMS,
    ReminderScheduler,
    build_daily_summary_message,
)
from .service import DEFAULT_PAGE_LIMIT, NotificationService, build_notification_service

__all__ = [
    "DEFAULT_PAGE_LIMIT",
    "JOB_DAILY_SUMMARY",
    "JOB_DUE_TODOS",
    "JOB_PURGE_EXPIRED",
    "JOB_REMINDERS",
    "JOB_STALE_ITEMS",
    "NotificationService",
    "ReminderScheduler",
    "build_daily_summary_message",
    "build_notification_service",
]
