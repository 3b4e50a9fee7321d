"""Aggregate application use cases."""

from .notifications import NotificationService, ReminderScheduler

__all__ = [
    "NotificationService",
    "ReminderScheduler",
]
