"""Domain entities exposed by the application."""

from .notification import (
    AGGREGATABLE_TYPES,
    SUMMARY_TYPES,
    Importance,
    Notification,
    NotificationCreate,
    NotificationPage,
    NotificationType,
    compute_subject_hash,
    compute_subject_key,
)
from .project import Project, Todo
from .reminder import DueTodoItem, StaleTodoItem
from .user import User

__all__ = [
    "AGGREGATABLE_TYPES",
    "SUMMARY_TYPES",
    "DueTodoItem",
    "Importance",
    "Notification",
    "NotificationCreate",
    "NotificationPage",
    "NotificationType",
    "Project",
    "StaleTodoItem",
    "Todo",
    "User",
    "compute_subject_hash",
    "compute_subject_key",
]
