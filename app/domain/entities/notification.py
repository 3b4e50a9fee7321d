"""Domain entity representing a user notification."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class NotificationType(str, Enum):
    """Closed set of notification kinds understood by the engine."""

    PROJECT_INVITATION = "project_invitation"
    PROJECT_SHARED = "project_shared"
    TEAM_MEMBER_ADDED = "team_member_added"
    TEAM_MEMBER_REMOVED = "team_member_removed"
    TODO_ASSIGNED = "todo_assigned"
    TODO_DUE_SOON = "todo_due_soon"
    TODO_OVERDUE = "todo_overdue"
    SUBTASK_COMPLETED = "subtask_completed"
    STALE_ITEMS_SUMMARY = "stale_items_summary"
    DAILY_TODO_SUMMARY = "daily_todo_summary"
    PROJECTS_LOCKED = "projects_locked"
    PROJECTS_UNLOCKED = "projects_unlocked"
    ADMIN_MESSAGE = "admin_message"
    COMMENT_ON_PROJECT = "comment_on_project"
    REPLY_TO_COMMENT = "reply_to_comment"
    PROJECT_FAVORITED = "project_favorited"
    NEW_FOLLOWER = "new_follower"
    PROJECT_FOLLOWED = "project_followed"
    USER_POST = "user_post"
    PROJECT_UPDATE = "project_update"
    POST_LIKE = "post_like"
    COMMENT_LIKE = "comment_like"

    @classmethod
    def parse(cls, value: "NotificationType | str") -> "NotificationType":
        """Return the member for ``value`` or raise ``ValueError``."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value))
        except ValueError as exc:
            raise ValueError(f"Unknown notification type: {value!r}") from exc


class Importance(str, Enum):
    """Importance classification driving retention length."""

    CRITICAL = "critical"
    STANDARD = "standard"
    TRANSIENT = "transient"


# Types that are unique per user even without a related entity.
SUMMARY_TYPES: frozenset[NotificationType] = frozenset(
    {NotificationType.DAILY_TODO_SUMMARY, NotificationType.STALE_ITEMS_SUMMARY}
)

# Social types merged into a single record within the aggregation window.
AGGREGATABLE_TYPES: frozenset[NotificationType] = frozenset(
    {
        NotificationType.COMMENT_ON_PROJECT,
        NotificationType.REPLY_TO_COMMENT,
        NotificationType.PROJECT_FAVORITED,
        NotificationType.PROJECT_FOLLOWED,
        NotificationType.NEW_FOLLOWER,
    }
)


@dataclass
class NotificationCreate:
    """Input accepted by the notification creation API."""

    user_id: int
    type: NotificationType | str
    title: str
    message: str
    action_url: str | None = None
    related_project_id: int | None = None
    related_invitation_id: int | None = None
    related_user_id: int | None = None
    related_todo_id: int | None = None
    related_comment_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.type = NotificationType.parse(self.type)
        self.title = (self.title or "").strip()
        self.message = (self.message or "").strip()
        if not self.title:
            raise ValueError("Notification title is required")
        if not self.message:
            raise ValueError("Notification message is required")


@dataclass
class Notification:
    """Information message delivered to a specific user."""

    id: int | None
    user_id: int
    type: NotificationType
    title: str
    message: str
    is_read: bool = False
    action_url: str | None = None
    related_project_id: int | None = None
    related_invitation_id: int | None = None
    related_user_id: int | None = None
    related_todo_id: int | None = None
    related_comment_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    plan_tier: str = "free"
    importance: Importance = Importance.STANDARD
    expires_at: datetime | None = None
    subject_key: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    related_project_name: str | None = None
    related_project_color: str | None = None
    related_user_name: str | None = None


@dataclass
class NotificationPage:
    """A page of notifications plus counters computed independently of it."""

    notifications: list[Notification]
    unread_count: int
    total: int


def compute_subject_key(
    notification_type: NotificationType | str,
    *,
    related_todo_id: int | None = None,
    related_invitation_id: int | None = None,
    related_project_id: int | None = None,
    related_user_id: int | None = None,
) -> str | None:
    """Return the uniqueness subject for a notification.

    The first present of todo, invitation, project wins; the related user only
    counts for ``team_member_added``. Summary types without relations are
    unique per user and type, which yields the empty key.
    """

    notification_type = NotificationType.parse(notification_type)
    if related_todo_id is not None:
        return f"todo:{related_todo_id}"
    if related_invitation_id is not None:
        return f"invitation:{related_invitation_id}"
    if related_project_id is not None:
        return f"project:{related_project_id}"
    if (
        related_user_id is not None
        and notification_type is NotificationType.TEAM_MEMBER_ADDED
    ):
        return f"user:{related_user_id}"
    if notification_type in SUMMARY_TYPES:
        return ""
    return None


def compute_subject_hash(
    user_id: int, notification_type: NotificationType | str, subject_key: str | None
) -> str | None:
    """Return the stable hash of ``user_id|type|subject_key`` or ``None``."""

    if subject_key is None:
        return None
    notification_type = NotificationType.parse(notification_type)
    raw = f"{user_id}|{notification_type.value}|{subject_key}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


__all__ = [
    "AGGREGATABLE_TYPES",
    "Importance",
    "Notification",
    "NotificationCreate",
    "NotificationPage",
    "NotificationType",
    "SUMMARY_TYPES",
    "compute_subject_hash",
    "compute_subject_key",
]
