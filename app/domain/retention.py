"""Plan-tier aware retention rules.

Every record class that expires on its own (notifications, activity logs,
project invitations, removed team members) is described by one table mapping
``plan tier -> category -> days``. A value of ``FOREVER`` means the record is
never purged, which is reported as an expiration of ``None``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Final, Mapping

from app.domain.entities import Importance, NotificationType

FOREVER: Final[int] = -1

PLAN_TIERS: Final[tuple[str, ...]] = ("free", "pro", "premium", "enterprise")
DEFAULT_PLAN_TIER: Final[str] = "free"

ENTITY_NOTIFICATION: Final[str] = "notification"
ENTITY_ACTIVITY_LOG: Final[str] = "activity_log"
ENTITY_PROJECT_INVITATION: Final[str] = "project_invitation"
ENTITY_TEAM_MEMBER: Final[str] = "team_member"

RetentionTable = Mapping[str, Mapping[str, Mapping[str, int]]]

DEFAULT_RETENTION_TABLE: Final[RetentionTable] = MappingProxyType(
    {
        ENTITY_NOTIFICATION: {
            "free": {"critical": 30, "standard": 30, "transient": 7},
            "pro": {"critical": 180, "standard": 90, "transient": 30},
            "premium": {"critical": 365, "standard": 365, "transient": 90},
            "enterprise": {"critical": 365, "standard": 365, "transient": 90},
        },
        ENTITY_ACTIVITY_LOG: {
            "free": {"detailed": 30},
            "pro": {"detailed": 180},
            "premium": {"detailed": 365},
            "enterprise": {"detailed": 365},
        },
        ENTITY_PROJECT_INVITATION: {
            "free": {"pending": 7, "expired": 7, "accepted": 30},
            "pro": {"pending": 14, "expired": 30, "accepted": 180},
            "premium": {"pending": 30, "expired": 90, "accepted": FOREVER},
            "enterprise": {"pending": 30, "expired": 90, "accepted": FOREVER},
        },
        ENTITY_TEAM_MEMBER: {
            "free": {"removed": 30},
            "pro": {"removed": 180},
            "premium": {"removed": 1095},
            "enterprise": {"removed": 1095},
        },
    }
)

NOTIFICATION_IMPORTANCE: Final[Mapping[NotificationType, Importance]] = MappingProxyType(
    {
        NotificationType.PROJECT_INVITATION: Importance.CRITICAL,
        NotificationType.TEAM_MEMBER_ADDED: Importance.CRITICAL,
        NotificationType.TEAM_MEMBER_REMOVED: Importance.CRITICAL,
        NotificationType.ADMIN_MESSAGE: Importance.CRITICAL,
        NotificationType.PROJECTS_LOCKED: Importance.CRITICAL,
        NotificationType.PROJECTS_UNLOCKED: Importance.CRITICAL,
        NotificationType.PROJECT_SHARED: Importance.STANDARD,
        NotificationType.TODO_ASSIGNED: Importance.STANDARD,
        NotificationType.TODO_DUE_SOON: Importance.TRANSIENT,
        NotificationType.TODO_OVERDUE: Importance.TRANSIENT,
        NotificationType.SUBTASK_COMPLETED: Importance.TRANSIENT,
        NotificationType.DAILY_TODO_SUMMARY: Importance.TRANSIENT,
        NotificationType.STALE_ITEMS_SUMMARY: Importance.TRANSIENT,
        NotificationType.POST_LIKE: Importance.TRANSIENT,
        NotificationType.COMMENT_LIKE: Importance.TRANSIENT,
        NotificationType.PROJECT_FAVORITED: Importance.TRANSIENT,
        NotificationType.NEW_FOLLOWER: Importance.TRANSIENT,
        NotificationType.PROJECT_FOLLOWED: Importance.TRANSIENT,
    }
)

_INVITATION_STATUS_CATEGORY: Final[Mapping[str, str]] = MappingProxyType(
    {
        "pending": "pending",
        "expired": "expired",
        "cancelled": "expired",
        "accepted": "accepted",
    }
)


def normalize_plan_tier(plan_tier: str | None) -> str:
    """Return ``plan_tier`` if it is known, otherwise the default tier."""

    tier = (plan_tier or "").strip().lower()
    return tier if tier in PLAN_TIERS else DEFAULT_PLAN_TIER


@dataclass(frozen=True)
class RetentionPolicy:
    """Compute importance classes and expiration instants."""

    table: RetentionTable = field(default_factory=lambda: DEFAULT_RETENTION_TABLE)
    importance: Mapping[NotificationType, Importance] = field(
        default_factory=lambda: NOTIFICATION_IMPORTANCE
    )

    def classify(self, notification_type: NotificationType | str) -> Importance:
        """Return the importance tier of ``notification_type``."""

        parsed = NotificationType.parse(notification_type)
        return self.importance.get(parsed, Importance.STANDARD)

    def retention_days(self, entity: str, plan_tier: str | None, category: str) -> int:
        """Return the number of days ``entity``/``category`` is kept for a tier."""

        try:
            by_tier = self.table[entity]
        except KeyError as exc:
            raise ValueError(f"No retention rules for {entity!r}") from exc
        policy = by_tier[normalize_plan_tier(plan_tier)]
        try:
            return policy[category]
        except KeyError as exc:
            raise ValueError(
                f"No retention rule for {entity!r} category {category!r}"
            ) from exc

    def expires_at(
        self, entity: str, plan_tier: str | None, category: str, anchor: datetime
    ) -> datetime | None:
        """Return ``anchor`` plus the retention period, or ``None`` if kept forever."""

        days = self.retention_days(entity, plan_tier, category)
        if days == FOREVER:
            return None
        return anchor + timedelta(days=days)

    def expiration(
        self,
        plan_tier: str | None,
        importance_or_type: Importance | NotificationType | str,
        anchor: datetime,
    ) -> datetime | None:
        """Return when a notification created at ``anchor`` expires."""

        if isinstance(importance_or_type, Importance):
            importance = importance_or_type
        elif isinstance(importance_or_type, str) and importance_or_type in {
            member.value for member in Importance
        }:
            importance = Importance(importance_or_type)
        else:
            importance = self.classify(importance_or_type)
        return self.expires_at(ENTITY_NOTIFICATION, plan_tier, importance.value, anchor)

    def activity_log_expiration(
        self, plan_tier: str | None, created_at: datetime
    ) -> datetime | None:
        return self.expires_at(ENTITY_ACTIVITY_LOG, plan_tier, "detailed", created_at)

    def invitation_expiration(
        self, plan_tier: str | None, status: str, status_changed_at: datetime
    ) -> datetime | None:
        """Return when an invitation in ``status`` should be removed."""

        category = _INVITATION_STATUS_CATEGORY.get(status, "expired")
        return self.expires_at(
            ENTITY_PROJECT_INVITATION, plan_tier, category, status_changed_at
        )

    def team_member_expiration(
        self, plan_tier: str | None, removed_at: datetime
    ) -> datetime | None:
        return self.expires_at(ENTITY_TEAM_MEMBER, plan_tier, "removed", removed_at)


default_retention_policy = RetentionPolicy()


__all__ = [
    "DEFAULT_PLAN_TIER",
    "DEFAULT_RETENTION_TABLE",
    "ENTITY_ACTIVITY_LOG",
    "ENTITY_NOTIFICATION",
    "ENTITY_PROJECT_INVITATION",
    "ENTITY_TEAM_MEMBER",
    "FOREVER",
    "NOTIFICATION_IMPORTANCE",
    "PLAN_TIERS",
    "RetentionPolicy",
    "default_retention_policy",
    "normalize_plan_tier",
]
