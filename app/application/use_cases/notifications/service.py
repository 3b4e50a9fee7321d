"""Creation, delivery and housekeeping of user notifications."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.application.plan_tiers import PlanTierCache, PlanTierLookup
from app.config import Settings, get_settings
from app.domain.entities import (
    AGGREGATABLE_TYPES,
    Notification,
    NotificationCreate,
    NotificationPage,
    NotificationType,
    compute_subject_key,
)
from app.domain.retention import (
    RetentionPolicy,
    default_retention_policy,
    normalize_plan_tier,
)
from app.infrastructure.notifications import (
    EVENT_NOTIFICATION_CREATED,
    EVENT_NOTIFICATION_DELETED,
    EVENT_NOTIFICATION_UPDATED,
    EVENT_NOTIFICATIONS_CLEARED,
    EventPublisher,
    serialize_notification,
    user_channel,
)
from app.infrastructure.repositories import (
    NotificationRepository,
    ProjectRepository,
    UserRepository,
)
from app.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20


class NotificationService:
    """Single entry point for everything that notifies a user.

    Persistence errors propagate to the caller. Realtime publishing is
    best-effort: failures are logged and never undo a stored notification.
    """

    def __init__(
        self,
        repository: NotificationRepository,
        *,
        plan_tiers: PlanTierLookup,
        publisher: EventPublisher | None = None,
        retention: RetentionPolicy = default_retention_policy,
        projects: ProjectRepository | None = None,
        clock: Callable[[], datetime] = now_in_app_timezone,
        dedup_window_minutes: int = 60,
        aggregation_window_minutes: int = 60,
    ) -> None:
        self._repository = repository
        self._plan_tiers = plan_tiers
        self._publisher = publisher
        self._retention = retention
        self._projects = projects
        self._clock = clock
        self._dedup_window = dedup_window_minutes
        self._aggregation_window = aggregation_window_minutes

    def create_notification(self, draft: NotificationCreate) -> Notification:
        """Store ``draft`` for its recipient, replacing the record on the same subject."""

        notification_type = NotificationType.parse(draft.type)

        if notification_type in AGGREGATABLE_TYPES:
            aggregated = self._aggregate(draft, notification_type)
            if aggregated is not None:
                return aggregated

        now = self._clock()
        subject_key = compute_subject_key(
            notification_type,
            related_todo_id=draft.related_todo_id,
            related_invitation_id=draft.related_invitation_id,
            related_project_id=draft.related_project_id,
            related_user_id=draft.related_user_id,
        )
        metadata = dict(draft.metadata or {})
        if notification_type in AGGREGATABLE_TYPES and draft.related_user_id is not None:
            metadata.setdefault("actors", [draft.related_user_id])
            metadata.setdefault("count", 1)

        notification = self._build(draft, notification_type, now, subject_key, metadata)
        saved, replaced_ids = self._repository.replace_by_subject(notification)

        for replaced_id in replaced_ids:
            logger.debug(
                "Replaced notification %s for user %s (%s %s)",
                replaced_id,
                saved.user_id,
                notification_type.value,
                subject_key,
            )
            self._publish(EVENT_NOTIFICATION_DELETED, saved.user_id, str(replaced_id))
        self._publish(
            EVENT_NOTIFICATION_CREATED, saved.user_id, serialize_notification(saved)
        )
        return saved

    def create_bulk_notifications(
        self, drafts: Sequence[NotificationCreate]
    ) -> list[Notification]:
        """Insert ``drafts`` in one batch; no replacement pass is performed."""

        if not drafts:
            return []
        now = self._clock()
        pending = []
        for draft in drafts:
            notification_type = NotificationType.parse(draft.type)
            subject_key = compute_subject_key(
                notification_type,
                related_todo_id=draft.related_todo_id,
                related_invitation_id=draft.related_invitation_id,
                related_project_id=draft.related_project_id,
                related_user_id=draft.related_user_id,
            )
            pending.append(
                self._build(
                    draft, notification_type, now, subject_key, dict(draft.metadata or {})
                )
            )
        created = self._repository.create_many(pending)
        for notification in created:
            self._publish(
                EVENT_NOTIFICATION_CREATED,
                notification.user_id,
                serialize_notification(notification),
            )
        return created

    def get_notifications(
        self,
        user_id: int,
        *,
        limit: int = DEFAULT_PAGE_LIMIT,
        skip: int = 0,
        unread_only: bool = False,
    ) -> NotificationPage:
        """Return a page (newest first) plus counters independent of the page."""

        notifications = self._repository.list_for_user(
            user_id, limit=limit, skip=skip, unread_only=unread_only
        )
        unread_count = self._repository.count_for_user(user_id, unread_only=True)
        total = self._repository.count_for_user(user_id, unread_only=unread_only)
        return NotificationPage(
            notifications=list(notifications), unread_count=unread_count, total=total
        )

    def mark_as_read(self, notification_id: int, user_id: int) -> Notification | None:
        notification = self._repository.mark_as_read(notification_id, user_id=user_id)
        if notification is not None:
            self._publish(
                EVENT_NOTIFICATION_UPDATED, user_id, serialize_notification(notification)
            )
        return notification

    def mark_all_as_read(self, user_id: int) -> int:
        updated = self._repository.mark_all_as_read(user_id)
        for notification in updated:
            self._publish(
                EVENT_NOTIFICATION_UPDATED, user_id, serialize_notification(notification)
            )
        return len(updated)

    def mark_many_as_read(self, notification_ids: Sequence[int], user_id: int) -> int:
        """Mark the given records read; ids of other users are ignored."""

        updated = self._repository.mark_many_as_read(notification_ids, user_id=user_id)
        for notification in updated:
            self._publish(
                EVENT_NOTIFICATION_UPDATED, user_id, serialize_notification(notification)
            )
        return len(updated)

    def delete_notification(self, notification_id: int, user_id: int) -> bool:
        deleted = self._repository.delete_for_user(notification_id, user_id)
        if deleted:
            self._publish(EVENT_NOTIFICATION_DELETED, user_id, str(notification_id))
        return deleted

    def clear_all_notifications(self, user_id: int) -> int:
        deleted_count = self._repository.delete_all_for_user(user_id)
        if deleted_count > 0:
            self._publish(EVENT_NOTIFICATIONS_CLEARED, user_id, None)
        return deleted_count

    def get_invitation_notification(
        self, user_id: int, invitation_id: int
    ) -> Notification | None:
        """Return the invitation notification, marking it read on access."""

        notification = self._repository.get_invitation_notification(
            user_id=user_id, invitation_id=invitation_id
        )
        if notification is None or notification.is_read or notification.id is None:
            return notification
        return self.mark_as_read(notification.id, user_id) or notification

    def has_recent_notification(
        self,
        user_id: int,
        notification_type: NotificationType | str,
        subject_id: int | str,
        window_minutes: int | None = None,
        *,
        subject_kind: str = "todo",
    ) -> bool:
        """Return whether a matching alert was created within the trailing window.

        This is a rate limit for the scanners, not a uniqueness guarantee. Store
        errors are logged and reported as ``False`` so alerts are not blocked.
        """

        window = self._dedup_window if window_minutes is None else window_minutes
        now = self._clock()
        try:
            return self._repository.exists_since(
                user_id=user_id,
                notification_type=NotificationType.parse(notification_type),
                subject_key=f"{subject_kind}:{subject_id}",
                since=now - timedelta(minutes=window),
                until=now,
            )
        except SQLAlchemyError:
            logger.exception(
                "Error checking recent %s notification for user %s",
                notification_type,
                user_id,
            )
            return False

    def apply_plan_change(self, user_id: int, old_tier: str, new_tier: str) -> int:
        """Re-tag the user's notifications of ``old_tier`` with ``new_tier``."""

        old_tier = normalize_plan_tier(old_tier)
        new_tier = normalize_plan_tier(new_tier)
        if self._plan_tiers.cache is not None:
            self._plan_tiers.cache.clear(user_id)

        updates = []
        for notification in self._repository.list_by_plan_tier(user_id, old_tier):
            anchor = notification.created_at or self._clock()
            updates.append(
                (
                    notification.id,
                    new_tier,
                    self._retention.expiration(new_tier, notification.importance, anchor),
                )
            )
        count = self._repository.update_retention(updates)
        logger.info(
            "Updated retention of %s notifications for user %s (%s -> %s)",
            count,
            user_id,
            old_tier,
            new_tier,
        )
        return count

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete notifications whose retention period has elapsed."""

        return self._repository.purge_expired(now or self._clock())

    def _build(
        self,
        draft: NotificationCreate,
        notification_type: NotificationType,
        now: datetime,
        subject_key: str | None,
        metadata: dict[str, Any],
    ) -> Notification:
        plan_tier = self._plan_tiers.get_plan_tier(draft.user_id)
        importance = self._retention.classify(notification_type)
        return Notification(
            id=None,
            user_id=draft.user_id,
            type=notification_type,
            title=draft.title,
            message=draft.message,
            is_read=False,
            action_url=draft.action_url,
            related_project_id=draft.related_project_id,
            related_invitation_id=draft.related_invitation_id,
            related_user_id=draft.related_user_id,
            related_todo_id=draft.related_todo_id,
            related_comment_id=draft.related_comment_id,
            metadata=metadata,
            plan_tier=plan_tier,
            importance=importance,
            expires_at=self._retention.expiration(plan_tier, importance, now),
            subject_key=subject_key,
            created_at=now,
        )

    def _aggregate(
        self, draft: NotificationCreate, notification_type: NotificationType
    ) -> Notification | None:
        now = self._clock()
        recent = self._repository.find_recent_for_aggregation(
            user_id=draft.user_id,
            notification_type=notification_type,
            since=now - timedelta(minutes=self._aggregation_window),
            related_project_id=draft.related_project_id,
        )
        if recent is None:
            return None

        metadata = dict(recent.metadata or {})
        actors = list(metadata.get("actors") or [])
        if draft.related_user_id is not None and draft.related_user_id not in actors:
            actors.append(draft.related_user_id)
        count = max(len(actors), 1)
        title, message = self._aggregated_text(
            notification_type, count, self._project_name(draft.related_project_id)
        )
        metadata.update(
            {
                "actors": actors,
                "count": count,
                "last_actor_id": draft.related_user_id,
                "last_updated": now.isoformat(),
            }
        )
        updated = self._repository.update(
            replace(
                recent,
                title=title,
                message=message,
                is_read=False,
                metadata=metadata,
                created_at=now,
            )
        )
        self._publish(
            EVENT_NOTIFICATION_UPDATED, updated.user_id, serialize_notification(updated)
        )
        return updated

    def _project_name(self, project_id: int | None) -> str:
        if project_id is None or self._projects is None:
            return "your project"
        return self._projects.get_name(project_id) or "your project"

    @staticmethod
    def _aggregated_text(
        notification_type: NotificationType, count: int, project_name: str
    ) -> tuple[str, str]:
        single = count == 1
        if notification_type in (
            NotificationType.COMMENT_ON_PROJECT,
            NotificationType.REPLY_TO_COMMENT,
        ):
            if single:
                return "New Comment", f'New comment on "{project_name}"'
            return "New Activity", f'{count} people commented on "{project_name}"'
        if notification_type is NotificationType.PROJECT_FAVORITED:
            if single:
                return (
                    "Project Favorited",
                    f'Someone favorited your project "{project_name}"',
                )
            return (
                "New Favorites",
                f'{count} people favorited your project "{project_name}"',
            )
        if notification_type is NotificationType.PROJECT_FOLLOWED:
            if single:
                return "Project Followed", f'Someone started following "{project_name}"'
            return (
                "New Followers",
                f'{count} people started following "{project_name}"',
            )
        if single:
            return "New Follower", "Someone started following you"
        return "New Followers", f"{count} people started following you"

    def _publish(self, event: str, user_id: int, payload: Any) -> None:
        if self._publisher is None:
            logger.debug("No realtime publisher attached; skipping %s", event)
            return
        try:
            self._publisher.publish(event, user_channel(user_id), payload)
        except Exception:
            logger.exception("Error emitting %s for user %s", event, user_id)


def build_notification_service(
    session: Session,
    *,
    publisher: EventPublisher | None = None,
    plan_tier_cache: PlanTierCache | None = None,
    settings: Settings | None = None,
    clock: Callable[[], datetime] = now_in_app_timezone,
) -> NotificationService:
    """Wire a :class:`NotificationService` onto ``session``."""

    settings = settings or get_settings()
    projects = ProjectRepository(session)
    return NotificationService(
        NotificationRepository(session),
        plan_tiers=PlanTierLookup(UserRepository(session), projects, plan_tier_cache),
        publisher=publisher,
        projects=projects,
        clock=clock,
        dedup_window_minutes=settings.notification_dedup_window_minutes,
        aggregation_window_minutes=settings.aggregation_window_minutes,
    )


__all__ = ["DEFAULT_PAGE_LIMIT", "NotificationService", "build_notification_service"]
