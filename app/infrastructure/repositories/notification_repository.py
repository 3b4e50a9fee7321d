"""Persistence helpers for notification entities."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from app.domain.entities import (
    Importance,
    Notification,
    NotificationType,
    compute_subject_hash,
)
from app.infrastructure.models import NotificationModel
from app.utils import (
    from_storage_datetime,
    now_in_app_timezone,
    to_storage_datetime,
)

logger = logging.getLogger(__name__)


class NotificationRepository:
    """Provide CRUD operations for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, notification_id: int) -> Notification | None:
        model = self.session.get(NotificationModel, notification_id)
        return self._to_entity(model) if model else None

    def get_for_user(self, notification_id: int, user_id: int) -> Notification | None:
        model = self._get_owned_model(notification_id, user_id)
        return self._to_entity(model) if model else None

    def list_for_user(
        self,
        user_id: int,
        *,
        limit: int | None = 20,
        skip: int = 0,
        unread_only: bool = False,
    ) -> Sequence[Notification]:
        query = self._user_query(user_id, unread_only=unread_only)
        query = query.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        )
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def list_unread_for_user(
        self, user_id: int, *, limit: int | None = 50
    ) -> Sequence[Notification]:
        return self.list_for_user(user_id, limit=limit, unread_only=True)

    def count_for_user(self, user_id: int, *, unread_only: bool = False) -> int:
        return self._user_query(user_id, unread_only=unread_only).count()

    def find_by_subject(
        self, *, user_id: int, notification_type: NotificationType, subject_key: str
    ) -> Notification | None:
        models = self._subject_query(user_id, notification_type, subject_key).all()
        return self._to_entity(models[0]) if models else None

    def create(self, notification: Notification) -> Notification:
        model = NotificationModel()
        self._apply_entity_to_model(model, notification, include_creation_fields=True)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def create_many(self, notifications: Sequence[Notification]) -> list[Notification]:
        """Insert ``notifications`` in a single transaction.

        No replacement pass runs here. Each subject hash is claimed by the last
        record of the batch carrying it, unless a live record already holds it;
        the others are stored without a hash and are still found (and replaced)
        by their ``(user_id, type, subject_key)`` on the next single create.
        """

        hashes = [
            compute_subject_hash(n.user_id, n.type, n.subject_key) for n in notifications
        ]
        wanted = {subject_hash for subject_hash in hashes if subject_hash is not None}
        taken: set[str] = set()
        if wanted:
            taken = set(
                self.session.scalars(
                    select(NotificationModel.subject_hash).where(
                        NotificationModel.subject_hash.in_(wanted)
                    )
                )
            )
        claimed_by = {
            subject_hash: index
            for index, subject_hash in enumerate(hashes)
            if subject_hash is not None and subject_hash not in taken
        }

        models = []
        for index, notification in enumerate(notifications):
            model = NotificationModel()
            self._apply_entity_to_model(
                model, notification, include_creation_fields=True
            )
            if claimed_by.get(hashes[index]) == index:
                model.subject_hash = hashes[index]
            models.append(model)
        self.session.add_all(models)
        self.session.commit()
        for model in models:
            self.session.refresh(model)
        return [self._to_entity(model) for model in models]

    def replace_by_subject(
        self, notification: Notification
    ) -> tuple[Notification, list[int]]:
        """Atomically replace the live records sharing ``notification``'s subject.

        Returns the stored notification and the ids of the records it replaced.
        Live records are matched on ``(user_id, type, subject_key)`` so rows
        written by the bulk path without a hash are reconciled too. When the
        subject key is ``None`` the record is simply inserted. The unique
        ``subject_hash`` column rejects a concurrent insert for the same
        subject; the losing writer retries once so the latest call wins.
        """

        subject_hash = compute_subject_hash(
            notification.user_id, notification.type, notification.subject_key
        )
        if subject_hash is None:
            return self.create(notification), []

        for attempt in (1, 2):
            try:
                return self._replace_once(notification, subject_hash)
            except IntegrityError:
                self.session.rollback()
                if attempt == 2:
                    raise
                logger.info(
                    "Concurrent notification insert for subject %s; retrying",
                    notification.subject_key,
                )
        raise RuntimeError("unreachable")  # pragma: no cover

    def update(self, notification: Notification) -> Notification:
        if notification.id is None:
            raise ValueError("Notification id is required for updates")
        model = self.session.get(NotificationModel, notification.id)
        if model is None:
            msg = f"Notification with id {notification.id} not found"
            raise ValueError(msg)
        self._apply_entity_to_model(model, notification, include_creation_fields=False)
        if notification.created_at is not None:
            model.created_at = to_storage_datetime(notification.created_at)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def mark_as_read(self, notification_id: int, *, user_id: int) -> Notification | None:
        model = self._get_owned_model(notification_id, user_id)
        if model is None:
            return None
        model.is_read = True
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def mark_many_as_read(
        self, notification_ids: Sequence[int], *, user_id: int
    ) -> list[Notification]:
        """Flip the unread records among ``notification_ids`` owned by ``user_id``."""

        ids = [notification_id for notification_id in notification_ids if notification_id is not None]
        if not ids:
            return []
        models = (
            self._user_query(user_id, unread_only=True)
            .filter(NotificationModel.id.in_(ids))
            .all()
        )
        for model in models:
            model.is_read = True
        self.session.commit()
        for model in models:
            self.session.refresh(model)
        return [self._to_entity(model) for model in models]

    def mark_all_as_read(self, user_id: int) -> list[Notification]:
        """Flip every unread record of ``user_id`` and return the updated rows."""

        models = self._user_query(user_id, unread_only=True).all()
        for model in models:
            model.is_read = True
        self.session.commit()
        for model in models:
            self.session.refresh(model)
        return [self._to_entity(model) for model in models]

    def delete_for_user(self, notification_id: int, user_id: int) -> bool:
        model = self._get_owned_model(notification_id, user_id)
        if model is None:
            return False
        self.session.delete(model)
        self.session.commit()
        return True

    def delete_all_for_user(self, user_id: int) -> int:
        result = self.session.execute(
            delete(NotificationModel).where(NotificationModel.user_id == user_id)
        )
        self.session.commit()
        return result.rowcount or 0

    def exists_since(
        self,
        *,
        user_id: int,
        notification_type: NotificationType,
        subject_key: str,
        since: datetime,
        until: datetime | None = None,
    ) -> bool:
        """Return whether a matching notification was created in ``[since, until]``."""

        statement = select(func.count(NotificationModel.id)).where(
            NotificationModel.user_id == user_id,
            NotificationModel.type == notification_type.value,
            NotificationModel.subject_key == subject_key,
            NotificationModel.created_at >= to_storage_datetime(since),
        )
        if until is not None:
            statement = statement.where(
                NotificationModel.created_at <= to_storage_datetime(until)
            )
        return bool(self.session.execute(statement).scalar_one())

    def find_recent_for_aggregation(
        self,
        *,
        user_id: int,
        notification_type: NotificationType,
        since: datetime,
        related_project_id: int | None = None,
    ) -> Notification | None:
        query = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.type == notification_type.value)
            .filter(NotificationModel.created_at >= to_storage_datetime(since))
        )
        if related_project_id is not None:
            query = query.filter(
                NotificationModel.related_project_id == related_project_id
            )
        model = query.order_by(
            NotificationModel.created_at.desc(), NotificationModel.id.desc()
        ).first()
        return self._to_entity(model) if model else None

    def get_invitation_notification(
        self, *, user_id: int, invitation_id: int
    ) -> Notification | None:
        model = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.related_invitation_id == invitation_id)
            .filter(
                NotificationModel.type == NotificationType.PROJECT_INVITATION.value
            )
            .order_by(NotificationModel.created_at.desc())
            .first()
        )
        return self._to_entity(model) if model else None

    def list_by_plan_tier(self, user_id: int, plan_tier: str) -> Sequence[Notification]:
        query = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.plan_tier == plan_tier)
        )
        return [self._to_entity(model) for model in query.all()]

    def update_retention(
        self, updates: Sequence[tuple[int, str, datetime | None]]
    ) -> int:
        """Apply ``(id, plan_tier, expires_at)`` triples in one transaction."""

        count = 0
        for notification_id, plan_tier, expires_at in updates:
            model = self.session.get(NotificationModel, notification_id)
            if model is None:
                continue
            model.plan_tier = plan_tier
            model.expires_at = to_storage_datetime(expires_at)
            count += 1
        self.session.commit()
        return count

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete every record whose ``expires_at`` has been reached."""

        cutoff = to_storage_datetime(now or now_in_app_timezone())
        result = self.session.execute(
            delete(NotificationModel).where(
                NotificationModel.expires_at.is_not(None),
                NotificationModel.expires_at <= cutoff,
            )
        )
        self.session.commit()
        return result.rowcount or 0

    def _replace_once(
        self, notification: Notification, subject_hash: str
    ) -> tuple[Notification, list[int]]:
        existing = (
            self._subject_query(
                notification.user_id, notification.type, notification.subject_key
            )
            .with_for_update()
            .all()
        )
        replaced_ids = [model.id for model in existing]
        for model in existing:
            self.session.delete(model)
        if existing:
            self.session.flush()

        model = NotificationModel()
        self._apply_entity_to_model(model, notification, include_creation_fields=True)
        model.subject_hash = subject_hash
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model), replaced_ids

    def _subject_query(
        self, user_id: int, notification_type: NotificationType | str, subject_key: str
    ) -> Query:
        return (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(
                NotificationModel.type == NotificationType.parse(notification_type).value
            )
            .filter(NotificationModel.subject_key == subject_key)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
        )

    def _get_owned_model(
        self, notification_id: int, user_id: int
    ) -> NotificationModel | None:
        return (
            self.session.query(NotificationModel)
            .filter(NotificationModel.id == notification_id)
            .filter(NotificationModel.user_id == user_id)
            .first()
        )

    def _user_query(self, user_id: int, *, unread_only: bool = False) -> Query:
        query = self.session.query(NotificationModel).filter(
            NotificationModel.user_id == user_id
        )
        if unread_only:
            query = query.filter(NotificationModel.is_read.is_(False))
        return query

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationModel,
        notification: Notification,
        *,
        include_creation_fields: bool,
    ) -> None:
        if include_creation_fields:
            model.created_at = (
                to_storage_datetime(notification.created_at)
                or to_storage_datetime(now_in_app_timezone())
            )
            model.subject_key = notification.subject_key
        model.user_id = notification.user_id
        model.type = NotificationType.parse(notification.type).value
        model.title = notification.title
        model.message = notification.message
        model.is_read = bool(notification.is_read)
        model.action_url = notification.action_url
        model.related_project_id = notification.related_project_id
        model.related_invitation_id = notification.related_invitation_id
        model.related_user_id = notification.related_user_id
        model.related_todo_id = notification.related_todo_id
        model.related_comment_id = notification.related_comment_id
        model.extra = dict(notification.metadata or {})
        model.plan_tier = notification.plan_tier
        model.importance = Importance(notification.importance).value
        model.expires_at = to_storage_datetime(notification.expires_at)

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        project = model.related_project
        related_user = model.related_user
        return Notification(
            id=model.id,
            user_id=model.user_id,
            type=NotificationType(model.type),
            title=model.title,
            message=model.message,
            is_read=bool(model.is_read),
            action_url=model.action_url,
            related_project_id=model.related_project_id,
            related_invitation_id=model.related_invitation_id,
            related_user_id=model.related_user_id,
            related_todo_id=model.related_todo_id,
            related_comment_id=model.related_comment_id,
            metadata=dict(model.extra or {}),
            plan_tier=model.plan_tier,
            importance=Importance(model.importance),
            expires_at=from_storage_datetime(model.expires_at),
            subject_key=model.subject_key,
            created_at=from_storage_datetime(model.created_at),
            updated_at=from_storage_datetime(model.updated_at),
            related_project_name=project.name if project is not None else None,
            related_project_color=project.color if project is not None else None,
            related_user_name=related_user.name if related_user is not None else None,
        )


__all__ = ["NotificationRepository"]
