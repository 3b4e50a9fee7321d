"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from app.domain.entities import Notification, NotificationPage


class RelatedProjectRead(BaseModel):
    id: int
    name: str | None = None
    color: str | None = None


class RelatedUserRead(BaseModel):
    id: int
    name: str | None = None


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    id: int
    user_id: int
    type: str
    title: str
    message: str
    is_read: bool
    action_url: str | None = None
    related_project: RelatedProjectRead | None = None
    related_user: RelatedUserRead | None = None
    related_invitation_id: int | None = None
    related_todo_id: int | None = None
    related_comment_id: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    plan_tier: str
    importance: str
    expires_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationRead":
        related_project = None
        if notification.related_project_id is not None:
            related_project = RelatedProjectRead(
                id=notification.related_project_id,
                name=notification.related_project_name,
                color=notification.related_project_color,
            )
        related_user = None
        if notification.related_user_id is not None:
            related_user = RelatedUserRead(
                id=notification.related_user_id, name=notification.related_user_name
            )
        return cls(
            id=notification.id or 0,
            user_id=notification.user_id,
            type=notification.type.value,
            title=notification.title,
            message=notification.message,
            is_read=notification.is_read,
            action_url=notification.action_url,
            related_project=related_project,
            related_user=related_user,
            related_invitation_id=notification.related_invitation_id,
            related_todo_id=notification.related_todo_id,
            related_comment_id=notification.related_comment_id,
            metadata=notification.metadata or {},
            plan_tier=notification.plan_tier,
            importance=notification.importance.value,
            expires_at=notification.expires_at,
            created_at=notification.created_at,
            updated_at=notification.updated_at,
        )


class NotificationPageRead(BaseModel):
    """A page of notifications with counters computed over all of them."""

    notifications: list[NotificationRead]
    unread_count: int = Field(..., ge=0)
    total: int = Field(..., ge=0)

    @classmethod
    def from_page(cls, page: NotificationPage) -> "NotificationPageRead":
        return cls(
            notifications=[NotificationRead.from_entity(n) for n in page.notifications],
            unread_count=page.unread_count,
            total=page.total,
        )


class ModifiedCountRead(BaseModel):
    modified_count: int


class DeletedCountRead(BaseModel):
    deleted_count: int


class ReminderTriggerRead(BaseModel):
    """Outcome of a manually triggered reminder job."""

    job: str
    created: dict[str, int]


__all__ = [
    "DeletedCountRead",
    "ModifiedCountRead",
    "NotificationPageRead",
    "NotificationRead",
    "RelatedProjectRead",
    "RelatedUserRead",
    "ReminderTriggerRead",
]
