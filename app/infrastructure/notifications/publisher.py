"""Utility helpers to push notification events to websocket subscribers."""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Protocol

from anyio import from_thread

from app.domain.entities import Notification

from .manager import NotificationConnectionManager

logger = logging.getLogger(__name__)

EVENT_NOTIFICATION_CREATED = "notification-created"
EVENT_NOTIFICATION_UPDATED = "notification-updated"
EVENT_NOTIFICATION_DELETED = "notification-deleted"
EVENT_NOTIFICATIONS_CLEARED = "notifications-cleared"


class EventPublisher(Protocol):
    """Fire-and-forget publisher of named events on per-user channels."""

    def publish(self, event: str, channel: str, payload: Any) -> None:
        ...


class WebsocketEventPublisher:
    """Serialize events and schedule their delivery to websocket listeners.

    Calls may come from the event loop itself, from request worker threads or
    from scheduler threads. The loop captured at application startup is used
    to hand the send coroutine over from foreign threads.
    """

    def __init__(
        self,
        manager: NotificationConnectionManager,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._manager = manager
        self._loop = loop

    @property
    def manager(self) -> NotificationConnectionManager:
        return self._manager

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        """Attach (or detach with ``None``) the loop that owns the websockets."""

        self._loop = loop

    def publish(self, event: str, channel: str, payload: Any) -> None:
        """Schedule ``event`` for every subscriber of ``channel``."""

        if not self._manager.has_subscribers(channel):
            logger.debug("No subscribers on %s; dropping %s", channel, event)
            return

        message = {"type": event, "data": copy.deepcopy(payload)}
        try:
            self._schedule_send(channel, message)
        except Exception:
            logger.exception("Failed to publish %s on %s", event, channel)

    def _schedule_send(self, channel: str, message: dict[str, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            loop.create_task(self._manager.send(channel, message))
            return

        if self._loop is not None and not self._loop.is_closed():
            asyncio.run_coroutine_threadsafe(
                self._manager.send(channel, message), self._loop
            )
            return

        try:
            from_thread.run(self._manager.send, channel, message)
        except RuntimeError:
            logger.warning(
                "No event loop available to deliver %s on %s", message["type"], channel
            )


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the realtime payload of ``notification`` with relations expanded."""

    related_project: dict[str, Any] | None = None
    if notification.related_project_id is not None:
        related_project = {
            "id": notification.related_project_id,
            "name": notification.related_project_name,
            "color": notification.related_project_color,
        }
    related_user: dict[str, Any] | None = None
    if notification.related_user_id is not None:
        related_user = {
            "id": notification.related_user_id,
            "name": notification.related_user_name,
        }

    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "type": notification.type.value,
        "title": notification.title,
        "message": notification.message,
        "is_read": notification.is_read,
        "action_url": notification.action_url,
        "related_project": related_project,
        "related_user": related_user,
        "related_invitation_id": notification.related_invitation_id,
        "related_todo_id": notification.related_todo_id,
        "related_comment_id": notification.related_comment_id,
        "metadata": notification.metadata or {},
        "plan_tier": notification.plan_tier,
        "importance": notification.importance.value,
        "expires_at": _isoformat(notification.expires_at),
        "created_at": _isoformat(notification.created_at),
        "updated_at": _isoformat(notification.updated_at),
    }


def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


__all__ = [
    "EVENT_NOTIFICATION_CREATED",
    "EVENT_NOTIFICATION_DELETED",
    "EVENT_NOTIFICATION_UPDATED",
    "EVENT_NOTIFICATIONS_CLEARED",
    "EventPublisher",
    "WebsocketEventPublisher",
    "serialize_notification",
]
