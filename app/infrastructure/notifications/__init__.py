"""Realtime notification helpers for the infrastructure layer."""

from .manager import NotificationConnectionManager, user_channel
from .publisher import (
    EVENT_NOTIFICATION_CREATED,
    EVENT_NOTIFICATION_DELETED,
    EVENT_NOTIFICATION_UPDATED,
    EVENT_NOTIFICATIONS_CLEARED,
    EventPublisher,
    WebsocketEventPublisher,
    serialize_notification,
)

__all__ = [
    "EVENT_NOTIFICATION_CREATED",
    "EVENT_NOTIFICATION_DELETED",
    "EVENT_NOTIFICATION_UPDATED",
    "EVENT_NOTIFICATIONS_CLEARED",
    "EventPublisher",
    "NotificationConnectionManager",
    "WebsocketEventPublisher",
    "serialize_notification",
    "user_channel",
]
