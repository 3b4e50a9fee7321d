"""Tests for websocket event delivery."""

import asyncio
from datetime import datetime, timezone

from app.domain.entities import Importance, Notification, NotificationType
from app.infrastructure.notifications import (
    EVENT_NOTIFICATION_CREATED,
    NotificationConnectionManager,
    WebsocketEventPublisher,
    serialize_notification,
    user_channel,
)


class FakeWebSocket:
    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.sent: list[dict] = []
        self.fail = fail

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(message)


def _notification() -> Notification:
    return Notification(
        id=5,
        user_id=1,
        type=NotificationType.PROJECT_SHARED,
        title="Project Shared",
        message="Alpha was shared with you",
        related_project_id=3,
        related_user_id=2,
        importance=Importance.STANDARD,
        created_at=datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc),
        related_project_name="Alpha",
        related_project_color="#336699",
        related_user_name="Bob",
    )


def test_user_channel_name():
    assert user_channel(42) == "user-42"


def test_publish_without_subscribers_is_a_noop():
    publisher = WebsocketEventPublisher(NotificationConnectionManager())

    publisher.publish(EVENT_NOTIFICATION_CREATED, user_channel(1), {"id": 1})


def test_publish_from_event_loop_delivers_frame():
    manager = NotificationConnectionManager()
    publisher = WebsocketEventPublisher(manager)
    websocket = FakeWebSocket()
    payload = {"id": 1, "metadata": {"count": 1}}

    async def scenario():
        await manager.connect(user_channel(1), websocket)
        publisher.publish(EVENT_NOTIFICATION_CREATED, user_channel(1), payload)
        payload["metadata"]["count"] = 99
        await asyncio.sleep(0)
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert websocket.accepted is True
    assert websocket.sent == [
        {"type": EVENT_NOTIFICATION_CREATED, "data": {"id": 1, "metadata": {"count": 1}}}
    ]


def test_publish_from_worker_thread_uses_bound_loop():
    manager = NotificationConnectionManager()
    publisher = WebsocketEventPublisher(manager)
    websocket = FakeWebSocket()

    async def scenario():
        loop = asyncio.get_running_loop()
        publisher.bind_loop(loop)
        await manager.connect(user_channel(7), websocket)
        await loop.run_in_executor(
            None, publisher.publish, "notifications-cleared", user_channel(7), None
        )
        for _ in range(10):
            if websocket.sent:
                break
            await asyncio.sleep(0.01)

    asyncio.run(scenario())

    assert websocket.sent == [{"type": "notifications-cleared", "data": None}]


def test_dead_socket_is_dropped():
    manager = NotificationConnectionManager()
    healthy = FakeWebSocket()
    dead = FakeWebSocket(fail=True)

    async def scenario():
        await manager.connect("user-1", healthy)
        await manager.connect("user-1", dead)
        await manager.send("user-1", {"type": "ping"})

    asyncio.run(scenario())

    assert healthy.sent == [{"type": "ping"}]
    assert manager.has_subscribers("user-1") is True
    manager.disconnect("user-1", healthy)
    assert manager.has_subscribers("user-1") is False


def test_publish_without_any_loop_does_not_raise():
    manager = NotificationConnectionManager()
    publisher = WebsocketEventPublisher(manager)

    async def subscribe():
        await manager.connect("user-1", FakeWebSocket())

    asyncio.run(subscribe())

    publisher.publish(EVENT_NOTIFICATION_CREATED, "user-1", {"id": 1})


def test_serialize_notification_expands_relations():
    payload = serialize_notification(_notification())

    assert payload["type"] == "project_shared"
    assert payload["related_project"] == {"id": 3, "name": "Alpha", "color": "#336699"}
    assert payload["related_user"] == {"id": 2, "name": "Bob"}
    assert payload["importance"] == "standard"
    assert payload["created_at"] == "2024-03-04T12:00:00+00:00"
    assert payload["expires_at"] is None
    assert payload["is_read"] is False
