"""Integration tests for the notification and reminder endpoints."""

from __future__ import annotations

from datetime import timedelta

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.application.use_cases.notifications import build_notification_service
from app.config import Settings
from app.domain.entities import NotificationCreate, NotificationType
from app.infrastructure.repositories import NotificationRepository
from app.utils import now_in_app_timezone


@pytest.fixture()
def app(engine):
    from main import create_app

    settings = Settings(database_url="sqlite://", scheduler_enabled=False, app_timezone="UTC")
    return create_app(settings=settings, engine=engine)


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def seed(session, app, make_user):
    """Create notifications through the same service the API uses."""

    ada = make_user("Ada")
    bob = make_user("Bob")
    service = build_notification_service(
        session, publisher=app.state.publisher, settings=app.state.settings
    )

    def create(user, message="Hello", **fields):
        return service.create_notification(
            NotificationCreate(
                user_id=user.id,
                type=fields.pop("type", NotificationType.ADMIN_MESSAGE),
                title="Notice",
                message=message,
                **fields,
            )
        )

    return ada, bob, create


def _headers(user) -> dict[str, str]:
    return {"X-User-Id": str(user.id)}


def test_missing_or_invalid_identity_is_rejected(client):
    assert client.get("/notifications/").status_code == 401
    assert client.get("/notifications/", headers={"X-User-Id": "abc"}).status_code == 401


def test_list_notifications_returns_page_and_counters(client, seed):
    ada, bob, create = seed
    for index in range(3):
        create(ada, f"Message {index}")
    create(bob)

    response = client.get("/notifications/", headers=_headers(ada), params={"limit": 2})

    assert response.status_code == 200
    body = response.json()
    assert len(body["notifications"]) == 2
    assert body["total"] == 3
    assert body["unread_count"] == 3
    assert body["notifications"][0]["user_id"] == ada.id
    assert body["notifications"][0]["importance"] == "critical"


def test_list_validates_query_parameters(client, seed):
    ada, _bob, _create = seed

    response = client.get("/notifications/", headers=_headers(ada), params={"limit": 0})

    assert response.status_code == 422


def test_mark_as_read(client, seed):
    ada, bob, create = seed
    notification = create(ada)

    response = client.patch(f"/notifications/{notification.id}/read", headers=_headers(ada))

    assert response.status_code == 200
    assert response.json()["is_read"] is True
    assert (
        client.patch(f"/notifications/{notification.id}/read", headers=_headers(bob)).status_code
        == 404
    )


def test_mark_all_as_read(client, seed):
    ada, _bob, create = seed
    create(ada, "One")
    create(ada, "Two")

    response = client.patch("/notifications/read-all", headers=_headers(ada))

    assert response.status_code == 200
    assert response.json() == {"modified_count": 2}
    listing = client.get("/notifications/", headers=_headers(ada)).json()
    assert listing["unread_count"] == 0


def test_delete_notification(client, seed):
    ada, bob, create = seed
    notification = create(ada)

    assert client.delete(f"/notifications/{notification.id}", headers=_headers(bob)).status_code == 404
    assert client.delete(f"/notifications/{notification.id}", headers=_headers(ada)).status_code == 204
    assert client.delete(f"/notifications/{notification.id}", headers=_headers(ada)).status_code == 404


def test_clear_all_notifications(client, seed):
    ada, bob, create = seed
    create(ada, "One")
    create(ada, "Two")
    create(bob)

    response = client.delete("/notifications/clear-all", headers=_headers(ada))

    assert response.json() == {"deleted_count": 2}
    assert client.get("/notifications/", headers=_headers(bob)).json()["total"] == 1


def test_invitation_notification(client, seed):
    ada, _bob, create = seed
    create(ada, "Join Alpha", type=NotificationType.PROJECT_INVITATION, related_invitation_id=9)

    response = client.get("/notifications/invitation/9", headers=_headers(ada))

    assert response.status_code == 200
    assert response.json()["related_invitation_id"] == 9
    assert response.json()["is_read"] is True
    assert client.get("/notifications/invitation/10", headers=_headers(ada)).status_code == 404


def test_websocket_init_ping_and_ack(client, seed, session_factory):
    ada, _bob, create = seed
    notification = create(ada, "Unread")

    with client.websocket_connect(f"/notifications/ws?user_id={ada.id}") as websocket:
        init = websocket.receive_json()
        assert init["type"] == "init"
        assert [item["id"] for item in init["data"]] == [notification.id]

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

        with client.websocket_connect(f"/notifications/ws?user_id={ada.id}") as other:
            assert other.receive_json()["type"] == "init"

            websocket.send_json({"type": "ack", "ids": [notification.id]})

            for socket in (other, websocket):
                frame = socket.receive_json()
                assert frame["type"] == "notification-updated"
                assert frame["data"]["id"] == notification.id
                assert frame["data"]["is_read"] is True

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json() == {"type": "pong"}

    db = session_factory()
    try:
        assert NotificationRepository(db).get(notification.id).is_read is True
    finally:
        db.close()


def test_websocket_receives_created_events(client, seed):
    ada, _bob, create = seed

    with client.websocket_connect(f"/notifications/ws?user_id={ada.id}") as websocket:
        assert websocket.receive_json() == {"type": "init", "data": []}

        created = create(ada, "Fresh")

        frame = websocket.receive_json()
        assert frame["type"] == "notification-created"
        assert frame["data"]["id"] == created.id
        assert frame["data"]["message"] == "Fresh"


def test_websocket_requires_user_id(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/notifications/ws") as websocket:
            websocket.receive_json()


def test_trigger_due_todo_scan(client, make_user, make_project, add_todo):
    owner = make_user()
    project = make_project(owner)
    add_todo(project, "Late", due_date=now_in_app_timezone() - timedelta(hours=2))

    response = client.post("/reminders/trigger", params={"job": "due_todos"})

    assert response.status_code == 200
    assert response.json() == {"job": "due_todos", "created": {"due_todos": 1}}
    listing = client.get("/notifications/", headers=_headers(owner)).json()
    assert listing["notifications"][0]["type"] == "todo_overdue"


def test_trigger_checks_by_default(client):
    response = client.post("/reminders/trigger")

    assert response.status_code == 200
    assert response.json() == {"job": "checks", "created": {"due_todos": 0, "reminders": 0}}


def test_trigger_unknown_job(client):
    assert client.post("/reminders/trigger", params={"job": "compost"}).status_code == 400
