"""Tests for the storage conversions around a daylight-saving fall-back."""

from datetime import datetime, timedelta, timezone

import pytest
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import reset_settings_cache
from app.domain.entities import Importance, Notification, NotificationType
from app.utils import (
    from_storage_datetime,
    get_app_timezone,
    to_storage_datetime,
)

try:
    NEW_YORK = ZoneInfo("America/New_York")
except ZoneInfoNotFoundError:  # pragma: no cover - minimal images without tzdata
    NEW_YORK = None

pytestmark = pytest.mark.skipif(NEW_YORK is None, reason="tz database not installed")

# 2024-11-03 01:00-02:00 happens twice in New York.
FIRST_PASS = datetime(2024, 11, 3, 5, 30, tzinfo=timezone.utc)  # 01:30 EDT
SECOND_PASS = datetime(2024, 11, 3, 6, 15, tzinfo=timezone.utc)  # 01:15 EST


@pytest.fixture()
def new_york(monkeypatch):
    monkeypatch.setenv("APP_TIMEZONE", "America/New_York")
    reset_settings_cache()
    get_app_timezone.cache_clear()
    yield
    monkeypatch.undo()
    reset_settings_cache()
    get_app_timezone.cache_clear()


def test_storage_values_keep_instant_order(new_york):
    first = FIRST_PASS.astimezone(NEW_YORK)
    second = SECOND_PASS.astimezone(NEW_YORK)
    assert first.replace(tzinfo=None) > second.replace(tzinfo=None)

    assert to_storage_datetime(first) == datetime(2024, 11, 3, 5, 30)
    assert to_storage_datetime(second) == datetime(2024, 11, 3, 6, 15)
    assert from_storage_datetime(to_storage_datetime(second)) == SECOND_PASS
    assert from_storage_datetime(None) is None


def test_naive_input_is_app_wall_clock(new_york):
    assert to_storage_datetime(datetime(2024, 7, 1, 9, 0)) == datetime(2024, 7, 1, 13, 0)


def test_repository_windows_across_fall_back(new_york, notifications, make_user):
    user = make_user()

    def store(created_at, todo_id):
        return notifications.create(
            Notification(
                id=None,
                user_id=user.id,
                type=NotificationType.TODO_OVERDUE,
                title="Todo Overdue",
                message="Late",
                related_todo_id=todo_id,
                subject_key=f"todo:{todo_id}",
                importance=Importance.TRANSIENT,
                created_at=created_at,
            )
        )

    earlier = store(FIRST_PASS, 1)
    later = store(SECOND_PASS, 2)

    assert [n.id for n in notifications.list_for_user(user.id)] == [later.id, earlier.id]
    assert notifications.exists_since(
        user_id=user.id,
        notification_type=NotificationType.TODO_OVERDUE,
        subject_key="todo:2",
        since=FIRST_PASS + timedelta(minutes=10),
    )
    assert later.created_at == SECOND_PASS
