"""Shared fixtures: in-memory database, frozen clock and a recording publisher."""

from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Settings are read at import time by the database module.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_TIMEZONE"] = "UTC"
os.environ["SCHEDULER_ENABLED"] = "false"

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.application.plan_tiers import PlanTierCache  # noqa: E402
from app.application.use_cases.notifications import (  # noqa: E402
    ReminderScheduler,
    build_notification_service,
)
from app.config import get_settings, reset_settings_cache  # noqa: E402
from app.domain.entities import Project, Todo, User  # noqa: E402
from app.infrastructure.database import (  # noqa: E402
    build_session_factory,
    initialize_database,
)
from app.infrastructure.repositories import (  # noqa: E402
    NotificationRepository,
    ProjectRepository,
    UserRepository,
)

FROZEN_NOW = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingPublisher:
    """Publisher fake keeping every published event in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, object]] = []

    def publish(self, event, channel, payload) -> None:
        self.events.append((event, channel, payload))

    def names(self) -> list[str]:
        return [event for event, _channel, _payload in self.events]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture()
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def settings():
    reset_settings_cache()
    yield get_settings()
    reset_settings_cache()


@pytest.fixture()
def clock():
    return FrozenClock(FROZEN_NOW)


@pytest.fixture()
def publisher():
    return RecordingPublisher()


@pytest.fixture()
def service(session, publisher, clock, settings):
    return build_notification_service(
        session,
        publisher=publisher,
        plan_tier_cache=PlanTierCache(),
        settings=settings,
        clock=clock,
    )


@pytest.fixture()
def notifications(session):
    return NotificationRepository(session)


@pytest.fixture()
def reminders(session_factory, publisher, clock, settings):
    return ReminderScheduler(
        session_factory,
        lambda db: build_notification_service(
            db, publisher=publisher, settings=settings, clock=clock
        ),
        clock=clock,
    )


@pytest.fixture()
def make_user(session):
    counter = {"value": 0}

    def factory(name: str = "Ada", plan_tier: str = "free") -> User:
        counter["value"] += 1
        return UserRepository(session).create(
            User(
                id=None,
                name=name,
                email=f"user{counter['value']}@example.com",
                plan_tier=plan_tier,
            )
        )

    return factory


@pytest.fixture()
def make_project(session):
    def factory(owner: User, name: str = "Alpha", color: str | None = "#336699") -> Project:
        return ProjectRepository(session).create(
            Project(id=None, name=name, owner_id=owner.id, color=color)
        )

    return factory


@pytest.fixture()
def add_todo(session):
    def factory(project: Project, title: str = "Write report", **fields) -> Todo:
        return ProjectRepository(session).add_todo(
            project.id, Todo(id=None, project_id=project.id, title=title, **fields)
        )

    return factory
