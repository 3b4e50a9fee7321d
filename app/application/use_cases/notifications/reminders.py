"""Time-based reminder scans over projects and todos.

Every scan opens its own session, walks the data and calls
:class:`NotificationService` exactly as a request handler would. Failures are
logged per project (or per user) so one bad record never stops a scan, and a
failed scan never prevents the next tick.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Callable

from sqlalchemy.orm import Session

from app.domain.entities import (
    DueTodoItem,
    NotificationCreate,
    NotificationType,
    Project,
    StaleTodoItem,
    Todo,
)
from app.infrastructure.repositories import ProjectRepository, UserRepository
from app.utils import app_local_date, now_in_app_timezone

from .service import NotificationService

logger = logging.getLogger(__name__)

DUE_SOON_HORIZON = timedelta(hours=24)
REMINDER_WINDOW_AHEAD = timedelta(minutes=15)
REMINDER_WINDOW_BEHIND = timedelta(minutes=1)
STALE_TODO_THRESHOLD_DAYS = 7

JOB_DUE_TODOS = "due_todos"
JOB_REMINDERS = "reminders"
JOB_DAILY_SUMMARY = "daily_summary"
JOB_STALE_ITEMS = "stale_items"
JOB_PURGE_EXPIRED = "purge_expired"


def _plural(count: int, word: str) -> str:
    return word if count == 1 else f"{word}s"


def build_daily_summary_message(overdue: int, due_today: int) -> str:
    """Return the summary text, e.g. ``You have 1 overdue todo.``"""

    parts = []
    if overdue > 0:
        parts.append(f"You have {overdue} overdue {_plural(overdue, 'todo')}.")
    if due_today > 0:
        parts.append(f"You have {due_today} {_plural(due_today, 'todo')} due today.")
    return " ".join(parts)


class ReminderScheduler:
    """Detect due, overdue and reminder-window todos and emit alerts."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        service_factory: Callable[[Session], NotificationService],
        *,
        clock: Callable[[], datetime] = now_in_app_timezone,
        dedup_window_minutes: int = 60,
    ) -> None:
        self._session_factory = session_factory
        self._service_factory = service_factory
        self._clock = clock
        self._dedup_window = dedup_window_minutes

    @property
    def jobs(self) -> dict[str, Callable[[], int]]:
        """Jobs by name, for the timer wiring and manual invocation."""

        return {
            JOB_DUE_TODOS: self.check_due_todos,
            JOB_REMINDERS: self.check_reminder_notifications,
            JOB_DAILY_SUMMARY: self.send_daily_summary,
            JOB_STALE_ITEMS: self.check_stale_items,
            JOB_PURGE_EXPIRED: self.purge_expired,
        }

    def run_job(self, name: str) -> int:
        try:
            job = self.jobs[name]
        except KeyError as exc:
            raise ValueError(f"Unknown reminder job: {name}") from exc
        return job()

    def trigger_checks(self) -> dict[str, int]:
        """Run the due-todo and reminder-window scans right now."""

        return {
            JOB_DUE_TODOS: self.check_due_todos(),
            JOB_REMINDERS: self.check_reminder_notifications(),
        }

    def check_due_todos(self) -> int:
        """Alert on overdue todos and on todos due within the next 24 hours."""

        created = 0
        with self._unit_of_work("due todo scan") as (session, service):
            now = self._clock()
            horizon = now + DUE_SOON_HORIZON
            for project in ProjectRepository(session).list_with_open_todos():
                try:
                    created += self._check_project_due(service, project, now, horizon)
                except Exception:
                    session.rollback()
                    logger.exception(
                        "Error checking due todos for project %s", project.id
                    )
        logger.info("Due todo scan created %s notifications", created)
        return created

    def check_reminder_notifications(self) -> int:
        """Alert on reminder and due dates falling inside the short window."""

        created = 0
        with self._unit_of_work("reminder scan") as (session, service):
            now = self._clock()
            window_start = now - REMINDER_WINDOW_BEHIND
            window_end = now + REMINDER_WINDOW_AHEAD
            for project in ProjectRepository(session).list_with_open_todos():
                try:
                    created += self._check_project_reminders(
                        service, project, window_start, window_end
                    )
                except Exception:
                    session.rollback()
                    logger.exception(
                        "Error checking reminders for project %s", project.id
                    )
        logger.info("Reminder scan created %s notifications", created)
        return created

    def send_daily_summary(self) -> int:
        """Send each user one summary of overdue and due-today todos."""

        created = 0
        with self._unit_of_work("daily summary") as (session, service):
            today = app_local_date(self._clock())
            projects = ProjectRepository(session)
            for user_id in UserRepository(session).list_ids():
                try:
                    if self._send_user_summary(
                        service, user_id, projects.list_owned_by(user_id), today
                    ):
                        created += 1
                except Exception:
                    session.rollback()
                    logger.exception("Error sending daily summary to user %s", user_id)
        logger.info("Daily summary sent to %s users", created)
        return created

    def check_stale_items(self) -> int:
        """Send each user a summary of undated todos nobody touched lately."""

        created = 0
        with self._unit_of_work("stale items check") as (session, service):
            now = self._clock()
            cutoff = now - timedelta(days=STALE_TODO_THRESHOLD_DAYS)
            projects = ProjectRepository(session)
            for user_id in UserRepository(session).list_ids():
                try:
                    stale = self._find_stale_todos(
                        projects.list_owned_by(user_id), now, cutoff
                    )
                    if not stale:
                        continue
                    service.create_notification(
                        NotificationCreate(
                            user_id=user_id,
                            type=NotificationType.STALE_ITEMS_SUMMARY,
                            title="Stale Items Summary",
                            message=(
                                f"{len(stale)} {_plural(len(stale), 'todo')} "
                                f"haven't been updated in {STALE_TODO_THRESHOLD_DAYS}+ days"
                            ),
                            action_url="/notifications",
                            metadata={
                                "stale_todos": [item.to_metadata() for item in stale],
                                "total_count": len(stale),
                                "threshold_days": STALE_TODO_THRESHOLD_DAYS,
                            },
                        )
                    )
                    created += 1
                except Exception:
                    session.rollback()
                    logger.exception("Error checking stale items for user %s", user_id)
        logger.info("Stale items summary sent to %s users", created)
        return created

    def purge_expired(self) -> int:
        """Remove notifications past their retention period."""

        purged = 0
        with self._unit_of_work("expired notification purge") as (_session, service):
            purged = service.purge_expired(self._clock())
        logger.info("Purged %s expired notifications", purged)
        return purged

    @contextmanager
    def _unit_of_work(self, label: str) -> Iterator[tuple[Session, NotificationService]]:
        session = self._session_factory()
        logger.debug("Starting %s", label)
        try:
            yield session, self._service_factory(session)
        except Exception:
            session.rollback()
            logger.exception("Error during %s", label)
        finally:
            session.close()

    def _alert(
        self,
        service: NotificationService,
        project: Project,
        todo: Todo,
        *,
        notification_type: NotificationType,
        title: str,
        message: str,
    ) -> None:
        service.create_notification(
            NotificationCreate(
                user_id=project.recipient_for(todo),
                type=notification_type,
                title=title,
                message=message,
                action_url=f"/projects/{project.id}",
                related_project_id=project.id,
                related_todo_id=todo.id,
            )
        )

    def _recently_alerted(
        self,
        service: NotificationService,
        project: Project,
        todo: Todo,
        notification_type: NotificationType,
    ) -> bool:
        return service.has_recent_notification(
            project.recipient_for(todo),
            notification_type,
            todo.id,
            self._dedup_window,
        )

    def _check_project_due(
        self,
        service: NotificationService,
        project: Project,
        now: datetime,
        horizon: datetime,
    ) -> int:
        created = 0
        for todo in project.todos:
            if todo.completed or todo.due_date is None:
                continue
            due_date = todo.due_date
            if due_date < now:
                if not self._recently_alerted(
                    service, project, todo, NotificationType.TODO_OVERDUE
                ):
                    self._alert(
                        service,
                        project,
                        todo,
                        notification_type=NotificationType.TODO_OVERDUE,
                        title="Todo Overdue",
                        message=f'Todo "{todo.title}" in project "{project.name}" is overdue',
                    )
                    created += 1
            elif due_date <= horizon:
                if not self._recently_alerted(
                    service, project, todo, NotificationType.TODO_DUE_SOON
                ):
                    self._alert(
                        service,
                        project,
                        todo,
                        notification_type=NotificationType.TODO_DUE_SOON,
                        title="Todo Due Soon",
                        message=(
                            f'Todo "{todo.title}" in project "{project.name}" '
                            "is due within 24 hours"
                        ),
                    )
                    created += 1
        return created

    def _check_project_reminders(
        self,
        service: NotificationService,
        project: Project,
        window_start: datetime,
        window_end: datetime,
    ) -> int:
        created = 0
        for todo in project.todos:
            if todo.completed:
                continue
            reminder_due = (
                todo.reminder_date is not None
                and window_start <= todo.reminder_date <= window_end
            )
            due_in_window = (
                todo.due_date is not None
                and window_start <= todo.due_date <= window_end
            )
            if not (reminder_due or due_in_window):
                continue

            # Both checks look at the state before this todo's alerts are created.
            reminder_recent = reminder_due and self._recently_alerted(
                service, project, todo, NotificationType.TODO_DUE_SOON
            )
            due_recent = due_in_window and self._recently_alerted(
                service, project, todo, NotificationType.TODO_DUE_SOON
            )

            if reminder_due and not reminder_recent:
                self._alert(
                    service,
                    project,
                    todo,
                    notification_type=NotificationType.TODO_DUE_SOON,
                    title="Todo Reminder",
                    message=f'Reminder: "{todo.title}" in project "{project.name}"',
                )
                created += 1
            if due_in_window and not due_recent:
                self._alert(
                    service,
                    project,
                    todo,
                    notification_type=NotificationType.TODO_DUE_SOON,
                    title="Todo Due Soon",
                    message=f'Todo "{todo.title}" in project "{project.name}" is due soon',
                )
                created += 1
        return created

    def _send_user_summary(
        self,
        service: NotificationService,
        user_id: int,
        projects: list[Project],
        today: date,
    ) -> bool:
        overdue: list[DueTodoItem] = []
        due_today: list[DueTodoItem] = []
        for project in projects:
            for todo in project.todos:
                if todo.completed or todo.due_date is None:
                    continue
                if todo.assigned_to != user_id and project.owner_id != user_id:
                    continue
                due_day = app_local_date(todo.due_date)
                if due_day < today:
                    overdue.append(
                        DueTodoItem(
                            project_id=project.id,
                            project_name=project.name,
                            todo_id=todo.id,
                            title=todo.title,
                            due_date=todo.due_date,
                            status="overdue",
                            days_past_due=(today - due_day).days,
                        )
                    )
                elif due_day == today:
                    due_today.append(
                        DueTodoItem(
                            project_id=project.id,
                            project_name=project.name,
                            todo_id=todo.id,
                            title=todo.title,
                            due_date=todo.due_date,
                            status="due_today",
                        )
                    )

        total = len(overdue) + len(due_today)
        if total == 0:
            return False

        overdue.sort(key=lambda item: item.days_past_due or 0, reverse=True)
        service.create_notification(
            NotificationCreate(
                user_id=user_id,
                type=NotificationType.DAILY_TODO_SUMMARY,
                title="Daily Todo Summary",
                message=build_daily_summary_message(len(overdue), len(due_today)),
                action_url="/notifications",
                metadata={
                    "overdue_todos": [item.to_metadata() for item in overdue],
                    "due_today_todos": [item.to_metadata() for item in due_today],
                    "total_count": total,
                },
            )
        )
        return True

    @staticmethod
    def _find_stale_todos(
        projects: list[Project], now: datetime, cutoff: datetime
    ) -> list[StaleTodoItem]:
        stale: list[StaleTodoItem] = []
        for project in projects:
            for todo in project.todos:
                if todo.completed or todo.due_date or todo.reminder_date:
                    continue
                last_update = todo.updated_at or todo.created_at
                if last_update is None or last_update >= cutoff:
                    continue
                stale.append(
                    StaleTodoItem(
                        project_id=project.id,
                        project_name=project.name,
                        todo_id=todo.id,
                        title=todo.title,
                        days_since_update=(now - last_update).days,
                        updated_at=last_update,
                    )
                )
        stale.sort(key=lambda item: item.days_since_update, reverse=True)
        return stale


__all__ = [
    "JOB_DAILY_SUMMARY",
    "JOB_DUE_TODOS",
    "JOB_PURGE_EXPIRED",
    "JOB_REMINDERS",
    "JOB_STALE_ITEMS",
    "ReminderScheduler",
    "build_daily_summary_message",
]
