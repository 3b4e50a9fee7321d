"""FastAPI dependency utilities."""

from collections.abc import Generator

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.application.use_cases.notifications import (
    NotificationService,
    ReminderScheduler,
    build_notification_service,
)


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a database session from the application's factory and close it afterwards."""

    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
) -> int:
    """Return the caller identity forwarded by the upstream gateway."""

    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    try:
        user_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-Id header",
        ) from exc
    if user_id <= 0:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-Id header",
        )
    return user_id


def get_notification_service(
    request: Request, db: Session = Depends(get_db)
) -> NotificationService:
    """Build the notification service on the request session."""

    state = request.app.state
    return build_notification_service(
        db,
        publisher=getattr(state, "publisher", None),
        plan_tier_cache=getattr(state, "plan_tier_cache", None),
        settings=getattr(state, "settings", None),
    )


def get_reminder_scheduler(request: Request) -> ReminderScheduler:
    reminders = getattr(request.app.state, "reminders", None)
    if reminders is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reminder scheduler is not configured",
        )
    return reminders


__all__ = [
    "get_current_user_id",
    "get_db",
    "get_notification_service",
    "get_reminder_scheduler",
]
