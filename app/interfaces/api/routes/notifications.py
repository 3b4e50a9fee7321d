"""Endpoints and websocket handler for realtime notifications."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Response,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError

from app.application.use_cases.notifications import (
    DEFAULT_PAGE_LIMIT,
    NotificationService,
    build_notification_service,
)
from app.infrastructure.notifications import serialize_notification, user_channel
from app.infrastructure.repositories import NotificationRepository
from app.interfaces.api.dependencies import get_current_user_id, get_notification_service
from app.interfaces.api.schemas import (
    DeletedCountRead,
    ModifiedCountRead,
    NotificationPageRead,
    NotificationRead,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])

_NOT_FOUND = "Notification not found"


@contextmanager
def _store_errors() -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("Notification store unavailable")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification store unavailable, please retry",
        ) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("/", response_model=NotificationPageRead)
def list_notifications(
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=100),
    skip: int = Query(0, ge=0),
    unread_only: bool = Query(False),
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationPageRead:
    """Return a page of the caller's notifications, newest first."""

    with _store_errors():
        page = service.get_notifications(
            user_id, limit=limit, skip=skip, unread_only=unread_only
        )
    return NotificationPageRead.from_page(page)


@router.patch("/read-all", response_model=ModifiedCountRead)
def mark_all_notifications_as_read(
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> ModifiedCountRead:
    with _store_errors():
        modified = service.mark_all_as_read(user_id)
    return ModifiedCountRead(modified_count=modified)


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_notification_as_read(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationRead:
    with _store_errors():
        notification = service.mark_as_read(notification_id, user_id)
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return NotificationRead.from_entity(notification)


@router.delete("/clear-all", response_model=DeletedCountRead)
def clear_all_notifications(
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> DeletedCountRead:
    with _store_errors():
        deleted = service.clear_all_notifications(user_id)
    return DeletedCountRead(deleted_count=deleted)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_notification(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> Response:
    with _store_errors():
        deleted = service.delete_notification(notification_id, user_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/invitation/{invitation_id}", response_model=NotificationRead)
def get_invitation_notification(
    invitation_id: int,
    user_id: int = Depends(get_current_user_id),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationRead:
    """Return the invitation notification, marking it read on access."""

    with _store_errors():
        notification = service.get_invitation_notification(user_id, invitation_id)
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return NotificationRead.from_entity(notification)


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Websocket endpoint that streams notifications to one user."""

    raw_user_id = websocket.query_params.get("user_id")
    try:
        user_id = int(raw_user_id) if raw_user_id else 0
    except ValueError:
        user_id = 0
    if user_id <= 0:
        await websocket.close(code=1008)
        return

    state = websocket.app.state
    session_factory = state.session_factory
    manager = state.publisher.manager

    session = session_factory()
    try:
        pending_notifications = NotificationRepository(session).list_unread_for_user(
            user_id
        )
    except SQLAlchemyError:
        logger.exception("Could not load unread notifications for user %s", user_id)
        await websocket.close(code=1011)
        return
    finally:
        session.close()

    channel = user_channel(user_id)
    await manager.connect(channel, websocket)
    try:
        await websocket.send_json(
            {
                "type": "init",
                "data": [serialize_notification(n) for n in pending_notifications],
            }
        )
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except ValueError:
                continue

            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if message_type == "ack":
                ids = message.get("ids", [])
                if isinstance(ids, list) and ids:
                    try:
                        await run_in_threadpool(
                            _acknowledge,
                            state,
                            user_id,
                            [i for i in ids if isinstance(i, int)],
                        )
                    except SQLAlchemyError:
                        logger.exception("Could not acknowledge notifications %s", ids)
                continue
    except WebSocketDisconnect:
        manager.disconnect(channel, websocket)
    except Exception:
        manager.disconnect(channel, websocket)
        raise


def _acknowledge(state, user_id: int, notification_ids: list[int]) -> int:
    session = state.session_factory()
    try:
        service = build_notification_service(
            session,
            publisher=state.publisher,
            plan_tier_cache=getattr(state, "plan_tier_cache", None),
            settings=getattr(state, "settings", None),
        )
        return service.mark_many_as_read(notification_ids, user_id)
    finally:
        session.close()
