"""Connection management helpers for notification websockets."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, DefaultDict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def user_channel(user_id: int | str) -> str:
    """Return the realtime channel name of ``user_id``."""

    return f"user-{user_id}"


class NotificationConnectionManager:
    """Manage active websocket connections grouped by channel."""

    def __init__(self) -> None:
        self._connections: DefaultDict[str, Set[WebSocket]] = defaultdict(set)

    async def connect(self, channel: str, websocket: WebSocket) -> None:
        """Accept the websocket connection and register it on ``channel``."""

        await websocket.accept()
        self._connections[channel].add(websocket)

    def disconnect(self, channel: str, websocket: WebSocket) -> None:
        """Remove ``websocket`` from the pool of ``channel``."""

        connections = self._connections.get(channel)
        if connections is None:
            return
        connections.discard(websocket)
        if not connections:
            self._connections.pop(channel, None)

    def has_subscribers(self, channel: str) -> bool:
        return bool(self._connections.get(channel))

    async def send(self, channel: str, message: dict[str, Any]) -> None:
        """Send ``message`` to every active connection on ``channel``."""

        connections = list(self._connections.get(channel, set()))
        for connection in connections:
            try:
                await connection.send_json(message)
            except Exception:  # pragma: no cover - dropped sockets
                logger.debug("Dropping dead websocket on %s", channel, exc_info=True)
                self.disconnect(channel, connection)


__all__ = ["NotificationConnectionManager", "user_channel"]
