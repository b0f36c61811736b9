"""Connection management helpers for notification websockets."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from prime_notifications.infrastructure.broker import ConsumerHandle

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(eq=False)
class Connection:
    """A client socket tracked for ``user_id``."""

    user_id: str
    websocket: WebSocket
    state: ConnectionState = ConnectionState.CONNECTING
    last_seen: float = field(default_factory=time.monotonic)
    consumer: ConsumerHandle | None = None

    def touch(self) -> None:
        self.last_seen = time.monotonic()

    @property
    def subscribed(self) -> bool:
        return self.consumer is not None

    @property
    def is_open(self) -> bool:
        return (
            self.state is ConnectionState.OPEN
            and self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )


class NotificationConnectionManager:
    """Track at most one live websocket per user.

    A second connection for the same user replaces the first one in the map
    (last connect wins). The replaced socket is returned to the caller but not
    closed here.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def get(self, user_id: str) -> Connection | None:
        return self._connections.get(str(user_id))

    def connections(self) -> list[Connection]:
        return list(self._connections.values())

    async def connect(
        self, user_id: str, websocket: WebSocket
    ) -> tuple[Connection, Connection | None]:
        """Accept ``websocket`` and register it as ``user_id``'s connection.

        Returns the new connection and the one it replaced, if any.
        """

        connection = Connection(user_id=str(user_id), websocket=websocket)
        await websocket.accept()
        connection.state = ConnectionState.OPEN
        previous = self._connections.get(connection.user_id)
        self._connections[connection.user_id] = connection
        return connection, previous

    def disconnect(self, connection: Connection) -> bool:
        """Forget ``connection`` unless it was already replaced.

        Returns ``True`` when the mapping for the user was removed.
        """

        connection.state = ConnectionState.CLOSED
        if self._connections.get(connection.user_id) is connection:
            del self._connections[connection.user_id]
            return True
        return False

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> bool:
        """Send ``message`` to ``user_id``'s socket if it is open.

        Messages for users without an open socket are dropped.
        """

        connection = self._connections.get(str(user_id))
        if connection is None or not connection.is_open:
            logger.info("User %s is not connected; live notification dropped", user_id)
            return False
        try:
            await connection.websocket.send_json(message)
        except Exception as exc:
            logger.warning("Error sending notification to user %s: %s", user_id, exc)
            return False
        return True

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Send ``message`` to every open socket and return how many got it."""

        delivered = 0
        for connection in self.connections():
            if await self.send_to_user(connection.user_id, message):
                delivered += 1
        return delivered

    def idle_connections(self, max_idle: float, *, now: float | None = None) -> list[Connection]:
        current = time.monotonic() if now is None else now
        return [
            connection
            for connection in self._connections.values()
            if current - connection.last_seen > max_idle
        ]


__all__ = ["Connection", "ConnectionState", "NotificationConnectionManager"]
