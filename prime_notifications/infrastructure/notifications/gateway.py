"""Bridge broker events to live websocket clients."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import WebSocket, status

from prime_notifications.domain.entities import (
    DELETE_ALL_NOTIFICATIONS,
    NEW_NOTIFICATION,
    NOTIFICATION_DELETE,
    NOTIFICATION_READ,
    BrokerMessage,
)

from .manager import Connection, ConnectionState, NotificationConnectionManager
from .publisher import NotificationEventPublisher

logger = logging.getLogger(__name__)

CLIENT_EVENT_TYPES: dict[str, str] = {
    NEW_NOTIFICATION: "new_notification",
    NOTIFICATION_READ: "notification_read",
    NOTIFICATION_DELETE: "notification_deleted",
    DELETE_ALL_NOTIFICATIONS: "all_notifications_deleted",
}

CONNECTION_ESTABLISHED_MESSAGE = "Connected to notification service"


def to_client_message(event: BrokerMessage) -> dict[str, Any]:
    """Return the ``{type, data}`` frame sent to sockets for ``event``."""

    return {"type": CLIENT_EVENT_TYPES[event.type], "data": event.payload}


class RealtimeGateway:
    """Serve the ``/ws`` protocol and forward per-user broker events.

    Connections move from connecting to open to closed. While open a client
    may ``subscribe`` (start consuming ``user.<id>`` events from the broker),
    ``unsubscribe`` (stop forwarding, keep the socket) and ``ping``. Live
    delivery is best effort: events for users without an open socket are
    dropped, the notification store and push delivery remain the durable
    paths.
    """

    def __init__(
        self,
        publisher: NotificationEventPublisher,
        manager: NotificationConnectionManager | None = None,
    ) -> None:
        self._publisher = publisher
        self._manager = manager or NotificationConnectionManager()
        self._keepalive_task: asyncio.Task | None = None
        self._pending_resubscribe: set[Connection] = set()
        publisher.transport.add_listener(self._on_transport_event)

    @property
    def manager(self) -> NotificationConnectionManager:
        return self._manager

    async def serve(self, websocket: WebSocket) -> None:
        """Run one client connection until the socket closes."""

        user_id = (websocket.query_params.get("userId") or "").strip()
        if not user_id:
            logger.warning("Connection rejected: No user ID provided")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="User ID required")
            return

        connection = await self.open(user_id, websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None and message.get("bytes") is not None:
                    raw = message["bytes"].decode("utf-8", errors="replace")
                await self.handle_raw_message(connection, raw or "")
        finally:
            await self.close(connection)

    async def open(self, user_id: str, websocket: WebSocket) -> Connection:
        """Accept and register ``websocket``, replacing any older connection."""

        connection, previous = await self._manager.connect(user_id, websocket)
        logger.info("New WebSocket connection established for user: %s", user_id)
        if previous is not None:
            # The replaced socket stays open but is no longer tracked and may not
            # subscribe again; only the current connection owns a consumer.
            logger.warning("Replacing existing connection for user %s", user_id)
            previous.state = ConnectionState.CLOSED
            await self._release_consumer(previous)

        await websocket.send_json(
            {"type": "connection_established", "message": CONNECTION_ESTABLISHED_MESSAGE}
        )
        return connection

    async def close(self, connection: Connection) -> None:
        """Forget ``connection`` and cancel its broker consumer."""

        self._manager.disconnect(connection)
        await self._release_consumer(connection)
        logger.info("WebSocket connection closed for user: %s", connection.user_id)

    async def handle_raw_message(self, connection: Connection, raw: str) -> None:
        connection.touch()
        try:
            data = json.loads(raw)
        except ValueError as exc:
            logger.warning("Error processing message from user %s: %s", connection.user_id, exc)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring non-object message from user %s", connection.user_id)
            return
        await self.handle_client_message(connection, data)

    async def handle_client_message(self, connection: Connection, data: dict[str, Any]) -> None:
        message_type = data.get("type")
        if message_type == "subscribe":
            logger.info("User %s subscribed to notifications", connection.user_id)
            await self.subscribe(connection)
        elif message_type == "unsubscribe":
            logger.info("User %s unsubscribed from notifications", connection.user_id)
            await self._release_consumer(connection)
        elif message_type == "ping":
            await connection.websocket.send_json({"type": "pong"})
        else:
            logger.info("Received unknown message type from user %s: %s", connection.user_id, data)

    async def subscribe(self, connection: Connection) -> bool:
        """Start forwarding ``connection.user_id``'s broker events.

        Returns ``False`` when the broker subscription could not be made.
        """

        if connection.subscribed:
            return True
        if self._manager.get(connection.user_id) is not connection:
            logger.warning(
                "Ignoring subscribe from a replaced connection for user %s", connection.user_id
            )
            return False

        async def forward(payload: Any, message: Any = None) -> None:
            await self._forward(connection, payload)

        try:
            handle = await self._publisher.subscribe_user(connection.user_id, forward)
        except Exception as exc:
            logger.error("Failed to subscribe to notifications for user %s: %s", connection.user_id, exc)
            return False

        if (
            connection.state is not ConnectionState.OPEN
            or self._manager.get(connection.user_id) is not connection
        ):
            await self._publisher.unsubscribe(handle)
            return False
        connection.consumer = handle
        return True

    async def _forward(self, connection: Connection, payload: Any) -> None:
        if not connection.subscribed or self._manager.get(connection.user_id) is not connection:
            return
        try:
            event = BrokerMessage.from_dict(payload)
        except (TypeError, ValueError) as exc:
            logger.warning("Discarding malformed event for user %s: %s", connection.user_id, exc)
            return
        await self.send_notification_to_user(connection.user_id, to_client_message(event))

    async def _release_consumer(self, connection: Connection) -> None:
        handle, connection.consumer = connection.consumer, None
        if handle is None:
            return
        try:
            await self._publisher.unsubscribe(handle)
        except Exception as exc:
            logger.error("Failed to unsubscribe user %s: %s", connection.user_id, exc)

    def _on_transport_event(self, event: str, detail: Any) -> Any:
        if event == "disconnected":
            # Per-user queues and their consumers do not survive the connection.
            for connection in self._manager.connections():
                if connection.consumer is not None:
                    connection.consumer = None
                    self._pending_resubscribe.add(connection)
        elif event == "connected" and self._pending_resubscribe:
            return self._resubscribe_pending()
        return None

    async def _resubscribe_pending(self) -> None:
        pending, self._pending_resubscribe = self._pending_resubscribe, set()
        for connection in pending:
            if connection.is_open and self._manager.get(connection.user_id) is connection:
                await self.subscribe(connection)

    async def send_notification_to_user(self, user_id: str, message: dict[str, Any]) -> bool:
        """Deliver ``message`` to ``user_id``'s live socket, if any."""

        return await self._manager.send_to_user(user_id, message)

    async def broadcast(self, message: dict[str, Any]) -> int:
        return await self._manager.broadcast(message)

    async def close_idle_connections(self, max_idle: float) -> int:
        """Close sockets that sent nothing for ``max_idle`` seconds."""

        idle = self._manager.idle_connections(max_idle)
        for connection in idle:
            logger.info("Closing idle WebSocket connection for user: %s", connection.user_id)
            await self.close(connection)
            try:
                await connection.websocket.close(code=status.WS_1001_GOING_AWAY)
            except RuntimeError as exc:
                logger.debug("Idle socket for user %s already closed: %s", connection.user_id, exc)
        return len(idle)

    def start_keepalive(self, max_idle: float) -> None:
        if max_idle <= 0 or self._keepalive_task is not None:
            return
        self._keepalive_task = asyncio.get_running_loop().create_task(self._keepalive(max_idle))

    async def _keepalive(self, max_idle: float) -> None:
        while True:
            await asyncio.sleep(max_idle / 2)
            await self.close_idle_connections(max_idle)

    async def shutdown(self) -> None:
        if self._keepalive_task is not None:
            self._keepalive_task.cancel()
            self._keepalive_task = None
        for connection in self._manager.connections():
            await self.close(connection)


__all__ = [
    "CLIENT_EVENT_TYPES",
    "RealtimeGateway",
    "to_client_message",
]
