"""Translate notification changes into broker messages."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from prime_notifications.domain.entities import (
    DELETE_ALL_NOTIFICATIONS,
    NEW_NOTIFICATION,
    NOTIFICATION_DELETE,
    NOTIFICATION_READ,
    BrokerMessage,
    Notification,
)
from prime_notifications.infrastructure.broker import (
    DELETE_ALL_NOTIFICATIONS_KEY,
    DELETE_NOTIFICATION_KEY,
    EVENTS_EXCHANGE,
    NEW_NOTIFICATION_KEY,
    NOTIFICATIONS_EXCHANGE,
    NOTIFICATIONS_QUEUE,
    PUSH_NOTIFICATIONS_QUEUE,
    READ_NOTIFICATION_KEY,
    UNREAD_COUNTS_QUEUE,
    USER_QUEUE_EXPIRES_MS,
    BrokerTransport,
    ConsumerHandle,
    TransportState,
    user_queue_name,
    user_routing_key,
)
from prime_notifications.infrastructure.broker.transport import MessageHandler

logger = logging.getLogger(__name__)

GLOBAL_ROUTING_KEYS: dict[str, str] = {
    NEW_NOTIFICATION: NEW_NOTIFICATION_KEY,
    NOTIFICATION_READ: READ_NOTIFICATION_KEY,
    NOTIFICATION_DELETE: DELETE_NOTIFICATION_KEY,
    DELETE_ALL_NOTIFICATIONS: DELETE_ALL_NOTIFICATIONS_KEY,
}


@dataclass
class _UserLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the payload representation for ``notification``."""

    return notification.to_payload()


class NotificationEventPublisher:
    """Publish notification events to the broker and manage subscriptions.

    Every event goes out twice on ``notifications.exchange``: once on the
    routing key for its type (consumed by push delivery and other fan-out
    subscribers) and once on ``user.<id>`` (consumed by the realtime gateway).
    Both publishes happen under a per-user lock so events for a user leave in
    the order the publisher was called, while other users are not held up.
    While the transport is reconnecting or has given up, publishes fail fast
    instead of each waiting out a fresh round of connection attempts.

    Publishing never raises. Failures are logged and reported as ``False``
    because the database, not the broker, holds the notification state.
    """

    def __init__(
        self,
        transport: BrokerTransport,
        *,
        publish_timeout: float | None = None,
        fanout_queue_max_length: int | None = None,
    ) -> None:
        self._transport = transport
        self._publish_timeout = publish_timeout
        self._fanout_queue_arguments = (
            {"x-max-length": fanout_queue_max_length} if fanout_queue_max_length else None
        )
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._user_locks: dict[str, _UserLock] = {}
        transport.add_listener(self._on_transport_event)

    @property
    def transport(self) -> BrokerTransport:
        return self._transport

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _on_transport_event(self, event: str, detail: Any) -> None:
        if event in ("disconnected", "closed", "channel_closed"):
            self._initialized = False

    async def initialize(self) -> None:
        """Declare exchanges, durable queues and their bindings."""

        async with self._init_lock:
            if self._initialized and self._transport.is_connected:
                return

            transport = self._transport
            await transport.connect()

            await transport.declare_exchange(NOTIFICATIONS_EXCHANGE, "topic", durable=True)
            await transport.declare_exchange(EVENTS_EXCHANGE, "fanout", durable=True)

            # The catch-all queues have no consumer in this service, so they are
            # capped to keep them from growing without bound.
            for queue in (NOTIFICATIONS_QUEUE, UNREAD_COUNTS_QUEUE):
                await transport.declare_queue(
                    queue, durable=True, arguments=self._fanout_queue_arguments
                )
            await transport.declare_queue(PUSH_NOTIFICATIONS_QUEUE, durable=True)

            await transport.bind_queue(NOTIFICATIONS_QUEUE, NOTIFICATIONS_EXCHANGE, "#")
            await transport.bind_queue(UNREAD_COUNTS_QUEUE, NOTIFICATIONS_EXCHANGE, "#")
            await transport.bind_queue(
                PUSH_NOTIFICATIONS_QUEUE, NOTIFICATIONS_EXCHANGE, NEW_NOTIFICATION_KEY
            )

            self._initialized = True
            logger.info("Notification message broker initialized successfully")

    async def publish(self, message: BrokerMessage) -> bool:
        """Publish ``message`` on its global and per-user routing keys."""

        body = message.to_dict()
        global_key = GLOBAL_ROUTING_KEYS[message.type]
        if self._transport.state in (TransportState.RECONNECTING, TransportState.FAILED):
            self._transport.request_reconnect()
            logger.warning(
                "Broker unavailable; %s event for user %s not published",
                message.type,
                message.user_id,
            )
            return False
        try:
            async with self._user_lock(message.user_id):
                await asyncio.wait_for(
                    self._publish_pair(global_key, body, message.user_id),
                    timeout=self._publish_timeout,
                )
        except Exception as exc:
            logger.warning(
                "Failed to publish %s event for user %s: %s",
                message.type,
                message.user_id,
                exc or type(exc).__name__,
            )
            return False

        logger.info("Published %s event for user %s", message.type, message.user_id)
        return True

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[None]:
        entry = self._user_locks.setdefault(user_id, _UserLock())
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._user_locks.pop(user_id, None)

    async def _publish_pair(self, global_key: str, body: dict[str, Any], user_id: str) -> None:
        await self.initialize()
        await self._transport.publish(NOTIFICATIONS_EXCHANGE, global_key, body)
        await self._transport.publish(NOTIFICATIONS_EXCHANGE, user_routing_key(user_id), body)

    async def publish_new_notification(
        self, notification: Notification, user_id: str | None = None
    ) -> bool:
        recipient = str(user_id or notification.recipient)
        return await self.publish(
            BrokerMessage(
                type=NEW_NOTIFICATION,
                payload=serialize_notification(notification),
                user_id=recipient,
            )
        )

    async def publish_notification_read(self, notification_id: str, user_id: str) -> bool:
        return await self.publish(
            BrokerMessage(
                type=NOTIFICATION_READ,
                payload={"notificationId": notification_id},
                user_id=str(user_id),
            )
        )

    async def publish_notification_delete(self, notification_id: str, user_id: str) -> bool:
        return await self.publish(
            BrokerMessage(
                type=NOTIFICATION_DELETE,
                payload={"notificationId": notification_id},
                user_id=str(user_id),
            )
        )

    async def publish_delete_all_notifications(self, user_id: str, count: int) -> bool:
        return await self.publish(
            BrokerMessage(
                type=DELETE_ALL_NOTIFICATIONS,
                payload={"count": count},
                user_id=str(user_id),
            )
        )

    async def subscribe_user(self, user_id: str, handler: MessageHandler) -> ConsumerHandle:
        """Consume ``user_id``'s events from its ephemeral per-user queue."""

        await self.initialize()
        queue = user_queue_name(user_id)
        await self._transport.declare_queue(
            queue,
            durable=False,
            auto_delete=True,
            arguments={"x-expires": USER_QUEUE_EXPIRES_MS},
        )
        await self._transport.bind_queue(queue, NOTIFICATIONS_EXCHANGE, user_routing_key(user_id))
        handle = await self._transport.consume(queue, handler, no_ack=True)
        logger.info("Subscribed to notifications for user %s", user_id)
        return handle

    async def unsubscribe(self, handle: ConsumerHandle) -> bool:
        cancelled = await self._transport.cancel_consumer(handle)
        logger.info("Cancelled consumer %s on %s", handle.consumer_tag, handle.queue)
        return cancelled

    async def subscribe_push_notifications(self, handler: MessageHandler) -> ConsumerHandle:
        await self.initialize()
        handle = await self._transport.consume(PUSH_NOTIFICATIONS_QUEUE, handler)
        logger.info("Subscribed to push notifications")
        return handle

    async def subscribe_unread_counts(self, handler: MessageHandler) -> ConsumerHandle:
        await self.initialize()
        handle = await self._transport.consume(UNREAD_COUNTS_QUEUE, handler)
        logger.info("Subscribed to unread count updates")
        return handle


__all__ = [
    "GLOBAL_ROUTING_KEYS",
    "NotificationEventPublisher",
    "serialize_notification",
]
