"""Resilient AMQP transport shared by every broker user in the process.

The transport owns one connection and a bounded pool of channels. It exposes
the topology, publish and consume primitives the notification pipeline is
built on and re-establishes the connection after it is lost. Only the
connection is restored: callers re-declare the exchanges, queues and bindings
they depend on (declarations are idempotent) and resubscribe their consumers.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

import aio_pika
from aio_pika import DeliveryMode, ExchangeType, Message
from aio_pika.abc import (
    AbstractChannel,
    AbstractConnection,
    AbstractExchange,
    AbstractIncomingMessage,
    AbstractQueue,
)

from prime_notifications.config import Settings
from prime_notifications.domain.exceptions import BrokerUnavailable, is_transient

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

MessageHandler = Callable[[Any, AbstractIncomingMessage], Awaitable[Any]]
StateListener = Callable[[str, Any], Any]
Connector = Callable[..., Awaitable[AbstractConnection]]


class TransportState(str, Enum):
    """Lifecycle of the shared broker connection."""

    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    CLOSED = "closed"


@dataclass
class ConsumerHandle:
    """Reference to a registered consumer, used to cancel it later."""

    queue: str
    consumer_tag: str
    no_ack: bool = False
    channel: AbstractChannel | None = field(default=None, repr=False, compare=False)
    amqp_queue: AbstractQueue | None = field(default=None, repr=False, compare=False)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_body(content: Any) -> tuple[bytes, str]:
    """Return the wire body for ``content`` and the matching content type."""

    if isinstance(content, (bytes, bytearray)):
        return bytes(content), "application/octet-stream"
    if isinstance(content, str):
        return content.encode("utf-8"), "text/plain"
    return json.dumps(content, default=_json_default).encode("utf-8"), JSON_CONTENT_TYPE


def decode_body(message: AbstractIncomingMessage) -> Any:
    """Decode an incoming message, parsing JSON bodies."""

    text = message.body.decode(message.content_encoding or "utf-8")
    if message.content_type == JSON_CONTENT_TYPE:
        return json.loads(text)
    return text


class BrokerTransport:
    """Single shared connection to the message broker."""

    def __init__(
        self,
        url: str,
        *,
        connection_name: str = "prime-app-connection",
        heartbeat: int = 60,
        reconnect_delay: float = 5.0,
        max_reconnect_attempts: int = 10,
        max_channels: int = 10,
        prefetch_count: int = 10,
        requeue_delay: float = 1.0,
        connector: Connector | None = None,
    ) -> None:
        if max_channels < 1:
            raise ValueError("max_channels must be at least 1")
        if max_reconnect_attempts < 1:
            raise ValueError("max_reconnect_attempts must be at least 1")

        self._url = url
        self._connection_name = connection_name
        self._heartbeat = heartbeat
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_attempts = max_reconnect_attempts
        self._max_channels = max_channels
        self._prefetch_count = prefetch_count
        self._requeue_delay = requeue_delay
        self._connector: Connector = connector or aio_pika.connect

        self._state = TransportState.UNINITIALIZED
        self._connection: AbstractConnection | None = None
        self._default_channel: AbstractChannel | None = None
        self._channel_pool: list[AbstractChannel] = []
        self._next_channel = 0
        self._channel_lock = asyncio.Lock()

        self._exchanges: dict[str, AbstractExchange] = {}
        # Declared kinds and options outlive the connection so a reconnect
        # re-declares each exchange exactly as it was first declared.
        self._exchange_options: dict[str, dict[str, Any]] = {}
        self._queues: dict[str, AbstractQueue] = {}
        self._queue_options: dict[str, dict[str, Any]] = {}
        self._consumers: dict[str, ConsumerHandle] = {}

        self._listeners: list[StateListener] = []
        self._connect_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._should_reconnect = True

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "BrokerTransport":
        options: dict[str, Any] = {
            "connection_name": settings.rabbitmq_connection_name,
            "heartbeat": settings.rabbitmq_heartbeat,
            "reconnect_delay": settings.rabbitmq_reconnect_delay,
            "max_reconnect_attempts": settings.rabbitmq_max_reconnect_attempts,
            "max_channels": settings.rabbitmq_max_channels,
            "prefetch_count": settings.rabbitmq_prefetch_count,
            "requeue_delay": settings.rabbitmq_requeue_delay,
        }
        options.update(overrides)
        return cls(settings.rabbitmq_url, **options)

    # ------------------------------------------------------------------
    # State observation
    # ------------------------------------------------------------------
    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    @property
    def consumers(self) -> dict[str, ConsumerHandle]:
        return dict(self._consumers)

    def add_listener(self, listener: StateListener) -> None:
        """Register ``listener(event, detail)`` for connection lifecycle events.

        Events: ``connected``, ``connect_failed``, ``disconnected``,
        ``channel_closed``, ``consume_error`` and ``closed``. Coroutine
        listeners are scheduled on the running loop.
        """

        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, event: str, detail: Any = None) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event, detail)
                if inspect.isawaitable(result):
                    asyncio.ensure_future(result)
            except Exception:
                logger.exception("Broker state listener failed while handling %s", event)

    def _set_state(self, state: TransportState) -> None:
        if state is not self._state:
            logger.debug("Broker transport state %s -> %s", self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    async def connect(self) -> AbstractConnection:
        """Return the live connection, establishing it when necessary.

        Concurrent callers share one in-flight attempt. Raises
        :class:`BrokerUnavailable` once every retry has failed; a later call
        starts a fresh round of attempts.
        """

        if self.is_connected:
            assert self._connection is not None
            return self._connection

        if self._connect_task is None or self._connect_task.done():
            self._should_reconnect = True
            self._connect_task = asyncio.get_running_loop().create_task(
                self._connect_with_retry()
            )
        return await asyncio.shield(self._connect_task)

    async def _connect_with_retry(self) -> AbstractConnection:
        last_error: BaseException | None = None
        attempts = self._max_reconnect_attempts

        for attempt in range(1, attempts + 1):
            self._set_state(TransportState.CONNECTING)
            logger.info(
                "Connecting to RabbitMQ as %s (attempt %s/%s)",
                self._connection_name,
                attempt,
                attempts,
            )
            try:
                connection = await self._connector(
                    self._url,
                    client_properties={
                        "connection_name": self._connection_name,
                        "application": "prime-app",
                    },
                    heartbeat=self._heartbeat,
                )
            except Exception as exc:
                last_error = exc
                logger.error("Failed to connect to RabbitMQ: %s", exc)
                self._emit("connect_failed", exc)
                if attempt < attempts and self._should_reconnect:
                    logger.info(
                        "Reconnecting to RabbitMQ in %ss (attempt %s/%s)",
                        self._reconnect_delay,
                        attempt + 1,
                        attempts,
                    )
                    await asyncio.sleep(self._reconnect_delay)
                    continue
                break

            self._connection = connection
            connection.close_callbacks.add(self._on_connection_close)
            self._set_state(TransportState.CONNECTED)
            logger.info("Successfully connected to RabbitMQ")
            self._emit("connected", connection)
            return connection

        self._set_state(TransportState.FAILED)
        logger.error("Max reconnection attempts reached. Giving up.")
        raise BrokerUnavailable(
            f"Message broker unavailable after {attempts} connection attempts"
        ) from last_error

    def _on_connection_close(self, sender: Any, exc: BaseException | None = None, *_: Any) -> None:
        if sender is not self._connection:
            return

        self._reset_connection_state()
        if not self._should_reconnect:
            return

        logger.warning("RabbitMQ connection closed: %s", exc)
        self._set_state(TransportState.RECONNECTING)
        self._emit("disconnected", exc)
        self._schedule_reconnect()

    def _reset_connection_state(self) -> None:
        self._connection = None
        self._default_channel = None
        self._channel_pool = []
        self._next_channel = 0
        self._exchanges.clear()
        self._queues.clear()
        self._queue_options.clear()
        self._consumers.clear()

    def _schedule_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; automatic reconnect skipped")
            return
        self._reconnect_task = loop.create_task(self._reconnect_later())

    async def _reconnect_later(self) -> None:
        await asyncio.sleep(self._reconnect_delay)
        if not self._should_reconnect:
            return
        logger.info("Attempting to reconnect to RabbitMQ...")
        try:
            await self.connect()
        except BrokerUnavailable as exc:
            logger.error("Failed to reconnect to RabbitMQ: %s", exc)

    def request_reconnect(self) -> bool:
        """Start a background round of connection attempts after giving up.

        Returns ``True`` when a round was scheduled. Callers do not wait for
        it; the ``connected`` event reports success.
        """

        if self._state is not TransportState.FAILED or not self._should_reconnect:
            return False
        self._set_state(TransportState.RECONNECTING)
        self._schedule_reconnect()
        return True

    async def close(self) -> None:
        """Close every channel, then the connection, and stop reconnecting."""

        self._should_reconnect = False
        for task in (self._reconnect_task, self._connect_task):
            if task is not None and not task.done():
                task.cancel()
        self._reconnect_task = None
        self._connect_task = None

        logger.info("Closing RabbitMQ connection...")
        connection = self._connection
        channels = list(self._channel_pool)
        self._reset_connection_state()
        try:
            for channel in channels:
                if not channel.is_closed:
                    await channel.close()
            if connection is not None and not connection.is_closed:
                await connection.close()
        except Exception as exc:
            logger.error("Error closing RabbitMQ connection: %s", exc)
            raise
        finally:
            self._set_state(TransportState.CLOSED)
            self._emit("closed")
        logger.info("RabbitMQ connection closed successfully")

    # ------------------------------------------------------------------
    # Channels
    # ------------------------------------------------------------------
    async def _open_channel(self, connection: AbstractConnection) -> AbstractChannel:
        channel = await connection.channel(publisher_confirms=True)
        await channel.set_qos(prefetch_count=self._prefetch_count)
        channel.close_callbacks.add(self._on_channel_close)
        return channel

    def _on_channel_close(self, sender: Any, exc: BaseException | None = None, *_: Any) -> None:
        if sender in self._channel_pool:
            self._channel_pool.remove(sender)
        if sender is self._default_channel:
            self._default_channel = None
            self._exchanges.clear()
            self._queues.clear()
        for tag, handle in list(self._consumers.items()):
            if handle.channel is sender:
                self._consumers.pop(tag, None)
        if exc is not None:
            logger.warning("RabbitMQ channel closed: %s", exc)
        self._emit("channel_closed", exc)

    async def get_channel(self) -> AbstractChannel:
        """Return the default channel used for publishing and topology."""

        connection = await self.connect()
        async with self._channel_lock:
            channel = self._default_channel
            if channel is None or channel.is_closed:
                self._channel_pool = [c for c in self._channel_pool if not c.is_closed]
                if len(self._channel_pool) >= self._max_channels:
                    channel = self._channel_pool[0]
                else:
                    channel = await self._open_channel(connection)
                    self._channel_pool.insert(0, channel)
                self._default_channel = channel
            return channel

    async def acquire_channel(self) -> AbstractChannel:
        """Return a pooled channel for a consumer.

        New channels are opened until the pool is full; after that existing
        channels are handed out in turn.
        """

        await self.get_channel()
        connection = await self.connect()
        async with self._channel_lock:
            self._channel_pool = [c for c in self._channel_pool if not c.is_closed]
            if len(self._channel_pool) < self._max_channels:
                channel = await self._open_channel(connection)
                self._channel_pool.append(channel)
                return channel
            channel = self._channel_pool[self._next_channel % len(self._channel_pool)]
            self._next_channel += 1
            return channel

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------
    async def declare_exchange(
        self,
        name: str,
        kind: str | ExchangeType = ExchangeType.DIRECT,
        *,
        durable: bool = True,
        auto_delete: bool = False,
        internal: bool = False,
        arguments: dict[str, Any] | None = None,
    ) -> AbstractExchange:
        options = {
            "kind": ExchangeType(kind),
            "durable": durable,
            "auto_delete": auto_delete,
            "internal": internal,
            "arguments": arguments,
        }
        channel = await self.get_channel()
        try:
            exchange = await channel.declare_exchange(
                name,
                type=options["kind"],
                durable=durable,
                auto_delete=auto_delete,
                internal=internal,
                arguments=arguments,
            )
        except Exception as exc:
            logger.error("Failed to declare exchange %s: %s", name, exc)
            raise
        self._exchanges[name] = exchange
        self._exchange_options[name] = options
        return exchange

    async def declare_queue(
        self,
        name: str,
        *,
        durable: bool = True,
        exclusive: bool = False,
        auto_delete: bool = False,
        arguments: dict[str, Any] | None = None,
    ) -> AbstractQueue:
        options = {
            "durable": durable,
            "exclusive": exclusive,
            "auto_delete": auto_delete,
            "arguments": arguments,
        }
        channel = await self.get_channel()
        try:
            queue = await channel.declare_queue(name, **options)
        except Exception as exc:
            logger.error("Failed to declare queue %s: %s", name, exc)
            raise
        self._queues[name] = queue
        self._queue_options[name] = options
        return queue

    async def bind_queue(self, queue: str, exchange: str, routing_key: str = "") -> None:
        amqp_queue = self._queues.get(queue)
        if amqp_queue is None:
            amqp_queue = await self.declare_queue(queue)
        try:
            await amqp_queue.bind(exchange, routing_key=routing_key)
        except Exception as exc:
            logger.error("Failed to bind queue %s to exchange %s: %s", queue, exchange, exc)
            raise

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------
    async def publish(
        self,
        exchange: str,
        routing_key: str,
        content: Any,
        *,
        persistent: bool = True,
        content_type: str | None = None,
        headers: dict[str, Any] | None = None,
    ) -> None:
        """Serialize ``content`` and publish it to ``exchange``.

        Returns once the broker has confirmed the message; a blocked or slow
        broker suspends the caller here.
        """

        body, detected_type = encode_body(content)
        message = Message(
            body,
            content_type=content_type or detected_type,
            content_encoding="utf-8",
            delivery_mode=DeliveryMode.PERSISTENT if persistent else DeliveryMode.NOT_PERSISTENT,
            timestamp=datetime.now(timezone.utc),
            headers=headers or {},
        )

        try:
            target = self._exchanges.get(exchange)
            if target is None:
                target = await self.declare_exchange(
                    exchange, **self._exchange_options.get(exchange, {})
                )
            await target.publish(message, routing_key=routing_key)
        except BrokerUnavailable:
            raise
        except Exception as exc:
            logger.error("Failed to publish message to %s: %s", exchange, exc)
            if not self.is_connected:
                raise BrokerUnavailable(
                    f"Message broker connection lost while publishing to {exchange}"
                ) from exc
            raise

    # ------------------------------------------------------------------
    # Consuming
    # ------------------------------------------------------------------
    async def consume(
        self,
        queue: str,
        handler: MessageHandler,
        *,
        no_ack: bool = False,
        exclusive: bool = False,
    ) -> ConsumerHandle:
        """Invoke ``handler(payload, message)`` for every message on ``queue``.

        Handled messages are acknowledged; failing ones are rejected and only
        requeued when the raised error is marked transient. With ``no_ack``
        the broker settles messages on delivery.
        """

        if queue not in self._queue_options:
            await self.declare_queue(queue)
        options = self._queue_options[queue]

        channel = await self.acquire_channel()
        amqp_queue = await channel.declare_queue(queue, **options)
        callback = self._wrap_handler(queue, handler, no_ack=no_ack)
        try:
            consumer_tag = await amqp_queue.consume(callback, no_ack=no_ack, exclusive=exclusive)
        except Exception as exc:
            logger.error("Failed to consume from queue %s: %s", queue, exc)
            raise

        handle = ConsumerHandle(
            queue=queue,
            consumer_tag=consumer_tag,
            no_ack=no_ack,
            channel=channel,
            amqp_queue=amqp_queue,
        )
        self._consumers[consumer_tag] = handle
        return handle

    def _wrap_handler(
        self, queue: str, handler: MessageHandler, *, no_ack: bool
    ) -> Callable[[AbstractIncomingMessage], Awaitable[None]]:
        async def on_message(message: AbstractIncomingMessage) -> None:
            try:
                payload = decode_body(message)
                await handler(payload, message)
            except Exception as exc:
                requeue = is_transient(exc)
                logger.error(
                    "Error processing message from %s (requeue=%s): %s", queue, requeue, exc
                )
                if not no_ack:
                    if requeue and self._requeue_delay:
                        await asyncio.sleep(self._requeue_delay)
                    await message.reject(requeue=requeue)
                self._emit("consume_error", exc)
                return
            if not no_ack:
                await message.ack()

        return on_message

    async def cancel_consumer(self, handle: ConsumerHandle) -> bool:
        """Stop delivering to ``handle``; other consumers are unaffected."""

        self._consumers.pop(handle.consumer_tag, None)
        if handle.amqp_queue is None or handle.channel is None or handle.channel.is_closed:
            return False
        try:
            await handle.amqp_queue.cancel(handle.consumer_tag)
        except Exception as exc:
            logger.error("Failed to cancel consumer %s: %s", handle.consumer_tag, exc)
            raise
        return True


__all__ = [
    "BrokerTransport",
    "ConsumerHandle",
    "TransportState",
    "decode_body",
    "encode_body",
]
