"""Deliver notifications to mobile devices through the Expo push gateway."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterator, Sequence

import anyio
import requests
from exponent_server_sdk import (
    DeviceNotRegisteredError,
    PushClient,
    PushMessage,
    PushServerError,
    PushTicketError,
)
from sqlalchemy.orm import Session

from prime_notifications.config import Settings
from prime_notifications.domain.entities import (
    NEW_NOTIFICATION,
    NOTIFICATION_STATUS_FAILED,
    NOTIFICATION_STATUS_SENT,
    BrokerMessage,
    Notification,
)
from prime_notifications.domain.exceptions import DeliveryFailure
from prime_notifications.infrastructure.broker import ConsumerHandle
from prime_notifications.infrastructure.repositories import (
    NotificationRepository,
    UserRepository,
)

from .publisher import NotificationEventPublisher

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def _chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _response_status(exc: Exception) -> int | None:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)


class PushDeliveryAdapter:
    """Send notifications to the Expo push service and record the outcome.

    The Expo SDK is blocking, so gateway calls run in a worker thread.
    Delivery outcome is written back to the notification ``status``.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        client: PushClient | None = None,
        chunk_size: int = 100,
        access_token: str | None = None,
    ) -> None:
        if client is None:
            session = None
            if access_token:
                session = requests.Session()
                session.headers.update(
                    {
                        "Authorization": f"Bearer {access_token}",
                        "accept": "application/json",
                        "accept-encoding": "gzip, deflate",
                        "content-type": "application/json",
                    }
                )
            client = PushClient(session=session)
        self._client = client
        self._session_factory = session_factory
        self._chunk_size = chunk_size
        self._consumer: ConsumerHandle | None = None
        self._publisher: NotificationEventPublisher | None = None
        self._subscribe_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings, session_factory: SessionFactory, **overrides: Any
    ) -> "PushDeliveryAdapter":
        options: dict[str, Any] = {
            "chunk_size": settings.push_chunk_size,
            "access_token": settings.expo_access_token,
        }
        options.update(overrides)
        return cls(session_factory, **options)

    @staticmethod
    def is_valid_push_token(token: str | None) -> bool:
        return bool(token) and PushClient.is_exponent_push_token(token)

    @property
    def consumer(self) -> ConsumerHandle | None:
        return self._consumer

    async def start(self, publisher: NotificationEventPublisher) -> ConsumerHandle:
        """Consume ``push_notifications.queue`` through ``publisher``.

        The consumer is registered again whenever the broker connection is
        (re-)established, including after a failed first attempt.
        """

        self._publisher = publisher
        publisher.transport.add_listener(self._on_transport_event)
        return await self._subscribe()

    async def stop(self) -> None:
        publisher, self._publisher = self._publisher, None
        consumer, self._consumer = self._consumer, None
        if publisher is None:
            return
        publisher.transport.remove_listener(self._on_transport_event)
        if consumer is not None:
            await publisher.unsubscribe(consumer)

    async def _subscribe(self) -> ConsumerHandle:
        async with self._subscribe_lock:
            if self._consumer is None:
                assert self._publisher is not None
                self._consumer = await self._publisher.subscribe_push_notifications(
                    self.handle_message
                )
            return self._consumer

    def _on_transport_event(self, event: str, detail: Any) -> Any:
        if event == "disconnected":
            self._consumer = None
        elif event == "connected" and self._consumer is None and self._publisher is not None:
            return self._resume()
        return None

    async def _resume(self) -> None:
        if self._publisher is None:
            return
        try:
            await self._subscribe()
        except Exception as exc:
            logger.error("Failed to resume push notification consumer: %s", exc)

    async def handle_message(self, payload: Any, message: Any = None) -> None:
        """Broker handler: push every ``new_notification`` event.

        Malformed messages raise ``ValueError`` so the transport drops them.
        """

        if not isinstance(payload, dict):
            raise ValueError("Push notification message must be a JSON object")
        event = BrokerMessage.from_dict(payload)
        if event.type != NEW_NOTIFICATION:
            logger.debug("Ignoring %s event on the push queue", event.type)
            return
        await self.deliver(Notification.from_payload(event.payload))

    async def deliver(self, notification: Notification) -> list[Any] | None:
        """Look up the recipient's device token and push ``notification``."""

        push_token = await anyio.to_thread.run_sync(self._lookup_push_token, notification.recipient)
        return await self.send(notification, push_token)

    async def send(self, notification: Notification, push_token: str | None) -> list[Any] | None:
        """Push ``notification`` to ``push_token``.

        Returns the gateway tickets, or ``None`` when the token is invalid (the
        notification is marked failed without raising). Gateway failures mark
        the notification failed and raise :class:`DeliveryFailure`.
        """

        if not self.is_valid_push_token(push_token):
            logger.warning(
                "Invalid Expo push token for user %s; notification %s not pushed",
                notification.recipient,
                notification.id,
            )
            await self._record_status(notification, NOTIFICATION_STATUS_FAILED)
            return None

        messages = [self._build_message(notification, push_token)]
        try:
            tickets = await anyio.to_thread.run_sync(self._publish, messages)
        except DeliveryFailure as exc:
            logger.error("Push delivery failed for notification %s: %s", notification.id, exc)
            await self._record_status(notification, NOTIFICATION_STATUS_FAILED)
            raise

        await self._record_status(notification, NOTIFICATION_STATUS_SENT)
        logger.info("Pushed notification %s to user %s", notification.id, notification.recipient)
        return tickets

    @staticmethod
    def _build_message(notification: Notification, push_token: str) -> PushMessage:
        return PushMessage(
            to=push_token,
            title=notification.title,
            body=notification.body,
            sound="default",
            data={
                "notificationId": notification.id,
                "messageType": notification.message_type,
                "relatedEntity": notification.related_entity,
            },
        )

    def _publish(self, messages: Sequence[PushMessage]) -> list[Any]:
        tickets: list[Any] = []
        for chunk in _chunked(messages, self._chunk_size):
            try:
                chunk_tickets = self._client.publish_multiple(list(chunk))
            except PushServerError as exc:
                status_code = _response_status(exc)
                raise DeliveryFailure(
                    f"Push gateway rejected the request: {exc}",
                    transient=status_code is None or status_code >= 500,
                ) from exc
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
                raise DeliveryFailure(f"Push gateway unreachable: {exc}", transient=True) from exc
            except requests.exceptions.HTTPError as exc:
                status_code = _response_status(exc)
                raise DeliveryFailure(
                    f"Push gateway HTTP error: {exc}",
                    transient=status_code is None or status_code >= 500,
                ) from exc

            for ticket in chunk_tickets:
                try:
                    ticket.validate_response()
                except DeviceNotRegisteredError as exc:
                    raise DeliveryFailure(f"Device is no longer registered: {exc}") from exc
                except PushTicketError as exc:
                    raise DeliveryFailure(f"Push ticket error: {exc}") from exc
            tickets.extend(chunk_tickets)
        return tickets

    def _lookup_push_token(self, user_id: str) -> str | None:
        with self._session_factory() as session:
            user = UserRepository(session).get(user_id)
        return user.push_token if user else None

    async def _record_status(self, notification: Notification, status: str) -> None:
        if notification.id is None:
            return
        notification.status = status
        await anyio.to_thread.run_sync(self._write_status, notification.id, status)

    def _write_status(self, notification_id: str, status: str) -> None:
        with self._session_factory() as session:
            NotificationRepository(session).update_status(notification_id, status)


__all__ = ["PushDeliveryAdapter"]
