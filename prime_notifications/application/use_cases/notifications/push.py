"""Use case for pushing a notification straight to a user's device."""

from __future__ import annotations

import logging

import anyio
from sqlalchemy.orm import Session

from prime_notifications.domain.entities import Notification
from prime_notifications.domain.exceptions import DeliveryFailure, NotFoundError
from prime_notifications.infrastructure.notifications import PushDeliveryAdapter
from prime_notifications.infrastructure.repositories import (
    NotificationRepository,
    UserRepository,
)
from prime_notifications.utils import now_in_app_timezone

from .send_in_app import require_fields

logger = logging.getLogger(__name__)

PUSH_TOKEN_NOT_FOUND_MESSAGE = "Recipient push token not found"


def _store_notification(
    session: Session, title: str, body: str, recipient: str
) -> tuple[Notification, str]:
    user = UserRepository(session).get(recipient)
    if user is None or not user.has_push_token():
        raise NotFoundError(PUSH_TOKEN_NOT_FOUND_MESSAGE)

    now = now_in_app_timezone()
    notification = NotificationRepository(session).create(
        Notification(
            id=None,
            title=title,
            body=body,
            recipient=user.id,
            created_at=now,
            updated_at=now,
        )
    )
    return notification, user.push_token


def _reload(session: Session, notification: Notification) -> Notification:
    # The adapter records the delivery status through its own session.
    session.expire_all()
    return NotificationRepository(session).get(notification.id) or notification


async def send_push_notification(
    session: Session,
    push_adapter: PushDeliveryAdapter,
    *,
    title: str | None,
    body: str | None,
    recipient: str | None,
) -> Notification:
    """Store a notification for ``recipient`` and push it to their device.

    Gateway failures are recorded on the notification as ``failed`` instead
    of being raised to the caller.
    """

    require_fields(title, body, recipient)

    notification, push_token = await anyio.to_thread.run_sync(
        _store_notification, session, str(title).strip(), str(body).strip(), str(recipient)
    )

    try:
        await push_adapter.send(notification, push_token)
    except DeliveryFailure as exc:
        logger.warning("Push for notification %s recorded as failed: %s", notification.id, exc)

    return await anyio.to_thread.run_sync(_reload, session, notification)


__all__ = ["PUSH_TOKEN_NOT_FOUND_MESSAGE", "send_push_notification"]
