"""Use case for creating an in-app notification and announcing it."""

from __future__ import annotations

import logging

import anyio
from sqlalchemy.orm import Session

from prime_notifications.domain.entities import (
    MESSAGE_TYPES,
    NOTIFICATION_STATUS_SENT,
    Notification,
)
from prime_notifications.domain.exceptions import NotFoundError, ValidationError
from prime_notifications.infrastructure.notifications import NotificationEventPublisher
from prime_notifications.infrastructure.repositories import (
    NotificationRepository,
    UserRepository,
)
from prime_notifications.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Title, body, and recipient are required."


def require_fields(title: str | None, body: str | None, recipient: str | None) -> None:
    """Raise :class:`ValidationError` when any required field is blank."""

    if not all(value is not None and str(value).strip() for value in (title, body, recipient)):
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)


def _store_notification(session: Session, notification: Notification) -> Notification:
    user = UserRepository(session).get(notification.recipient)
    if user is None:
        raise NotFoundError("Recipient not found")

    now = now_in_app_timezone()
    notification.recipient = user.id
    notification.created_at = now
    notification.updated_at = now
    return NotificationRepository(session).create(notification)


async def send_in_app_notification(
    session: Session,
    publisher: NotificationEventPublisher,
    *,
    title: str | None,
    body: str | None,
    recipient: str | None,
    message_type: str | None = None,
    related_entity: str | None = None,
) -> Notification:
    """Persist a notification for ``recipient`` and publish ``new_notification``.

    The record is committed before anything is published. A failed publish is
    logged by the publisher and does not undo the record.
    """

    require_fields(title, body, recipient)
    if message_type is not None and message_type not in MESSAGE_TYPES:
        raise ValidationError(f"Unknown message type: {message_type}")

    notification = await anyio.to_thread.run_sync(
        _store_notification,
        session,
        Notification(
            id=None,
            title=str(title).strip(),
            body=str(body).strip(),
            recipient=str(recipient),
            status=NOTIFICATION_STATUS_SENT,
            message_type=message_type,
            read=False,
            related_entity=related_entity,
        ),
    )

    published = await publisher.publish_new_notification(notification, notification.recipient)
    if not published:
        logger.warning("Notification %s saved but not announced to the broker", notification.id)
    return notification


__all__ = ["REQUIRED_FIELDS_MESSAGE", "require_fields", "send_in_app_notification"]
