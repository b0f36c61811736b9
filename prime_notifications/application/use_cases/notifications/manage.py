"""Use cases for reading and removing a user's notifications."""

from __future__ import annotations

from collections.abc import Sequence
from functools import partial

import anyio
from sqlalchemy.orm import Session

from prime_notifications.domain.entities import Notification
from prime_notifications.domain.exceptions import NotFoundError
from prime_notifications.infrastructure.notifications import NotificationEventPublisher
from prime_notifications.infrastructure.repositories import NotificationRepository

NOTIFICATION_NOT_FOUND_MESSAGE = "Notification not found"
NOTHING_TO_DELETE_MESSAGE = "No notifications found to delete"


def list_user_notifications(
    session: Session, user_id: str, *, unread_only: bool = False
) -> Sequence[Notification]:
    """Return ``user_id``'s notifications, newest first."""

    return NotificationRepository(session).list_for_user(user_id, unread_only=unread_only)


def count_unread_notifications(session: Session, user_id: str) -> int:
    return NotificationRepository(session).count_unread(user_id)


async def mark_notification_read(
    session: Session,
    publisher: NotificationEventPublisher,
    *,
    notification_id: str,
    user_id: str,
) -> Notification:
    """Mark the notification read, then publish ``notification_read``."""

    repository = NotificationRepository(session)
    notification = await anyio.to_thread.run_sync(
        partial(repository.mark_as_read, notification_id, user_id=user_id)
    )
    if notification is None:
        raise NotFoundError(NOTIFICATION_NOT_FOUND_MESSAGE)
    await publisher.publish_notification_read(notification.id, user_id)
    return notification


async def delete_notification(
    session: Session,
    publisher: NotificationEventPublisher,
    *,
    notification_id: str,
    user_id: str,
) -> None:
    """Delete the notification, then publish ``notification_delete``."""

    repository = NotificationRepository(session)
    if not await anyio.to_thread.run_sync(partial(repository.delete, notification_id, user_id=user_id)):
        raise NotFoundError(NOTIFICATION_NOT_FOUND_MESSAGE)
    await publisher.publish_notification_delete(notification_id, user_id)


async def delete_all_notifications(
    session: Session,
    publisher: NotificationEventPublisher,
    *,
    user_id: str,
) -> int:
    """Delete every notification of ``user_id`` and return how many were removed."""

    deleted = await anyio.to_thread.run_sync(
        NotificationRepository(session).delete_all_for_user, user_id
    )
    if deleted == 0:
        raise NotFoundError(NOTHING_TO_DELETE_MESSAGE)
    await publisher.publish_delete_all_notifications(user_id, deleted)
    return deleted


__all__ = [
    "NOTIFICATION_NOT_FOUND_MESSAGE",
    "NOTHING_TO_DELETE_MESSAGE",
    "count_unread_notifications",
    "delete_all_notifications",
    "delete_notification",
    "list_user_notifications",
    "mark_notification_read",
]
