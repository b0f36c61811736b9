"""Exchange, queue and routing key names used by the notification broker."""

from __future__ import annotations

from typing import Final

NOTIFICATIONS_EXCHANGE: Final[str] = "notifications.exchange"
EVENTS_EXCHANGE: Final[str] = "events.exchange"

NOTIFICATIONS_QUEUE: Final[str] = "notifications.queue"
UNREAD_COUNTS_QUEUE: Final[str] = "unread_counts.queue"
PUSH_NOTIFICATIONS_QUEUE: Final[str] = "push_notifications.queue"

NEW_NOTIFICATION_KEY: Final[str] = "notification.new"
READ_NOTIFICATION_KEY: Final[str] = "notification.read"
DELETE_NOTIFICATION_KEY: Final[str] = "notification.delete"
DELETE_ALL_NOTIFICATIONS_KEY: Final[str] = "notification.delete.all"

# Idle per-user queues are removed by the broker after one hour.
USER_QUEUE_EXPIRES_MS: Final[int] = 3_600_000


def user_routing_key(user_id: str) -> str:
    """Return the routing key carrying every event addressed to ``user_id``."""

    return f"user.{user_id}"


def user_queue_name(user_id: str) -> str:
    """Return the name of the ephemeral queue backing ``user_id``'s socket."""

    return f"user.{user_id}.notifications"


__all__ = [
    "NOTIFICATIONS_EXCHANGE",
    "EVENTS_EXCHANGE",
    "NOTIFICATIONS_QUEUE",
    "UNREAD_COUNTS_QUEUE",
    "PUSH_NOTIFICATIONS_QUEUE",
    "NEW_NOTIFICATION_KEY",
    "READ_NOTIFICATION_KEY",
    "DELETE_NOTIFICATION_KEY",
    "DELETE_ALL_NOTIFICATIONS_KEY",
    "USER_QUEUE_EXPIRES_MS",
    "user_routing_key",
    "user_queue_name",
]
