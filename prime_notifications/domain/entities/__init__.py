"""Domain entities exposed by the application."""

from .broker_message import (
    BROKER_MESSAGE_TYPES,
    DELETE_ALL_NOTIFICATIONS,
    NEW_NOTIFICATION,
    NOTIFICATION_DELETE,
    NOTIFICATION_READ,
    BrokerMessage,
)
from .notification import (
    MESSAGE_TYPES,
    NOTIFICATION_STATUS_FAILED,
    NOTIFICATION_STATUS_PENDING,
    NOTIFICATION_STATUS_SENT,
    NOTIFICATION_STATUSES,
    Notification,
)
from .user import User

__all__ = [
    "BrokerMessage",
    "BROKER_MESSAGE_TYPES",
    "NEW_NOTIFICATION",
    "NOTIFICATION_READ",
    "NOTIFICATION_DELETE",
    "DELETE_ALL_NOTIFICATIONS",
    "Notification",
    "NOTIFICATION_STATUS_PENDING",
    "NOTIFICATION_STATUS_SENT",
    "NOTIFICATION_STATUS_FAILED",
    "NOTIFICATION_STATUSES",
    "MESSAGE_TYPES",
    "User",
]
