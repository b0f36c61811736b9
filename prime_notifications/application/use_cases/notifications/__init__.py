"""Public helpers for creating, announcing and managing notifications."""

from .manage import (
    NOTHING_TO_DELETE_MESSAGE,
    NOTIFICATION_NOT_FOUND_MESSAGE,
    count_unread_notifications,
    delete_all_notifications,
    delete_notification,
    list_user_notifications,
    mark_notification_read,
)
from .property_events import (
    notify_property_approved,
    notify_property_boosted,
    notify_property_featured,
    notify_property_rejected,
)
from .push import PUSH_TOKEN_NOT_FOUND_MESSAGE, send_push_notification
from .send_in_app import REQUIRED_FIELDS_MESSAGE, send_in_app_notification

__all__ = [
    "send_in_app_notification",
    "send_push_notification",
    "mark_notification_read",
    "delete_notification",
    "delete_all_notifications",
    "list_user_notifications",
    "count_unread_notifications",
    "notify_property_approved",
    "notify_property_rejected",
    "notify_property_featured",
    "notify_property_boosted",
    "REQUIRED_FIELDS_MESSAGE",
    "PUSH_TOKEN_NOT_FOUND_MESSAGE",
    "NOTIFICATION_NOT_FOUND_MESSAGE",
    "NOTHING_TO_DELETE_MESSAGE",
]
