"""Aggregate application use cases."""

from .notifications import (
    send_in_app_notification,
    send_push_notification,
)

__all__ = [
    "send_in_app_notification",
    "send_push_notification",
]
