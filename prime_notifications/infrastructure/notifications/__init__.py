"""Realtime and push notification delivery for the infrastructure layer."""

from .manager import Connection, ConnectionState, NotificationConnectionManager
from .publisher import (
    GLOBAL_ROUTING_KEYS,
    NotificationEventPublisher,
    serialize_notification,
)
from .push import PushDeliveryAdapter
from .gateway import CLIENT_EVENT_TYPES, RealtimeGateway, to_client_message

__all__ = [
    "Connection",
    "ConnectionState",
    "NotificationConnectionManager",
    "GLOBAL_ROUTING_KEYS",
    "NotificationEventPublisher",
    "serialize_notification",
    "PushDeliveryAdapter",
    "CLIENT_EVENT_TYPES",
    "RealtimeGateway",
    "to_client_message",
]
