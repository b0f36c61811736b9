"""AMQP transport and topology for the notification broker."""

from .topology import (
    DELETE_ALL_NOTIFICATIONS_KEY,
    DELETE_NOTIFICATION_KEY,
    EVENTS_EXCHANGE,
    NEW_NOTIFICATION_KEY,
    NOTIFICATIONS_EXCHANGE,
    NOTIFICATIONS_QUEUE,
    PUSH_NOTIFICATIONS_QUEUE,
    READ_NOTIFICATION_KEY,
    UNREAD_COUNTS_QUEUE,
    USER_QUEUE_EXPIRES_MS,
    user_queue_name,
    user_routing_key,
)
from .transport import (
    BrokerTransport,
    ConsumerHandle,
    TransportState,
    decode_body,
    encode_body,
)

__all__ = [
    "BrokerTransport",
    "ConsumerHandle",
    "TransportState",
    "decode_body",
    "encode_body",
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
    "user_queue_name",
    "user_routing_key",
]
