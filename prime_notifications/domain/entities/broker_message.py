"""Envelope exchanged through the notification broker."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

NEW_NOTIFICATION = "new_notification"
NOTIFICATION_READ = "notification_read"
NOTIFICATION_DELETE = "notification_delete"
DELETE_ALL_NOTIFICATIONS = "delete_all_notifications"

BROKER_MESSAGE_TYPES = (
    NEW_NOTIFICATION,
    NOTIFICATION_READ,
    NOTIFICATION_DELETE,
    DELETE_ALL_NOTIFICATIONS,
)


@dataclass(frozen=True)
class BrokerMessage:
    """A change event for a single recipient.

    ``payload`` carries the serialized notification for ``new_notification``,
    ``{"notificationId": ...}`` for read/delete events and ``{"count": ...}``
    when every notification of the user was removed.
    """

    type: str
    payload: dict[str, Any]
    user_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.type not in BROKER_MESSAGE_TYPES:
            raise ValueError(f"Unknown broker message type: {self.type!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "payload": self.payload,
            "userId": self.user_id,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BrokerMessage":
        """Rebuild a message decoded from the broker.

        Raises ``ValueError`` when required keys are missing or malformed.
        """

        try:
            message_type = data["type"]
            user_id = data["userId"]
        except KeyError as exc:
            raise ValueError(f"Broker message is missing {exc.args[0]!r}") from exc

        payload = data.get("payload") or {}
        if not isinstance(payload, dict):
            raise ValueError("Broker message payload must be an object")

        raw_timestamp = data.get("timestamp")
        timestamp = datetime.now(timezone.utc)
        if isinstance(raw_timestamp, str):
            try:
                timestamp = datetime.fromisoformat(raw_timestamp)
            except ValueError:
                pass

        return cls(
            type=message_type,
            payload=dict(payload),
            user_id=str(user_id),
            timestamp=timestamp,
        )


__all__ = [
    "BrokerMessage",
    "BROKER_MESSAGE_TYPES",
    "NEW_NOTIFICATION",
    "NOTIFICATION_READ",
    "NOTIFICATION_DELETE",
    "DELETE_ALL_NOTIFICATIONS",
]
