"""Domain entity representing a user notification."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

NOTIFICATION_STATUS_PENDING = "pending"
NOTIFICATION_STATUS_SENT = "sent"
NOTIFICATION_STATUS_FAILED = "failed"

NOTIFICATION_STATUSES = (
    NOTIFICATION_STATUS_PENDING,
    NOTIFICATION_STATUS_SENT,
    NOTIFICATION_STATUS_FAILED,
)

MESSAGE_TYPES = ("rejection", "approval", "featured", "boost")


@dataclass
class Notification:
    """Information message delivered to a specific recipient."""

    id: str | None
    title: str
    body: str
    recipient: str
    status: str = NOTIFICATION_STATUS_PENDING
    message_type: str | None = None
    read: bool = False
    related_entity: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def belongs_to(self, user_id: str) -> bool:
        """Return ``True`` when ``user_id`` is the recipient of the notification."""

        return str(self.recipient) == str(user_id)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-serializable wire representation."""

        return {
            "id": self.id,
            "title": self.title,
            "body": self.body,
            "recipient": self.recipient,
            "status": self.status,
            "messageType": self.message_type,
            "read": self.read,
            "relatedEntity": self.related_entity,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Notification":
        """Rebuild a notification from :meth:`to_payload` output."""

        missing = [key for key in ("title", "body", "recipient") if not payload.get(key)]
        if missing:
            raise ValueError(f"Notification payload is missing {', '.join(missing)}")

        return cls(
            id=payload.get("id"),
            title=str(payload["title"]),
            body=str(payload["body"]),
            recipient=str(payload["recipient"]),
            status=payload.get("status") or NOTIFICATION_STATUS_PENDING,
            message_type=payload.get("messageType"),
            read=bool(payload.get("read", False)),
            related_entity=payload.get("relatedEntity"),
            created_at=_parse_datetime(payload.get("createdAt")),
            updated_at=_parse_datetime(payload.get("updatedAt")),
        )


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


__all__ = [
    "Notification",
    "NOTIFICATION_STATUS_PENDING",
    "NOTIFICATION_STATUS_SENT",
    "NOTIFICATION_STATUS_FAILED",
    "NOTIFICATION_STATUSES",
    "MESSAGE_TYPES",
]
