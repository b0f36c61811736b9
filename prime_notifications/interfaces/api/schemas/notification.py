"""Pydantic models describing notification payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from prime_notifications.domain.entities import Notification


class NotificationRead(BaseModel):
    """Representation of a notification delivered to the client."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    body: str
    recipient: str
    status: str
    message_type: str | None = Field(default=None, alias="messageType")
    read: bool = False
    related_entity: str | None = Field(default=None, alias="relatedEntity")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationRead":
        return cls(
            id=notification.id or "",
            title=notification.title,
            body=notification.body,
            recipient=notification.recipient,
            status=notification.status,
            message_type=notification.message_type,
            read=notification.read,
            related_entity=notification.related_entity,
            created_at=notification.created_at,
            updated_at=notification.updated_at,
        )


class SendNotificationRequest(BaseModel):
    """Payload for pushing a notification to a user's device.

    Fields are optional here so missing values produce the service's own
    400 message instead of a schema validation error.
    """

    title: str | None = None
    body: str | None = None
    recipient: str | None = None


class InAppNotificationRequest(SendNotificationRequest):
    """Payload used by domain collaborators to create an in-app notification."""

    message_type: str | None = Field(default=None, alias="messageType")
    related_entity: str | None = Field(default=None, alias="relatedEntity")

    model_config = ConfigDict(populate_by_name=True)


class SendNotificationResponse(BaseModel):
    message: str
    notification: NotificationRead


class PushTokenRequest(BaseModel):
    push_token: str = Field(..., alias="pushToken", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class UnreadCountResponse(BaseModel):
    unread: int


class DeleteAllResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    deleted_count: int = Field(alias="deletedCount")


class MessageResponse(BaseModel):
    message: str


__all__ = [
    "DeleteAllResponse",
    "InAppNotificationRequest",
    "MessageResponse",
    "NotificationRead",
    "PushTokenRequest",
    "SendNotificationRequest",
    "SendNotificationResponse",
    "UnreadCountResponse",
]
