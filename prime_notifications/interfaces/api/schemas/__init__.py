from .notification import (
    DeleteAllResponse,
    InAppNotificationRequest,
    MessageResponse,
    NotificationRead,
    PushTokenRequest,
    SendNotificationRequest,
    SendNotificationResponse,
    UnreadCountResponse,
)

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
