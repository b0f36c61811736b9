"""REST endpoints for creating, listing and managing notifications."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from prime_notifications.application.use_cases.notifications import (
    count_unread_notifications,
    delete_all_notifications,
    delete_notification,
    list_user_notifications,
    mark_notification_read,
    send_in_app_notification,
    send_push_notification,
)
from prime_notifications.domain.entities import User
from prime_notifications.domain.exceptions import ValidationError
from prime_notifications.infrastructure.notifications import (
    NotificationEventPublisher,
    PushDeliveryAdapter,
)
from prime_notifications.infrastructure.repositories import UserRepository
from prime_notifications.interfaces.api.dependencies import (
    get_current_active_user,
    get_db,
    get_publisher,
    get_push_adapter,
)
from prime_notifications.interfaces.api.schemas import (
    DeleteAllResponse,
    InAppNotificationRequest,
    MessageResponse,
    NotificationRead,
    PushTokenRequest,
    SendNotificationRequest,
    SendNotificationResponse,
    UnreadCountResponse,
)

router = APIRouter(prefix="/notification", tags=["notifications"])


@router.post(
    "/send",
    response_model=SendNotificationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_notification(
    payload: SendNotificationRequest,
    db: Session = Depends(get_db),
    push_adapter: PushDeliveryAdapter = Depends(get_push_adapter),
) -> SendNotificationResponse:
    """Push a notification to the recipient's registered device."""

    notification = await send_push_notification(
        db,
        push_adapter,
        title=payload.title,
        body=payload.body,
        recipient=payload.recipient,
    )
    return SendNotificationResponse(
        message="Notification sent successfully.",
        notification=NotificationRead.from_entity(notification),
    )


@router.post(
    "/in-app",
    response_model=NotificationRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_in_app_notification(
    payload: InAppNotificationRequest,
    db: Session = Depends(get_db),
    publisher: NotificationEventPublisher = Depends(get_publisher),
    current_user: User = Depends(get_current_active_user),
) -> NotificationRead:
    """Create an in-app notification on behalf of a domain collaborator."""

    notification = await send_in_app_notification(
        db,
        publisher,
        title=payload.title,
        body=payload.body,
        recipient=payload.recipient,
        message_type=payload.message_type,
        related_entity=payload.related_entity,
    )
    return NotificationRead.from_entity(notification)


@router.get("/user-notifications", response_model=list[NotificationRead])
def list_notifications(
    unread_only: bool = Query(default=False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> list[NotificationRead]:
    """Return the authenticated user's notifications, newest first."""

    notifications = list_user_notifications(db, current_user.id, unread_only=unread_only)
    return [NotificationRead.from_entity(notification) for notification in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
def unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread=count_unread_notifications(db, current_user.id))


@router.put("/read/{notification_id}", response_model=NotificationRead)
async def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    publisher: NotificationEventPublisher = Depends(get_publisher),
    current_user: User = Depends(get_current_active_user),
) -> NotificationRead:
    notification = await mark_notification_read(
        db, publisher, notification_id=notification_id, user_id=current_user.id
    )
    return NotificationRead.from_entity(notification)


@router.put("/push-token", response_model=MessageResponse)
def register_push_token(
    payload: PushTokenRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MessageResponse:
    """Store the Expo push token of the authenticated user's device."""

    if not PushDeliveryAdapter.is_valid_push_token(payload.push_token):
        raise ValidationError("Invalid Expo push token")
    UserRepository(db).update_push_token(current_user.id, payload.push_token)
    return MessageResponse(message="Push token updated successfully")


@router.delete("/clear-all", response_model=DeleteAllResponse)
async def clear_all(
    db: Session = Depends(get_db),
    publisher: NotificationEventPublisher = Depends(get_publisher),
    current_user: User = Depends(get_current_active_user),
) -> DeleteAllResponse:
    deleted = await delete_all_notifications(db, publisher, user_id=current_user.id)
    return DeleteAllResponse(
        message="All notifications deleted successfully", deleted_count=deleted
    )


@router.delete("/{notification_id}", response_model=MessageResponse)
async def remove_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    publisher: NotificationEventPublisher = Depends(get_publisher),
    current_user: User = Depends(get_current_active_user),
) -> MessageResponse:
    await delete_notification(
        db, publisher, notification_id=notification_id, user_id=current_user.id
    )
    return MessageResponse(message="Notification deleted successfully")
