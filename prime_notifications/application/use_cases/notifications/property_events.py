"""Notifications emitted when a listing owner's property changes state."""

from __future__ import annotations

from sqlalchemy.orm import Session

from prime_notifications.domain.entities import Notification
from prime_notifications.infrastructure.notifications import NotificationEventPublisher

from .send_in_app import send_in_app_notification


async def notify_property_approved(
    session: Session,
    publisher: NotificationEventPublisher,
    *,
    owner_id: str,
    property_id: str,
    property_title: str,
) -> Notification:
    return await send_in_app_notification(
        session,
        publisher,
        title="Property Approved!",
        body=f"Your property '{property_title}' has been approved and is now available.",
        recipient=owner_id,
        message_type="approval",
        related_entity=property_id,
    )


async def notify_property_rejected(
    session: Session,
    publisher: NotificationEventPublisher,
    *,
    owner_id: str,
    property_id: str,
    property_title: str,
    reason: str,
) -> Notification:
    return await send_in_app_notification(
        session,
        publisher,
        title="Property Rejected",
        body=f"Your property '{property_title}' was rejected. Reason: {reason}",
        recipient=owner_id,
        message_type="rejection",
        related_entity=property_id,
    )


async def notify_property_featured(
    session: Session,
    publisher: NotificationEventPublisher,
    *,
    owner_id: str,
    property_id: str,
    property_title: str,
) -> Notification:
    return await send_in_app_notification(
        session,
        publisher,
        title="Property Featured!",
        body=f"Your property '{property_title}' has been featured!",
        recipient=owner_id,
        message_type="featured",
        related_entity=property_id,
    )


async def notify_property_boosted(
    session: Session,
    publisher: NotificationEventPublisher,
    *,
    owner_id: str,
    property_id: str,
    property_title: str,
) -> Notification:
    """Tell ``owner_id`` that their listing is being promoted."""

    return await send_in_app_notification(
        session,
        publisher,
        title="Property Boosted!",
        body=f"Your property '{property_title}' has been boosted and will appear higher in results.",
        recipient=owner_id,
        message_type="boost",
        related_entity=property_id,
    )


__all__ = [
    "notify_property_approved",
    "notify_property_boosted",
    "notify_property_featured",
    "notify_property_rejected",
]
