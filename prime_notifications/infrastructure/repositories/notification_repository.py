"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from prime_notifications.domain.entities import (
    NOTIFICATION_STATUS_PENDING,
    NOTIFICATION_STATUS_SENT,
    NOTIFICATION_STATUSES,
    Notification,
)
from prime_notifications.infrastructure.models import NotificationModel
from prime_notifications.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class NotificationRepository:
    """Provide CRUD operations for :class:`Notification` objects.

    Mutations that act on behalf of a user (read, delete) are scoped by
    ``recipient`` so one user can never touch another user's notifications.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, notification_id: str) -> Notification | None:
        model = self.session.get(NotificationModel, notification_id)
        return self._to_entity(model) if model else None

    def list_for_user(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        limit: int | None = None,
    ) -> Sequence[Notification]:
        query = self.session.query(NotificationModel).filter(
            NotificationModel.recipient == str(user_id)
        )
        if unread_only:
            query = query.filter(NotificationModel.read.is_(False))
        query = query.order_by(NotificationModel.created_at.desc())
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def count_unread(self, user_id: str) -> int:
        return (
            self.session.query(NotificationModel)
            .filter(NotificationModel.recipient == str(user_id))
            .filter(NotificationModel.read.is_(False))
            .count()
        )

    def create(self, notification: Notification) -> Notification:
        model = NotificationModel()
        now = now_in_app_timezone()
        model.title = notification.title
        model.body = notification.body
        model.recipient = str(notification.recipient)
        model.status = notification.status or NOTIFICATION_STATUS_PENDING
        model.message_type = notification.message_type
        model.read = bool(notification.read)
        model.related_entity = notification.related_entity
        model.created_at = ensure_app_naive_datetime(notification.created_at or now)
        model.updated_at = ensure_app_naive_datetime(notification.updated_at or now)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def mark_as_read(self, notification_id: str, *, user_id: str) -> Notification | None:
        """Flag the notification as read and return it, or ``None`` if not owned.

        Already-read notifications are returned unchanged.
        """

        model = self._get_owned_model(notification_id, user_id)
        if model is None:
            return None
        if not model.read:
            model.read = True
            model.updated_at = ensure_app_naive_datetime(now_in_app_timezone())
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self._to_entity(model)

    def update_status(self, notification_id: str, status: str) -> Notification | None:
        if status not in NOTIFICATION_STATUSES:
            raise ValueError(f"Unknown notification status: {status}")
        model = self.session.get(NotificationModel, notification_id)
        if model is None:
            return None
        if model.status == NOTIFICATION_STATUS_SENT and status == NOTIFICATION_STATUS_PENDING:
            msg = f"Notification {notification_id} was already sent"
            raise ValueError(msg)
        if model.status != status:
            model.status = status
            model.updated_at = ensure_app_naive_datetime(now_in_app_timezone())
            self.session.add(model)
            self.session.commit()
            self.session.refresh(model)
        return self._to_entity(model)

    def delete(self, notification_id: str, *, user_id: str) -> bool:
        model = self._get_owned_model(notification_id, user_id)
        if model is None:
            return False
        self.session.delete(model)
        self.session.commit()
        return True

    def delete_all_for_user(self, user_id: str) -> int:
        deleted = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.recipient == str(user_id))
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return int(deleted or 0)

    def _get_owned_model(self, notification_id: str, user_id: str) -> NotificationModel | None:
        model = self.session.get(NotificationModel, notification_id)
        if model is None or model.recipient != str(user_id):
            return None
        return model

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            title=model.title,
            body=model.body,
            recipient=model.recipient,
            status=model.status,
            message_type=model.message_type,
            read=bool(model.read),
            related_entity=model.related_entity,
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["NotificationRepository"]
