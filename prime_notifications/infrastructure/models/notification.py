"""SQLAlchemy model for persisted notifications."""

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Enum, String, Text

from prime_notifications.domain.entities import MESSAGE_TYPES, NOTIFICATION_STATUSES
from prime_notifications.infrastructure.database import Base
from prime_notifications.utils import now_in_app_naive_datetime


def _new_identifier() -> str:
    return uuid4().hex


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"

    id = Column(String(32), primary_key=True, default=_new_identifier)
    title = Column(String(120), nullable=False)
    body = Column(Text, nullable=False)
    recipient = Column(String(64), nullable=False, index=True)
    status = Column(
        Enum(*NOTIFICATION_STATUSES, name="notification_status", native_enum=False),
        nullable=False,
        default="pending",
    )
    message_type = Column(
        Enum(*MESSAGE_TYPES, name="notification_message_type", native_enum=False),
        nullable=True,
    )
    read = Column(Boolean, nullable=False, default=False)
    related_entity = Column(String(64), nullable=True)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime, index=True)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )


__all__ = ["NotificationModel"]
