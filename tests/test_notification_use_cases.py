"""Tests for the notification use cases: store first, then publish."""

from __future__ import annotations

import json
import threading

import pytest

from amqp_double import FakeBroker
from prime_notifications.application.use_cases.notifications import (
    count_unread_notifications,
    delete_all_notifications,
    delete_notification,
    list_user_notifications,
    mark_notification_read,
    notify_property_approved,
    notify_property_rejected,
    send_in_app_notification,
)
from prime_notifications.domain.exceptions import NotFoundError, ValidationError
from prime_notifications.infrastructure.repositories import NotificationRepository

pytestmark = pytest.mark.anyio


@pytest.mark.parametrize(
    ("title", "body", "recipient"),
    [(None, "B", "u1"), ("T", "", "u1"), ("T", "B", "   ")],
)
async def test_send_in_app_requires_fields(session, publisher, broker, users, title, body, recipient) -> None:
    with pytest.raises(ValidationError) as exc_info:
        await send_in_app_notification(session, publisher, title=title, body=body, recipient=recipient)

    assert exc_info.value.message == "Title, body, and recipient are required."
    assert broker.published == []


async def test_send_in_app_unknown_recipient(session, publisher, broker, users) -> None:
    with pytest.raises(NotFoundError):
        await send_in_app_notification(session, publisher, title="T", body="B", recipient="ghost")

    assert broker.published == []
    assert NotificationRepository(session).list_for_user("ghost") == []


async def test_send_in_app_persists_then_publishes_twice(session, publisher, broker: FakeBroker, users) -> None:
    notification = await send_in_app_notification(
        session, publisher, title="T", body="B", recipient="u2"
    )

    stored = NotificationRepository(session).get(notification.id)
    assert stored.status == "sent"
    assert stored.read is False
    assert [item.routing_key for item in broker.published] == ["notification.new", "user.u2"]
    global_copy, user_copy = (json.loads(item.message.body) for item in broker.published)
    assert global_copy == user_copy
    assert global_copy["payload"] == stored.to_payload()


async def test_send_in_app_survives_broker_outage(session, publisher, broker: FakeBroker, users) -> None:
    broker.refuse_connections = 10

    notification = await send_in_app_notification(
        session, publisher, title="T", body="B", recipient="u1"
    )

    assert NotificationRepository(session).get(notification.id) is not None


async def test_property_approval_scenario(session, publisher, users) -> None:
    notification = await notify_property_approved(
        session, publisher, owner_id="u1", property_id="prop-42", property_title="Sea view flat"
    )

    assert notification.message_type == "approval"
    assert notification.related_entity == "prop-42"
    assert notification.read is False
    assert notification.title == "Property Approved!"
    assert "Sea view flat" in notification.body


async def test_property_rejection_includes_reason(session, publisher, users) -> None:
    notification = await notify_property_rejected(
        session,
        publisher,
        owner_id="u1",
        property_id="prop-7",
        property_title="Loft",
        reason="Missing photos",
    )

    assert notification.message_type == "rejection"
    assert notification.body.endswith("Reason: Missing photos")


async def test_mark_read_is_idempotent_and_publishes(session, publisher, broker: FakeBroker, users) -> None:
    notification = await send_in_app_notification(session, publisher, title="T", body="B", recipient="u1")
    broker.published.clear()

    first = await mark_notification_read(session, publisher, notification_id=notification.id, user_id="u1")
    second = await mark_notification_read(session, publisher, notification_id=notification.id, user_id="u1")

    assert first.read is True and second.read is True
    assert count_unread_notifications(session, "u1") == 0
    assert [item.routing_key for item in broker.published] == [
        "notification.read",
        "user.u1",
        "notification.read",
        "user.u1",
    ]


async def test_mark_read_of_foreign_notification_is_not_found(session, publisher, broker, users) -> None:
    notification = await send_in_app_notification(session, publisher, title="T", body="B", recipient="u1")
    broker.published.clear()

    with pytest.raises(NotFoundError) as exc_info:
        await mark_notification_read(session, publisher, notification_id=notification.id, user_id="u2")

    assert exc_info.value.message == "Notification not found"
    assert broker.published == []


async def test_delete_notification(session, publisher, broker, users) -> None:
    notification = await send_in_app_notification(session, publisher, title="T", body="B", recipient="u1")
    broker.published.clear()

    await delete_notification(session, publisher, notification_id=notification.id, user_id="u1")

    assert [item.routing_key for item in broker.published] == ["notification.delete", "user.u1"]
    with pytest.raises(NotFoundError):
        await delete_notification(session, publisher, notification_id=notification.id, user_id="u1")


async def test_delete_all_returns_count_then_not_found(session, publisher, broker, users) -> None:
    for title in ("a", "b", "c"):
        await send_in_app_notification(session, publisher, title=title, body="B", recipient="u1")
    broker.published.clear()

    assert await delete_all_notifications(session, publisher, user_id="u1") == 3
    payload = json.loads(broker.published[0].message.body)["payload"]
    assert payload == {"count": 3}

    with pytest.raises(NotFoundError) as exc_info:
        await delete_all_notifications(session, publisher, user_id="u1")
    assert exc_info.value.message == "No notifications found to delete"
    assert list_user_notifications(session, "u1") == []


async def test_database_work_runs_off_the_event_loop(session, publisher, users, monkeypatch) -> None:
    threads: dict[str, int] = {}

    def recorded(name):
        original = getattr(NotificationRepository, name)

        def wrapper(self, *args, **kwargs):
            threads[name] = threading.get_ident()
            return original(self, *args, **kwargs)

        monkeypatch.setattr(NotificationRepository, name, wrapper)

    for name in ("create", "mark_as_read", "delete", "delete_all_for_user"):
        recorded(name)

    first = await send_in_app_notification(session, publisher, title="T", body="B", recipient="u1")
    second = await send_in_app_notification(session, publisher, title="T", body="B", recipient="u1")
    await mark_notification_read(session, publisher, notification_id=first.id, user_id="u1")
    await delete_notification(session, publisher, notification_id=second.id, user_id="u1")
    await delete_all_notifications(session, publisher, user_id="u1")

    assert set(threads) == {"create", "mark_as_read", "delete", "delete_all_for_user"}
    assert threading.get_ident() not in threads.values()
