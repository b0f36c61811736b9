"""Tests for the SQL notification store."""

from __future__ import annotations

from datetime import timedelta

import pytest

from prime_notifications.domain.entities import Notification
from prime_notifications.infrastructure.repositories import NotificationRepository, UserRepository
from prime_notifications.utils import now_in_app_timezone


def _create(repository: NotificationRepository, recipient: str = "u1", **overrides) -> Notification:
    values = dict(id=None, title="Title", body="Body", recipient=recipient)
    values.update(overrides)
    return repository.create(Notification(**values))


def test_create_assigns_identifier_and_defaults(session) -> None:
    notification = _create(NotificationRepository(session))

    assert notification.id and len(notification.id) == 32
    assert notification.status == "pending"
    assert notification.read is False
    assert notification.created_at is not None and notification.created_at.tzinfo is not None


def test_list_for_user_is_newest_first_and_scoped(session) -> None:
    repository = NotificationRepository(session)
    now = now_in_app_timezone()
    older = _create(repository, title="older", created_at=now - timedelta(minutes=5))
    newer = _create(repository, title="newer", created_at=now)
    _create(repository, recipient="u2")

    assert [n.id for n in repository.list_for_user("u1")] == [newer.id, older.id]

    repository.mark_as_read(newer.id, user_id="u1")
    assert [n.id for n in repository.list_for_user("u1", unread_only=True)] == [older.id]
    assert repository.count_unread("u1") == 1


def test_mark_as_read_is_idempotent_and_owner_only(session) -> None:
    repository = NotificationRepository(session)
    notification = _create(repository)

    assert repository.mark_as_read(notification.id, user_id="u2") is None
    first = repository.mark_as_read(notification.id, user_id="u1")
    second = repository.mark_as_read(notification.id, user_id="u1")

    assert first.read is True and second.read is True
    assert second.updated_at == first.updated_at


def test_sent_status_never_returns_to_pending(session) -> None:
    repository = NotificationRepository(session)
    notification = _create(repository, status="sent")

    with pytest.raises(ValueError):
        repository.update_status(notification.id, "pending")
    with pytest.raises(ValueError):
        repository.update_status(notification.id, "delivered")

    assert repository.update_status(notification.id, "failed").status == "failed"
    assert repository.update_status("missing", "sent") is None


def test_delete_is_scoped_to_recipient(session) -> None:
    repository = NotificationRepository(session)
    notification = _create(repository)

    assert repository.delete(notification.id, user_id="u2") is False
    assert repository.delete(notification.id, user_id="u1") is True
    assert repository.get(notification.id) is None


def test_delete_all_for_user_returns_count(session) -> None:
    repository = NotificationRepository(session)
    _create(repository)
    _create(repository)
    _create(repository, recipient="u2")

    assert repository.delete_all_for_user("u1") == 2
    assert repository.delete_all_for_user("u1") == 0
    assert len(repository.list_for_user("u2")) == 1


def test_update_push_token(session, users) -> None:
    repository = UserRepository(session)

    updated = repository.update_push_token("u2", "ExponentPushToken[abc]")

    assert updated.push_token == "ExponentPushToken[abc]"
    assert repository.get("u2").has_push_token()
    with pytest.raises(ValueError):
        repository.update_push_token("nobody", "ExponentPushToken[abc]")
