"""Tests for the notification REST endpoints."""

import pytest
import requests

from amqp_double import FakeBroker
from push_double import VALID_PUSH_TOKEN

BASE = "/api/v1/notification"


def _in_app(client, auth_headers, recipient: str = "u1", title: str = "Approved") -> dict:
    response = client.post(
        f"{BASE}/in-app",
        json={"title": title, "body": "Your listing is live", "recipient": recipient},
        headers=auth_headers("u2"),
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_send_requires_a_registered_device(client) -> None:
    response = client.post(f"{BASE}/send", json={"title": "T", "body": "B", "recipient": "u2"})

    assert response.status_code == 404
    assert response.json() == {"message": "Recipient push token not found"}


@pytest.mark.parametrize(
    "payload",
    [
        {"body": "B", "recipient": "u1"},
        {"title": "T", "recipient": "u1"},
        {"title": "T", "body": "B"},
        {"title": " ", "body": "B", "recipient": "u1"},
    ],
)
def test_send_rejects_missing_fields(client, push_client, payload) -> None:
    response = client.post(f"{BASE}/send", json=payload)

    assert response.status_code == 400
    assert response.json() == {"message": "Title, body, and recipient are required."}
    assert push_client.batches == []


def test_send_pushes_to_device(client, push_client) -> None:
    response = client.post(f"{BASE}/send", json={"title": "T", "body": "B", "recipient": "u1"})

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Notification sent successfully."
    assert body["notification"]["status"] == "sent"
    assert body["notification"]["recipient"] == "u1"
    assert push_client.sent[0].to == VALID_PUSH_TOKEN


def test_send_records_gateway_failure(client, push_client) -> None:
    push_client.error = requests.exceptions.ConnectionError("unreachable")

    response = client.post(f"{BASE}/send", json={"title": "T", "body": "B", "recipient": "u1"})

    assert response.status_code == 201
    assert response.json()["notification"]["status"] == "failed"


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("get", "/user-notifications"),
        ("get", "/unread-count"),
        ("put", "/read/abc"),
        ("delete", "/clear-all"),
        ("delete", "/abc"),
    ],
)
def test_user_endpoints_require_authentication(client, method, path) -> None:
    response = getattr(client, method)(f"{BASE}{path}")

    assert response.status_code == 401


def test_invalid_token_is_rejected(client) -> None:
    response = client.get(
        f"{BASE}/user-notifications", headers={"Authorization": "Bearer not-a-jwt"}
    )

    assert response.status_code == 401


def test_in_app_rejects_unknown_recipient(client, auth_headers) -> None:
    response = client.post(
        f"{BASE}/in-app",
        json={"title": "T", "body": "B", "recipient": "ghost"},
        headers=auth_headers("u1"),
    )

    assert response.status_code == 404
    assert response.json() == {"message": "Recipient not found"}


def test_in_app_survives_broker_outage(client, auth_headers, broker: FakeBroker) -> None:
    broker.publish_error = ConnectionError("broker went away")

    created = _in_app(client, auth_headers)

    assert created["status"] == "sent"
    assert created["read"] is False
    listed = client.get(f"{BASE}/user-notifications", headers=auth_headers("u1")).json()
    assert [item["id"] for item in listed] == [created["id"]]


def test_list_and_count_notifications(client, auth_headers) -> None:
    first = _in_app(client, auth_headers, title="first")
    second = _in_app(client, auth_headers, title="second")
    _in_app(client, auth_headers, recipient="u2", title="other")

    listed = client.get(f"{BASE}/user-notifications", headers=auth_headers("u1")).json()
    assert [item["id"] for item in listed] == [second["id"], first["id"]]
    assert set(listed[0]) >= {"messageType", "relatedEntity", "createdAt", "updatedAt"}

    client.put(f"{BASE}/read/{second['id']}", headers=auth_headers("u1"))

    unread = client.get(
        f"{BASE}/user-notifications", params={"unread_only": True}, headers=auth_headers("u1")
    ).json()
    assert [item["id"] for item in unread] == [first["id"]]
    count = client.get(f"{BASE}/unread-count", headers=auth_headers("u1")).json()
    assert count == {"unread": 1}


def test_mark_read_is_idempotent_and_owner_scoped(client, auth_headers) -> None:
    created = _in_app(client, auth_headers)

    first = client.put(f"{BASE}/read/{created['id']}", headers=auth_headers("u1"))
    second = client.put(f"{BASE}/read/{created['id']}", headers=auth_headers("u1"))
    foreign = client.put(f"{BASE}/read/{created['id']}", headers=auth_headers("u2"))

    assert first.status_code == second.status_code == 200
    assert second.json()["read"] is True
    assert foreign.status_code == 404
    assert foreign.json() == {"message": "Notification not found"}


def test_delete_single_notification(client, auth_headers) -> None:
    created = _in_app(client, auth_headers)

    response = client.delete(f"{BASE}/{created['id']}", headers=auth_headers("u1"))
    again = client.delete(f"{BASE}/{created['id']}", headers=auth_headers("u1"))

    assert response.status_code == 200
    assert response.json() == {"message": "Notification deleted successfully"}
    assert again.status_code == 404
    assert again.json() == {"message": "Notification not found"}


def test_clear_all_reports_count(client, auth_headers) -> None:
    _in_app(client, auth_headers)
    _in_app(client, auth_headers)

    response = client.delete(f"{BASE}/clear-all", headers=auth_headers("u1"))
    again = client.delete(f"{BASE}/clear-all", headers=auth_headers("u1"))

    assert response.status_code == 200
    assert response.json() == {"message": "All notifications deleted successfully", "deletedCount": 2}
    assert again.status_code == 404
    assert again.json() == {"message": "No notifications found to delete"}


def test_register_push_token(client, auth_headers, push_client) -> None:
    invalid = client.put(
        f"{BASE}/push-token", json={"pushToken": "abc"}, headers=auth_headers("u2")
    )
    valid = client.put(
        f"{BASE}/push-token", json={"pushToken": VALID_PUSH_TOKEN}, headers=auth_headers("u2")
    )

    assert invalid.status_code == 400
    assert invalid.json() == {"message": "Invalid Expo push token"}
    assert valid.status_code == 200
    assert valid.json() == {"message": "Push token updated successfully"}

    sent = client.post(f"{BASE}/send", json={"title": "T", "body": "B", "recipient": "u2"})
    assert sent.status_code == 201
    assert push_client.sent[-1].to == VALID_PUSH_TOKEN
