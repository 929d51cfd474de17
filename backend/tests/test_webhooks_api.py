"""Tests for webhook intake and browsing endpoints."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from backend.privileges_api.extensions import db
from backend.privileges_api.models.webhook import Webhook
from backend.privileges_api.utils.principal import TokenPermissions

AGENT = "PrivilegesAgent/479 CFNetwork/3826.500.111.1.1 Darwin/24.4.0"


def _payload(**overrides) -> dict[str, object]:
    payload: dict[str, object] = {
        "user": "jappleseed",
        "machine": "A7B45C3D-8F12-4E56-9D23-F1A8B7C6D5E4",
        "event": "corp.sap.privileges.granted",
        "reason": "Installing software",
        "admin": True,
        "timestamp": "2025-04-25T12:23:30Z",
        "expires": "2025-04-25T12:28:30Z",
        "custom_data": {"department": "Developer", "serial": "XYZ1234567"},
    }
    payload.update(overrides)
    return payload


def test_receive_webhook_stores_event(client, env_headers):
    response = client.post("/api/v1/webhooks", json=_payload(), headers={"User-Agent": AGENT})
    assert response.status_code == 200
    data = response.get_json()
    assert data["id"]
    assert data["received_at"].endswith("Z")

    stored = client.get(f"/api/v1/webhooks/{data['id']}", headers=env_headers).get_json()
    assert stored["user"] == "jappleseed"
    assert stored["admin"] is True
    assert stored["delayed"] is False
    assert stored["timestamp"] == "2025-04-25T12:23:30Z"
    assert stored["expires"] == "2025-04-25T12:28:30Z"
    assert stored["custom_data"] == {"department": "Developer", "serial": "XYZ1234567"}
    assert stored["client_version"] == 479
    assert stored["platform"] == "macOS"
    assert stored["cf_network_version"] == "3826.500.111.1.1"
    assert stored["os_version"] == "24.4.0"


def test_receive_webhook_accepts_empty_expires(client):
    response = client.post("/api/v1/webhooks", json=_payload(expires="", admin=False))
    assert response.status_code == 200
    webhook = db.session.get(Webhook, response.get_json()["id"])
    assert webhook.expires is None
    assert webhook.client_version == 1


def test_receive_webhook_rejects_invalid_json(client):
    response = client.post(
        "/api/v1/webhooks", data="{not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400
    data = response.get_json()
    assert data["error"] == "Invalid JSON payload"
    assert data["requestId"]


@pytest.mark.parametrize(
    ("overrides", "message"),
    [
        ({"user": ""}, "user is required"),
        ({"event": "corp.sap.privileges.elevated"}, "event is not supported"),
        ({"admin": "yes"}, "admin must be a boolean"),
        ({"timestamp": "yesterday"}, "timestamp must be an ISO-8601 datetime"),
        ({"timestamp": "2025-04-25"}, "timestamp must be an ISO-8601 datetime"),
        ({"expires": "2025-04-25"}, "expires must be an ISO-8601 datetime"),
        ({"custom_data": ["a"]}, "custom_data must be an object"),
        ({"client_version": "479"}, "client_version must be an integer"),
        ({"platform": ""}, "platform must be a non-empty string"),
        ({"delayed": 1}, "delayed must be a boolean"),
    ],
)
def test_receive_webhook_validation(client, overrides, message):
    response = client.post("/api/v1/webhooks", json=_payload(**overrides))
    assert response.status_code == 400
    data = response.get_json()
    assert data["error"] == "Validation failed"
    assert message in data["details"]
    assert db.session.query(Webhook).count() == 0


def test_list_webhooks_paginates_and_filters(client, reader_headers, webhook_factory):
    for hours in range(1, 4):
        webhook_factory(user=f"user{hours}", age=timedelta(hours=hours))
    webhook_factory(event="corp.sap.privileges.revoked", delayed=True, age=timedelta(hours=5))

    response = client.get("/api/v1/webhooks", query_string={"limit": 2}, headers=reader_headers)
    assert response.status_code == 200
    data = response.get_json()
    assert data["pagination"] == {"total": 4, "page": 1, "limit": 2, "pages": 2}
    assert [item["user"] for item in data["data"]] == ["user1", "user2"]

    second = client.get(
        "/api/v1/webhooks", query_string={"limit": 2, "page": 2}, headers=reader_headers
    ).get_json()
    assert [item["user"] for item in second["data"]] == ["user3", "jappleseed"]

    revoked = client.get(
        "/api/v1/webhooks",
        query_string={"event": "corp.sap.privileges.revoked"},
        headers=reader_headers,
    ).get_json()
    assert revoked["pagination"]["total"] == 1

    delayed = client.get(
        "/api/v1/webhooks", query_string={"delayed": "false"}, headers=reader_headers
    ).get_json()
    assert delayed["pagination"]["total"] == 3
    assert delayed["pagination"]["limit"] == 50


@pytest.mark.parametrize(
    "query", [{"limit": "0"}, {"limit": "abc"}, {"event": "other"}, {"delayed": "maybe"}]
)
def test_list_webhooks_rejects_invalid_parameters(client, reader_headers, query):
    response = client.get("/api/v1/webhooks", query_string=query, headers=reader_headers)
    assert response.status_code == 400


def test_get_unknown_webhook(client, reader_headers):
    response = client.get("/api/v1/webhooks/missing", headers=reader_headers)
    assert response.status_code == 404
    assert response.get_json() == {"error": "Webhook not found"}


def test_delete_webhook(client, token_factory, webhook_factory):
    webhook_id = webhook_factory().id
    _, headers = token_factory(permissions=TokenPermissions(read=True, delete=True))

    response = client.delete(f"/api/v1/webhooks/{webhook_id}", headers=headers)
    assert response.status_code == 200
    assert response.get_json() == {"message": "Webhook deleted successfully"}

    again = client.delete(f"/api/v1/webhooks/{webhook_id}", headers=headers)
    assert again.status_code == 404


def test_delete_webhook_requires_permission(client, reader_headers, webhook_factory):
    webhook_id = webhook_factory().id
    response = client.delete(f"/api/v1/webhooks/{webhook_id}", headers=reader_headers)
    assert response.status_code == 403


def test_delete_endpoint_can_be_disabled(app, client, env_headers, webhook_factory):
    webhook_id = webhook_factory().id
    app.config["ENABLE_DELETE_ENDPOINT"] = False

    response = client.delete(f"/api/v1/webhooks/{webhook_id}", headers=env_headers)
    assert response.status_code == 404
    assert response.get_json() == {"error": "The DELETE endpoint is currently disabled"}
    assert db.session.get(Webhook, webhook_id) is not None


def test_custom_data_round_trips_as_object(client, env_headers, webhook_factory):
    webhook_factory(custom_data={"name": "My awesome Mac", "os_version": "15.4.1"})
    data = client.get("/api/v1/webhooks", headers=env_headers).get_json()["data"]
    assert data[0]["custom_data"] == {"name": "My awesome Mac", "os_version": "15.4.1"}
    assert json.dumps(data[0]["custom_data"])


def test_receive_webhook_reports_database_failure(client, monkeypatch):
    from sqlalchemy.exc import OperationalError

    def _fail():
        raise OperationalError("INSERT INTO webhooks", {}, Exception("database is locked"))

    monkeypatch.setattr(db.session, "commit", _fail)
    response = client.post("/api/v1/webhooks", json=_payload())
    assert response.status_code == 500
    data = response.get_json()
    assert data["error"] == "Database operation failed"
    assert data["requestId"]
    assert "database is locked" in data["details"]
