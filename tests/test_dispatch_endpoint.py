from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from dispatch_engine.collaborators import InMemoryCreditLedger
from dispatch_engine.main import create_app
from mock_provider import app as mock_provider
from mock_provider.app import mock_client

ADMIN_HEADERS = {"X-Admin-Token": "admin-secret"}


@pytest.fixture
def ledger():
    return InMemoryCreditLedger({"user-1": 5})


@pytest.fixture
def client(settings, ledger):
    app = create_app(settings, client=mock_client(), credit_ledger=ledger)
    with TestClient(app) as test_client:
        yield test_client


def test_dispatch_success(client, ledger):
    response = client.post(
        "/api/v1/sms/dispatch",
        json={"message": {"to": "+351912345678", "from": "LOJA", "text": "Hello"}, "userId": "user-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["finalResult"] == {"success": True, "gateway": "bulksms", "messageId": "bs-1001", "cost": 1}
    assert body["fallbackUsed"] is False
    assert body["effectiveSenderId"] == "LOJA"
    assert body["country"] == "PT"
    assert len(body["attempts"]) == 1
    assert "overrideUsed" not in body
    assert body["dispatchId"]
    assert ledger.balance("user-1") == 4


def test_provider_failures_still_return_200(client, ledger):
    mock_provider.set_mode("bulksms", "reject")
    mock_provider.set_mode("bulkgate_v2", "reject")

    response = client.post(
        "/api/v1/sms/dispatch",
        json={"message": {"to": "+351912345678", "text": "Hello"}, "userId": "user-1"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["finalResult"]["success"] is False
    assert body["finalResult"]["gateway"] == "bulkgate"
    assert "Invalid number" in body["finalResult"]["error"]
    assert body["fallbackUsed"] is True
    assert [a["gateway"] for a in body["attempts"]] == ["bulksms", "bulkgate"]
    assert ledger.balance("user-1") == 5


def test_missing_message_is_rejected_without_provider_calls(client):
    response = client.post("/api/v1/sms/dispatch", json={"userId": "user-1"})

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "VALIDATION_ERROR"
    assert "message" in body["message"]
    assert mock_provider.REQUEST_LOGS == []


def test_invalid_json_is_rejected(client):
    response = client.post(
        "/api/v1/sms/dispatch", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_override_read_and_update(client):
    response = client.get("/api/v1/gateway-override", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json()["override_type"] == "none"

    expires_at = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
    response = client.put(
        "/api/v1/gateway-override",
        headers=ADMIN_HEADERS,
        json={"override_type": "force_bulksms", "expires_at": expires_at, "reason": "BulkGate outage"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["override_type"] == "force_bulksms"
    assert body["effective"] == "force_bulksms"
    assert body["reason"] == "BulkGate outage"

    response = client.post(
        "/api/v1/sms/dispatch",
        json={"message": {"to": "+244923456789", "text": "Olá"}, "userId": "user-1"},
    )
    body = response.json()
    assert body["overrideUsed"] == "force_bulksms"
    assert body["finalResult"]["gateway"] == "bulksms"
    assert mock_provider.logs_for("bulkgate_v2") == []


def test_override_requires_admin_token(client):
    response = client.put("/api/v1/gateway-override", json={"override_type": "force_bulkgate"})
    assert response.status_code == 401
    assert response.json()["error_code"] == "UNAUTHORIZED"

    response = client.get("/api/v1/gateway-override", headers={"X-Admin-Token": "wrong"})
    assert response.status_code == 401


def test_override_rejects_unknown_type(client):
    response = client.put("/api/v1/gateway-override", headers=ADMIN_HEADERS, json={"override_type": "round_robin"})

    assert response.status_code == 422
    assert response.json()["error_code"] == "INVALID_PAYLOAD"


def test_override_update_refused_without_configured_admin_token(settings):
    settings = settings.model_copy(update={"admin_token": None})
    app = create_app(settings, client=mock_client())
    with TestClient(app) as test_client:
        response = test_client.put("/api/v1/gateway-override", json={"override_type": "force_bulkgate"})
        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

        response = test_client.get("/api/v1/gateway-override")
        assert response.status_code == 200


def test_gateway_status(client):
    response = client.get("/api/v1/gateways/bulksms/status")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "online"
    assert body["balance"] == {"balance": 42.5, "currency": None}

    response = client.get("/api/v1/gateways/bulkgate/status")
    assert response.json()["balance"] == {"balance": 100.0, "currency": "credits"}


def test_gateway_status_reports_provider_errors(client):
    mock_provider.set_mode("bulksms", "auth")

    response = client.get("/api/v1/gateways/bulksms/status")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "offline"
    assert "401" in body["error"]


def test_unknown_gateway_status_is_404(client):
    response = client.get("/api/v1/gateways/twilio/status")

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_metrics_endpoint(client):
    client.post(
        "/api/v1/sms/dispatch",
        json={"message": {"to": "+351912345678", "text": "Hello"}, "userId": "user-1"},
    )

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers.get("content-type", "").startswith("text/plain")
    assert "sms_dispatch_requests_total" in response.text
    assert 'sms_provider_send_attempts_total{gateway="bulksms",outcome="success"}' in response.text
