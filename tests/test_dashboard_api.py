"""Tests for the dashboard HTTP API."""

from unittest.mock import MagicMock

import pytest

from dashboard.app import create_dashboard_app

from tests.builders import critical_payload, make_payload


@pytest.fixture
def client(processor):
    app = create_dashboard_app(processor)
    app.testing = True
    return app.test_client()


def submit(client, payload):
    return client.post("/api/transactions", json=payload)


def test_submit_scores_inline(client):
    response = submit(client, critical_payload())

    body = response.get_json()
    assert response.status_code == 200
    assert body["success"] is True
    assert body["data"]["riskLevel"] == "CRITICAL"
    assert body["data"]["alertCreated"] is True


def test_submit_without_id(client):
    payload = make_payload()
    del payload["id"]

    response = submit(client, payload)

    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_submit_malformed(client):
    assert submit(client, make_payload(amount=-1)).status_code == 400
    assert client.post("/api/transactions", data="not json").status_code == 400


def test_submit_publishes_when_producer_configured(processor):
    producer = MagicMock()
    producer.send_transaction.return_value = True
    client = create_dashboard_app(processor, producer=producer).test_client()

    response = submit(client, make_payload())

    assert response.status_code == 202
    assert response.get_json()["data"] == {"queued": True, "transactionId": "TXN001"}
    producer.send_transaction.assert_called_once()
    assert processor.stores.transactions.count() == 0


def test_submit_publish_failure(processor):
    producer = MagicMock()
    producer.send_transaction.return_value = False
    client = create_dashboard_app(processor, producer=producer).test_client()

    assert submit(client, make_payload()).status_code == 503


def test_list_and_get_transactions(client):
    submit(client, make_payload())

    listed = client.get("/api/transactions?limit=10").get_json()["data"]
    assert [t["transactionId"] for t in listed] == ["TXN001"]

    single = client.get("/api/transactions/TXN001")
    assert single.get_json()["data"]["riskLevel"] == "LOW"
    assert client.get("/api/transactions/NOPE").status_code == 404


def test_bad_limit(client):
    assert client.get("/api/transactions?limit=abc").status_code == 400
    assert client.get("/api/alerts?limit=-3").status_code == 400


def test_alert_listing_and_filters(client):
    submit(client, critical_payload())
    submit(client, make_payload())

    alerts = client.get("/api/alerts").get_json()["data"]
    assert [a["transactionId"] for a in alerts] == ["TXN-CRIT"]
    assert alerts[0]["status"] == "PENDING"
    assert alerts[0]["reasons"][0]["code"] == "CVV_VERIFICATION_FAILED"

    assert client.get("/api/alerts?filter=REVIEWED").get_json()["data"] == []
    assert len(client.get("/api/alerts?search=crypto").get_json()["data"]) == 1
    assert client.get("/api/alerts?filter=BOGUS").status_code == 400


def test_review_flow(client):
    alert_id = submit(client, critical_payload()).get_json()["data"]["alertId"]

    assert client.get(f"/api/alerts/{alert_id}").get_json()["data"]["id"] == alert_id

    response = client.put(
        f"/api/alerts/{alert_id}",
        json={"action": "BLOCKED", "comments": "Stolen card", "assignedTo": "Dhruvi"},
    )
    data = response.get_json()["data"]
    assert response.status_code == 200
    assert data["status"] == "BLOCKED"
    assert data["assignedTo"] == "Dhruvi"
    assert data["reviewedAt"] is not None

    again = client.put(f"/api/alerts/{alert_id}", json={"action": "APPROVED"})
    assert again.status_code == 409

    actions = client.get("/api/actions").get_json()["data"]
    assert [a["action"] for a in actions] == ["BLOCKED"]
    assert actions[0]["analyst"] == "Dhruvi"

    stats = client.get("/api/stats").get_json()["data"]
    assert stats["blockedAmount"] == 150000
    assert stats["pendingAlerts"] == 0


def test_review_errors(client):
    alert_id = submit(client, critical_payload()).get_json()["data"]["alertId"]

    assert client.put("/api/alerts/ALERT-NOPE", json={"action": "APPROVED"}).status_code == 404
    assert client.put(f"/api/alerts/{alert_id}", json={"action": "MAYBE"}).status_code == 400
    assert client.put(f"/api/alerts/{alert_id}", json={}).status_code == 400
    assert client.get("/api/alerts/ALERT-NOPE").status_code == 404


def test_stats_shape(client):
    submit(client, critical_payload())
    submit(client, make_payload())

    stats = client.get("/api/stats").get_json()["data"]

    assert stats["totalTransactions"] == 2
    assert stats["totalAlerts"] == 1
    assert stats["criticalAlerts"] == 1
    assert stats["alertRate"] == 0.5


def test_health(client):
    body = client.get("/api/health").get_json()

    assert body["success"] is True
    assert body["data"]["modelVersion"] == "v3.2.0"
    assert body["data"]["alertThreshold"] == 0.4
    assert body["data"]["status"] == "healthy"


def test_storage_outage_returns_503(client, processor):
    from riskguard.exceptions import StorageError

    processor.stores.alerts.list_alerts = MagicMock(side_effect=StorageError("down"))

    response = client.get("/api/alerts")

    assert response.status_code == 503
    assert response.get_json()["success"] is False
