"""Tests for the inbound webhook HTTP endpoints."""

import pytest
from fastapi.testclient import TestClient

from stampduty_api.main import app
from stampduty_api.webhooks.service import get_receiver


@pytest.fixture
def client(receiver):
    """Test client wired to the isolated receiver."""
    app.dependency_overrides[get_receiver] = lambda: receiver
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestReceiveWebhook:
    """POST /v1/webhooks"""

    def test_valid_delivery_returns_200(self, client, make_delivery, recorded_events):
        headers, body = make_delivery("order.delivered", {"order_id": "ord_9"}, msg_id="msg_route_1")

        response = client.post("/v1/webhooks", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"received": True, "status": "processed", "id": "msg_route_1"}
        assert recorded_events[0].data == {"order_id": "ord_9"}

    def test_duplicate_delivery_acknowledged(self, client, make_delivery, recorded_events):
        headers, body = make_delivery(msg_id="msg_route_dup")

        first = client.post("/v1/webhooks", content=body, headers=headers)
        second = client.post("/v1/webhooks", content=body, headers=headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["status"] == "duplicate"
        assert len(recorded_events) == 1

    def test_unknown_event_type_acknowledged(self, client, make_delivery):
        headers, body = make_delivery("partner.assigned", {"partner_id": "p_1"})

        response = client.post("/v1/webhooks", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    def test_bad_signature_returns_401(self, client, make_delivery, recorded_events):
        headers, body = make_delivery()
        headers["webhook-signature"] = "v1,bm90IHRoZSByaWdodCBzaWduYXR1cmU="

        response = client.post("/v1/webhooks", content=body, headers=headers)

        assert response.status_code == 401
        assert response.json()["error"] == "signature_mismatch"
        assert recorded_events == []

    def test_tampered_body_returns_401(self, client, make_delivery):
        headers, body = make_delivery()

        response = client.post("/v1/webhooks", content=body.replace(b"ord_123", b"ord_124"), headers=headers)

        assert response.status_code == 401

    def test_missing_header_returns_400(self, client, make_delivery):
        headers, body = make_delivery()
        del headers["webhook-id"]

        response = client.post("/v1/webhooks", content=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "missing_header"

    def test_stale_timestamp_returns_400(self, client, make_delivery):
        headers, body = make_delivery(timestamp=1_600_000_000)

        response = client.post("/v1/webhooks", content=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "timestamp_out_of_range"

    def test_malformed_payload_returns_400(self, client, make_delivery):
        headers, body = make_delivery(body=b'{"type": "order.delivered", "data": "oops"}')

        response = client.post("/v1/webhooks", content=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["error"] == "malformed_payload"

    def test_handler_failure_returns_500(self, client, make_delivery, event_router):
        def broken(event):
            raise RuntimeError("boom")

        event_router.register("order.cancelled", broken)
        headers, body = make_delivery("order.cancelled", msg_id="msg_route_500")

        response = client.post("/v1/webhooks", content=body, headers=headers)

        assert response.status_code == 500
        assert response.json() == {
            "detail": "Event handler failed",
            "error": "handler_failed",
            "id": "msg_route_500",
        }

    def test_delivery_in_progress_returns_409(self, client, make_delivery, ledger, recorded_events):
        headers, body = make_delivery(msg_id="msg_route_inflight")
        # Another worker holds the delivery
        ledger.claim("msg_route_inflight")

        response = client.post("/v1/webhooks", content=body, headers=headers)

        assert response.status_code == 409
        assert response.json()["error"] == "delivery_in_progress"
        assert response.json()["id"] == "msg_route_inflight"
        assert recorded_events == []

        # Once the other attempt gives up, the retry is processed
        ledger.release("msg_route_inflight")
        retry = client.post("/v1/webhooks", content=body, headers=headers)
        assert retry.status_code == 200
        assert retry.json()["status"] == "processed"

    def test_correlation_id_defaults_to_delivery_id(self, client, make_delivery):
        headers, body = make_delivery(msg_id="msg_route_corr")

        response = client.post("/v1/webhooks", content=body, headers=headers)

        assert response.headers["x-correlation-id"] == "msg_route_corr"


class TestReceiveWorkspaceWebhook:
    """POST /v1/webhooks/{workspace_id}"""

    def test_workspace_delivery(self, client, make_delivery, workspace_secret):
        headers, body = make_delivery(secret=workspace_secret, msg_id="msg_ws_route")

        response = client.post("/v1/webhooks/ws_acme", content=body, headers=headers)

        assert response.status_code == 200
        assert response.json()["status"] == "processed"

    def test_default_secret_rejected_for_workspace(self, client, make_delivery):
        headers, body = make_delivery()

        response = client.post("/v1/webhooks/ws_acme", content=body, headers=headers)

        assert response.status_code == 401

    def test_unknown_workspace_returns_404(self, client, make_delivery):
        headers, body = make_delivery()

        response = client.post("/v1/webhooks/ws_unknown", content=body, headers=headers)

        assert response.status_code == 404
