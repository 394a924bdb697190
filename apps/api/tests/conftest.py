"""Pytest configuration and fixtures for the webhook receiver."""

import json
import os
import time

import pytest

# Settings are cached on first import, so configure the environment up front
TEST_SECRET = "whsec_MfKQ9r8GKYqrTwjUPD8ILPZIo2LaLaSw"
TEST_WORKSPACE_SECRET = "whsec_dGVzdC13b3Jrc3BhY2Utc2VjcmV0LWtleQ=="

os.environ["ENVIRONMENT"] = "test"
os.environ["WEBHOOK_SECRET"] = TEST_SECRET
os.environ["WEBHOOK_WORKSPACE_SECRETS"] = json.dumps({"ws_acme": TEST_WORKSPACE_SECRET})
os.environ.pop("REDIS_URL", None)

from stampduty_sdk import build_headers  # noqa: E402
from stampduty_api.webhooks.handlers import EventRouter  # noqa: E402
from stampduty_api.webhooks.ledger import InMemoryDeliveryLedger  # noqa: E402
from stampduty_api.webhooks.secrets import SecretResolver  # noqa: E402
from stampduty_api.webhooks.service import WebhookReceiver  # noqa: E402


def make_body(event_type="order.delivered", data=None) -> bytes:
    """Serialize an event envelope the way the platform does."""
    envelope = {
        "type": event_type,
        "timestamp": "2026-10-18T09:30:00+00:00",
        "data": data if data is not None else {"order_id": "ord_123"},
    }
    return json.dumps(envelope).encode("utf-8")


@pytest.fixture
def make_delivery():
    """Build (headers, body) for a signed delivery."""

    def _make(
        event_type="order.delivered",
        data=None,
        msg_id="msg_test_0001",
        timestamp=None,
        secret=TEST_SECRET,
        body=None,
    ):
        raw_body = body if body is not None else make_body(event_type, data)
        ts = int(time.time()) if timestamp is None else timestamp
        return build_headers(secret, msg_id, ts, raw_body), raw_body

    return _make


@pytest.fixture
def recorded_events():
    """Events seen by the test router."""
    return []


@pytest.fixture
def event_router(recorded_events):
    """Router that records handled events."""
    router = EventRouter()
    router.register("order.delivered", recorded_events.append)
    router.register("stamp.uploaded", recorded_events.append)
    return router


@pytest.fixture
def ledger():
    """Fresh in-memory delivery ledger."""
    return InMemoryDeliveryLedger(ttl_seconds=3600)


@pytest.fixture
def receiver(event_router, ledger):
    """Receiver with the test secrets and an isolated ledger."""
    resolver = SecretResolver(
        default_secret=TEST_SECRET,
        workspace_secrets={"ws_acme": TEST_WORKSPACE_SECRET},
        tolerance_seconds=300,
    )
    return WebhookReceiver(resolver=resolver, ledger=ledger, router=event_router)


@pytest.fixture
def workspace_secret():
    """Secret configured for workspace ws_acme."""
    return TEST_WORKSPACE_SECRET
