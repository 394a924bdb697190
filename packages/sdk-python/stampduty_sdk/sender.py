"""Signed test deliveries for checking a webhook endpoint."""

import json
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import requests

from stampduty_sdk.webhook import build_headers, decode_secret

DELIVERY_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class SignedDelivery:
    """A delivery ready to be POSTed."""

    msg_id: str
    timestamp: int
    body: bytes
    headers: dict


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single delivery attempt."""

    msg_id: str
    status_code: int
    ok: bool
    elapsed: float


def new_message_id() -> str:
    """Generate a unique delivery id."""
    return f"msg_{secrets.token_urlsafe(18)}"


class WebhookSender:
    """Signs events the way the platform does and sends them once.

    Retries are left to the caller; a non-2xx result is reported, not retried.
    """

    def __init__(self, secret: str, timeout: float = DELIVERY_TIMEOUT_SECONDS):
        """Initialize sender."""
        decode_secret(secret)  # fail fast on a bad secret
        self.secret = secret
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def build_delivery(
        self,
        event_type: str,
        data: dict,
        msg_id: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> SignedDelivery:
        """Serialize and sign an event envelope."""
        msg_id = msg_id or new_message_id()
        timestamp = int(time.time()) if timestamp is None else timestamp
        envelope = {
            "type": event_type,
            "timestamp": datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat(),
            "data": data,
        }
        body = json.dumps(envelope, separators=(",", ":")).encode("utf-8")
        headers = build_headers(self.secret, msg_id, timestamp, body)
        return SignedDelivery(msg_id=msg_id, timestamp=timestamp, body=body, headers=headers)

    def send_delivery(self, url: str, delivery: SignedDelivery) -> DeliveryResult:
        """POST a prepared delivery, body bytes untouched."""
        started = time.monotonic()
        response = self.session.post(
            url,
            data=delivery.body,
            headers=delivery.headers,
            timeout=self.timeout,
        )
        elapsed = time.monotonic() - started
        return DeliveryResult(
            msg_id=delivery.msg_id,
            status_code=response.status_code,
            ok=200 <= response.status_code < 300,
            elapsed=elapsed,
        )

    def send(
        self,
        url: str,
        event_type: str,
        data: dict,
        msg_id: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> DeliveryResult:
        """Sign and deliver an event to url."""
        delivery = self.build_delivery(event_type, data, msg_id=msg_id, timestamp=timestamp)
        return self.send_delivery(url, delivery)
