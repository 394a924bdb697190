"""Webhook signing and verification for stamp-duty platform webhooks.

Deliveries follow the Standard Webhooks scheme: the platform signs
``{webhook-id}.{webhook-timestamp}.{raw body}`` with HMAC-SHA256 keyed by the
workspace secret and sends ``v1,<base64 digest>`` in ``webhook-signature``.
"""

import base64
import binascii
import hashlib
import hmac
import secrets
import time
from typing import Mapping, Optional, Union

from stampduty_sdk.errors import (
    InvalidSecretError,
    MissingHeaderError,
    SignatureMismatchError,
    TimestampOutOfRangeError,
)
from stampduty_sdk.events import WebhookEvent, parse_event

SECRET_PREFIX = "whsec_"
SIGNATURE_VERSION = "v1"
DEFAULT_TOLERANCE_SECONDS = 300

HEADER_ID = "webhook-id"
HEADER_TIMESTAMP = "webhook-timestamp"
HEADER_SIGNATURE = "webhook-signature"
REQUIRED_HEADERS = (HEADER_ID, HEADER_TIMESTAMP, HEADER_SIGNATURE)

Body = Union[bytes, str]


def decode_secret(secret: str) -> bytes:
    """Strip the whsec_ prefix and base64-decode the key material."""
    if not secret:
        raise InvalidSecretError("Webhook secret is empty")
    encoded = secret[len(SECRET_PREFIX):] if secret.startswith(SECRET_PREFIX) else secret
    try:
        key = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidSecretError("Webhook secret is not valid base64") from e
    if not key:
        raise InvalidSecretError("Webhook secret has no key material")
    return key


def generate_secret(num_bytes: int = 24) -> str:
    """Generate a new whsec_ secret."""
    return SECRET_PREFIX + base64.b64encode(secrets.token_bytes(num_bytes)).decode("ascii")


def _to_bytes(raw_body: Body) -> bytes:
    if isinstance(raw_body, str):
        return raw_body.encode("utf-8")
    return bytes(raw_body)


def build_signed_content(msg_id: str, timestamp: Union[int, str], raw_body: Body) -> bytes:
    """Build the exact bytes that get signed.

    The body is appended untouched; it must be the bytes as sent on the wire.
    """
    return f"{msg_id}.{timestamp}.".encode("utf-8") + _to_bytes(raw_body)


def compute_signature(key: bytes, msg_id: str, timestamp: Union[int, str], raw_body: Body) -> str:
    """Compute the versioned signature ``v1,<base64 digest>``."""
    content = build_signed_content(msg_id, timestamp, raw_body)
    digest = hmac.new(key, content, hashlib.sha256).digest()
    return f"{SIGNATURE_VERSION},{base64.b64encode(digest).decode('ascii')}"


def sign_webhook(secret: str, msg_id: str, timestamp: Union[int, str], raw_body: Body) -> str:
    """Sign a delivery with a whsec_ secret."""
    return compute_signature(decode_secret(secret), msg_id, timestamp, raw_body)


def build_headers(secret: str, msg_id: str, timestamp: int, raw_body: Body) -> dict[str, str]:
    """Return the webhook-* headers for a delivery."""
    return {
        HEADER_ID: msg_id,
        HEADER_TIMESTAMP: str(timestamp),
        HEADER_SIGNATURE: sign_webhook(secret, msg_id, timestamp, raw_body),
    }


class WebhookVerifier:
    """Verifies deliveries for a single workspace secret.

    Holds no mutable state, so one instance can serve concurrent requests.
    """

    def __init__(self, secret: str, tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS):
        """Initialize verifier, decoding the secret once."""
        if tolerance_seconds < 0:
            raise ValueError("tolerance_seconds must not be negative")
        self._key = decode_secret(secret)
        self.tolerance_seconds = tolerance_seconds

    def verify(
        self,
        headers: Mapping[str, str],
        raw_body: Body,
        now: Optional[int] = None,
    ) -> WebhookEvent:
        """
        Verify a delivery and return the decoded event.

        Args:
            headers: Request headers (names are matched case-insensitively)
            raw_body: Request body exactly as received
            now: Current Unix time, defaults to time.time()

        Returns:
            The verified WebhookEvent

        Raises:
            MissingHeaderError: a webhook-* header is absent or empty
            TimestampOutOfRangeError: the delivery is stale, from the future or unparseable
            SignatureMismatchError: no v1 signature matches
            MalformedPayloadError: signature is valid but the body is not an event envelope
        """
        normalized = {str(name).lower(): value for name, value in headers.items()}
        for name in REQUIRED_HEADERS:
            if not normalized.get(name):
                raise MissingHeaderError(name)

        msg_id = normalized[HEADER_ID]
        timestamp_str = normalized[HEADER_TIMESTAMP]
        signature_header = normalized[HEADER_SIGNATURE]

        timestamp = self._check_timestamp(timestamp_str, now)

        body = _to_bytes(raw_body)
        expected = compute_signature(self._key, msg_id, timestamp_str, body)
        if not self._matches_any(expected, signature_header):
            raise SignatureMismatchError()

        return parse_event(msg_id, timestamp, body)

    def _check_timestamp(self, timestamp_str: str, now: Optional[int]) -> int:
        current = int(time.time()) if now is None else int(now)
        # Unsigned ASCII decimal seconds only
        if not (isinstance(timestamp_str, str) and timestamp_str.isascii() and timestamp_str.isdigit()):
            raise TimestampOutOfRangeError(
                None,
                current,
                self.tolerance_seconds,
                message=f"Invalid timestamp header: {timestamp_str!r}",
            )
        timestamp = int(timestamp_str)

        # Both directions: stale replays and clock-skewed future deliveries
        if abs(current - timestamp) > self.tolerance_seconds:
            raise TimestampOutOfRangeError(timestamp, current, self.tolerance_seconds)
        return timestamp

    @staticmethod
    def _matches_any(expected: str, signature_header: str) -> bool:
        expected_digest = expected.split(",", 1)[1].encode("utf-8")
        for token in signature_header.split(" "):
            version, sep, digest = token.partition(",")
            if not sep or version != SIGNATURE_VERSION:
                continue
            if hmac.compare_digest(expected_digest, digest.encode("utf-8")):
                return True
        return False


def verify_webhook(
    secret: str,
    headers: Mapping[str, str],
    raw_body: Body,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[int] = None,
) -> WebhookEvent:
    """
    Verify a stamp-duty webhook delivery.

    Args:
        secret: Workspace webhook secret (whsec_...)
        headers: Request headers dictionary
        raw_body: Raw request body bytes, never a re-serialized object
        tolerance_seconds: Maximum distance between now and webhook-timestamp (default: 300 = 5 minutes)
        now: Current Unix time, defaults to time.time()

    Returns:
        The verified WebhookEvent; raises a WebhookVerificationError otherwise
    """
    return WebhookVerifier(secret, tolerance_seconds).verify(headers, raw_body, now=now)
