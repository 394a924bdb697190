"""Stamp-duty webhooks Python SDK."""

__version__ = "0.1.0"

from stampduty_sdk.errors import (
    InvalidSecretError,
    MalformedPayloadError,
    MissingHeaderError,
    SignatureMismatchError,
    TimestampOutOfRangeError,
    WebhookVerificationError,
)
from stampduty_sdk.events import EventType, WebhookEvent
from stampduty_sdk.sender import DeliveryResult, WebhookSender
from stampduty_sdk.webhook import (
    WebhookVerifier,
    build_headers,
    generate_secret,
    sign_webhook,
    verify_webhook,
)

__all__ = [
    "DeliveryResult",
    "EventType",
    "InvalidSecretError",
    "MalformedPayloadError",
    "MissingHeaderError",
    "SignatureMismatchError",
    "TimestampOutOfRangeError",
    "WebhookEvent",
    "WebhookSender",
    "WebhookVerificationError",
    "WebhookVerifier",
    "build_headers",
    "generate_secret",
    "sign_webhook",
    "verify_webhook",
]
