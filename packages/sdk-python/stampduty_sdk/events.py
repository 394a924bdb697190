"""Webhook event envelope."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from stampduty_sdk.errors import MalformedPayloadError


class EventType(str, Enum):
    """Event types currently sent by the platform.

    The set grows over time, so receivers must accept types not listed here.
    """

    STAMP_UPLOADED = "stamp.uploaded"
    STAMP_FAILED = "stamp.failed"
    ORDER_DELIVERED = "order.delivered"
    ORDER_CANCELLED = "order.cancelled"


KNOWN_EVENT_TYPES = frozenset(member.value for member in EventType)


@dataclass(frozen=True)
class WebhookEvent:
    """A verified webhook delivery."""

    id: str
    type: Optional[str]
    timestamp: int
    data: dict = field(default_factory=dict)
    sent_at: Optional[str] = None
    payload: dict = field(default_factory=dict)

    @property
    def is_known(self) -> bool:
        """Whether the event type is one this SDK version knows about."""
        return self.type in KNOWN_EVENT_TYPES

    @property
    def event_type(self) -> Optional[EventType]:
        """Event type as an enum member, or None for unknown types."""
        if not self.is_known:
            return None
        return EventType(self.type)


def parse_event(msg_id: str, timestamp: int, raw_body: bytes) -> WebhookEvent:
    """Decode a signed body into a WebhookEvent.

    Only call this after the signature has been verified.
    """
    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedPayloadError(f"Body is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedPayloadError("Body must be a JSON object")

    event_type = payload.get("type")
    if event_type is not None and not isinstance(event_type, str):
        raise MalformedPayloadError("Field 'type' must be a string")

    data: Any = payload.get("data", {})
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedPayloadError("Field 'data' must be an object")

    sent_at = payload.get("timestamp")
    if sent_at is not None and not isinstance(sent_at, str):
        sent_at = str(sent_at)

    return WebhookEvent(
        id=msg_id,
        type=event_type,
        timestamp=timestamp,
        data=data,
        sent_at=sent_at,
        payload=payload,
    )
