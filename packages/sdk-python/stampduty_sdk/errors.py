"""Webhook verification errors."""

from typing import Optional


class InvalidSecretError(ValueError):
    """Webhook secret is not a valid whsec_ / base64 key."""


class WebhookVerificationError(Exception):
    """Base class for rejected webhook deliveries."""

    status_code = 400
    code = "verification_failed"


class MissingHeaderError(WebhookVerificationError):
    """A required webhook-* header is absent or empty."""

    code = "missing_header"

    def __init__(self, header: str):
        """Initialize with the name of the missing header."""
        self.header = header
        super().__init__(f"Missing required header: {header}")


class TimestampOutOfRangeError(WebhookVerificationError):
    """Delivery timestamp is invalid or outside the tolerance window."""

    code = "timestamp_out_of_range"

    def __init__(
        self,
        timestamp: Optional[int],
        now: int,
        tolerance: int,
        message: Optional[str] = None,
    ):
        """Initialize with the offending timestamp and the window it missed."""
        self.timestamp = timestamp
        self.now = now
        self.tolerance = tolerance
        if message is None:
            message = (
                f"Timestamp {timestamp} is more than {tolerance}s away from now ({now})"
            )
        super().__init__(message)


class SignatureMismatchError(WebhookVerificationError):
    """No signature in the header matches the expected one."""

    status_code = 401
    code = "signature_mismatch"

    def __init__(self, message: str = "No matching signature found"):
        """Initialize with a message that never echoes the expected signature."""
        super().__init__(message)


class MalformedPayloadError(WebhookVerificationError):
    """Authentically signed body that is not a valid event envelope."""

    code = "malformed_payload"
