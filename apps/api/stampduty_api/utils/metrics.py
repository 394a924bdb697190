"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

# Verification metrics
webhook_verifications = Counter(
    "stampduty_webhook_verifications_total",
    "Webhook verification outcomes",
    ["outcome"],
)

# Delivery handling metrics
webhook_events = Counter(
    "stampduty_webhook_events_total",
    "Verified webhook events by handling status",
    ["event_type", "status"],
)

webhook_handler_duration = Histogram(
    "stampduty_webhook_handler_duration_seconds",
    "Time spent in application event handlers",
    ["event_type"],
)

webhook_handler_failures = Counter(
    "stampduty_webhook_handler_failures_total",
    "Event handler exceptions",
    ["event_type"],
)
