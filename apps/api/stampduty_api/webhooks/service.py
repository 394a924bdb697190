"""Inbound webhook pipeline: resolve secret, verify, de-duplicate, dispatch."""

import logging
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from stampduty_sdk import WebhookEvent, WebhookVerificationError
from stampduty_sdk.webhook import HEADER_ID
from stampduty_api.settings import get_settings
from stampduty_api.utils import metrics
from stampduty_api.webhooks.handlers import EventRouter, default_router
from stampduty_api.webhooks.ledger import DONE, PROCESSING, DeliveryLedger, get_ledger
from stampduty_api.webhooks.secrets import SecretResolver

logger = logging.getLogger(__name__)

STATUS_PROCESSED = "processed"
STATUS_IGNORED = "ignored"
STATUS_DUPLICATE = "duplicate"
STATUS_IN_PROGRESS = "in_progress"


class HandlerError(Exception):
    """An application handler failed; the delivery should be retried."""

    def __init__(self, event: WebhookEvent, cause: Exception):
        """Initialize with the event and the handler exception."""
        self.event = event
        self.cause = cause
        super().__init__(f"Handler for {event.type!r} failed on delivery {event.id}: {cause}")


class DeliveryInProgressError(Exception):
    """Another attempt at the same delivery is still being handled."""

    def __init__(self, event: WebhookEvent):
        """Initialize with the event being handled elsewhere."""
        self.event = event
        super().__init__(f"Delivery {event.id} is already being processed")


def _metric_event_type(event: WebhookEvent) -> str:
    # Unknown types come from the payload; keep label cardinality bounded
    return event.type if event.is_known else "unknown"


def _delivery_id(headers: Mapping[str, str]) -> Optional[str]:
    for name, value in headers.items():
        if name.lower() == HEADER_ID:
            return value
    return None


@dataclass(frozen=True)
class ReceiveResult:
    """Outcome of a handled delivery."""

    event: WebhookEvent
    status: str


class WebhookReceiver:
    """Receives webhook deliveries for one or more workspaces."""

    def __init__(
        self,
        resolver: SecretResolver,
        ledger: DeliveryLedger,
        router: EventRouter,
        handler_budget_seconds: float = 10.0,
    ):
        """Initialize receiver."""
        self.resolver = resolver
        self.ledger = ledger
        self.router = router
        self.handler_budget_seconds = handler_budget_seconds

    def verify(
        self,
        workspace_id: Optional[str],
        headers: Mapping[str, str],
        raw_body: bytes,
        now: Optional[int] = None,
    ) -> WebhookEvent:
        """Verify a delivery against the workspace secret."""
        verifier = self.resolver.resolve(workspace_id)
        try:
            event = verifier.verify(headers, raw_body, now=now)
        except WebhookVerificationError as e:
            metrics.webhook_verifications.labels(outcome=e.code).inc()
            logger.warning(
                f"Rejected webhook delivery {_delivery_id(headers)!r} "
                f"for workspace {workspace_id}: {e}"
            )
            raise
        metrics.webhook_verifications.labels(outcome="verified").inc()
        return event

    def receive(
        self,
        workspace_id: Optional[str],
        headers: Mapping[str, str],
        raw_body: bytes,
        now: Optional[int] = None,
    ) -> ReceiveResult:
        """
        Verify and handle a delivery.

        Raises:
            UnknownWorkspaceError: no secret for workspace_id
            WebhookVerificationError: the delivery is not trustworthy
            DeliveryInProgressError: the same delivery id is still being handled
            HandlerError: a handler raised; the claim is released for the retry
        """
        event = self.verify(workspace_id, headers, raw_body, now=now)
        event_type = _metric_event_type(event)

        state = self.ledger.claim(event.id)
        if state == DONE:
            logger.info(f"Duplicate webhook delivery {event.id} ({event.type}), skipping handlers")
            metrics.webhook_events.labels(event_type=event_type, status=STATUS_DUPLICATE).inc()
            return ReceiveResult(event=event, status=STATUS_DUPLICATE)
        if state == PROCESSING:
            logger.info(f"Webhook delivery {event.id} ({event.type}) is already in progress, asking sender to retry")
            metrics.webhook_events.labels(event_type=event_type, status=STATUS_IN_PROGRESS).inc()
            raise DeliveryInProgressError(event)

        started = time.monotonic()
        try:
            handled = self.router.dispatch(event)
        except Exception as e:
            self.ledger.release(event.id)
            metrics.webhook_handler_failures.labels(event_type=event_type).inc()
            logger.error(f"Webhook handler failed for delivery {event.id} ({event.type}): {e}", exc_info=True)
            raise HandlerError(event, e) from e
        finally:
            elapsed = time.monotonic() - started
            metrics.webhook_handler_duration.labels(event_type=event_type).observe(elapsed)

        if elapsed > self.handler_budget_seconds:
            logger.warning(
                f"Handling delivery {event.id} took {elapsed:.2f}s, over the "
                f"{self.handler_budget_seconds}s response budget; the sender may retry"
            )

        self.ledger.complete(event.id)
        status = STATUS_PROCESSED if handled else STATUS_IGNORED
        metrics.webhook_events.labels(event_type=event_type, status=status).inc()
        logger.info(f"Webhook delivery {event.id} ({event.type}) {status}")
        return ReceiveResult(event=event, status=status)


@lru_cache()
def get_receiver() -> WebhookReceiver:
    """Get the receiver wired from application settings."""
    settings = get_settings()
    return WebhookReceiver(
        resolver=SecretResolver.from_settings(settings),
        ledger=get_ledger(settings),
        router=default_router,
        handler_budget_seconds=settings.webhook_handler_timeout_seconds,
    )
