"""Application handlers for verified webhook events."""

import logging
from typing import Callable, Optional

from stampduty_sdk import EventType, WebhookEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[WebhookEvent], None]


class EventRouter:
    """Maps event types to handlers."""

    def __init__(self):
        """Initialize empty router."""
        self._handlers: dict[str, list[EventHandler]] = {}

    def register(self, event_type: str, handler: EventHandler) -> None:
        """Register handler for event_type."""
        key = event_type.value if isinstance(event_type, EventType) else event_type
        self._handlers.setdefault(key, []).append(handler)

    def on(self, event_type: str) -> Callable[[EventHandler], EventHandler]:
        """Decorator form of register()."""

        def decorator(handler: EventHandler) -> EventHandler:
            self.register(event_type, handler)
            return handler

        return decorator

    def handlers_for(self, event_type: Optional[str]) -> list[EventHandler]:
        """Return handlers registered for event_type."""
        if event_type is None:
            return []
        return list(self._handlers.get(event_type, []))

    def dispatch(self, event: WebhookEvent) -> bool:
        """
        Run handlers for the event.

        Returns False when nothing is registered for the type; unknown types
        are ignored rather than rejected. Handler exceptions propagate.
        """
        handlers = self.handlers_for(event.type)
        if not handlers:
            logger.info(f"No handler for event type {event.type!r}, ignoring delivery {event.id}")
            return False
        for handler in handlers:
            handler(event)
        return True


default_router = EventRouter()


@default_router.on(EventType.STAMP_UPLOADED)
def handle_stamp_uploaded(event: WebhookEvent) -> None:
    """Stamp paper uploaded for an order."""
    logger.info(
        f"Stamp uploaded for order {event.data.get('order_id')} (delivery {event.id})"
    )


@default_router.on(EventType.STAMP_FAILED)
def handle_stamp_failed(event: WebhookEvent) -> None:
    """Stamp generation failed for an order."""
    logger.warning(
        f"Stamp failed for order {event.data.get('order_id')}: "
        f"{event.data.get('reason', 'no reason given')} (delivery {event.id})"
    )


@default_router.on(EventType.ORDER_DELIVERED)
def handle_order_delivered(event: WebhookEvent) -> None:
    """Order delivered."""
    logger.info(f"Order {event.data.get('order_id')} delivered (delivery {event.id})")


@default_router.on(EventType.ORDER_CANCELLED)
def handle_order_cancelled(event: WebhookEvent) -> None:
    """Order cancelled."""
    logger.info(f"Order {event.data.get('order_id')} cancelled (delivery {event.id})")
