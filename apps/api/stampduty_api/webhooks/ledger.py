"""Delivery ledger for idempotent webhook handling.

Retried deliveries reuse the same webhook-id. The first request to claim an id
marks it ``processing``; once its handlers succeed the id is marked ``done``
and later deliveries are acknowledged without re-running handlers. A delivery
that arrives while the id is still ``processing`` is told to come back later,
since the attempt in flight may yet fail.
"""

import logging
import threading
import time
from typing import Optional, Protocol

import redis

from stampduty_api.settings import Settings

logger = logging.getLogger(__name__)

CLAIMED = "claimed"
PROCESSING = "processing"
DONE = "done"


class DeliveryLedger(Protocol):
    """Tracks delivery ids through processing and done."""

    def claim(self, delivery_id: str) -> str:
        """
        Try to claim delivery_id for processing.

        Returns CLAIMED if this caller now owns the delivery, otherwise the
        state already held: PROCESSING or DONE.
        """
        ...

    def complete(self, delivery_id: str) -> None:
        """Mark a claimed delivery as handled."""
        ...

    def release(self, delivery_id: str) -> None:
        """Forget a claim so a redelivery can be processed."""
        ...


class InMemoryDeliveryLedger:
    """Process-local ledger with expiring entries."""

    def __init__(self, ttl_seconds: int = 86400, processing_ttl_seconds: int = 60, clock=time.monotonic):
        """Initialize ledger."""
        self.ttl_seconds = ttl_seconds
        self.processing_ttl_seconds = processing_ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def claim(self, delivery_id: str) -> str:
        """Claim delivery_id unless an unexpired entry exists."""
        now = self._clock()
        with self._lock:
            self._purge(now)
            entry = self._entries.get(delivery_id)
            if entry is not None:
                return entry[0]
            self._entries[delivery_id] = (PROCESSING, now + self.processing_ttl_seconds)
            return CLAIMED

    def complete(self, delivery_id: str) -> None:
        """Mark delivery_id done for the full retention window."""
        with self._lock:
            self._entries[delivery_id] = (DONE, self._clock() + self.ttl_seconds)

    def release(self, delivery_id: str) -> None:
        """Drop a claim."""
        with self._lock:
            self._entries.pop(delivery_id, None)

    def state(self, delivery_id: str) -> Optional[str]:
        """Current state of delivery_id, or None if unknown."""
        with self._lock:
            self._purge(self._clock())
            entry = self._entries.get(delivery_id)
            return entry[0] if entry else None

    def __len__(self) -> int:
        with self._lock:
            self._purge(self._clock())
            return len(self._entries)

    def _purge(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]


class RedisDeliveryLedger:
    """Ledger shared between workers through Redis."""

    def __init__(
        self,
        client: redis.Redis,
        ttl_seconds: int = 86400,
        processing_ttl_seconds: int = 60,
        prefix: str = "webhook:delivery",
    ):
        """Initialize ledger."""
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.processing_ttl_seconds = processing_ttl_seconds
        self.prefix = prefix

    def _key(self, delivery_id: str) -> str:
        return f"{self.prefix}:{delivery_id}"

    def claim(self, delivery_id: str) -> str:
        """Claim delivery_id with SET NX so only one worker wins."""
        key = self._key(delivery_id)
        if self.client.set(key, PROCESSING, nx=True, ex=self.processing_ttl_seconds):
            return CLAIMED

        current = self.client.get(key)
        if isinstance(current, bytes):
            current = current.decode()
        if current == DONE:
            return DONE
        # Key expired between SET and GET, or is still being processed
        return PROCESSING

    def complete(self, delivery_id: str) -> None:
        """Overwrite the processing marker with done and the full TTL."""
        self.client.set(self._key(delivery_id), DONE, ex=self.ttl_seconds)

    def release(self, delivery_id: str) -> None:
        """Delete the claim key."""
        self.client.delete(self._key(delivery_id))

    def ping(self) -> bool:
        """Check Redis connectivity."""
        return bool(self.client.ping())


def get_ledger(settings: Settings, client: Optional[redis.Redis] = None) -> DeliveryLedger:
    """Pick the ledger backend for the configured environment."""
    if client is None and settings.redis_url:
        client = redis.from_url(settings.redis_url, decode_responses=True)
    if client is not None:
        return RedisDeliveryLedger(
            client,
            ttl_seconds=settings.delivery_id_ttl_seconds,
            processing_ttl_seconds=settings.delivery_processing_ttl_seconds,
        )

    logger.info("REDIS_URL not set, using in-memory delivery ledger")
    return InMemoryDeliveryLedger(
        ttl_seconds=settings.delivery_id_ttl_seconds,
        processing_ttl_seconds=settings.delivery_processing_ttl_seconds,
    )
