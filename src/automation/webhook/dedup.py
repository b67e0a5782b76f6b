"""Delivery deduplication for GitHub webhooks.

GitHub assigns every delivery a GUID (``X-GitHub-Delivery``) and re-sends the
same GUID on retries and manual redeliveries. The deduplicator remembers ids
for a fixed retention window so a repeated delivery is acknowledged without
being processed twice.

The cache is process-local. Expired entries are purged on each lookup rather
than by a background timer. In a multi-instance deployment each instance
deduplicates independently; a shared DeliveryCache implementation would be
needed for cross-instance guarantees.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


DEFAULT_RETENTION_SECONDS = 600


@runtime_checkable
class DeliveryCache(Protocol):
    """Protocol for a delivery id cache.

    Implementations must make ``seen`` atomic: two concurrent calls with the
    same id must not both return False.
    """

    def seen(self, delivery_id: str) -> bool:
        """Record a delivery id and report whether it was already present.

        Args:
            delivery_id: The sender-assigned delivery identifier.

        Returns:
            True if the id was recorded within the retention window,
            False if this is the first sighting (the id is now recorded).
        """
        ...

    def forget(self, delivery_id: str) -> None:
        """Drop a recorded delivery id so a redelivery is processed again."""
        ...


class InMemoryDeliveryCache:
    """Mutex-guarded in-memory DeliveryCache with a retention window.

    Attributes:
        retention_seconds: How long an id is remembered after first sight.
    """

    def __init__(
        self,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            retention_seconds: Retention window in seconds.
            clock: Monotonic time source, injectable for tests.
        """
        if retention_seconds <= 0:
            raise ValueError("retention_seconds must be positive")
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._entries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def seen(self, delivery_id: str) -> bool:
        with self._lock:
            now = self._clock()
            self._purge(now)
            if delivery_id in self._entries:
                # First-seen time is kept so the window is not extended by replays
                return True
            self._entries[delivery_id] = now
            return False

    def forget(self, delivery_id: str) -> None:
        with self._lock:
            self._entries.pop(delivery_id, None)

    def _purge(self, now: float) -> None:
        cutoff = now - self.retention_seconds
        expired = [key for key, first_seen in self._entries.items() if first_seen <= cutoff]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Purged %d expired delivery ids", len(expired))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DeliveryDeduplicator:
    """Classifies deliveries as first-seen or duplicate.

    A delivery without an id is never a duplicate; re-processing is preferred
    over silently dropping an event.
    """

    def __init__(self, cache: DeliveryCache) -> None:
        self._cache = cache

    def is_duplicate(self, delivery_id: Optional[str]) -> bool:
        """Check a delivery id, recording it if it is new.

        Args:
            delivery_id: Value of X-GitHub-Delivery, or None if absent.

        Returns:
            True if the delivery was already seen within the retention window.
        """
        if not delivery_id:
            return False

        duplicate = self._cache.seen(delivery_id)
        if duplicate:
            logger.info(
                "Duplicate webhook delivery ignored",
                extra={"delivery_id": delivery_id},
            )
        return duplicate

    def release(self, delivery_id: Optional[str]) -> None:
        """Forget a delivery that was rejected or failed.

        The sender retries non-2xx responses with the same delivery id, and
        the retry must not be answered as a duplicate.
        """
        if not delivery_id:
            return
        self._cache.forget(delivery_id)
        logger.debug(
            "Released webhook delivery id",
            extra={"delivery_id": delivery_id},
        )
