"""
In-process TTL cache layer.

Stores values in a plain dict keyed by the caller's key.  Each entry
carries an absolute expiry on the monotonic clock (or ``None`` for
"never").  Expiry is lazy: a stale entry is removed only when a ``get``
observes it, or when :meth:`TTLMemoryLayer.cleanup_expired` is called
explicitly.  There is no background sweeper.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, List, Optional

from pydantic import BaseModel

from tiercache.layers.base import CacheLayer

logger = logging.getLogger(__name__)


class CacheEntry(BaseModel):
    """A single stored value.

    Attributes:
        value: The cached payload.
        expires_at: Monotonic-clock deadline, or ``None`` if the entry
            never expires.
    """

    value: Any
    expires_at: Optional[float] = None

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now > self.expires_at


class TTLMemoryLayer(CacheLayer):
    """Thread-safe in-memory layer with a fixed TTL.

    Reads take no lock.  Writes, evictions and lazy-expiry removals take
    a lock chosen by ``hash(key)``, so operations on independent keys
    rarely contend and operations on the same key are serialised (last
    writer wins).

    Args:
        name: Unique layer name.
        ttl_seconds: Entry lifetime.  Zero or negative means entries
            never expire.
        concurrency: Number of lock stripes.
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float = 0,
        *,
        concurrency: int = 16,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not name:
            raise ValueError("Layer name must not be empty")
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._name = name
        self._ttl_seconds = ttl_seconds if ttl_seconds and ttl_seconds > 0 else None
        self._clock = clock
        self._store: Dict[Hashable, CacheEntry] = {}
        self._stripes: List[threading.Lock] = [
            threading.Lock() for _ in range(concurrency)
        ]
        logger.info(
            "TTLMemoryLayer initialised",
            extra={"layer": name, "ttl_seconds": self._ttl_seconds},
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def ttl_seconds(self) -> Optional[float]:
        """Configured TTL, or ``None`` when entries never expire."""
        return self._ttl_seconds

    def _stripe(self, key: Hashable) -> threading.Lock:
        return self._stripes[hash(key) % len(self._stripes)]

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            with self._stripe(key):
                # Only drop the entry we saw; a concurrent put may have replaced it.
                if self._store.get(key) is entry:
                    del self._store[key]
            logger.debug(
                "Cache entry expired",
                extra={"layer": self._name, "cache_key": repr(key)},
            )
            return None

        return entry.value

    def put(self, key: Hashable, value: Any) -> None:
        if value is None:
            raise ValueError("None cannot be cached; it marks an absent value")
        expires_at = (
            self._clock() + self._ttl_seconds
            if self._ttl_seconds is not None
            else None
        )
        entry = CacheEntry(value=value, expires_at=expires_at)
        with self._stripe(key):
            self._store[key] = entry

    def evict(self, key: Hashable) -> None:
        with self._stripe(key):
            self._store.pop(key, None)

    def clear(self) -> None:
        count = len(self._store)
        self._store.clear()
        logger.info(
            "Cache cleared",
            extra={"layer": self._name, "entries_removed": count},
        )

    def size(self) -> int:
        return len(self._store)

    def cleanup_expired(self) -> int:
        """Remove all expired entries now.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        expired = [
            (key, entry)
            for key, entry in list(self._store.items())
            if entry.is_expired(now)
        ]
        removed = 0
        for key, entry in expired:
            with self._stripe(key):
                if self._store.get(key) is entry:
                    del self._store[key]
                    removed += 1

        if removed:
            logger.info(
                "Expired entries cleaned up",
                extra={"layer": self._name, "count": removed},
            )
        return removed
