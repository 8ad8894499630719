"""
Redis-backed cache layer for tiercache.

Implements the :class:`CacheLayer` contract on top of a Redis server so
the layer can sit behind faster in-process tiers and be shared across
processes.  Keys must be ``str``; values are stored as JSON under
``{prefix}:{key}``.

Connection and decode failures on ``get`` degrade to a miss; writes
raise so the caller can decide.
"""

import json
import logging
import math
from typing import Any, Hashable, Optional

import redis

from tiercache.exceptions import BackendUnavailableError, SerializationError
from tiercache.layers.base import CacheLayer

logger = logging.getLogger(__name__)


def _serialize_value(value: Any) -> str:
    """Serialize a value to JSON for Redis storage."""
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Value is not JSON serializable: {exc}") from exc


def _deserialize_value(data: str) -> Any:
    """Deserialize JSON from Redis."""
    try:
        return json.loads(data)
    except (TypeError, ValueError) as exc:
        raise SerializationError(f"Stored value is not valid JSON: {exc}") from exc


class RedisCacheLayer(CacheLayer):
    """Redis-backed cache tier.

    Args:
        name: Unique layer name.
        redis_url: Redis connection URL (e.g. redis://localhost:6379/0).
        ttl_seconds: Time-to-live for entries, applied with millisecond
            precision.  Zero or negative means keys are stored without
            expiry.
        key_prefix: Namespace for all keys written by this layer.
    """

    def __init__(
        self,
        name: str,
        redis_url: str = "redis://localhost:6379/0",
        ttl_seconds: float = 0,
        key_prefix: str = "tiercache",
        _redis_client: Optional[Any] = None,
    ) -> None:
        if not name:
            raise ValueError("Layer name must not be empty")
        if _redis_client is not None:
            self._client = _redis_client
        else:
            self._client = redis.from_url(redis_url, decode_responses=True)
        self._name = name
        # Millisecond expiry; a positive TTL never rounds down to 0.
        self._ttl_ms = math.ceil(ttl_seconds * 1000) if ttl_seconds and ttl_seconds > 0 else None
        self._key_prefix = key_prefix.rstrip(":")

    @property
    def name(self) -> str:
        return self._name

    def _key(self, key: Hashable) -> str:
        """Return the full Redis key for a cache key.

        Only ``str`` keys are accepted: formatting any other type would let
        distinct keys such as ``1`` and ``"1"`` share one Redis key.

        Raises:
            SerializationError: If *key* is not a ``str``.
        """
        if not isinstance(key, str):
            raise SerializationError(
                f"Redis layer keys must be str, got {type(key).__name__}"
            )
        return f"{self._key_prefix}:{key}"

    def get(self, key: Hashable) -> Optional[Any]:
        try:
            rkey = self._key(key)
        except SerializationError as e:
            logger.debug(
                "Unsupported key type, treating as miss",
                extra={"layer": self._name, "error": str(e)},
            )
            return None
        try:
            data = self._client.get(rkey)
        except redis.RedisError as e:
            logger.warning(
                "Redis get failed",
                extra={"layer": self._name, "cache_key": rkey, "error": str(e)},
            )
            return None

        if data is None:
            return None

        try:
            return _deserialize_value(data)
        except SerializationError as e:
            logger.warning(
                "Redis entry deserialize failed",
                extra={"layer": self._name, "cache_key": rkey, "error": str(e)},
            )
            try:
                self._client.delete(rkey)
            except redis.RedisError:
                logger.debug("Could not drop undecodable entry", extra={"cache_key": rkey})
            return None

    def put(self, key: Hashable, value: Any) -> None:
        if value is None:
            raise ValueError("None cannot be cached; it marks an absent value")
        rkey = self._key(key)
        payload = _serialize_value(value)
        try:
            if self._ttl_ms is not None:
                self._client.set(rkey, payload, px=self._ttl_ms)
            else:
                self._client.set(rkey, payload)
        except redis.RedisError as e:
            logger.error(
                "Redis set failed",
                extra={"layer": self._name, "cache_key": rkey, "error": str(e)},
            )
            raise BackendUnavailableError(f"Redis set failed for {rkey}: {e}") from e

    def evict(self, key: Hashable) -> None:
        if not isinstance(key, str):
            # Never storable here, so there is nothing to remove.
            return
        rkey = self._key(key)
        try:
            deleted = self._client.delete(rkey)
        except redis.RedisError as e:
            logger.warning(
                "Redis delete failed",
                extra={"layer": self._name, "cache_key": rkey, "error": str(e)},
            )
            raise BackendUnavailableError(f"Redis delete failed for {rkey}: {e}") from e
        if deleted:
            logger.debug("Cache entry evicted", extra={"layer": self._name, "cache_key": rkey})

    def clear(self) -> None:
        """Remove every key under this layer's prefix."""
        try:
            keys = list(self._client.scan_iter(match=f"{self._key_prefix}:*"))
            if keys:
                self._client.delete(*keys)
        except redis.RedisError as e:
            logger.error(
                "Redis clear failed",
                extra={"layer": self._name, "error": str(e)},
            )
            raise BackendUnavailableError(f"Redis clear failed: {e}") from e
        logger.info(
            "Cache cleared",
            extra={"layer": self._name, "entries_removed": len(keys)},
        )

    def size(self) -> int:
        try:
            return sum(1 for _ in self._client.scan_iter(match=f"{self._key_prefix}:*"))
        except redis.RedisError as e:
            logger.warning(
                "Redis size failed",
                extra={"layer": self._name, "error": str(e)},
            )
            return 0

    def close(self) -> None:
        """Release the underlying connection pool."""
        self._client.close()
