"""
Disk-backed cache layer for tiercache.

Wraps a :class:`diskcache.Cache` (SQLite index plus files) so values
outlive the process and can exceed process memory.  It is meant to sit
between the in-process tier and a remote tier.

Expiry is handled by diskcache itself: an entry past its ``expire`` is
reported as missing and culled lazily.  Keys keep their type, so ``1``
and ``"1"`` are distinct entries.
"""

import logging
import sqlite3
from typing import Any, Hashable, Optional

import diskcache

from tiercache.exceptions import BackendUnavailableError
from tiercache.layers.base import CacheLayer

logger = logging.getLogger(__name__)

# Failures diskcache surfaces from its SQLite index or the value files.
_DISK_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


class DiskCacheLayer(CacheLayer):
    """Persistent on-disk cache tier.

    Args:
        name: Unique layer name.
        directory: Cache directory.  ``None`` lets diskcache create a
            temporary directory that is not reused across processes.
        ttl_seconds: Entry lifetime.  Zero or negative means entries
            never expire.
        _cache: Pre-built ``diskcache.Cache`` (testing).
    """

    def __init__(
        self,
        name: str,
        directory: Optional[str] = None,
        ttl_seconds: float = 0,
        _cache: Optional[Any] = None,
    ) -> None:
        if not name:
            raise ValueError("Layer name must not be empty")
        self._name = name
        self._ttl_seconds = float(ttl_seconds) if ttl_seconds and ttl_seconds > 0 else None
        self._cache = _cache if _cache is not None else diskcache.Cache(directory)
        logger.info(
            "DiskCacheLayer initialised",
            extra={"layer": name, "directory": self._cache.directory},
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def directory(self) -> str:
        return self._cache.directory

    def get(self, key: Hashable) -> Optional[Any]:
        try:
            return self._cache.get(key, default=None)
        except _DISK_ERRORS as e:
            logger.warning(
                "Disk get failed",
                extra={"layer": self._name, "cache_key": repr(key), "error": str(e)},
            )
            return None

    def put(self, key: Hashable, value: Any) -> None:
        if value is None:
            raise ValueError("None cannot be cached; it marks an absent value")
        try:
            self._cache.set(key, value, expire=self._ttl_seconds)
        except _DISK_ERRORS as e:
            logger.error(
                "Disk set failed",
                extra={"layer": self._name, "cache_key": repr(key), "error": str(e)},
            )
            raise BackendUnavailableError(f"Disk set failed for {key!r}: {e}") from e

    def evict(self, key: Hashable) -> None:
        try:
            deleted = self._cache.delete(key)
        except _DISK_ERRORS as e:
            raise BackendUnavailableError(f"Disk delete failed for {key!r}: {e}") from e
        if deleted:
            logger.debug("Cache entry evicted", extra={"layer": self._name, "cache_key": repr(key)})

    def clear(self) -> None:
        try:
            removed = self._cache.clear()
        except _DISK_ERRORS as e:
            raise BackendUnavailableError(f"Disk clear failed: {e}") from e
        logger.info(
            "Cache cleared",
            extra={"layer": self._name, "entries_removed": removed},
        )

    def size(self) -> int:
        """Number of stored entries, including expired ones not yet culled."""
        try:
            return len(self._cache)
        except _DISK_ERRORS as e:
            logger.warning("Disk size failed", extra={"layer": self._name, "error": str(e)})
            return 0

    def cleanup_expired(self) -> int:
        """Remove expired entries now and return how many were removed."""
        removed = self._cache.expire()
        if removed:
            logger.info(
                "Expired entries cleaned up",
                extra={"layer": self._name, "removed": removed},
            )
        return removed

    def close(self) -> None:
        """Close the SQLite connection; the files stay on disk."""
        self._cache.close()
