"""Source-of-record loader contract."""

from abc import ABC, abstractmethod
from typing import Any, Dict, Hashable, Iterable, Optional


class CacheLoader(ABC):
    """Fallback invoked by the cache only on a total miss.

    Implementations must be safe to call concurrently for different
    keys.  The cache guarantees at most one in-flight ``load`` per key.
    """

    @abstractmethod
    def load(self, key: Hashable) -> Optional[Any]:
        """Fetch *key* from the source of record.

        Returns:
            The value, or ``None`` if the source has no record.
        """

    @abstractmethod
    def load_all(self, keys: Iterable[Hashable]) -> Dict[Hashable, Any]:
        """Fetch many keys at once.

        Keys without a record are simply missing from the result.
        """
