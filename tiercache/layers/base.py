"""
Cache layer contract.

A layer is a single storage tier in the priority-ordered chain managed
by :class:`tiercache.multi_layer.MultiLayerCache`.  Concrete tiers
(process memory, Redis, ...) implement this interface independently;
the orchestrator depends only on it.
"""

from abc import ABC, abstractmethod
from typing import Any, Hashable, Optional


class CacheLayer(ABC):
    """Uniform key-value contract for one cache tier.

    ``None`` is the "absent" marker, so it cannot be stored as a value.
    Each layer owns its own eviction policy and storage.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier, used as a metrics dimension and in logs."""

    @abstractmethod
    def get(self, key: Hashable) -> Optional[Any]:
        """Return the value for *key*, or ``None`` on a miss.

        A simple miss must not raise.  Backend failures may raise; the
        orchestrator treats them as a miss.
        """

    @abstractmethod
    def put(self, key: Hashable, value: Any) -> None:
        """Unconditionally upsert *key*, replacing any expiry state."""

    @abstractmethod
    def evict(self, key: Hashable) -> None:
        """Remove *key* if present.  Absent keys are not an error."""

    @abstractmethod
    def clear(self) -> None:
        """Remove all entries held by this layer."""

    @abstractmethod
    def size(self) -> int:
        """Current entry count, possibly including stale entries."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
