"""
Cache metrics sinks.

:class:`CacheMetrics` is the observer interface the multi-layer cache
notifies on every hit, miss, put, evict and load.  Sinks are advisory:
they must never raise into the cache or change its behaviour.

:class:`InMemoryCacheMetrics` keeps per-layer counters and a load
duration histogram, and renders them in Prometheus text exposition
format.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict, deque
from typing import Any, Deque, Dict, Hashable, List, Optional

from pydantic import BaseModel, Field

from tiercache.config import get_settings

logger = logging.getLogger(__name__)


def _escape_label(value: str) -> str:
    """Escape a label value for the Prometheus text format."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


# ---------------------------------------------------------------------------
# Sink interface
# ---------------------------------------------------------------------------


class CacheMetrics(ABC):
    """Fire-and-forget observer for cache events."""

    @abstractmethod
    def record_hit(self, layer_name: str) -> None:
        """A layer returned a value."""

    @abstractmethod
    def record_miss(self, layer_name: str) -> None:
        """A layer had no value (or failed and was treated as empty)."""

    @abstractmethod
    def record_put(self, layer_name: str) -> None:
        """A value was written to a layer."""

    @abstractmethod
    def record_evict(self, layer_name: str) -> None:
        """A key was evicted from a layer."""

    @abstractmethod
    def record_load_started(self, key: Hashable) -> None:
        """The loader was invoked for *key*."""

    @abstractmethod
    def record_load_completed(self, key: Hashable, duration_ns: int) -> None:
        """The loader finished for *key* (success or failure)."""


class NoOpMetrics(CacheMetrics):
    """Sink that discards every event."""

    def record_hit(self, layer_name: str) -> None:
        pass

    def record_miss(self, layer_name: str) -> None:
        pass

    def record_put(self, layer_name: str) -> None:
        pass

    def record_evict(self, layer_name: str) -> None:
        pass

    def record_load_started(self, key: Hashable) -> None:
        pass

    def record_load_completed(self, key: Hashable, duration_ns: int) -> None:
        pass


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for :class:`InMemoryCacheMetrics`.

    Attributes:
        enabled: Whether events are recorded at all.
        max_load_samples: Most recent load durations kept for the
            histogram.
    """

    enabled: bool = True
    max_load_samples: int = Field(default=10000, ge=1)


# ---------------------------------------------------------------------------
# InMemoryCacheMetrics
# ---------------------------------------------------------------------------


class InMemoryCacheMetrics(CacheMetrics):
    """Thread-safe counters per layer plus a loader latency histogram.

    Every recording method swallows and logs its own failures so a
    broken sink cannot affect a cache lookup.

    Args:
        config: Optional configuration; defaults come from settings.
    """

    # Histogram bucket boundaries for load duration in milliseconds
    _LOAD_BUCKETS_MS: List[float] = [
        1, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000,
    ]

    def __init__(self, config: Optional[MetricsConfig] = None) -> None:
        if config is None:
            config = MetricsConfig(enabled=get_settings().metrics.enabled)
        self._config = config
        self._lock = threading.Lock()

        self._hits: Dict[str, int] = defaultdict(int)
        self._misses: Dict[str, int] = defaultdict(int)
        self._puts: Dict[str, int] = defaultdict(int)
        self._evicts: Dict[str, int] = defaultdict(int)

        self._loads_started = 0
        self._loads_completed = 0
        self._load_durations_ms: Deque[float] = deque(maxlen=config.max_load_samples)

        logger.info(
            "InMemoryCacheMetrics initialised",
            extra={"enabled": self._config.enabled},
        )

    # ------------------------------------------------------------------
    # Recording methods
    # ------------------------------------------------------------------

    def _increment(self, counter: Dict[str, int], layer_name: str) -> None:
        if not self._config.enabled:
            return
        try:
            with self._lock:
                counter[str(layer_name)] += 1
        except Exception as exc:
            logger.warning("Metric record failed", extra={"error": str(exc)})

    def record_hit(self, layer_name: str) -> None:
        self._increment(self._hits, layer_name)

    def record_miss(self, layer_name: str) -> None:
        self._increment(self._misses, layer_name)

    def record_put(self, layer_name: str) -> None:
        self._increment(self._puts, layer_name)

    def record_evict(self, layer_name: str) -> None:
        self._increment(self._evicts, layer_name)

    def record_load_started(self, key: Hashable) -> None:
        if not self._config.enabled:
            return
        with self._lock:
            self._loads_started += 1

    def record_load_completed(self, key: Hashable, duration_ns: int) -> None:
        if not self._config.enabled:
            return
        try:
            duration_ms = float(duration_ns) / 1_000_000
            with self._lock:
                self._load_durations_ms.append(duration_ms)
                self._loads_completed += 1
        except (TypeError, ValueError) as exc:
            logger.warning(
                "Load duration not recorded",
                extra={"cache_key": repr(key), "error": str(exc)},
            )
            return
        logger.debug(
            "Load recorded",
            extra={"cache_key": repr(key), "duration_ms": duration_ms},
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_layer_stats(self) -> Dict[str, Dict[str, float]]:
        """Return per-layer counters.

        Returns:
            Dict keyed by layer name with ``hits``, ``misses``,
            ``hit_rate``, ``puts`` and ``evicts``.
        """
        result: Dict[str, Dict[str, float]] = {}
        with self._lock:
            names = set(self._hits) | set(self._misses) | set(self._puts) | set(self._evicts)
            for name in sorted(names):
                hits = self._hits.get(name, 0)
                misses = self._misses.get(name, 0)
                total = hits + misses
                result[name] = {
                    "hits": hits,
                    "misses": misses,
                    "hit_rate": hits / total if total > 0 else 0.0,
                    "puts": self._puts.get(name, 0),
                    "evicts": self._evicts.get(name, 0),
                }
        return result

    def get_load_stats(self) -> Dict[str, Any]:
        """Return loader invocation counts and average duration."""
        with self._lock:
            durations = list(self._load_durations_ms)
            started = self._loads_started
            completed = self._loads_completed
        return {
            "started": started,
            "completed": completed,
            "avg_duration_ms": round(sum(durations) / len(durations), 3) if durations else 0.0,
        }

    # ------------------------------------------------------------------
    # Prometheus exposition
    # ------------------------------------------------------------------

    def get_prometheus_metrics(self) -> str:
        """Return all metrics in Prometheus text exposition format."""
        lines: List[str] = []

        with self._lock:
            for metric, help_text, counter in (
                ("tiercache_hits_total", "Cache hits by layer", self._hits),
                ("tiercache_misses_total", "Cache misses by layer", self._misses),
                ("tiercache_puts_total", "Cache writes by layer", self._puts),
                ("tiercache_evicts_total", "Cache evictions by layer", self._evicts),
            ):
                lines.append(f"# HELP {metric} {help_text}")
                lines.append(f"# TYPE {metric} counter")
                for layer, val in sorted(counter.items()):
                    lines.append(f'{metric}{{layer="{_escape_label(layer)}"}} {val}')

            lines.append("# HELP tiercache_loads_total Loader invocations")
            lines.append("# TYPE tiercache_loads_total counter")
            lines.append(f"tiercache_loads_total {self._loads_started}")

            lines.extend(
                self._format_histogram(
                    "tiercache_load_duration_ms",
                    "Loader duration distribution in ms",
                    list(self._load_durations_ms),
                    self._LOAD_BUCKETS_MS,
                )
            )

        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Drop all recorded data."""
        with self._lock:
            self._hits.clear()
            self._misses.clear()
            self._puts.clear()
            self._evicts.clear()
            self._loads_started = 0
            self._loads_completed = 0
            self._load_durations_ms.clear()

    @staticmethod
    def _format_histogram(
        name: str,
        help_text: str,
        values: List[float],
        buckets: List[float],
    ) -> List[str]:
        """Format raw observations as a Prometheus histogram."""
        lines = [f"# HELP {name} {help_text}", f"# TYPE {name} histogram"]
        if not values:
            return lines

        count = len(values)
        for bound in buckets:
            bucket_count = sum(1 for v in values if v <= bound)
            lines.append(f'{name}_bucket{{le="{bound}"}} {bucket_count}')
        lines.append(f'{name}_bucket{{le="+Inf"}} {count}')
        lines.append(f"{name}_sum {sum(values):.6f}")
        lines.append(f"{name}_count {count}")
        return lines
