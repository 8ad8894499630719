"""
Multi-layer cache orchestrator.

Composes an ordered tuple of :class:`CacheLayer` objects (index 0 is the
fastest, probed first), one :class:`CacheLoader` and one
:class:`CacheMetrics` sink.

Read path:
    1. Probe layers in priority order.  A layer that raises is treated
       as a miss for that layer and the probe continues.
    2. On a hit in layer ``i``, backfill layers ``0..i-1`` in ascending
       order and return.  Layers at or below ``i`` are not touched.
    3. On a total miss, run a single-flight load: at most one loader
       call per key is in flight, concurrent callers for the same key
       wait on it and share its outcome.  A loaded value is written to
       every layer; ``None`` (absent) and failures write nothing and are
       never cached as negative results.

``put``/``evict``/``clear`` fan out to every layer in order.  A ``clear``
does not cancel an in-flight load, which may repopulate the layers
after it completes.
"""

import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Dict, Hashable, Iterable, Optional, Sequence, Tuple

from tiercache.exceptions import ConfigurationError, LoaderError
from tiercache.layers.base import CacheLayer
from tiercache.loaders.base import CacheLoader
from tiercache.observability.metrics import CacheMetrics, NoOpMetrics

logger = logging.getLogger(__name__)


class MultiLayerCache:
    """Tiered cache with promotion and single-flight loading.

    Thread safety:
        No lock is held across a ``get``.  The only synchronised region
        is the create-or-join of an in-flight load for a key.

    Args:
        layers: Layers in priority order.  Copied; never reordered.
        loader: Source of record consulted on a total miss.
        metrics: Event sink.  Defaults to :class:`NoOpMetrics`.

    Raises:
        ConfigurationError: If two layers share a name.
    """

    def __init__(
        self,
        layers: Sequence[CacheLayer],
        loader: CacheLoader,
        metrics: Optional[CacheMetrics] = None,
    ) -> None:
        self._layers: Tuple[CacheLayer, ...] = tuple(layers)
        names = [layer.name for layer in self._layers]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Layer names must be unique, got {names}")

        self._loader = loader
        self._metrics = metrics if metrics is not None else NoOpMetrics()
        self._in_flight: Dict[Hashable, Future] = {}
        self._in_flight_lock = threading.Lock()

        logger.info("MultiLayerCache initialised", extra={"layers": names})

    @property
    def layers(self) -> Tuple[CacheLayer, ...]:
        """Layers in priority order (index 0 probed first)."""
        return self._layers

    @property
    def metrics(self) -> CacheMetrics:
        """The event sink this cache reports to."""
        return self._metrics

    # ------------------------------------------------------------------
    # Metrics isolation
    # ------------------------------------------------------------------

    def _emit(self, event: str, *args: Any) -> None:
        """Forward an event to the sink, never letting it raise."""
        try:
            getattr(self._metrics, event)(*args)
        except Exception as exc:
            logger.warning(
                "Metrics sink failed",
                extra={"event": event, "error": str(exc)},
            )

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the value for *key*, loading it on a total miss.

        Returns:
            The cached or loaded value, or ``None`` if no layer holds it
            and the loader reports it absent.

        Raises:
            LoaderError: If the loader fails.  No layer is written.
        """
        for idx, layer in enumerate(self._layers):
            value = self._probe(layer, key)
            if value is None:
                self._emit("record_miss", layer.name)
                continue

            self._emit("record_hit", layer.name)
            self._write_through(self._layers[:idx], key, value)
            logger.debug(
                "Cache hit",
                extra={"layer": layer.name, "cache_key": repr(key), "backfilled": idx},
            )
            return value

        value = self._load_single_flight(key)
        if value is not None:
            self._write_through(self._layers, key, value)
        return value

    def _probe(self, layer: CacheLayer, key: Hashable) -> Optional[Any]:
        try:
            return layer.get(key)
        except Exception as exc:
            logger.warning(
                "Layer get failed, treating as miss",
                extra={"layer": layer.name, "cache_key": repr(key), "error": str(exc)},
            )
            return None

    def _write_through(
        self, layers: Iterable[CacheLayer], key: Hashable, value: Any
    ) -> None:
        """Write *value* to *layers* in order on the read path.

        The value is already authoritative, so a failing layer is logged
        and skipped rather than failing the read.
        """
        for layer in layers:
            try:
                layer.put(key, value)
            except Exception as exc:
                logger.warning(
                    "Layer backfill failed",
                    extra={"layer": layer.name, "cache_key": repr(key), "error": str(exc)},
                )
                continue
            self._emit("record_put", layer.name)

    # ------------------------------------------------------------------
    # Single-flight loading
    # ------------------------------------------------------------------

    def _load_single_flight(self, key: Hashable) -> Optional[Any]:
        with self._in_flight_lock:
            future = self._in_flight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._in_flight[key] = future

        if not leader:
            logger.debug("Joining in-flight load", extra={"cache_key": repr(key)})
            return future.result()

        try:
            self._run_load(key, future)
        finally:
            self._release(key, future)
            if not future.done():
                # The loader raised a BaseException; release the waiters.
                future.set_exception(LoaderError(f"Load for {key!r} was aborted"))

        return future.result()

    def _run_load(self, key: Hashable, future: Future) -> None:
        """Invoke the loader once and store its outcome on *future*."""
        self._emit("record_load_started", key)
        logger.debug("Load started", extra={"cache_key": repr(key)})
        start = time.perf_counter_ns()
        try:
            value = self._loader.load(key)
        except Exception as exc:
            duration_ns = time.perf_counter_ns() - start
            self._emit("record_load_completed", key, duration_ns)
            logger.warning(
                "Load failed",
                extra={"cache_key": repr(key), "duration_ns": duration_ns, "error": str(exc)},
            )
            if isinstance(exc, LoaderError):
                error = exc
            else:
                error = LoaderError(f"Load for {key!r} failed: {exc}")
                error.__cause__ = exc
            self._publish(key, future, error=error)
            return

        duration_ns = time.perf_counter_ns() - start
        self._emit("record_load_completed", key, duration_ns)
        logger.debug(
            "Load completed",
            extra={"cache_key": repr(key), "duration_ns": duration_ns, "found": value is not None},
        )
        self._publish(key, future, value=value)

    def _publish(
        self,
        key: Hashable,
        future: Future,
        value: Optional[Any] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        # Drop the token first so a caller arriving after the outcome starts a fresh load.
        self._release(key, future)
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)

    def _release(self, key: Hashable, future: Future) -> None:
        with self._in_flight_lock:
            if self._in_flight.get(key) is future:
                del self._in_flight[key]

    def in_flight_count(self) -> int:
        """Number of loads currently executing."""
        with self._in_flight_lock:
            return len(self._in_flight)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def put(self, key: Hashable, value: Any) -> None:
        """Write *value* to every layer in order.  Layer errors propagate."""
        for layer in self._layers:
            layer.put(key, value)
            self._emit("record_put", layer.name)

    def evict(self, key: Hashable) -> None:
        """Remove *key* from every layer in order.  Layer errors propagate."""
        for layer in self._layers:
            layer.evict(key)
            self._emit("record_evict", layer.name)

    def clear(self) -> None:
        """Clear every layer in order.  In-flight loads are unaffected."""
        for layer in self._layers:
            layer.clear()
        logger.info("All layers cleared", extra={"layers": len(self._layers)})

    # ------------------------------------------------------------------
    # Bulk helpers
    # ------------------------------------------------------------------

    def size(self) -> Dict[str, int]:
        """Entry count per layer name."""
        return {layer.name: layer.size() for layer in self._layers}

    def warm(self, keys: Iterable[Hashable]) -> int:
        """Bulk-load *keys* via ``loader.load_all`` into every layer.

        Bypasses single-flight; keys the loader does not return are
        skipped.

        Returns:
            Number of keys written.

        Raises:
            LoaderError: If the batch load fails.
        """
        keys = list(keys)
        try:
            loaded = self._loader.load_all(keys)
        except LoaderError:
            raise
        except Exception as exc:
            raise LoaderError(f"Bulk load failed: {exc}") from exc

        warmed = 0
        for key, value in loaded.items():
            if value is None:
                continue
            self.put(key, value)
            warmed += 1

        logger.info(
            "Cache warmed",
            extra={"requested": len(keys), "warmed": warmed},
        )
        return warmed
