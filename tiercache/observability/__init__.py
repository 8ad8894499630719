"""Metrics sinks for cache events."""

from tiercache.observability.metrics import (
    CacheMetrics,
    InMemoryCacheMetrics,
    MetricsConfig,
    NoOpMetrics,
)

__all__ = ["CacheMetrics", "InMemoryCacheMetrics", "MetricsConfig", "NoOpMetrics"]
