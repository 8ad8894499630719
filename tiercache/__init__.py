"""
tiercache -- multi-layer cache with promotion and single-flight loading.

    from tiercache import MultiLayerCache, TTLMemoryLayer

    cache = MultiLayerCache(
        [TTLMemoryLayer("L1", ttl_seconds=300), TTLMemoryLayer("L2")],
        loader,
    )
    value = cache.get("user:1")
"""

from tiercache.exceptions import (
    BackendUnavailableError,
    ConfigurationError,
    LoaderError,
    SerializationError,
    TierCacheException,
)
from tiercache.layers import CacheLayer, DiskCacheLayer, RedisCacheLayer, TTLMemoryLayer
from tiercache.loaders import CacheLoader, FileBackedLoader
from tiercache.multi_layer import MultiLayerCache
from tiercache.observability import CacheMetrics, InMemoryCacheMetrics, NoOpMetrics

__version__ = "0.1.0"

__all__ = [
    "MultiLayerCache",
    "CacheLayer",
    "TTLMemoryLayer",
    "DiskCacheLayer",
    "RedisCacheLayer",
    "CacheLoader",
    "FileBackedLoader",
    "CacheMetrics",
    "InMemoryCacheMetrics",
    "NoOpMetrics",
    "TierCacheException",
    "ConfigurationError",
    "BackendUnavailableError",
    "SerializationError",
    "LoaderError",
]
