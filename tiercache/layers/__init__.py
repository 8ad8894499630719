"""Cache layers (tiers) and their shared contract."""

from tiercache.layers.base import CacheLayer
from tiercache.layers.disk import DiskCacheLayer
from tiercache.layers.memory import CacheEntry, TTLMemoryLayer
from tiercache.layers.redis_backend import RedisCacheLayer

__all__ = ["CacheLayer", "CacheEntry", "TTLMemoryLayer", "DiskCacheLayer", "RedisCacheLayer"]
