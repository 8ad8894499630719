"""
Assemble a :class:`MultiLayerCache` from :class:`Settings`.

Layer order follows ``cache.layers`` in the YAML config: the first entry
is the fastest tier and is probed first.
"""

import logging
from typing import Optional

from tiercache.config import LayerSettings, RedisSettings, Settings, get_settings
from tiercache.exceptions import ConfigurationError
from tiercache.layers import CacheLayer, DiskCacheLayer, RedisCacheLayer, TTLMemoryLayer
from tiercache.loaders import CacheLoader, FileBackedLoader
from tiercache.multi_layer import MultiLayerCache
from tiercache.observability import CacheMetrics, InMemoryCacheMetrics, MetricsConfig

logger = logging.getLogger(__name__)


def build_layer(
    layer: LayerSettings,
    redis_settings: Optional[RedisSettings] = None,
    *,
    lock_stripes: int = 16,
) -> CacheLayer:
    """Create a ``memory``, ``disk`` or ``redis`` layer from its settings.

    Raises:
        ConfigurationError: If the layer type is unknown.
    """
    if layer.type == "memory":
        return TTLMemoryLayer(
            layer.name,
            ttl_seconds=layer.ttl_seconds,
            concurrency=lock_stripes,
        )
    if layer.type == "disk":
        return DiskCacheLayer(
            layer.name,
            directory=layer.directory,
            ttl_seconds=layer.ttl_seconds,
        )
    if layer.type == "redis":
        redis_settings = redis_settings or RedisSettings()
        return RedisCacheLayer(
            layer.name,
            redis_url=redis_settings.url,
            ttl_seconds=layer.ttl_seconds,
            key_prefix=f"{redis_settings.key_prefix}:{layer.name}",
        )
    raise ConfigurationError(f"Unknown layer type '{layer.type}' for '{layer.name}'")


def build_cache(
    settings: Optional[Settings] = None,
    loader: Optional[CacheLoader] = None,
    metrics: Optional[CacheMetrics] = None,
) -> MultiLayerCache:
    """Build the configured cache.

    Args:
        settings: Settings to use; defaults to :func:`get_settings`.
        loader: Override the configured file-backed loader.
        metrics: Override the default :class:`InMemoryCacheMetrics`.

    Returns:
        A ready-to-use :class:`MultiLayerCache`.
    """
    settings = settings or get_settings()

    layers = [
        build_layer(
            layer,
            settings.redis,
            lock_stripes=settings.cache.lock_stripes,
        )
        for layer in settings.cache.layers
    ]

    if loader is None:
        loader = FileBackedLoader(
            settings.loader.paths,
            delimiter=settings.loader.delimiter,
            header=settings.loader.header,
            encoding=settings.loader.encoding,
        )
    if metrics is None:
        metrics = InMemoryCacheMetrics(MetricsConfig(enabled=settings.metrics.enabled))

    logger.info(
        "Cache assembled",
        extra={"layers": [f"{l.name}:{l.type}" for l in settings.cache.layers]},
    )
    return MultiLayerCache(layers, loader, metrics)
