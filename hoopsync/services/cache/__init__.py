"""
Cache layer: backends, statistics-tracking service, key builders.
"""
from typing import Optional

from hoopsync.core.config import Settings, settings as default_settings
from hoopsync.services.cache.backends import (
    CacheBackend,
    CacheEntry,
    MemoryCacheBackend,
    RedisCacheBackend,
)
from hoopsync.services.cache.cache_service import CacheService, CacheStatistics
from hoopsync.services.cache.keys import CacheKeys, CacheDurations, game_ttl_for_date


def build_cache_service(config: Optional[Settings] = None) -> CacheService:
    """Create the cache service for the configured ``CACHE_BACKEND``."""
    config = config or default_settings
    if config.CACHE_BACKEND == "redis":
        from hoopsync.core.redis_client import get_redis_client
        backend: CacheBackend = RedisCacheBackend(
            get_redis_client(config.REDIS_URL),
            namespace=config.CACHE_KEY_NAMESPACE,
        )
    else:
        backend = MemoryCacheBackend(max_bytes=config.CACHE_MAX_BYTES)
    return CacheService(backend, default_ttl=config.CACHE_DEFAULT_TTL)


__all__ = [
    "CacheBackend",
    "CacheEntry",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "CacheService",
    "CacheStatistics",
    "CacheKeys",
    "CacheDurations",
    "game_ttl_for_date",
    "build_cache_service",
]
