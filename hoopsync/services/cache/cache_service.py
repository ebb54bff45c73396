"""
Cache service with hit/miss statistics over a pluggable backend.

Backend failures never reach callers: a failing ``get`` is a miss, a failing
``set`` or invalidation is a no-op. Both are logged and counted.
"""
import json
import logging
import threading
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from hoopsync.core.metrics import cache_requests_total, cache_backend_errors_total
from hoopsync.services.cache.backends import CacheBackend

logger = logging.getLogger(__name__)


@dataclass
class CacheStatistics:
    """Point-in-time snapshot of cache counters."""
    total_requests: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    current_entries: int = 0
    backend_errors: int = 0
    backend: str = "memory"
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def hit_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    def to_dict(self) -> dict:
        data = asdict(self)
        data["hit_rate"] = round(self.hit_rate, 4)
        data["started_at"] = self.started_at.isoformat()
        return data


class CacheService:
    """
    JSON cache over a ``CacheBackend``.

    Usage:
        cache = CacheService(MemoryCacheBackend(max_bytes=10_000_000))
        await cache.set(CacheKeys.TODAY_GAMES, games, ttl=CacheDurations.TODAY_GAMES)
        games = await cache.get(CacheKeys.TODAY_GAMES)
    """

    def __init__(self, backend: CacheBackend, default_ttl: float = 900):
        self.backend = backend
        self.default_ttl = default_ttl
        self._lock = threading.Lock()
        self._requests = 0
        self._hits = 0
        self._misses = 0
        self._backend_errors = 0
        self._started_at = datetime.now(timezone.utc)

    async def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None on miss."""
        try:
            raw = await self.backend.get(key)
        except Exception as e:
            self._backend_failed("get", key, e)
            raw = None

        value = None
        if raw is not None:
            try:
                value = json.loads(raw)
            except ValueError as e:
                logger.warning(f"Discarding undecodable cache entry {key}: {e}")
                await self.invalidate(key)
                raw = None

        with self._lock:
            self._requests += 1
            if raw is None:
                self._misses += 1
            else:
                self._hits += 1

        if raw is None:
            cache_requests_total.labels(result="miss").inc()
            return None

        cache_requests_total.labels(result="hit").inc()
        return value

    async def set(self, key: str, value: Any, ttl: Optional[float] = None, sliding: bool = False) -> bool:
        """Store ``value`` (JSON-serializable) under ``key``, replacing any previous value."""
        raw = json.dumps(value, default=str)
        try:
            return await self.backend.set(key, raw, ttl if ttl is not None else self.default_ttl, sliding)
        except Exception as e:
            self._backend_failed("set", key, e)
            return False

    async def invalidate(self, key: str) -> bool:
        try:
            return await self.backend.delete(key)
        except Exception as e:
            self._backend_failed("invalidate", key, e)
            return False

    async def invalidate_pattern(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``; returns the number removed."""
        try:
            removed = await self.backend.delete_prefix(prefix)
        except Exception as e:
            self._backend_failed("invalidate_pattern", prefix, e)
            return 0
        if removed:
            logger.debug(f"Invalidated {removed} cache entries with prefix {prefix}")
        return removed

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Cache-aside read: on miss, build the value with ``factory`` and store it."""
        cached = await self.get(key)
        if cached is not None:
            return cached
        value = await factory()
        if value is not None:
            await self.set(key, value, ttl)
        return value

    def statistics(self) -> CacheStatistics:
        with self._lock:
            return CacheStatistics(
                total_requests=self._requests,
                hits=self._hits,
                misses=self._misses,
                evictions=self.backend.evictions,
                current_entries=self.backend.entry_count(),
                backend_errors=self._backend_errors,
                backend=self.backend.name,
                started_at=self._started_at,
            )

    def reset_statistics(self) -> None:
        with self._lock:
            self._requests = 0
            self._hits = 0
            self._misses = 0
            self._backend_errors = 0
            self._started_at = datetime.now(timezone.utc)

    async def close(self) -> None:
        await self.backend.close()

    def _backend_failed(self, operation: str, key: str, error: Exception) -> None:
        with self._lock:
            self._backend_errors += 1
        cache_backend_errors_total.labels(operation=operation).inc()
        logger.warning(
            f"Cache backend {operation} failed for {key}, continuing without cache: {error}",
            extra={"backend": self.backend.name, "operation": operation},
        )
