"""
Cache storage backends.

Backends store already-serialized strings. They raise
``CacheBackendUnavailable`` when the underlying store cannot be reached;
``CacheService`` turns that into a miss or a no-op.
"""
import logging
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from hoopsync.core.exceptions import CacheBackendUnavailable
from hoopsync.core.metrics import cache_evictions_total

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A stored value with absolute or sliding expiration."""
    key: str
    value: str
    created_at: float
    ttl_seconds: float
    expires_at: float
    sliding: bool = False

    @property
    def size(self) -> int:
        return len(self.key.encode("utf-8")) + len(self.value.encode("utf-8"))

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def touch(self, now: float) -> None:
        """Extend a sliding entry by its full TTL from ``now``."""
        if self.sliding:
            self.expires_at = now + self.ttl_seconds


class CacheBackend(ABC):
    """Storage contract used by ``CacheService``."""

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored string, or None on miss. Expired entries are purged."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: float, sliding: bool = False) -> bool:
        """Store ``value``; returns False when it was not stored."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove one key; returns True if it existed."""

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``; returns how many."""

    @abstractmethod
    def entry_count(self) -> int:
        """Current number of entries, without I/O."""

    @property
    def evictions(self) -> int:
        return 0

    async def close(self) -> None:
        return None


class MemoryCacheBackend(CacheBackend):
    """
    In-process LRU cache bounded by a byte budget.

    When a write pushes the total size over ``max_bytes`` the least recently
    used entries are evicted until it fits. A single entry larger than the
    whole budget is not stored.
    """

    name = "memory"

    def __init__(self, max_bytes: int, clock: Callable[[], float] = time.monotonic):
        self.max_bytes = max_bytes
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._total_bytes = 0
        self._evictions = 0
        self._lock = threading.RLock()

    async def get(self, key: str) -> Optional[str]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(now):
                self._remove(key)
                return None
            entry.touch(now)
            self._entries.move_to_end(key)
            return entry.value

    async def set(self, key: str, value: str, ttl_seconds: float, sliding: bool = False) -> bool:
        now = self._clock()
        entry = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            ttl_seconds=ttl_seconds,
            expires_at=now + ttl_seconds,
            sliding=sliding,
        )
        with self._lock:
            if key in self._entries:
                self._remove(key)

            if entry.size > self.max_bytes:
                logger.warning(
                    "Cache entry exceeds size budget, not stored",
                    extra={"key": key, "size": entry.size, "max_bytes": self.max_bytes},
                )
                return False

            self._entries[key] = entry
            self._total_bytes += entry.size

            while self._total_bytes > self.max_bytes:
                evicted_key, _ = next(iter(self._entries.items()))
                self._remove(evicted_key)
                self._evictions += 1
                cache_evictions_total.inc()
                logger.debug(f"Evicted {evicted_key} to stay within cache budget")
            return True

    async def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            self._remove(key)
            return True

    async def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            matching = [key for key in self._entries if key.startswith(prefix)]
            for key in matching:
                self._remove(key)
            return len(matching)

    def entry_count(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def evictions(self) -> int:
        return self._evictions

    @property
    def total_bytes(self) -> int:
        return self._total_bytes

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._total_bytes -= entry.size


class RedisCacheBackend(CacheBackend):
    """
    Shared cache in Redis.

    Each entry is a hash holding the value and, for sliding entries, the TTL
    to re-apply on every hit. Redis expires keys itself, so ``entry_count``
    is this instance's view: keys it wrote or read, each tracked with the
    expiry it last applied and dropped once that expiry passes or a read
    finds the key gone.
    """

    name = "redis"

    def __init__(
        self,
        client: Redis,
        namespace: str = "",
        scan_batch: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.namespace = f"{namespace}:" if namespace else ""
        self.scan_batch = scan_batch
        self._clock = clock
        self._expiries: Dict[str, float] = {}

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    async def get(self, key: str) -> Optional[str]:
        full_key = self._key(key)
        try:
            stored = await self.client.hgetall(full_key)
            if not stored:
                self._expiries.pop(key, None)
                return None
            sliding_ms = int(stored.get("sliding_ms") or 0)
            if sliding_ms:
                await self.client.pexpire(full_key, sliding_ms)
                self._expiries[key] = self._clock() + sliding_ms / 1000
            return stored.get("value")
        except (RedisError, OSError) as e:
            raise CacheBackendUnavailable(f"redis get failed for {key}: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: float, sliding: bool = False) -> bool:
        full_key = self._key(key)
        ttl_ms = max(int(ttl_seconds * 1000), 1)
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(full_key)
                pipe.hset(full_key, mapping={"value": value, "sliding_ms": ttl_ms if sliding else 0})
                pipe.pexpire(full_key, ttl_ms)
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise CacheBackendUnavailable(f"redis set failed for {key}: {e}") from e
        self._expiries[key] = self._clock() + ttl_ms / 1000
        return True

    async def delete(self, key: str) -> bool:
        try:
            removed = await self.client.delete(self._key(key))
        except (RedisError, OSError) as e:
            raise CacheBackendUnavailable(f"redis delete failed for {key}: {e}") from e
        self._expiries.pop(key, None)
        return removed > 0

    async def delete_prefix(self, prefix: str) -> int:
        pattern = f"{self._escape(self._key(prefix))}*"
        removed = 0
        try:
            batch = []
            async for full_key in self.client.scan_iter(match=pattern, count=self.scan_batch):
                batch.append(full_key)
                if len(batch) >= self.scan_batch:
                    removed += await self.client.delete(*batch)
                    batch = []
            if batch:
                removed += await self.client.delete(*batch)
        except (RedisError, OSError) as e:
            raise CacheBackendUnavailable(f"redis pattern delete failed for {prefix}: {e}") from e
        for key in [k for k in self._expiries if k.startswith(prefix)]:
            del self._expiries[key]
        return removed

    def entry_count(self) -> int:
        now = self._clock()
        for key in [k for k, expires_at in self._expiries.items() if expires_at <= now]:
            del self._expiries[key]
        return len(self._expiries)

    async def close(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _escape(prefix: str) -> str:
        """Escape glob metacharacters so MATCH treats the prefix literally."""
        for char in ("\\", "*", "?", "[", "]"):
            prefix = prefix.replace(char, f"\\{char}")
        return prefix
