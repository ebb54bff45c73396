"""Tests for the Redis cache backend against a mocked redis.asyncio client."""
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from hoopsync.core.exceptions import CacheBackendUnavailable
from hoopsync.services.cache import CacheService, RedisCacheBackend


def make_client(execute_result=None):
    """Mock client whose transaction pipeline returns ``execute_result``."""
    client = MagicMock()
    pipe = MagicMock()
    pipe.execute = AsyncMock(return_value=execute_result or [0, 0, 2, True])
    client.pipeline.return_value.__aenter__ = AsyncMock(return_value=pipe)
    client.pipeline.return_value.__aexit__ = AsyncMock(return_value=False)
    client.hgetall = AsyncMock(return_value={})
    client.pexpire = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.aclose = AsyncMock()
    return client, pipe


def scan_results(*keys):
    async def scan_iter(match=None, count=None):
        for key in keys:
            yield key
    return scan_iter


class TestRedisCacheBackend:
    """Key namespacing, expiration commands, and error mapping."""

    @pytest.mark.asyncio
    async def test_set_writes_hash_with_ttl(self):
        """Should store the value in a namespaced hash and set its expiry."""
        client, pipe = make_client()
        backend = RedisCacheBackend(client, namespace="hoopsync")

        stored = await backend.set("games:today", '["g1"]', ttl_seconds=300)

        assert stored is True
        client.pipeline.assert_called_once_with(transaction=True)
        pipe.hset.assert_called_once_with(
            "hoopsync:games:today", mapping={"value": '["g1"]', "sliding_ms": 0}
        )
        pipe.pexpire.assert_called_once_with("hoopsync:games:today", 300_000)
        assert backend.entry_count() == 1

    @pytest.mark.asyncio
    async def test_overwrite_does_not_grow_entry_count(self):
        """Should count an overwritten key once."""
        client, _ = make_client()
        backend = RedisCacheBackend(client)

        await backend.set("teams:all", "[]", ttl_seconds=60)
        await backend.set("teams:all", "[]", ttl_seconds=60)

        assert backend.entry_count() == 1

    @pytest.mark.asyncio
    async def test_get_refreshes_sliding_entry(self):
        """Should re-apply the TTL on every hit of a sliding entry."""
        client, _ = make_client()
        client.hgetall.return_value = {"value": "[]", "sliding_ms": "60000"}
        backend = RedisCacheBackend(client, namespace="hs")

        assert await backend.get("teams:all") == "[]"
        client.pexpire.assert_awaited_once_with("hs:teams:all", 60000)

    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self):
        """Should return None for a missing or expired key."""
        client, _ = make_client()
        backend = RedisCacheBackend(client)

        assert await backend.get("games:today") is None
        client.pexpire.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_prefix_escapes_glob_characters(self):
        """Should scan with a literal prefix and delete every match."""
        client, _ = make_client()
        client.scan_iter = MagicMock(side_effect=scan_results("hs:teams:[1]", "hs:teams:[2]"))
        client.delete = AsyncMock(return_value=2)
        backend = RedisCacheBackend(client, namespace="hs")

        removed = await backend.delete_prefix("teams:[")

        assert removed == 2
        client.scan_iter.assert_called_once_with(match="hs:teams:\\[*", count=500)
        client.delete.assert_awaited_once_with("hs:teams:[1]", "hs:teams:[2]")

    @pytest.mark.asyncio
    async def test_delete_prefix_in_batches(self):
        """Should delete in batches of ``scan_batch`` keys."""
        client, _ = make_client()
        keys = [f"games:date:{i}" for i in range(5)]
        client.scan_iter = MagicMock(side_effect=scan_results(*keys))
        client.delete = AsyncMock(side_effect=[2, 2, 1])
        backend = RedisCacheBackend(client, scan_batch=2)

        assert await backend.delete_prefix("games:") == 5
        assert client.delete.await_count == 3

    @pytest.mark.asyncio
    async def test_connection_error_raises_backend_unavailable(self):
        """Should map redis errors to CacheBackendUnavailable."""
        client, _ = make_client()
        client.hgetall = AsyncMock(side_effect=RedisConnectionError("refused"))
        backend = RedisCacheBackend(client)

        with pytest.raises(CacheBackendUnavailable):
            await backend.get("games:today")

    @pytest.mark.asyncio
    async def test_service_degrades_when_redis_down(self):
        """Should turn a redis outage into a cache miss."""
        client, _ = make_client()
        client.hgetall = AsyncMock(side_effect=RedisConnectionError("refused"))
        cache = CacheService(RedisCacheBackend(client))

        assert await cache.get("games:today") is None
        assert cache.statistics().backend_errors == 1
        assert cache.statistics().backend == "redis"

    @pytest.mark.asyncio
    async def test_close_closes_client(self):
        """Should close the underlying client."""
        client, _ = make_client()
        await RedisCacheBackend(client).close()
        client.aclose.assert_awaited_once()


class TestRedisEntryCount:
    """Entry count tracking as Redis expires keys on its own."""

    @pytest.mark.asyncio
    async def test_expired_key_leaves_the_count(self, fake_clock):
        """Should stop counting a key once its TTL has passed."""
        client, _ = make_client()
        backend = RedisCacheBackend(client, clock=fake_clock)

        await backend.set("games:today", "[]", ttl_seconds=30)
        assert backend.entry_count() == 1

        fake_clock.advance(31)
        assert backend.entry_count() == 0

    @pytest.mark.asyncio
    async def test_rewriting_after_expiry_does_not_accumulate(self, fake_clock):
        """Should hold the count at zero across repeated set-then-expire cycles."""
        client, _ = make_client()
        cache = CacheService(RedisCacheBackend(client, clock=fake_clock))

        for _ in range(5):
            await cache.set("games:today", ["g1"], ttl=0.05)
            fake_clock.advance(1)
            assert await cache.get("games:today") is None

        assert cache.statistics().current_entries == 0

    @pytest.mark.asyncio
    async def test_miss_on_tracked_key_drops_it(self, fake_clock):
        """Should stop counting a key that Redis no longer has."""
        client, _ = make_client()
        backend = RedisCacheBackend(client, clock=fake_clock)
        await backend.set("teams:all", "[]", ttl_seconds=600)

        assert await backend.get("teams:all") is None
        assert backend.entry_count() == 0

    @pytest.mark.asyncio
    async def test_sliding_hit_extends_tracked_expiry(self, fake_clock):
        """Should keep counting a sliding entry that is read before it expires."""
        client, _ = make_client()
        client.hgetall.return_value = {"value": "[]", "sliding_ms": "60000"}
        backend = RedisCacheBackend(client, clock=fake_clock)
        await backend.set("teams:all", "[]", ttl_seconds=60, sliding=True)

        fake_clock.advance(50)
        assert await backend.get("teams:all") == "[]"
        fake_clock.advance(50)

        assert backend.entry_count() == 1

    @pytest.mark.asyncio
    async def test_prefix_delete_drops_tracked_keys(self, fake_clock):
        """Should stop counting keys removed by a prefix invalidation."""
        client, _ = make_client()
        client.scan_iter = MagicMock(side_effect=scan_results("games:date:2025-01-26", "games:date:2025-01-27"))
        client.delete = AsyncMock(return_value=2)
        backend = RedisCacheBackend(client, clock=fake_clock)
        await backend.set("games:date:2025-01-26", "[]", ttl_seconds=60)
        await backend.set("games:date:2025-01-27", "[]", ttl_seconds=60)
        await backend.set("teams:all", "[]", ttl_seconds=60)

        assert await backend.delete_prefix("games:date:") == 2
        assert backend.entry_count() == 1
