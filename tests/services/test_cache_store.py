"""Tests for the dual-backend cache store and its backends."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from dashvault.services.cache import (
    ABSENT,
    BackendKind,
    CacheEntry,
    CacheStore,
    LocalCacheBackend,
    RedisCacheBackend,
)
from dashvault.services.cached_fetcher import CachedFetcher
from dashvault.shared.errors import CacheError, ErrorCode
from tests.conftest import FakeClock


def _redis_client(store: dict[str, bytes] | None = None) -> MagicMock:
    """In-memory stand-in for a redis.asyncio client."""
    data: dict[str, bytes] = {} if store is None else store
    client = MagicMock()

    async def _get(key: str) -> bytes | None:
        return data.get(key)

    async def _set(key: str, value: bytes, ex: int | None = None) -> bool:
        data[key] = value
        return True

    async def _delete(*keys: str) -> int:
        return sum(1 for key in keys if data.pop(key, None) is not None)

    async def _scan_iter(match: str, count: int):
        import fnmatch

        for key in list(data):
            if fnmatch.fnmatchcase(key, match):
                yield key

    client.get = AsyncMock(side_effect=_get)
    client.set = AsyncMock(side_effect=_set)
    client.delete = AsyncMock(side_effect=_delete)
    client.ping = AsyncMock(return_value=True)
    client.scan_iter = _scan_iter
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def redis_client() -> MagicMock:
    return _redis_client()


@pytest.fixture
def durable(redis_client: MagicMock, fake_clock: FakeClock) -> RedisCacheBackend:
    return RedisCacheBackend(
        "redis://localhost:6379/0",
        reconnect_interval=30,
        client=redis_client,
        clock=fake_clock,
    )


@pytest.fixture
def dual_store(local_backend: LocalCacheBackend, durable: RedisCacheBackend) -> CacheStore:
    return CacheStore(local=local_backend, durable=durable)


class TestLocalCacheBackend:
    """Tests for the in-process LRU backend."""

    @pytest.mark.asyncio
    async def test_entry_expires_after_ttl(self, local_backend: LocalCacheBackend, fake_clock: FakeClock) -> None:
        await local_backend.set("k", b"v", 10)

        fake_clock.advance(9.9)
        assert await local_backend.get("k") == b"v"

        fake_clock.advance(0.1)
        assert await local_backend.get("k") is None

    @pytest.mark.asyncio
    async def test_ttl_is_capped(self, fake_clock: FakeClock) -> None:
        backend = LocalCacheBackend(max_entries=10, max_ttl=300, clock=fake_clock)
        await backend.set("k", b"v", 3600)

        fake_clock.advance(300)

        assert await backend.get("k") is None

    @pytest.mark.asyncio
    async def test_lru_eviction(self, fake_clock: FakeClock) -> None:
        backend = LocalCacheBackend(max_entries=2, max_ttl=300, clock=fake_clock)
        await backend.set("a", b"1", 60)
        await backend.set("b", b"2", 60)
        await backend.get("a")

        await backend.set("c", b"3", 60)

        assert await backend.get("b") is None
        assert await backend.get("a") == b"1"
        assert len(backend) == 2

    @pytest.mark.asyncio
    async def test_delete_matching_and_purge(self, local_backend: LocalCacheBackend, fake_clock: FakeClock) -> None:
        await local_backend.set("dashvault:workItems:a:1", b"1", 60)
        await local_backend.set("dashvault:workItems:b:2", b"2", 10)
        await local_backend.set("dashvault:iterations:a:3", b"3", 60)

        assert await local_backend.delete_matching("dashvault:workItems:*") == 2

        fake_clock.advance(100)
        assert local_backend.purge_expired() == 1


class TestCacheStoreLocalOnly:
    """Store behavior without a durable backend."""

    @pytest.mark.asyncio
    async def test_set_then_get(self, cache_store: CacheStore) -> None:
        assert await cache_store.set("k", {"value": [1, 2]}, 60) is True

        lookup = await cache_store.get("k")

        assert lookup.found is True
        assert lookup.value == {"value": [1, 2]}
        assert lookup.backend is BackendKind.LOCAL

    @pytest.mark.asyncio
    async def test_miss_is_absent(self, cache_store: CacheStore) -> None:
        lookup = await cache_store.get("missing")

        assert lookup is ABSENT
        assert lookup.found is False

    @pytest.mark.asyncio
    async def test_falsy_values_are_found(self, cache_store: CacheStore) -> None:
        await cache_store.set("empty", [], 60)

        lookup = await cache_store.get("empty")

        assert lookup.found is True
        assert lookup.value == []

    @pytest.mark.asyncio
    async def test_expired_entry_is_a_miss(self, cache_store: CacheStore, fake_clock: FakeClock) -> None:
        await cache_store.set("k", "v", 30)
        fake_clock.advance(31)

        assert (await cache_store.get("k")).found is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [0, -5])
    async def test_non_positive_ttl_is_refused(self, cache_store: CacheStore, ttl: int) -> None:
        assert await cache_store.set("k", "v", ttl) is False
        assert (await cache_store.get("k")).found is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ttl", [1.5, "60", None])
    async def test_malformed_ttl_is_refused_without_raising(self, cache_store: CacheStore, ttl: object) -> None:
        assert await cache_store.set("k", {"x": 1}, ttl) is False
        assert (await cache_store.get("k")).found is False

    @pytest.mark.asyncio
    async def test_whole_float_ttl_is_accepted(self, cache_store: CacheStore) -> None:
        assert await cache_store.set("k", {"x": 1}, 60.0) is True
        assert (await cache_store.get("k")).value == {"x": 1}

    @pytest.mark.asyncio
    async def test_unserializable_value_is_refused(self, cache_store: CacheStore) -> None:
        assert await cache_store.set("k", object(), 60) is False
        assert cache_store.get_stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_corrupted_entry_is_a_miss(self, cache_store: CacheStore, local_backend: LocalCacheBackend) -> None:
        await local_backend.set("k", b"not json", 60)

        lookup = await cache_store.get("k")

        assert lookup.found is False
        assert lookup.error is None
        assert await local_backend.get("k") is None

    @pytest.mark.asyncio
    async def test_health_is_healthy_without_durable(self, cache_store: CacheStore) -> None:
        health = await cache_store.health_check()

        assert health["status"] == "healthy"
        assert health["durable"]["configured"] is False

    @pytest.mark.asyncio
    async def test_many_operations(self, cache_store: CacheStore) -> None:
        written = await cache_store.set_many({"a": 1, "b": 2}, 60)
        lookups = await cache_store.get_many(["a", "b", "c"])

        assert written == 2
        assert lookups["a"].value == 1
        assert lookups["b"].value == 2
        assert lookups["c"].found is False

    @pytest.mark.asyncio
    async def test_stats(self, cache_store: CacheStore) -> None:
        await cache_store.set("k", 1, 60)
        await cache_store.get("k")
        await cache_store.get("nope")

        stats = cache_store.get_stats()

        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 50.0
        assert stats["local_entries"] == 1


class TestCacheStoreDualBackend:
    """Store behavior with a durable backend and a local fallback."""

    @pytest.mark.asyncio
    async def test_init_marks_durable_ready(self, dual_store: CacheStore) -> None:
        await dual_store.init()
        assert dual_store.is_ready is True

    @pytest.mark.asyncio
    async def test_writes_go_to_durable(
        self, dual_store: CacheStore, redis_client: MagicMock, local_backend: LocalCacheBackend
    ) -> None:
        await dual_store.init()

        assert await dual_store.set("k", {"a": 1}, 120) is True

        redis_client.set.assert_awaited_once()
        assert redis_client.set.await_args.kwargs["ex"] == 120
        assert len(local_backend) == 0
        lookup = await dual_store.get("k")
        assert lookup.backend is BackendKind.DURABLE
        assert lookup.value == {"a": 1}

    @pytest.mark.asyncio
    async def test_durable_failure_falls_back_to_local(
        self, dual_store: CacheStore, redis_client: MagicMock
    ) -> None:
        # Given: a durable backend that drops every connection
        await dual_store.init()
        redis_client.set.side_effect = RedisConnectionError("connection refused")
        redis_client.get.side_effect = RedisConnectionError("connection refused")

        # When: a value is written and read back
        written = await dual_store.set("k", "v", 60)
        lookup = await dual_store.get("k")

        # Then: neither call raised and the local backend served the value
        assert written is True
        assert lookup.found is True
        assert lookup.value == "v"
        assert lookup.backend is BackendKind.LOCAL
        stats = dual_store.get_stats()
        assert stats["fallback_writes"] == 1
        assert stats["durable_connected"] is False

    @pytest.mark.asyncio
    async def test_durable_read_error_is_reported_on_miss(
        self, dual_store: CacheStore, redis_client: MagicMock
    ) -> None:
        await dual_store.init()
        redis_client.get.side_effect = RedisConnectionError("timeout")

        lookup = await dual_store.get("absent")

        assert lookup.found is False
        assert isinstance(lookup.error, CacheError)
        assert lookup.error.code == ErrorCode.CACHE_BACKEND_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_durable_is_skipped_until_reconnect_interval(
        self,
        dual_store: CacheStore,
        redis_client: MagicMock,
        fake_clock: FakeClock,
    ) -> None:
        await dual_store.init()
        redis_client.get.side_effect = RedisConnectionError("down")
        await dual_store.get("k")
        assert redis_client.get.await_count == 1

        # Within the interval the durable backend is not contacted
        fake_clock.advance(10)
        await dual_store.get("k")
        assert redis_client.get.await_count == 1

        # After the interval the next call tries it again
        redis_client.get.side_effect = None
        redis_client.get.return_value = None
        fake_clock.advance(25)
        await dual_store.get("k")
        assert redis_client.get.await_count == 2
        assert dual_store.is_ready is True

    @pytest.mark.asyncio
    async def test_health_degraded_when_durable_unreachable(
        self, dual_store: CacheStore, redis_client: MagicMock
    ) -> None:
        redis_client.ping.side_effect = RedisConnectionError("down")

        await dual_store.init()
        health = await dual_store.health_check()

        assert health["status"] == "degraded"
        assert health["durable"] == {"configured": True, "connected": False}

    @pytest.mark.asyncio
    async def test_delete_matching_covers_both_backends(
        self, dual_store: CacheStore, local_backend: LocalCacheBackend
    ) -> None:
        await dual_store.init()
        await dual_store.set("dashvault:iterations:a:1", 1, 60)
        await local_backend.set("dashvault:iterations:b:2", CacheEntry(key="x", value=2, ttl_seconds=60).to_bytes(), 60)

        removed = await dual_store.delete_matching("dashvault:iterations:*")

        assert removed == 2
        assert (await dual_store.get("dashvault:iterations:a:1")).found is False

    @pytest.mark.asyncio
    async def test_shutdown_closes_client(self, dual_store: CacheStore, redis_client: MagicMock) -> None:
        await dual_store.init()
        await dual_store.shutdown()

        redis_client.aclose.assert_awaited_once()
        assert dual_store.is_ready is False


class TestDurableOutageRecovery:
    """Evictions and writes made while the durable backend is down."""

    KEY = "dashvault:workItems:Orion:0123456789abcdef"

    @pytest.fixture
    def redis_data(self) -> dict[str, bytes]:
        return {}

    @pytest.fixture
    def outage_client(self, redis_data: dict[str, bytes]) -> MagicMock:
        return _redis_client(redis_data)

    @pytest.fixture
    def store(
        self, outage_client: MagicMock, local_backend: LocalCacheBackend, fake_clock: FakeClock
    ) -> CacheStore:
        durable = RedisCacheBackend(
            "redis://localhost:6379/0",
            reconnect_interval=30,
            client=outage_client,
            clock=fake_clock,
        )
        return CacheStore(local=local_backend, durable=durable)

    @staticmethod
    def _take_down(client: MagicMock) -> dict[str, object]:
        saved = {name: getattr(client, name).side_effect for name in ("get", "set", "delete")}
        for name in saved:
            getattr(client, name).side_effect = RedisConnectionError("connection refused")
        return saved

    @staticmethod
    def _bring_up(client: MagicMock, saved: dict[str, object]) -> None:
        for name, side_effect in saved.items():
            getattr(client, name).side_effect = side_effect

    @pytest.mark.asyncio
    async def test_namespace_invalidated_during_outage_stays_invalidated(
        self, store: CacheStore, outage_client: MagicMock, fake_clock: FakeClock
    ) -> None:
        # Given: a value cached in Redis, then Redis goes down
        fetcher = CachedFetcher(store, key_prefix="dashvault")
        await store.init()
        stale = await fetcher.fetch_with_cache(
            "workItems", "Orion", {"state": "Active"}, 300, AsyncMock(return_value="OLD")
        )
        assert stale == "OLD"
        saved = self._take_down(outage_client)
        await store.get(self.KEY)

        # When: the namespace is invalidated during the outage
        removed = await fetcher.invalidate_namespace("workItems")

        # Then: nothing was reachable yet, the eviction is pending
        assert removed == 0
        assert store.get_stats()["pending_evictions"] == 1

        # And: after recovery the stale value is not served
        self._bring_up(outage_client, saved)
        fake_clock.advance(31)
        fresh = await fetcher.fetch_with_cache(
            "workItems", "Orion", {"state": "Active"}, 300, AsyncMock(return_value="NEW")
        )
        assert fresh == "NEW"
        assert store.get_stats()["pending_evictions"] == 0

    @pytest.mark.asyncio
    async def test_failed_durable_delete_is_replayed(
        self,
        store: CacheStore,
        outage_client: MagicMock,
        redis_data: dict[str, bytes],
        fake_clock: FakeClock,
    ) -> None:
        await store.init()
        await store.set(self.KEY, "OLD", 300)
        saved = self._take_down(outage_client)

        assert await store.delete(self.KEY) is False

        self._bring_up(outage_client, saved)
        fake_clock.advance(31)
        lookup = await store.get(self.KEY)

        assert lookup.found is False
        assert self.KEY not in redis_data

    @pytest.mark.asyncio
    async def test_write_during_outage_wins_over_older_durable_value(
        self,
        store: CacheStore,
        outage_client: MagicMock,
        fake_clock: FakeClock,
    ) -> None:
        # Given: "OLD" in Redis, then a newer "NEW" written to the local backend during an outage
        await store.init()
        await store.set(self.KEY, "OLD", 300)
        saved = self._take_down(outage_client)
        assert await store.set(self.KEY, "NEW", 300) is True

        # When: Redis is back and the key is read
        self._bring_up(outage_client, saved)
        fake_clock.advance(31)
        lookup = await store.get(self.KEY)

        # Then: the newer local value is served
        assert lookup.value == "NEW"
        assert lookup.backend is BackendKind.LOCAL

    @pytest.mark.asyncio
    async def test_pending_evictions_survive_a_failed_reconnect(
        self,
        store: CacheStore,
        outage_client: MagicMock,
        redis_data: dict[str, bytes],
        fake_clock: FakeClock,
    ) -> None:
        await store.init()
        await store.set(self.KEY, "OLD", 300)
        saved = self._take_down(outage_client)
        await store.delete(self.KEY)

        # The first attempt after the interval still fails
        fake_clock.advance(31)
        await store.get(self.KEY)
        assert store.get_stats()["pending_evictions"] == 1
        assert self.KEY in redis_data

        self._bring_up(outage_client, saved)
        fake_clock.advance(31)
        await store.get(self.KEY)

        assert store.get_stats()["pending_evictions"] == 0
        assert self.KEY not in redis_data
