"""Cache backends.

Two interchangeable backends share the ``CacheBackend`` interface:

- ``RedisCacheBackend``: the durable, shared store (redis.asyncio). Any
  Redis failure is wrapped in ``CacheError`` and marks the backend
  unavailable until the reconnect interval elapses. Evictions that could
  not reach Redis are queued and replayed before the next command.
- ``LocalCacheBackend``: a bounded in-process LRU used as the automatic
  fallback. It never fails.

Backends store opaque bytes and enforce TTL themselves.
"""

from __future__ import annotations

import fnmatch
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Awaitable, Callable, TypeVar

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from dashvault.services.cache.models import BackendKind
from dashvault.shared.constants import CacheConfig
from dashvault.shared.errors import CacheError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheBackend(ABC):
    """Byte-oriented key/value backend with TTL."""

    kind: BackendKind

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the stored payload or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, payload: bytes, ttl_seconds: int) -> None:
        """Store a payload with an explicit TTL."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete one key. Returns True if it existed."""

    @abstractmethod
    async def delete_matching(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns the count."""

    @abstractmethod
    async def ping(self) -> bool:
        """Check backend reachability."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""


class LocalCacheBackend(CacheBackend):
    """Bounded in-process LRU with absolute expiry.

    TTLs are capped at ``max_ttl`` so a value written during a durable
    outage cannot outlive the outage by long.

    Args:
        max_entries: LRU capacity
        max_ttl: Upper bound applied to every TTL
        clock: Monotonic time source (injectable for tests)
    """

    kind = BackendKind.LOCAL

    def __init__(
        self,
        max_entries: int = CacheConfig.LOCAL_MAX_ENTRIES,
        max_ttl: int = CacheConfig.LOCAL_MAX_TTL,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self.max_ttl = max_ttl
        self._clock = clock
        self._entries: OrderedDict[str, tuple[bytes, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> bytes | None:
        item = self._entries.get(key)
        if item is None:
            return None
        payload, expires_at = item
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return payload

    async def set(self, key: str, payload: bytes, ttl_seconds: int) -> None:
        ttl = min(ttl_seconds, self.max_ttl)
        self._entries[key] = (payload, self._clock() + ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Local cache full, evicted %s", evicted)

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_matching(self, pattern: str) -> int:
        matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            del self._entries[key]
        return len(matched)

    def purge_expired(self) -> int:
        """Drop expired entries eagerly. Returns the number removed."""
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._entries.clear()


async def _scan_and_delete(client: Any, pattern: str) -> int:
    keys = [key async for key in client.scan_iter(match=pattern, count=CacheConfig.SCAN_COUNT)]
    deleted = 0
    for start in range(0, len(keys), CacheConfig.SCAN_COUNT):
        deleted += await client.delete(*keys[start : start + CacheConfig.SCAN_COUNT])
    return deleted


class RedisCacheBackend(CacheBackend):
    """Durable backend on redis.asyncio.

    The backend tracks its own availability. After a failure, calls are
    skipped (``should_attempt`` is False) until ``reconnect_interval``
    seconds have passed; the next call then retries the connection.

    Deletes that never reached Redis are kept as pending evictions. The
    first command sent after recovery replays them before it runs, so a
    value evicted during an outage is never served again.

    Args:
        url: Redis URL
        socket_timeout: Socket and connect timeout in seconds
        reconnect_interval: Seconds to wait before probing again
        client: Pre-built client (tests)
        clock: Monotonic time source (injectable for tests)
    """

    kind = BackendKind.DURABLE

    def __init__(
        self,
        url: str,
        *,
        socket_timeout: float = CacheConfig.SOCKET_TIMEOUT,
        reconnect_interval: float = CacheConfig.RECONNECT_INTERVAL,
        client: Any | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url
        self.socket_timeout = socket_timeout
        self.reconnect_interval = reconnect_interval
        self._client = client
        self._clock = clock
        self._available = False
        self._last_failure: float | None = None
        # (kind, target) -> None; kind is "key" or "pattern"
        self._pending: dict[tuple[str, str], None] = {}

    @property
    def available(self) -> bool:
        return self._available

    @property
    def pending_evictions(self) -> int:
        return len(self._pending)

    def should_attempt(self) -> bool:
        """Whether the next operation should hit Redis."""
        if self._available or self._last_failure is None:
            return True
        return self._clock() - self._last_failure >= self.reconnect_interval

    def defer_delete(self, key: str) -> None:
        """Queue a key delete for replay once Redis is reachable."""
        self._pending[("key", key)] = None

    def defer_delete_matching(self, pattern: str) -> None:
        """Queue a pattern delete for replay once Redis is reachable."""
        self._pending[("pattern", pattern)] = None

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = aioredis.from_url(
                self.url,
                socket_timeout=self.socket_timeout,
                socket_connect_timeout=self.socket_timeout,
            )
        return self._client

    async def connect(self) -> bool:
        """Ping the server once; returns the resulting availability."""
        return await self.ping()

    async def _replay_pending(self, client: Any) -> None:
        for kind, target in list(self._pending):
            if kind == "pattern":
                await _scan_and_delete(client, target)
            else:
                await client.delete(target)
            del self._pending[(kind, target)]
        logger.info("Replayed pending evictions on the durable cache")

    async def _run(self, operation: str, call: Callable[[Any], Awaitable[T]]) -> T:
        try:
            client = self._get_client()
            if self._pending:
                await self._replay_pending(client)
            result = await call(client)
        except (RedisError, OSError) as e:
            if self._available:
                logger.warning("Durable cache backend became unavailable: %s", e)
            self._available = False
            self._last_failure = self._clock()
            raise CacheError(
                ErrorCode.CACHE_BACKEND_UNAVAILABLE,
                f"Durable cache {operation} failed: {e}",
                ErrorContext(operation=f"redis_{operation}"),
                original_error=e,
            ) from e

        if not self._available:
            logger.info("Durable cache backend available")
        self._available = True
        self._last_failure = None
        return result

    async def get(self, key: str) -> bytes | None:
        return await self._run("get", lambda client: client.get(key))

    async def set(self, key: str, payload: bytes, ttl_seconds: int) -> None:
        await self._run("set", lambda client: client.set(key, payload, ex=ttl_seconds))

    async def delete(self, key: str) -> bool:
        deleted = await self._run("delete", lambda client: client.delete(key))
        return bool(deleted)

    async def delete_matching(self, pattern: str) -> int:
        return await self._run("delete_matching", lambda client: _scan_and_delete(client, pattern))

    async def ping(self) -> bool:
        try:
            await self._run("ping", lambda client: client.ping())
        except CacheError:
            return False
        return True

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except (RedisError, OSError) as e:
            logger.warning("Error closing durable cache connection: %s", e)
        finally:
            self._client = None
            self._available = False
