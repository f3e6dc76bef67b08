"""Dual-backend cache store.

The store writes to the durable backend when it is reachable and falls
back to the local backend otherwise. Reads try the durable backend
first and then the local one, so values written during an outage stay
visible. Deletes and fallback writes that cannot reach the durable
backend leave a pending eviction behind, so an entry removed or
superseded during an outage does not reappear once it recovers. No
operation raises a backend error to the caller: ``get`` returns a
``CacheLookup`` and ``set`` returns a success flag.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Iterable, Mapping, Union

from dashvault.services.cache.backends import LocalCacheBackend, RedisCacheBackend
from dashvault.services.cache.models import BackendKind, CacheEntry, CacheLookup, CacheStats
from dashvault.shared.cache_keys import CacheKey
from dashvault.shared.constants import CacheHealth
from dashvault.shared.errors import CacheError, ErrorCode, ErrorContext
from dashvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

KeyLike = Union[str, CacheKey]


def _valid_ttl(ttl_seconds: Any) -> bool:
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, (int, float)):
        return False
    return ttl_seconds > 0 and float(ttl_seconds).is_integer()


class CacheStore:
    """Key/value store with a durable primary and a local fallback.

    Args:
        local: In-process fallback backend
        durable: Shared backend; None runs the store on the local backend only
    """

    def __init__(
        self,
        local: LocalCacheBackend | None = None,
        durable: RedisCacheBackend | None = None,
    ) -> None:
        self.local = local or LocalCacheBackend()
        self.durable = durable
        self.stats = CacheStats()

    async def init(self) -> None:
        """Check the durable backend. Never raises."""
        start = time.perf_counter()
        if self.durable is not None:
            connected = await self.durable.connect()
            if not connected:
                logger.warning("Durable cache unreachable at startup, serving from local backend")
        log_operation_success(
            logger=logger,
            operation="cache_store_init",
            duration_ms=(time.perf_counter() - start) * 1000,
            result_info={"durable": self.is_ready},
        )

    async def shutdown(self) -> None:
        """Close both backends."""
        if self.durable is not None:
            await self.durable.close()
        await self.local.close()

    @property
    def is_ready(self) -> bool:
        """Durable backend readiness, for observability only."""
        return self.durable is not None and self.durable.available

    def _durable_usable(self) -> bool:
        return self.durable is not None and self.durable.should_attempt()

    def _record_error(self, error: CacheError, key: str) -> None:
        self.stats.errors += 1
        log_operation_error(
            logger=logger,
            error=error,
            context={"key": key},
            level=logging.WARNING,
        )

    def _decode(self, key: str, payload: bytes) -> CacheEntry | None:
        try:
            return CacheEntry.from_bytes(payload)
        except ValueError as e:
            self._record_error(
                CacheError(
                    ErrorCode.CACHE_READ_FAILED,
                    f"Corrupted cache entry: {e}",
                    ErrorContext(operation="cache_get"),
                    original_error=e,
                ),
                key,
            )
            return None

    async def get(self, key: KeyLike) -> CacheLookup:
        """Read a value.

        Returns:
            A found lookup with the value and serving backend, or an
            absent lookup (carrying the backend error, if any).
        """
        key = str(key)
        error: CacheError | None = None

        if self._durable_usable():
            try:
                payload = await self.durable.get(key)
            except CacheError as e:
                error = e
                self._record_error(e, key)
            else:
                if payload is not None:
                    entry = self._decode(key, payload)
                    if entry is not None:
                        self.stats.hits += 1
                        self.stats.durable_hits += 1
                        return CacheLookup.hit(entry.value, BackendKind.DURABLE)

        payload = await self.local.get(key)
        if payload is not None:
            entry = self._decode(key, payload)
            if entry is not None:
                self.stats.hits += 1
                self.stats.local_hits += 1
                return CacheLookup.hit(entry.value, BackendKind.LOCAL)
            await self.local.delete(key)

        self.stats.misses += 1
        return CacheLookup.miss(error)

    async def set(self, key: KeyLike, value: Any, ttl_seconds: int) -> bool:
        """Write a value with an explicit TTL.

        Returns:
            True when a backend accepted the value. False for a TTL that
            is not a positive whole number of seconds or a value that is
            not JSON-serializable.
        """
        key = str(key)
        if not _valid_ttl(ttl_seconds):
            logger.warning("Refusing cache write for %s with invalid TTL %r", key, ttl_seconds)
            return False
        ttl_seconds = int(ttl_seconds)

        try:
            payload = CacheEntry(key=key, value=value, ttl_seconds=ttl_seconds).to_bytes()
        except (TypeError, ValueError) as e:
            self._record_error(
                CacheError(
                    ErrorCode.CACHE_SERIALIZATION_ERROR,
                    f"Value for {key} is not JSON-serializable: {e}",
                    ErrorContext(operation="cache_set"),
                    original_error=e,
                ),
                key,
            )
            return False

        if self._durable_usable():
            try:
                await self.durable.set(key, payload, ttl_seconds)
            except CacheError as e:
                self._record_error(e, key)
            else:
                self.stats.sets += 1
                return True

        await self.local.set(key, payload, ttl_seconds)
        self.stats.sets += 1
        if self.durable is not None:
            # Any durable copy is now older than the local one
            self.durable.defer_delete(key)
            self.stats.fallback_writes += 1
        return True

    async def delete(self, key: KeyLike) -> bool:
        """Delete a key from both backends."""
        key = str(key)
        deleted = await self.local.delete(key)
        if self._durable_usable():
            try:
                deleted = await self.durable.delete(key) or deleted
            except CacheError as e:
                self._record_error(e, key)
                self.durable.defer_delete(key)
        elif self.durable is not None:
            self.durable.defer_delete(key)
        if deleted:
            self.stats.deletes += 1
        return deleted

    async def delete_matching(self, pattern: str) -> int:
        """Delete every key matching a glob pattern from both backends.

        Returns:
            Number of keys removed so far. Durable keys that sit behind an
            outage are removed on recovery and are not counted here.
        """
        removed = await self.local.delete_matching(pattern)
        if self._durable_usable():
            try:
                removed += await self.durable.delete_matching(pattern)
            except CacheError as e:
                self._record_error(e, pattern)
                self.durable.defer_delete_matching(pattern)
        elif self.durable is not None:
            self.durable.defer_delete_matching(pattern)
        self.stats.deletes += removed
        logger.info("Evicted %d cache entries matching %s", removed, pattern)
        return removed

    async def get_many(self, keys: Iterable[KeyLike]) -> dict[str, CacheLookup]:
        """Read several keys. Keys are returned as strings."""
        results: dict[str, CacheLookup] = {}
        for key in keys:
            results[str(key)] = await self.get(key)
        return results

    async def set_many(self, entries: Mapping[str, Any], ttl_seconds: int) -> int:
        """Write several values. Returns the number of successful writes."""
        written = 0
        for key, value in entries.items():
            if await self.set(key, value, ttl_seconds):
                written += 1
        return written

    async def health_check(self) -> dict[str, Any]:
        """Report backend health.

        The store is ``degraded`` only when a durable backend is configured
        but unreachable.
        """
        durable_ok = await self.durable.ping() if self.durable is not None else None
        status = CacheHealth.DEGRADED if durable_ok is False else CacheHealth.HEALTHY
        return {
            "status": status,
            "durable": {
                "configured": self.durable is not None,
                "connected": bool(durable_ok),
            },
            "local": {
                "entries": len(self.local),
                "max_entries": self.local.max_entries,
            },
        }

    def get_stats(self) -> dict[str, Any]:
        """Return counters plus backend state."""
        return {
            **self.stats.to_dict(),
            "durable_connected": self.is_ready,
            "pending_evictions": self.durable.pending_evictions if self.durable is not None else 0,
            "local_entries": len(self.local),
        }
