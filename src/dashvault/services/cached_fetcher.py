"""Cache-aside fetcher.

Wraps async producers with read-through / write-back caching under
namespaced keys. Producer errors always propagate: a cold cache never
masks a failed fetch.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Hashable, Mapping, Sequence, TypeVar

from dashvault.services.cache.store import CacheStore
from dashvault.shared.cache_keys import CacheKey, generate_cache_key, namespace_pattern
from dashvault.shared.constants import CacheConfig, CacheTTL
from dashvault.shared.errors import create_validation_error

logger = logging.getLogger(__name__)

T = TypeVar("T")
FetchFn = Callable[[], Awaitable[T]]
ItemId = TypeVar("ItemId", bound=Hashable)


class CachedFetcher:
    """Read-through cache in front of async fetch functions.

    Args:
        store: Cache store holding every entry
        key_prefix: Product prefix of generated keys
    """

    def __init__(self, store: CacheStore, key_prefix: str = CacheConfig.KEY_PREFIX) -> None:
        self.store = store
        self.key_prefix = key_prefix

    def key_for(
        self,
        namespace: str,
        identifier: str | int,
        params: Mapping[str, Any] | None = None,
    ) -> CacheKey:
        """Build the key used for a request."""
        return generate_cache_key(namespace, identifier, params, prefix=self.key_prefix)

    async def fetch_with_cache(
        self,
        namespace: str,
        identifier: str | int,
        params: Mapping[str, Any] | None,
        ttl_seconds: int,
        fetch_fn: FetchFn[T],
    ) -> T:
        """Return the cached value or fetch, store and return it.

        ``None`` results are returned but not cached.

        Args:
            namespace: Cache namespace
            identifier: Identifier within the namespace
            params: Request parameters folded into the key
            ttl_seconds: TTL for a write-back
            fetch_fn: Async producer invoked on a miss

        Returns:
            Cached or freshly fetched value

        Raises:
            Exception: Whatever ``fetch_fn`` raises, unchanged
        """
        if ttl_seconds <= 0 or ttl_seconds != int(ttl_seconds):
            raise create_validation_error(
                f"TTL must be a positive whole number of seconds, got: {ttl_seconds}",
                field="ttl_seconds",
                operation="fetch_with_cache",
            )

        key = self.key_for(namespace, identifier, params)
        lookup = await self.store.get(key)
        if lookup.found:
            logger.debug("Cache hit for %s (%s)", key, lookup.backend.value if lookup.backend else "?")
            return lookup.value

        value = await fetch_fn()
        if value is not None:
            await self.store.set(key, value, ttl_seconds)
        return value

    async def fetch_many_with_cache(
        self,
        namespace: str,
        ids: Sequence[ItemId],
        ttl_seconds: int,
        fetch_missing: Callable[[list[ItemId]], Awaitable[Mapping[ItemId, Any]]],
    ) -> list[Any]:
        """Per-item cache-aside lookup for a list of ids.

        Cached ids are served from the cache; only the missing ids are
        passed to ``fetch_missing``, which returns a mapping id -> value.
        Results follow the input order. Ids the producer did not return
        are skipped.
        """
        results: dict[ItemId, Any] = {}
        missing: list[ItemId] = []
        for item_id in dict.fromkeys(ids):
            lookup = await self.store.get(self.key_for(namespace, str(item_id)))
            if lookup.found:
                results[item_id] = lookup.value
            else:
                missing.append(item_id)

        logger.debug(
            "Per-item cache for %s: %d cached, %d to fetch",
            namespace,
            len(results),
            len(missing),
        )

        if missing:
            fetched = await fetch_missing(missing)
            for item_id in missing:
                if item_id in fetched and fetched[item_id] is not None:
                    results[item_id] = fetched[item_id]
                    await self.store.set(self.key_for(namespace, str(item_id)), fetched[item_id], ttl_seconds)

        return [results[item_id] for item_id in ids if item_id in results]

    async def invalidate_namespace(self, namespace: str) -> int:
        """Evict every entry under a namespace. Returns the count removed."""
        return await self.store.delete_matching(namespace_pattern(namespace, prefix=self.key_prefix))

    async def warmup(
        self,
        entries: Sequence[tuple[str, str | int, Mapping[str, Any] | None, Any]],
        ttl_seconds: int = CacheTTL.WARMUP,
    ) -> int:
        """Pre-populate the cache.

        Args:
            entries: ``(namespace, identifier, params, value)`` tuples
            ttl_seconds: TTL applied to every entry

        Returns:
            Number of entries written
        """
        written = 0
        for namespace, identifier, params, value in entries:
            if await self.store.set(self.key_for(namespace, identifier, params), value, ttl_seconds):
                written += 1
        logger.info("Cache warmup wrote %d/%d entries", written, len(entries))
        return written

    def get_cache_stats(self) -> dict[str, Any]:
        return self.store.get_stats()
