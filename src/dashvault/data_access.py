"""Data access layer facade.

Single entry point for route handlers and the admin CLI. The facade owns
the lifecycle of the shared components: ``init`` connects the cache
store and the tracker source, ``shutdown`` releases them.

Example:
    >>> async with DataAccessLayer.from_settings(settings) as dal:
    ...     result = await dal.classify_with_fallback("Orion")
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Mapping, Sequence, TypeVar

from dependency_injector import providers

from dashvault.config.models import Settings
from dashvault.containers import Container
from dashvault.services.bug_classification import (
    BugClassificationReport,
    BugClassificationService,
    ClassificationFilters,
)
from dashvault.services.cached_fetcher import CachedFetcher
from dashvault.services.fallback import FallbackResult
from dashvault.services.iteration_resolver import IterationResolver
from dashvault.services.tracker import BatchCoordinator, RateLimitedClient, TrackerService
from dashvault.shared.constants import CacheHealth
from dashvault.shared.errors import ErrorCode, ErrorContext, InfrastructureError
from dashvault.shared.logging import log_operation_success

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class DataAccessLayer:
    """Facade over the cached, rate-limited tracker access stack."""

    def __init__(
        self,
        client: RateLimitedClient,
        fetcher: CachedFetcher,
        batch_coordinator: BatchCoordinator,
        resolver: IterationResolver,
        tracker: TrackerService,
        bug_classification: BugClassificationService,
    ) -> None:
        self.client = client
        self.fetcher = fetcher
        self.batch_coordinator = batch_coordinator
        self.resolver = resolver
        self.tracker = tracker
        self.bug_classification = bug_classification
        self._started = False

    @classmethod
    def from_container(cls, container: Container) -> DataAccessLayer:
        return cls(
            client=container.tracker_client(),
            fetcher=container.cached_fetcher(),
            batch_coordinator=container.batch_coordinator(),
            resolver=container.iteration_resolver(),
            tracker=container.tracker_service(),
            bug_classification=container.bug_classification_service(),
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> DataAccessLayer:
        """Build the facade from settings (loaded from config when None)."""
        container = Container()
        if settings is not None:
            container.config.override(providers.Object(settings))
        return cls.from_container(container)

    async def init(self) -> None:
        """Connect the cache store and open the tracker source."""
        if self._started:
            return
        start = time.perf_counter()
        await self.fetcher.store.init()
        await self.client.start()
        self._started = True
        log_operation_success(
            logger=logger,
            operation="data_access_init",
            duration_ms=(time.perf_counter() - start) * 1000,
            result_info={"durable_cache": self.fetcher.store.is_ready},
        )

    async def shutdown(self) -> None:
        """Release the tracker source and the cache backends.

        Both are attempted even when the first one fails.
        """
        failures: list[Exception] = []
        for name, close in (("tracker_source", self.client.close), ("cache_store", self.fetcher.store.shutdown)):
            try:
                await close()
            except Exception as e:  # noqa: BLE001
                failures.append(e)
                logger.warning("Failed to release %s: %s", name, e, extra={"operation": "data_access_shutdown"})
        self._started = False
        if failures:
            raise InfrastructureError(
                ErrorCode.RESOURCE_CLEANUP_ERROR,
                f"Failed to release {len(failures)} resource(s): {failures[0]}",
                ErrorContext(operation="data_access_shutdown"),
                original_error=failures[0],
            )

    async def __aenter__(self) -> DataAccessLayer:
        await self.init()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.shutdown()

    async def fetch_with_cache(
        self,
        namespace: str,
        identifier: str | int,
        params: Mapping[str, Any] | None,
        ttl_seconds: int,
        fetch_fn: Callable[[], Awaitable[T]],
    ) -> T:
        return await self.fetcher.fetch_with_cache(namespace, identifier, params, ttl_seconds, fetch_fn)

    async def resolve_iteration(
        self,
        project: str,
        logical_ref: str,
        team_hint: str | None = None,
    ) -> str | None:
        """Concrete iteration path, or None meaning "apply no iteration filter"."""
        return await self.resolver.resolve(project, logical_ref, team_hint)

    async def run_batched(
        self,
        ids: Sequence[T],
        batch_size: int,
        delay_ms: int,
        batch_fn: Callable[[list[T]], Awaitable[Sequence[R]]],
    ) -> list[R]:
        return await self.batch_coordinator.run_batched(
            ids,
            batch_fn,
            max_batch_size=batch_size,
            batch_delay_ms=delay_ms,
        )

    async def classify_with_fallback(
        self,
        project: str,
        filters: ClassificationFilters | Mapping[str, Any] | None = None,
    ) -> FallbackResult[BugClassificationReport]:
        if filters is not None and not isinstance(filters, ClassificationFilters):
            filters = ClassificationFilters.parse(filters)
        return await self.bug_classification.classify_with_fallback(project, filters)

    async def invalidate_namespace(self, namespace: str) -> int:
        removed = await self.fetcher.invalidate_namespace(namespace)
        logger.info("Invalidated %d cache entries in namespace '%s'", removed, namespace)
        return removed

    async def get_cache_stats(self) -> dict[str, Any]:
        """Cache counters, backend health and client/tier statistics."""
        health = await self.fetcher.store.health_check()
        return {
            "cache": self.fetcher.get_cache_stats(),
            "health": health,
            "degraded": health.get("status") == CacheHealth.DEGRADED,
            "client": self.client.get_stats(),
            "tiers": self.bug_classification.orchestrator.get_stats(),
        }
