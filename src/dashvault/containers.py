"""Dependency Injection container for DashVault.

This module wires the data access layer with dependency-injector so that
every consumer shares one rate limiter, one cache store and one tracker
client per process.

The container manages:
- Settings (Singleton)
- Tracker source, selected once from configuration
- Sliding window rate limiter and the rate-limited client (Singleton)
- Dual-backend cache store and the cached fetcher (Singleton)
- Tracker facade, iteration resolver and bug classification service
"""

from __future__ import annotations

from dependency_injector import containers, providers

from dashvault.config.loader import load_settings
from dashvault.config.models import CacheSettings, TrackerSettings
from dashvault.services.bug_classification import BugClassificationService
from dashvault.services.cache import CacheStore, LocalCacheBackend, RedisCacheBackend
from dashvault.services.cached_fetcher import CachedFetcher
from dashvault.services.fallback import TieredFallbackOrchestrator
from dashvault.services.iteration_resolver import IterationResolver
from dashvault.services.rate_limiter import SlidingWindowRateLimiter
from dashvault.services.tracker import (
    BatchCoordinator,
    LiveSource,
    RateLimitedClient,
    StaticFixtureSource,
    TrackerService,
    TrackerSource,
)
from dashvault.shared.constants import TrackerAPI


def create_tracker_source(settings: TrackerSettings) -> TrackerSource:
    """Build the source named by ``settings.source``."""
    if settings.source == TrackerAPI.SOURCE_FIXTURE:
        if settings.fixture_path is None:
            return StaticFixtureSource()
        return StaticFixtureSource.from_file(settings.fixture_path)
    return LiveSource(
        settings.organization,
        settings.access_token,
        base_url=settings.base_url,
        api_version=settings.api_version,
        timeout_seconds=settings.timeout_seconds,
    )


def create_durable_backend(settings: CacheSettings) -> RedisCacheBackend | None:
    """Redis backend, or None when no URL is configured."""
    if not settings.redis_url:
        return None
    return RedisCacheBackend(
        settings.redis_url,
        socket_timeout=settings.socket_timeout,
        reconnect_interval=settings.reconnect_interval,
    )


class Container(containers.DeclarativeContainer):
    """Dependency Injection container for DashVault services.

    Example:
        >>> container = Container()
        >>> container.config.override(providers.Object(Settings()))
        >>> service = container.bug_classification_service()
        >>> result = await service.classify_with_fallback("Orion")
    """

    # Configuration
    config = providers.Singleton(load_settings)

    tracker_settings = providers.Callable(lambda config: config.tracker, config=config)
    cache_settings = providers.Callable(lambda config: config.cache, config=config)
    namespace_ttls = providers.Callable(lambda config: config.cache.ttl, config=config)

    # Upstream access
    tracker_source = providers.Singleton(create_tracker_source, settings=tracker_settings)

    rate_limiter = providers.Singleton(
        SlidingWindowRateLimiter,
        requests_per_window=providers.Callable(lambda config: config.tracker.rate_limit, config=config),
        window_seconds=providers.Callable(lambda config: config.tracker.rate_window_seconds, config=config),
    )

    tracker_client = providers.Singleton(
        RateLimitedClient,
        source=tracker_source,
        rate_limiter=rate_limiter,
        timeout_seconds=providers.Callable(lambda config: config.tracker.timeout_seconds, config=config),
    )

    batch_coordinator = providers.Singleton(
        BatchCoordinator,
        client=tracker_client,
        max_batch_size=providers.Callable(lambda config: config.tracker.batch_size, config=config),
        batch_delay_ms=providers.Callable(lambda config: config.tracker.batch_delay_ms, config=config),
    )

    # Cache services
    local_backend = providers.Singleton(
        LocalCacheBackend,
        max_entries=providers.Callable(lambda config: config.cache.local_max_entries, config=config),
        max_ttl=providers.Callable(lambda config: config.cache.local_max_ttl, config=config),
    )

    durable_backend = providers.Singleton(create_durable_backend, settings=cache_settings)

    cache_store = providers.Singleton(
        CacheStore,
        local=local_backend,
        durable=durable_backend,
    )

    cached_fetcher = providers.Singleton(
        CachedFetcher,
        store=cache_store,
        key_prefix=providers.Callable(lambda config: config.cache.key_prefix, config=config),
    )

    # Domain services
    tracker_service = providers.Singleton(
        TrackerService,
        client=tracker_client,
        batch_coordinator=batch_coordinator,
        fetcher=cached_fetcher,
        ttls=namespace_ttls,
    )

    iteration_resolver = providers.Singleton(
        IterationResolver,
        client=tracker_client,
        fetcher=cached_fetcher,
        ttl_seconds=providers.Callable(lambda config: config.cache.ttl.iterations, config=config),
    )

    fallback_orchestrator = providers.Singleton(TieredFallbackOrchestrator)

    bug_classification_service = providers.Singleton(
        BugClassificationService,
        tracker=tracker_service,
        resolver=iteration_resolver,
        fetcher=cached_fetcher,
        orchestrator=fallback_orchestrator,
        ttl_seconds=providers.Callable(lambda config: config.cache.ttl.bug_classification, config=config),
    )
