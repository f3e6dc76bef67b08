"""Tests for the DataAccessLayer facade and its container wiring."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest

from dashvault.config.models import CacheSettings, Settings, TrackerSettings
from dashvault.containers import Container, create_durable_backend, create_tracker_source
from dashvault.data_access import DataAccessLayer
from dashvault.services.fallback import FallbackTier
from dashvault.services.tracker import LiveSource, StaticFixtureSource
from dashvault.shared.errors import ApplicationError, ErrorCode, InfrastructureError


@pytest.fixture
def fixture_file(tmp_path: Path, tracker_fixtures: dict[str, Any]) -> Path:
    path = tmp_path / "fixtures.json"
    path.write_text(json.dumps(tracker_fixtures), encoding="utf-8")
    return path


@pytest.fixture
def settings(fixture_file: Path) -> Settings:
    return Settings(
        tracker=TrackerSettings(source="fixture", fixture_path=fixture_file, batch_delay_ms=0),
        cache=CacheSettings(redis_url=None),
    )


class TestContainerFactories:
    """Tests for the container's factory helpers."""

    def test_fixture_source(self, fixture_file: Path) -> None:
        source = create_tracker_source(TrackerSettings(source="fixture", fixture_path=fixture_file))

        assert isinstance(source, StaticFixtureSource)
        assert len(source.work_items) == 10

    def test_empty_fixture_source(self) -> None:
        source = create_tracker_source(TrackerSettings(source="fixture"))
        assert isinstance(source, StaticFixtureSource)

    def test_live_source(self) -> None:
        source = create_tracker_source(TrackerSettings(organization="acme", access_token="secret"))
        assert isinstance(source, LiveSource)

    def test_no_durable_backend_without_url(self) -> None:
        assert create_durable_backend(CacheSettings()) is None

    def test_singletons_are_shared(self, settings: Settings) -> None:
        container = Container()
        container.config.override(settings)

        # One rate limiter and one store for every consumer
        assert container.tracker_client().rate_limiter is container.rate_limiter()
        assert container.tracker_service().fetcher is container.bug_classification_service().fetcher


class TestDataAccessLayer:
    """Tests for DataAccessLayer."""

    @pytest.mark.asyncio
    async def test_classify_through_the_facade(self, settings: Settings) -> None:
        async with DataAccessLayer.from_settings(settings) as dal:
            result = await dal.classify_with_fallback("Orion", {"iteration": "Orion\\Sprint 12"})

        assert result.tier is FallbackTier.PRIMARY
        assert result.payload.total_bugs == 6
        assert result.payload.classification_rate == 83.3

    @pytest.mark.asyncio
    async def test_invalid_filter_mapping_is_a_validation_error(self, settings: Settings) -> None:
        dal = DataAccessLayer.from_settings(settings)

        with pytest.raises(ApplicationError) as exc_info:
            await dal.classify_with_fallback("Orion", {"environment": "Staging"})

        assert exc_info.value.code == ErrorCode.VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_resolve_iteration(self, settings: Settings) -> None:
        dal = DataAccessLayer.from_settings(settings)

        # Concrete paths pass through untouched
        path = await dal.resolve_iteration("Orion", "Orion\\Sprint 11")

        assert path == "Orion\\Sprint 11"

    @pytest.mark.asyncio
    async def test_fetch_with_cache_and_invalidate(self, settings: Settings) -> None:
        dal = DataAccessLayer.from_settings(settings)
        fetch_fn = AsyncMock(return_value={"velocity": 21})

        await dal.fetch_with_cache("metrics", "Orion", {"sprint": 12}, 300, fetch_fn)
        await dal.fetch_with_cache("metrics", "Orion", {"sprint": 12}, 300, fetch_fn)
        removed = await dal.invalidate_namespace("metrics")
        await dal.fetch_with_cache("metrics", "Orion", {"sprint": 12}, 300, fetch_fn)

        assert removed == 1
        assert fetch_fn.await_count == 2

    @pytest.mark.asyncio
    async def test_run_batched(self, settings: Settings) -> None:
        dal = DataAccessLayer.from_settings(settings)
        seen: list[list[int]] = []

        async def _lookup(batch: list[int]) -> list[int]:
            seen.append(batch)
            return batch

        results = await dal.run_batched([1, 2, 3, 4, 5], 2, 0, _lookup)

        assert results == [1, 2, 3, 4, 5]
        assert seen == [[1, 2], [3, 4], [5]]

    @pytest.mark.asyncio
    async def test_cache_stats(self, settings: Settings) -> None:
        async with DataAccessLayer.from_settings(settings) as dal:
            await dal.classify_with_fallback("Orion")
            stats = await dal.get_cache_stats()

        assert stats["degraded"] is False
        assert stats["health"]["status"] == "healthy"
        assert stats["tiers"]["primary"] == 1
        assert stats["client"]["calls"] >= 1
        assert stats["cache"]["sets"] >= 1

    @pytest.mark.asyncio
    async def test_init_is_idempotent(self, settings: Settings, mocker: Any) -> None:
        dal = DataAccessLayer.from_settings(settings)
        start = mocker.spy(dal.client, "start")

        await dal.init()
        await dal.init()

        assert start.call_count == 1

    @pytest.mark.asyncio
    async def test_shutdown_releases_everything_even_on_failure(self, settings: Settings, mocker: Any) -> None:
        # Given: closing the tracker source fails
        dal = DataAccessLayer.from_settings(settings)
        await dal.init()
        mocker.patch.object(dal.client, "close", side_effect=RuntimeError("socket already closed"))
        store_shutdown = mocker.spy(dal.fetcher.store, "shutdown")

        # When / Then
        with pytest.raises(InfrastructureError) as exc_info:
            await dal.shutdown()

        assert exc_info.value.code == ErrorCode.RESOURCE_CLEANUP_ERROR
        assert store_shutdown.call_count == 1
