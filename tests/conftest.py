"""
Pytest configuration and shared fixtures for DashVault tests.

Time is always injected: tests never sleep for real, never open a
socket and never need a running Redis server.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any

import pytest

from dashvault.cli.common.context import clear_cli_context
from dashvault.services.cache import CacheStore, LocalCacheBackend
from dashvault.services.cached_fetcher import CachedFetcher
from dashvault.services.rate_limiter import SlidingWindowRateLimiter
from dashvault.services.tracker import BatchCoordinator, RateLimitedClient, StaticFixtureSource, TrackerService


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays and advances a clock."""

    def __init__(self, clock: FakeClock | None = None) -> None:
        self.clock = clock
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


def _bug(
    item_id: int,
    bug_type: str | None,
    *,
    state: str = "Active",
    iteration: str = "Orion\\Sprint 12",
    severity: str = "2 - High",
    created: str = "2026-09-16T09:00:00Z",
) -> dict:
    fields: dict[str, Any] = {
        "System.Id": item_id,
        "System.Title": f"Bug {item_id}",
        "System.WorkItemType": "Bug",
        "System.State": state,
        "System.TeamProject": "Orion",
        "System.IterationPath": iteration,
        "System.AreaPath": "Orion\\Web",
        "System.AssignedTo": {"displayName": "Dana Kim", "uniqueName": "dana@example.com"},
        "Microsoft.VSTS.Common.Severity": severity,
        "System.CreatedDate": created,
    }
    if bug_type is not None:
        fields["Custom.BugType"] = bug_type
    return {"id": item_id, "fields": fields}


def _task(item_id: int, *, iteration: str = "Orion\\Sprint 12") -> dict:
    return {
        "id": item_id,
        "fields": {
            "System.Id": item_id,
            "System.Title": f"Task {item_id}",
            "System.WorkItemType": "Task",
            "System.State": "Active",
            "System.TeamProject": "Orion",
            "System.IterationPath": iteration,
            "System.AreaPath": "Orion\\Web",
            "Microsoft.VSTS.Scheduling.StoryPoints": 3,
        },
    }


@pytest.fixture
def tracker_fixtures() -> dict[str, Any]:
    """Fixture documents for project "Orion" served by StaticFixtureSource."""
    return {
        "work_items": [
            _bug(101, "Production Issue"),
            _bug(102, "SIT defect"),
            _bug(103, "UAT"),
            _bug(104, None),
            _bug(105, "Deployment", created="2026-09-22T14:30:00Z"),
            _bug(106, "Cosmetic", severity="3 - Medium", created="2026-09-22T14:30:00Z"),
            _bug(107, "Prod", state="Removed"),
            _bug(108, "Prod", iteration="Orion\\Sprint 11"),
            _task(201),
            _task(202),
        ],
        "iterations": {
            "Orion Team": [
                {
                    "id": "it-11",
                    "name": "Sprint 11",
                    "path": "Orion\\Sprint 11",
                    "attributes": {
                        "startDate": "2026-09-01T00:00:00Z",
                        "finishDate": "2026-09-14T00:00:00Z",
                        "timeFrame": "past",
                    },
                },
                {
                    "id": "it-12",
                    "name": "Sprint 12",
                    "path": "Orion\\Sprint 12",
                    "attributes": {
                        "startDate": "2026-09-15T00:00:00Z",
                        "finishDate": "2026-09-28T00:00:00Z",
                        "timeFrame": "current",
                    },
                },
            ],
        },
        "team_members": {
            "Orion Team": [
                {"identity": {"id": "u-1", "displayName": "Dana Kim", "uniqueName": "dana@example.com"}},
            ],
        },
    }


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(fake_clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(fake_clock)


@pytest.fixture
def local_backend(fake_clock: FakeClock) -> LocalCacheBackend:
    return LocalCacheBackend(max_entries=100, max_ttl=300, clock=fake_clock)


@pytest.fixture
def cache_store(local_backend: LocalCacheBackend) -> CacheStore:
    """Local-only store (no durable backend configured)."""
    return CacheStore(local=local_backend)


@pytest.fixture
def fetcher(cache_store: CacheStore) -> CachedFetcher:
    return CachedFetcher(cache_store, key_prefix="dashvault")


@pytest.fixture
def fixture_source(tracker_fixtures: dict[str, Any]) -> StaticFixtureSource:
    return StaticFixtureSource(tracker_fixtures)


@pytest.fixture
def rate_limiter(fake_clock: FakeClock, recording_sleep: RecordingSleep) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(1000, 60, clock=fake_clock, sleep=recording_sleep)


@pytest.fixture
def tracker_client(fixture_source: StaticFixtureSource, rate_limiter: SlidingWindowRateLimiter) -> RateLimitedClient:
    return RateLimitedClient(fixture_source, rate_limiter, timeout_seconds=5)


@pytest.fixture
def batch_coordinator(tracker_client: RateLimitedClient, recording_sleep: RecordingSleep) -> BatchCoordinator:
    return BatchCoordinator(tracker_client, max_batch_size=3, batch_delay_ms=100, sleep=recording_sleep)


@pytest.fixture
def tracker_service(
    tracker_client: RateLimitedClient,
    batch_coordinator: BatchCoordinator,
    fetcher: CachedFetcher,
) -> TrackerService:
    return TrackerService(tracker_client, batch_coordinator, fetcher)


@pytest.fixture(autouse=True)
def _reset_logging_and_cli_context() -> Generator[None, None, None]:
    """Undo CLI logger setup so later tests can rely on propagation."""
    yield
    root = logging.getLogger("dashvault")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)
    clear_cli_context()
