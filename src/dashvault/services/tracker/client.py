"""Rate-limited upstream client.

Every outbound call goes through ``RateLimitedClient.call``, which:

1. waits for admission from the sliding window limiter,
2. bounds the call with a fixed timeout,
3. translates any failure into ``UpstreamUnavailableError``.

Rate-budget exhaustion is never an error: it only delays the call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from dashvault.services.rate_limiter import SlidingWindowRateLimiter
from dashvault.services.tracker.sources import TrackerSource
from dashvault.shared.constants import NetworkConfig
from dashvault.shared.errors import UpstreamUnavailableError, create_upstream_error
from dashvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimitedClient:
    """Outbound call wrapper for the tracking API.

    Args:
        source: Data source selected at construction
        rate_limiter: Shared sliding window limiter
        timeout_seconds: Fixed per-call timeout
    """

    def __init__(
        self,
        source: TrackerSource,
        rate_limiter: SlidingWindowRateLimiter,
        timeout_seconds: float = NetworkConfig.REQUEST_TIMEOUT,
    ) -> None:
        self.source = source
        self.rate_limiter = rate_limiter
        self.timeout_seconds = timeout_seconds
        self._calls = 0
        self._failures = 0

    async def start(self) -> None:
        await self.source.start()

    async def close(self) -> None:
        await self.source.close()

    async def call(self, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run one upstream call.

        Args:
            operation: Name used in logs and error messages
            fn: Zero-argument coroutine factory performing the request

        Returns:
            The call's result

        Raises:
            UpstreamUnavailableError: On network failure, timeout, non-2xx
                status or any other error raised by the call
        """
        await self.rate_limiter.admit()
        self._calls += 1
        started = time.perf_counter()
        try:
            result = await asyncio.wait_for(fn(), timeout=self.timeout_seconds)
        except UpstreamUnavailableError:
            self._failures += 1
            raise
        except Exception as e:  # noqa: BLE001
            self._failures += 1
            error = create_upstream_error(operation, e)
            log_operation_error(logger=logger, error=error, operation=operation, level=logging.WARNING)
            raise error from e

        log_operation_success(
            logger=logger,
            operation=operation,
            duration_ms=(time.perf_counter() - started) * 1000,
        )
        return result

    async def query_work_items(self, project: str, wiql: str) -> list[dict[str, Any]]:
        return await self.call(
            "query_work_items",
            lambda: self.source.query_work_items(project, wiql),
        )

    async def get_work_items(self, project: str, ids: Sequence[int]) -> list[dict[str, Any]]:
        return await self.call(
            "get_work_items",
            lambda: self.source.get_work_items(project, ids),
        )

    async def get_iterations(
        self,
        project: str,
        team: str,
        timeframe: str | None = None,
    ) -> list[dict[str, Any]]:
        return await self.call(
            "get_iterations",
            lambda: self.source.get_iterations(project, team, timeframe),
        )

    async def get_team_members(self, project: str, team: str) -> list[dict[str, Any]]:
        return await self.call(
            "get_team_members",
            lambda: self.source.get_team_members(project, team),
        )

    def get_stats(self) -> dict[str, Any]:
        return {
            "calls": self._calls,
            "failures": self._failures,
            "timeout_seconds": self.timeout_seconds,
            "rate_limiter": self.rate_limiter.get_stats(),
        }
