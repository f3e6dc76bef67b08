"""Sliding window rate limiter.

This module bounds outbound calls to the upstream tracking API to a
requests-per-window budget. Callers are never rejected: when the window
is full, ``admit()`` suspends the caller until the oldest call leaves
the window.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable

from dashvault.shared.constants import NetworkConfig
from dashvault.shared.errors import ApplicationError, ErrorCode, ErrorContext
from dashvault.shared.logging import log_operation_success

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[Any]]


class SlidingWindowRateLimiter:
    """Async sliding-window rate limiter.

    The window is a deque of admission instants. Entries older than the
    window are purged lazily before every admission check. No lock is
    taken: concurrent callers each re-check the shared window after
    waking, and slight over-admission under a race is tolerated.

    Args:
        requests_per_window: Maximum admissions within any window
        window_seconds: Window length in seconds
        clock: Monotonic time source (injectable for tests)
        sleep: Coroutine used to wait (injectable for tests)
    """

    def __init__(
        self,
        requests_per_window: int = NetworkConfig.DEFAULT_RATE_LIMIT,
        window_seconds: float = NetworkConfig.RATE_WINDOW_SECONDS,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        context = ErrorContext(
            operation="rate_limiter_init",
            additional_data={
                "requests_per_window": requests_per_window,
                "window_seconds": window_seconds,
            },
        )
        if requests_per_window <= 0:
            raise ApplicationError(
                code=ErrorCode.VALIDATION_ERROR,
                message=f"Requests per window must be positive, got: {requests_per_window}",
                context=context,
            )
        if window_seconds <= 0:
            raise ApplicationError(
                code=ErrorCode.VALIDATION_ERROR,
                message=f"Window length must be positive, got: {window_seconds}",
                context=context,
            )

        self.requests_per_window = requests_per_window
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()
        self._total_admitted = 0
        self._total_delayed = 0
        self._total_wait_seconds = 0.0

    def _purge(self, now: float) -> None:
        """Drop admissions that left the window."""
        cutoff = now - self.window_seconds
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def wait_time(self) -> float:
        """Seconds the next caller would have to wait (0 if admitted now)."""
        now = self._clock()
        self._purge(now)
        if len(self._timestamps) < self.requests_per_window:
            return 0.0
        return max(0.0, self.window_seconds - (now - self._timestamps[0]))

    async def admit(self) -> float:
        """Wait until a call is permitted, then record it.

        Returns:
            Total seconds spent waiting (0.0 when admitted immediately)
        """
        waited = 0.0
        while True:
            now = self._clock()
            self._purge(now)
            if len(self._timestamps) < self.requests_per_window:
                self._timestamps.append(now)
                self._total_admitted += 1
                break

            # Positive after the purge: the oldest entry is still inside the window
            delay = self.window_seconds - (now - self._timestamps[0])
            logger.debug(
                "Rate window full (%d/%d), waiting %.3fs",
                len(self._timestamps),
                self.requests_per_window,
                delay,
            )
            await self._sleep(delay)
            waited += delay

        if waited > 0:
            self._total_delayed += 1
            self._total_wait_seconds += waited
            log_operation_success(
                logger=logger,
                operation="rate_limiter_admit",
                duration_ms=waited * 1000,
                result_info={"delayed": True},
            )
        return waited

    def reset(self) -> None:
        """Forget all recorded admissions."""
        self._timestamps.clear()

    def get_stats(self) -> dict[str, Any]:
        """Return limiter statistics for observability."""
        self._purge(self._clock())
        return {
            "requests_per_window": self.requests_per_window,
            "window_seconds": self.window_seconds,
            "in_window": len(self._timestamps),
            "remaining": max(0, self.requests_per_window - len(self._timestamps)),
            "total_admitted": self._total_admitted,
            "total_delayed": self._total_delayed,
            "total_wait_seconds": round(self._total_wait_seconds, 3),
        }
