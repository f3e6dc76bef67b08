"""Batch coordinator for bulk lookups.

Splits an id sequence into bounded chunks and runs them one after the
other through the rate-limited client, pausing between chunks. Results
are concatenated in batch order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from dashvault.services.tracker.client import RateLimitedClient
from dashvault.shared.constants import NetworkConfig
from dashvault.shared.errors import BatchExecutionError, create_validation_error
from dashvault.shared.logging import log_operation_error, log_operation_success

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def create_batches(items: Sequence[T], max_batch_size: int) -> list[list[T]]:
    """Partition ``items`` into ordered chunks of at most ``max_batch_size``.

    Example:
        >>> create_batches([1, 2, 3, 4, 5], 2)
        [[1, 2], [3, 4], [5]]
    """
    if max_batch_size <= 0:
        raise create_validation_error(
            f"Batch size must be positive, got: {max_batch_size}",
            field="max_batch_size",
            operation="create_batches",
        )
    return [list(items[start : start + max_batch_size]) for start in range(0, len(items), max_batch_size)]


class BatchCoordinator:
    """Sequential, paced execution of batched upstream calls.

    Args:
        client: Rate-limited client every batch call goes through
        max_batch_size: Default chunk size
        batch_delay_ms: Default pause between chunks
        sleep: Coroutine used for pacing (injectable for tests)
    """

    def __init__(
        self,
        client: RateLimitedClient,
        max_batch_size: int = NetworkConfig.DEFAULT_BATCH_SIZE,
        batch_delay_ms: int = NetworkConfig.DEFAULT_BATCH_DELAY_MS,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.client = client
        self.max_batch_size = max_batch_size
        self.batch_delay_ms = batch_delay_ms
        self._sleep = sleep

    async def run_batched(
        self,
        ids: Sequence[T],
        batch_fn: Callable[[list[T]], Awaitable[Sequence[R]]],
        *,
        max_batch_size: int | None = None,
        batch_delay_ms: int | None = None,
        operation: str = "run_batched",
    ) -> list[R]:
        """Run ``batch_fn`` over consecutive chunks of ``ids``.

        Args:
            ids: Ids to look up, in the order results should follow
            batch_fn: Async function returning the results for one chunk
            max_batch_size: Chunk size (defaults to the coordinator's)
            batch_delay_ms: Pause between chunks (defaults to the coordinator's)
            operation: Name used in logs and errors

        Returns:
            Concatenated results of every chunk, in batch order

        Raises:
            BatchExecutionError: If any chunk fails; names the failed chunk
        """
        size = self.max_batch_size if max_batch_size is None else max_batch_size
        delay_ms = self.batch_delay_ms if batch_delay_ms is None else batch_delay_ms
        batches = create_batches(ids, size)
        started = time.perf_counter()
        results: list[R] = []

        for index, batch in enumerate(batches):
            try:
                batch_results = await self.client.call(
                    f"{operation}[{index + 1}/{len(batches)}]",
                    lambda batch=batch: batch_fn(batch),
                )
            except Exception as e:
                error = BatchExecutionError(
                    f"Batch {index + 1} of {len(batches)} failed ({len(batch)} ids): {e}",
                    batch_index=index,
                    batch_count=len(batches),
                    batch_ids=batch,
                    original_error=e,
                )
                log_operation_error(logger=logger, error=error, operation=operation)
                raise error from e

            results.extend(batch_results)
            if index < len(batches) - 1 and delay_ms > 0:
                await self._sleep(delay_ms / 1000)

        log_operation_success(
            logger=logger,
            operation=operation,
            duration_ms=(time.perf_counter() - started) * 1000,
            result_info={"ids": len(ids), "batches": len(batches), "results": len(results)},
        )
        return results
