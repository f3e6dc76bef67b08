"""Tiered fallback orchestrator.

Composite reports must never hard-fail. Each request walks at most
three tiers, each attempted once:

1. ``primary``: the live aggregation path.
2. ``fallback``: a structurally different, cheaper derivation.
3. ``lastResort``: a synthesized empty payload. It cannot fail.

Once the primary tier is entered no exception escapes ``run``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, TypeVar

from dashvault.shared.logging import log_operation_start, log_operation_success, log_tier_transition

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FallbackTier(str, Enum):
    """Tier that produced a payload."""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    LAST_RESORT = "lastResort"


@dataclass(frozen=True)
class FallbackResult(Generic[T]):
    """Payload plus the tier that produced it.

    The payload schema does not depend on the tier; ``degraded`` only
    signals that the live path was not used.
    """

    tier: FallbackTier
    payload: T
    failures: tuple[str, ...] = ()
    generated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def degraded(self) -> bool:
        return self.tier is not FallbackTier.PRIMARY

    def to_dict(self) -> dict[str, Any]:
        payload = self.payload.model_dump(mode="json") if hasattr(self.payload, "model_dump") else self.payload
        return {
            "tier": self.tier.value,
            "degraded": self.degraded,
            "payload": payload,
            "failures": list(self.failures),
            "generated_at": self.generated_at,
        }


class TieredFallbackOrchestrator:
    """Runs the primary / fallback / last-resort protocol and counts tiers."""

    def __init__(self) -> None:
        self.tier_counts: dict[str, int] = {tier.value: 0 for tier in FallbackTier}

    async def run(
        self,
        operation: str,
        primary: Callable[[], Awaitable[T]],
        fallback: Callable[[], Awaitable[T]],
        last_resort: Callable[[], T],
    ) -> FallbackResult[T]:
        """Produce a payload from the first tier that succeeds.

        Args:
            operation: Name used in logs
            primary: Live aggregation
            fallback: Secondary derivation
            last_resort: Synchronous builder of the empty payload

        Returns:
            FallbackResult tagged with the tier used
        """
        log_operation_start(logger, operation)
        started = time.perf_counter()
        failures: list[str] = []

        try:
            payload = await primary()
        except Exception as primary_error:  # noqa: BLE001
            failures.append(f"{FallbackTier.PRIMARY.value}: {primary_error}")
            log_tier_transition(logger, operation, FallbackTier.PRIMARY.value, FallbackTier.FALLBACK.value, primary_error)
        else:
            return self._finish(operation, FallbackTier.PRIMARY, payload, failures, started)

        try:
            payload = await fallback()
        except Exception as fallback_error:  # noqa: BLE001
            failures.append(f"{FallbackTier.FALLBACK.value}: {fallback_error}")
            log_tier_transition(
                logger, operation, FallbackTier.FALLBACK.value, FallbackTier.LAST_RESORT.value, fallback_error
            )
        else:
            return self._finish(operation, FallbackTier.FALLBACK, payload, failures, started)

        return self._finish(operation, FallbackTier.LAST_RESORT, last_resort(), failures, started)

    def _finish(
        self,
        operation: str,
        tier: FallbackTier,
        payload: T,
        failures: list[str],
        started: float,
    ) -> FallbackResult[T]:
        self.tier_counts[tier.value] += 1
        log_operation_success(
            logger=logger,
            operation=operation,
            duration_ms=(time.perf_counter() - started) * 1000,
            result_info={"tier": tier.value},
        )
        return FallbackResult(tier=tier, payload=payload, failures=tuple(failures))

    def get_stats(self) -> dict[str, int]:
        return dict(self.tier_counts)
