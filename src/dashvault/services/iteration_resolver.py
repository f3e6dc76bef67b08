"""Iteration resolver.

Maps logical sprint references ("current", "latest") to concrete
iteration paths. Teams are not always named after the project, so the
resolver walks an ordered list of team-name strategies and stops at the
first team that has iterations. Any other reference is already a
concrete path and is returned unchanged.

An unresolvable reference yields ``None``, which callers treat as
"apply no iteration filter".
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Sequence

from dashvault.services.cached_fetcher import CachedFetcher
from dashvault.services.tracker.client import RateLimitedClient
from dashvault.services.tracker.models import Iteration, as_utc
from dashvault.shared.constants import CacheNamespace, CacheTTL, IterationRef
from dashvault.shared.errors import UpstreamUnavailableError
from dashvault.shared.logging import log_operation_error

logger = logging.getLogger(__name__)


class TeamNameStrategy(str, Enum):
    """Ways of deriving a team name from a project name, in trial order."""

    EXACT_PROJECT = "exact_project"
    PROJECT_TEAM = "project_team"
    LAST_SEGMENT = "last_segment"
    STRIPPED_PREFIX = "stripped_prefix"

    def candidate(self, project: str) -> str | None:
        """Team name this strategy proposes for ``project`` (None if not applicable)."""
        if self is TeamNameStrategy.EXACT_PROJECT:
            return project
        if self is TeamNameStrategy.PROJECT_TEAM:
            return f"{project}{IterationRef.TEAM_SUFFIX}"
        if self is TeamNameStrategy.LAST_SEGMENT:
            if IterationRef.SEGMENT_SEPARATOR not in project:
                return None
            return project.split(IterationRef.SEGMENT_SEPARATOR)[-1].strip() or None
        if project.startswith(IterationRef.PRODUCT_PREFIX):
            return project[len(IterationRef.PRODUCT_PREFIX) :].strip() or None
        return None


DEFAULT_STRATEGIES: tuple[TeamNameStrategy, ...] = tuple(TeamNameStrategy)


def team_candidates(
    project: str,
    strategies: Sequence[TeamNameStrategy] = DEFAULT_STRATEGIES,
) -> list[str]:
    """Distinct candidate team names for ``project`` in strategy order.

    Example:
        >>> team_candidates("Product - Partner Portal")
        ['Product - Partner Portal', 'Product - Partner Portal Team', 'Partner Portal']
    """
    candidates: list[str] = []
    for strategy in strategies:
        name = strategy.candidate(project)
        if name and name not in candidates:
            candidates.append(name)
    return candidates


def select_iteration(iterations: Sequence[Iteration], logical_ref: str, now: datetime) -> Iteration | None:
    """Pick the iteration a logical reference points at.

    ``current`` is the iteration whose dates contain ``now``, else the one
    that started last. ``latest`` is the one that started last.
    """
    if logical_ref == IterationRef.CURRENT:
        for iteration in iterations:
            if iteration.contains(now):
                return iteration

    dated = [iteration for iteration in iterations if iteration.start_date is not None]
    if not dated:
        return iterations[-1] if iterations else None
    return max(dated, key=lambda iteration: as_utc(iteration.start_date))


@dataclass(frozen=True)
class ResolvedIteration:
    """Outcome of one resolution.

    ``resolved_path`` is None when no candidate team produced iterations.
    """

    logical_ref: str
    resolved_path: str | None
    team: str | None

    def to_dict(self) -> dict[str, str | None]:
        return asdict(self)


class IterationResolver:
    """Resolve logical iteration references with retry across team names.

    Args:
        client: Rate-limited client used for each candidate attempt
        fetcher: Cache for successful resolutions
        ttl_seconds: TTL of a cached resolution
        strategies: Team-name strategies in trial order
        clock: Returns the current UTC time (injectable for tests)
    """

    def __init__(
        self,
        client: RateLimitedClient,
        fetcher: CachedFetcher,
        ttl_seconds: int = CacheTTL.ITERATIONS,
        strategies: Sequence[TeamNameStrategy] = DEFAULT_STRATEGIES,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.client = client
        self.fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self.strategies = tuple(strategies)
        self._clock = clock

    @staticmethod
    def is_logical(ref: str) -> bool:
        return ref.strip().lower() in IterationRef.LOGICAL

    async def resolve(self, project: str, logical_ref: str, team_hint: str | None = None) -> str | None:
        """Concrete iteration path for ``logical_ref``, or None when unresolvable."""
        resolved = await self.resolve_detailed(project, logical_ref, team_hint)
        return resolved.resolved_path

    async def resolve_detailed(
        self,
        project: str,
        logical_ref: str,
        team_hint: str | None = None,
    ) -> ResolvedIteration:
        """Resolve and report which team produced the path."""
        if not self.is_logical(logical_ref):
            return ResolvedIteration(logical_ref=logical_ref, resolved_path=logical_ref, team=team_hint)

        ref = logical_ref.strip().lower()
        candidates = [team_hint] if team_hint else team_candidates(project, self.strategies)

        async def _resolve() -> dict[str, str | None] | None:
            resolved = await self._try_candidates(project, ref, candidates)
            return resolved.to_dict() if resolved is not None else None

        document = await self.fetcher.fetch_with_cache(
            CacheNamespace.ITERATIONS,
            project,
            {"ref": ref, "team": team_hint, "kind": "resolution"},
            self.ttl_seconds,
            _resolve,
        )
        if document is None:
            logger.info(
                "Could not resolve iteration '%s' for %s after %d candidates, applying no filter",
                logical_ref,
                project,
                len(candidates),
            )
            return ResolvedIteration(logical_ref=logical_ref, resolved_path=None, team=team_hint)
        return ResolvedIteration(**document)

    async def _try_candidates(
        self,
        project: str,
        ref: str,
        candidates: Sequence[str],
    ) -> ResolvedIteration | None:
        for team in candidates:
            try:
                raw = await self.client.get_iterations(project, team)
            except UpstreamUnavailableError as e:
                log_operation_error(
                    logger=logger,
                    error=e,
                    operation="resolve_iteration",
                    context={"project": project, "team": team},
                    level=logging.WARNING,
                )
                continue

            iterations = [Iteration.from_raw(item) for item in raw]
            selected = select_iteration(iterations, ref, self._clock()) if iterations else None
            if selected is None:
                logger.debug("Team '%s' has no usable iterations for %s", team, project)
                continue

            logger.debug("Resolved '%s' for %s via team '%s': %s", ref, project, team, selected.path)
            return ResolvedIteration(logical_ref=ref, resolved_path=selected.path, team=team)
        return None

