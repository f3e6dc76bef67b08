"""Tracker data-access facade.

Composes the rate-limited client, the batch coordinator and the cached
fetcher into the four upstream operations the reporting layer needs.
Everything cached is stored as plain JSON documents and rebuilt into
models on the way out.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from dashvault.config.models.cache_settings import NamespaceTTLs
from dashvault.services.cached_fetcher import CachedFetcher
from dashvault.services.tracker.batch import BatchCoordinator
from dashvault.services.tracker.client import RateLimitedClient
from dashvault.services.tracker.models import Iteration, TeamMember, WorkItem, WorkItemQuery
from dashvault.shared.constants import BugFields, CacheNamespace, TrackerAPI

logger = logging.getLogger(__name__)

_WIQL_FIELDS = (
    "[System.Id]",
    "[System.Title]",
    "[System.WorkItemType]",
    "[System.AssignedTo]",
    "[System.State]",
    "[System.IterationPath]",
    "[System.AreaPath]",
    "[System.ChangedDate]",
    "[System.CreatedDate]",
)


def _quote(value: str) -> str:
    """Quote a WIQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def build_wiql(project: str, query: WorkItemQuery) -> str:
    """Build the WIQL statement for a work item query.

    String values are quoted with embedded quotes doubled; without explicit
    states, only removed items are excluded.
    """
    clauses = [
        f"[System.TeamProject] = {_quote(project)}",
        f"[System.WorkItemType] IN ({', '.join(_quote(t) for t in query.work_item_types)})",
    ]
    if query.states:
        clauses.append(f"[System.State] IN ({', '.join(_quote(s) for s in query.states)})")
    else:
        clauses.append(f"[System.State] <> {_quote(TrackerAPI.EXCLUDED_STATE)}")
    if query.iteration_path:
        clauses.append(f"[System.IterationPath] UNDER {_quote(query.iteration_path)}")
    if query.area_path:
        clauses.append(f"[System.AreaPath] UNDER {_quote(query.area_path)}")
    if query.assigned_to:
        clauses.append(f"[System.AssignedTo] = {_quote(query.assigned_to)}")
    if query.severity:
        clauses.append(f"[{BugFields.SEVERITY}] = {_quote(query.severity)}")
    if query.created_from:
        clauses.append(f"[{BugFields.CREATED_DATE}] >= {_quote(query.created_from.isoformat())}")
    if query.created_to:
        clauses.append(f"[{BugFields.CREATED_DATE}] <= {_quote(query.created_to.isoformat())}")

    return (
        f"SELECT {', '.join(_WIQL_FIELDS)} FROM WorkItems "
        f"WHERE {' AND '.join(clauses)} "
        "ORDER BY [System.ChangedDate] DESC"
    )


class TrackerService:
    """Cached, rate-limited access to work items, iterations and rosters.

    Args:
        client: Rate-limited upstream client
        batch_coordinator: Coordinator used for detail lookups
        fetcher: Cache-aside fetcher
        ttls: Namespace TTL table
    """

    def __init__(
        self,
        client: RateLimitedClient,
        batch_coordinator: BatchCoordinator,
        fetcher: CachedFetcher,
        ttls: NamespaceTTLs | None = None,
    ) -> None:
        self.client = client
        self.batch_coordinator = batch_coordinator
        self.fetcher = fetcher
        self.ttls = ttls or NamespaceTTLs()

    async def query_work_item_ids(self, project: str, query: WorkItemQuery | None = None) -> list[int]:
        """Ids of the work items matching ``query``, newest change first."""
        query = query or WorkItemQuery()

        async def _fetch() -> list[int]:
            references = await self.client.query_work_items(project, build_wiql(project, query))
            return [int(ref["id"]) for ref in references[: query.max_results]]

        return await self.fetcher.fetch_with_cache(
            CacheNamespace.WORK_ITEMS,
            project,
            query.cache_params(),
            self.ttls.work_items,
            _fetch,
        )

    async def get_work_item_details(self, project: str, ids: Sequence[int]) -> list[WorkItem]:
        """Detailed work items for ``ids`` in input order.

        Each item is cached on its own, so only ids missing from the cache
        are fetched upstream, in batches.
        """
        if not ids:
            return []

        async def _fetch_missing(missing: list[int]) -> dict[int, Any]:
            raw_items = await self.batch_coordinator.run_batched(
                missing,
                lambda batch: self.client.source.get_work_items(project, batch),
                operation="get_work_item_details",
            )
            return {
                int(raw["id"]): WorkItem.from_raw(raw, project).model_dump(mode="json") for raw in raw_items
            }

        documents = await self.fetcher.fetch_many_with_cache(
            CacheNamespace.WORK_ITEM_DETAILS,
            list(ids),
            self.ttls.work_item_details,
            _fetch_missing,
        )
        return [WorkItem.model_validate(doc) for doc in documents]

    async def query_work_items(self, project: str, query: WorkItemQuery | None = None) -> list[WorkItem]:
        """Query then fetch details in one step."""
        ids = await self.query_work_item_ids(project, query)
        return await self.get_work_item_details(project, ids)

    async def get_iterations(
        self,
        project: str,
        team: str,
        timeframe: str | None = None,
    ) -> list[Iteration]:
        """Iterations of a team, optionally filtered by timeframe."""

        async def _fetch() -> list[dict[str, Any]]:
            raw = await self.client.get_iterations(project, team, timeframe)
            return [Iteration.from_raw(item).model_dump(mode="json") for item in raw]

        documents = await self.fetcher.fetch_with_cache(
            CacheNamespace.ITERATIONS,
            project,
            {"team": team, "timeframe": timeframe},
            self.ttls.iterations,
            _fetch,
        )
        return [Iteration.model_validate(doc) for doc in documents]

    async def get_team_members(self, project: str, team: str) -> list[TeamMember]:
        """Roster of a team."""

        async def _fetch() -> list[dict[str, Any]]:
            raw = await self.client.get_team_members(project, team)
            return [TeamMember.from_raw(item).model_dump(mode="json") for item in raw]

        documents = await self.fetcher.fetch_with_cache(
            CacheNamespace.TEAM_MEMBERS,
            project,
            {"team": team},
            self.ttls.team_members,
            _fetch,
        )
        return [TeamMember.model_validate(doc) for doc in documents]
