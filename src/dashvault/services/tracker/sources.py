"""Tracker data sources.

``TrackerSource`` is the strategy interface for the upstream tracking
API. The implementation is chosen once, when the container is built:

- ``LiveSource`` talks to the REST API over aiohttp.
- ``StaticFixtureSource`` serves deterministic in-memory fixtures.

Sources raise raw transport exceptions; translation into the uniform
upstream error happens in ``RateLimitedClient``.
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Sequence
from urllib.parse import quote

import aiohttp
import orjson

from dashvault.shared.constants import BugFields, NetworkConfig, TrackerAPI
from dashvault.shared.errors import ApplicationError, ErrorCode, ErrorContext, create_config_error
from dashvault.shared.logging import log_api_call

logger = logging.getLogger(__name__)


class TrackerSource(ABC):
    """Upstream tracking API operations."""

    async def start(self) -> None:
        """Acquire resources. No-op by default."""

    async def close(self) -> None:
        """Release resources. No-op by default."""

    @abstractmethod
    async def query_work_items(self, project: str, wiql: str) -> list[dict[str, Any]]:
        """Run a WIQL query and return work item references (``{"id": ...}``)."""

    @abstractmethod
    async def get_work_items(self, project: str, ids: Sequence[int]) -> list[dict[str, Any]]:
        """Return raw detailed work items for ``ids``."""

    @abstractmethod
    async def get_iterations(
        self,
        project: str,
        team: str,
        timeframe: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return raw iterations of a team, optionally filtered by timeframe."""

    @abstractmethod
    async def get_team_members(self, project: str, team: str) -> list[dict[str, Any]]:
        """Return the raw roster of a team."""


class LiveSource(TrackerSource):
    """REST source backed by an aiohttp session.

    Non-2xx responses raise ``aiohttp.ClientResponseError`` through
    ``raise_for_status``.

    Args:
        organization: Organization segment of the API URL
        access_token: Personal access token (basic auth password)
        base_url: API root
        api_version: REST API version
        timeout_seconds: Total timeout for the session

    Raises:
        ApplicationError: If organization or access token are missing
    """

    def __init__(
        self,
        organization: str,
        access_token: str,
        *,
        base_url: str = TrackerAPI.DEFAULT_BASE_URL,
        api_version: str = TrackerAPI.API_VERSION,
        timeout_seconds: float = NetworkConfig.REQUEST_TIMEOUT,
    ) -> None:
        if not organization:
            raise create_config_error(
                "Tracker organization is not configured",
                setting="tracker.organization",
                operation="live_source_init",
            )
        if not access_token:
            raise create_config_error(
                "Tracker access token is not configured",
                setting="tracker.access_token",
                operation="live_source_init",
            )
        self.organization = organization
        self.base_url = f"{base_url.rstrip('/')}/{quote(organization)}"
        self.api_version = api_version
        self.timeout_seconds = timeout_seconds
        self._auth = aiohttp.BasicAuth(login="", password=access_token)
        self._session: aiohttp.ClientSession | None = None

    async def start(self) -> None:
        await self._get_session()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                auth=self._auth,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                headers={
                    "Accept": NetworkConfig.ACCEPT_JSON,
                    "User-Agent": NetworkConfig.USER_AGENT,
                },
                raise_for_status=True,
            )
            logger.debug("Tracker HTTP session opened for %s", self.organization)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
            logger.debug("Tracker HTTP session closed")
        self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        session = await self._get_session()
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {"api-version": self.api_version, **(params or {})}
        started = time.perf_counter()
        async with session.request(
            method,
            url,
            params=query,
            data=orjson.dumps(json_body) if json_body is not None else None,
            headers={"Content-Type": NetworkConfig.CONTENT_TYPE_JSON} if json_body is not None else None,
        ) as response:
            payload = orjson.loads(await response.read())
            log_api_call(
                logger,
                endpoint=path,
                method=method,
                status_code=response.status,
                duration_ms=(time.perf_counter() - started) * 1000,
            )
        if not isinstance(payload, dict):
            raise ApplicationError(
                ErrorCode.API_INVALID_RESPONSE,
                f"Unexpected response shape from {path}",
                ErrorContext(operation="tracker_request", additional_data={"endpoint": path}),
            )
        return payload

    async def query_work_items(self, project: str, wiql: str) -> list[dict[str, Any]]:
        payload = await self._request(
            "POST",
            f"{quote(project)}/_apis/wit/wiql",
            json_body={"query": wiql},
        )
        return list(payload.get("workItems", []))

    async def get_work_items(self, project: str, ids: Sequence[int]) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET",
            f"{quote(project)}/_apis/wit/workitems",
            params={"ids": ",".join(str(item_id) for item_id in ids), "$expand": TrackerAPI.DETAILS_EXPAND},
        )
        return list(payload.get("value", []))

    async def get_iterations(
        self,
        project: str,
        team: str,
        timeframe: str | None = None,
    ) -> list[dict[str, Any]]:
        params = {"$timeframe": timeframe} if timeframe else None
        payload = await self._request(
            "GET",
            f"{quote(project)}/{quote(team)}/_apis/work/teamsettings/iterations",
            params=params,
        )
        return list(payload.get("value", []))

    async def get_team_members(self, project: str, team: str) -> list[dict[str, Any]]:
        payload = await self._request(
            "GET",
            f"_apis/projects/{quote(project)}/teams/{quote(team)}/members",
        )
        return list(payload.get("value", []))


_WIQL_TYPES = re.compile(r"\[System\.WorkItemType\]\s+IN\s+\(([^)]*)\)", re.IGNORECASE)
_WIQL_UNDER = re.compile(r"\[(System\.IterationPath|System\.AreaPath)\]\s+UNDER\s+'((?:[^']|'')*)'", re.IGNORECASE)
_WIQL_ASSIGNEE = re.compile(r"\[System\.AssignedTo\]\s+=\s+'((?:[^']|'')*)'", re.IGNORECASE)
_WIQL_SEVERITY = re.compile(r"\[Microsoft\.VSTS\.Common\.Severity\]\s+=\s+'((?:[^']|'')*)'", re.IGNORECASE)
_WIQL_CREATED = re.compile(r"\[System\.CreatedDate\]\s+(>=|<=)\s+'([^']*)'", re.IGNORECASE)


class StaticFixtureSource(TrackerSource):
    """Deterministic in-memory source.

    Fixture layout::

        {
          "work_items": [{"id": 1, "fields": {...}}, ...],
          "iterations": {"<team>": [{"name": ..., "path": ..., "attributes": {...}}]},
          "team_members": {"<team>": [{"identity": {...}}]}
        }

    WIQL queries are interpreted for the filters ``TrackerService``
    emits: work item types, iteration and area ``UNDER``, assignee,
    severity and created-date bounds.
    """

    def __init__(self, fixtures: dict[str, Any] | None = None) -> None:
        fixtures = fixtures or {}
        self.work_items: list[dict[str, Any]] = list(fixtures.get("work_items", []))
        self.iterations: dict[str, list[dict[str, Any]]] = dict(fixtures.get("iterations", {}))
        self.team_members: dict[str, list[dict[str, Any]]] = dict(fixtures.get("team_members", {}))

    @classmethod
    def from_file(cls, path: str | Path) -> StaticFixtureSource:
        """Load fixtures from a JSON file.

        Raises:
            ApplicationError: If the file cannot be read or parsed
        """
        path = Path(path)
        try:
            fixtures = orjson.loads(path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as e:
            raise ApplicationError(
                ErrorCode.FILE_READ_ERROR,
                f"Cannot load tracker fixtures from {path}: {e}",
                ErrorContext(operation="load_fixtures", additional_data={"path": path}),
                original_error=e,
            ) from e
        return cls(fixtures)

    @staticmethod
    def _matches(item: dict[str, Any], project: str, wiql: str) -> bool:
        fields = item.get("fields", {})
        item_project = fields.get("System.TeamProject")
        if item_project and item_project != project:
            return False

        types_match = _WIQL_TYPES.search(wiql)
        if types_match:
            wanted = {part.strip().strip("'").replace("''", "'") for part in types_match.group(1).split(",")}
            if fields.get("System.WorkItemType") not in wanted:
                return False

        if fields.get("System.State") == TrackerAPI.EXCLUDED_STATE:
            return False

        for field_name, prefix in _WIQL_UNDER.findall(wiql):
            value = fields.get(field_name) or ""
            prefix = prefix.replace("''", "'")
            if value != prefix and not value.startswith(prefix + "\\"):
                return False

        assignee_match = _WIQL_ASSIGNEE.search(wiql)
        if assignee_match:
            assigned = fields.get("System.AssignedTo")
            names = {assigned.get("displayName"), assigned.get("uniqueName")} if isinstance(assigned, dict) else {assigned}
            if assignee_match.group(1).replace("''", "'") not in names:
                return False

        severity_match = _WIQL_SEVERITY.search(wiql)
        if severity_match and fields.get(BugFields.SEVERITY) != severity_match.group(1).replace("''", "'"):
            return False

        # Day precision, as in WIQL date literals
        created = (fields.get(BugFields.CREATED_DATE) or "")[:10]
        for operator, bound in _WIQL_CREATED.findall(wiql):
            if not created:
                return False
            if operator == ">=" and created < bound:
                return False
            if operator == "<=" and created > bound:
                return False

        return True

    async def query_work_items(self, project: str, wiql: str) -> list[dict[str, Any]]:
        return [{"id": item["id"]} for item in self.work_items if self._matches(item, project, wiql)]

    async def get_work_items(self, project: str, ids: Sequence[int]) -> list[dict[str, Any]]:
        wanted = set(ids)
        return [item for item in self.work_items if item["id"] in wanted]

    async def get_iterations(
        self,
        project: str,
        team: str,
        timeframe: str | None = None,
    ) -> list[dict[str, Any]]:
        iterations = self.iterations.get(team, [])
        if timeframe:
            iterations = [it for it in iterations if it.get("attributes", {}).get("timeFrame") == timeframe]
        return list(iterations)

    async def get_team_members(self, project: str, team: str) -> list[dict[str, Any]]:
        return list(self.team_members.get(team, []))
