"""Bug classification with tiered fallback.

The live path queries bugs and aggregates them per environment. When it
fails, the report is derived from the broader all-type sweep of the same
scope, which the dashboards usually have cached already. When that fails
as well, a zeroed report is returned. All three paths go through
``build_report`` so the payload schema never changes.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from dashvault.metrics.classification import classification_rate, percentage, summarize_bugs
from dashvault.services.cached_fetcher import CachedFetcher
from dashvault.services.fallback import FallbackResult, TieredFallbackOrchestrator
from dashvault.services.iteration_resolver import IterationResolver
from dashvault.services.tracker.models import WorkItemQuery
from dashvault.services.tracker.service import TrackerService
from dashvault.shared.constants import (
    BugFields,
    CacheNamespace,
    CacheTTL,
    ClassificationInsight,
    Environment,
    Severity,
)
from dashvault.shared.errors import create_validation_error

logger = logging.getLogger(__name__)


class ClassificationFilters(BaseModel):
    """Scope of a classification request.

    ``environment`` narrows the report to the bugs of one environment;
    the other filters are applied by the work item query itself.
    """

    iteration: str | None = Field(default=None, description="Logical reference or concrete path")
    team: str | None = Field(default=None, description="Team hint for iteration resolution")
    area_path: str | None = None
    environment: str | None = Field(default=None, description="One of the reported environments")
    severity: str | None = Field(default=None, description="Severity rank, '1' (critical) to '4' (low)")
    start_date: date | None = Field(default=None, description="Earliest created date, inclusive")
    end_date: date | None = Field(default=None, description="Latest created date, inclusive")

    @field_validator("environment")
    @classmethod
    def _known_environment(cls, value: str | None) -> str | None:
        if value is not None and value not in Environment.REPORTED:
            raise ValueError(f"environment must be one of {', '.join(Environment.REPORTED)}")
        return value

    @field_validator("severity")
    @classmethod
    def _known_severity(cls, value: str | None) -> str | None:
        if value is not None and value not in Severity.LABELS:
            raise ValueError(f"severity must be one of {', '.join(Severity.LABELS)}")
        return value

    @model_validator(mode="after")
    def _ordered_dates(self) -> ClassificationFilters:
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> ClassificationFilters:
        """Validate raw filter values.

        Raises:
            ApplicationError: If a filter value is invalid
        """
        try:
            return cls.model_validate(dict(data))
        except ValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(part) for part in first.get("loc", ())) or None
            raise create_validation_error(
                f"Invalid classification filter: {first.get('msg', e)}",
                field=field,
                operation="classify_with_fallback",
            ) from e

    def work_item_query(
        self,
        iteration_path: str | None,
        work_item_types: tuple[str, ...] | None = None,
    ) -> WorkItemQuery:
        """The work item query for this scope."""
        extra: dict[str, Any] = {} if work_item_types is None else {"work_item_types": work_item_types}
        return WorkItemQuery(
            iteration_path=iteration_path,
            area_path=self.area_path,
            severity=Severity.LABELS[self.severity] if self.severity else None,
            created_from=self.start_date,
            created_to=self.end_date,
            **extra,
        )

    def cache_params(self, iteration_path: str | None) -> dict[str, Any]:
        """Parameters identifying a cached classification of this scope."""
        return {
            "iteration_path": iteration_path,
            "area_path": self.area_path,
            "environment": self.environment,
            "severity": self.severity,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


class BugSummary(BaseModel):
    id: int
    title: str = ""
    state: str = ""
    severity: str | None = None
    assignee: str = "Unassigned"
    bug_type: str | None = None


class EnvironmentBucket(BaseModel):
    count: int = Field(default=0, ge=0)
    percentage: float = 0.0
    bugs: list[BugSummary] = Field(default_factory=list)


class ClassificationInsights(BaseModel):
    """Derived hints shown next to the numbers."""

    top_bug_sources: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class BugClassificationReport(BaseModel):
    """Classification payload, identical in shape for every tier."""

    project: str
    iteration_path: str | None = None
    total_bugs: int = Field(default=0, ge=0)
    classified: int = Field(default=0, ge=0)
    unclassified: int = Field(default=0, ge=0)
    classification_rate: float = 0.0
    bug_types: dict[str, int] = Field(default_factory=dict)
    environments: dict[str, int] = Field(default_factory=dict)
    bugs_by_environment: dict[str, EnvironmentBucket] = Field(default_factory=dict)
    insights: ClassificationInsights = Field(default_factory=ClassificationInsights)


def _count(value: Any) -> int:
    return max(0, int(value or 0))


def build_insights(bug_types: Mapping[str, int], rate: float, total_bugs: int) -> ClassificationInsights:
    """Top bug sources by count and the classification recommendation.

    Without bugs there is nothing left unclassified, so the report counts
    as healthy.
    """
    ranked = sorted(bug_types.items(), key=lambda item: (-item[1], item[0]))
    needs_work = total_bugs > 0 and rate < ClassificationInsight.HEALTHY_RATE
    return ClassificationInsights(
        top_bug_sources=[name for name, _ in ranked[: ClassificationInsight.TOP_SOURCES]],
        recommendations=[
            ClassificationInsight.IMPROVE_RECOMMENDATION if needs_work else ClassificationInsight.HEALTHY_RECOMMENDATION
        ],
    )


def build_report(project: str, iteration_path: str | None, stats: Mapping[str, Any]) -> BugClassificationReport:
    """Normalize classification statistics into a report.

    Counts are clamped to zero. A missing ``classified`` is derived as
    ``total_bugs - unclassified``. Every reported environment key is
    present even when empty.
    """
    total = _count(stats.get("total_bugs"))
    unclassified = _count(stats.get("unclassified"))
    classified = stats.get("classified")
    classified = max(0, total - unclassified) if classified is None else _count(classified)

    breakdown: Mapping[str, Any] = stats.get("environment_breakdown") or {}
    buckets: dict[str, EnvironmentBucket] = {}
    for environment in Environment.REPORTED:
        entry = breakdown.get(environment) or {}
        count = _count(entry.get("count"))
        buckets[environment] = EnvironmentBucket(
            count=count,
            percentage=percentage(count, total),
            bugs=[BugSummary.model_validate(bug) for bug in entry.get("bugs", [])],
        )

    environments = {
        name: _count(entry.get("count"))
        for name, entry in sorted(breakdown.items())
        if _count((entry or {}).get("count")) > 0
    }

    rate = classification_rate(classified, total)
    bug_types = {name: _count(count) for name, count in (stats.get("bug_types") or {}).items()}
    return BugClassificationReport(
        project=project,
        iteration_path=iteration_path,
        total_bugs=total,
        classified=classified,
        unclassified=unclassified,
        classification_rate=rate,
        bug_types=bug_types,
        environments=environments,
        bugs_by_environment=buckets,
        insights=build_insights(bug_types, rate, total),
    )


def empty_report(project: str, iteration_path: str | None = None) -> BugClassificationReport:
    """Zeroed report with every environment key present."""
    return build_report(project, iteration_path, {})


class BugClassificationService:
    """Bug classification reports that never hard-fail.

    Args:
        tracker: Cached tracker facade
        resolver: Iteration resolver for logical references
        fetcher: Cache for live classification statistics
        orchestrator: Tiered fallback runner
        ttl_seconds: TTL of cached live statistics
    """

    def __init__(
        self,
        tracker: TrackerService,
        resolver: IterationResolver,
        fetcher: CachedFetcher,
        orchestrator: TieredFallbackOrchestrator | None = None,
        ttl_seconds: int = CacheTTL.BUG_CLASSIFICATION,
    ) -> None:
        self.tracker = tracker
        self.resolver = resolver
        self.fetcher = fetcher
        self.orchestrator = orchestrator or TieredFallbackOrchestrator()
        self.ttl_seconds = ttl_seconds

    async def resolve_iteration_path(self, project: str, filters: ClassificationFilters) -> str | None:
        if not filters.iteration:
            return None
        return await self.resolver.resolve(project, filters.iteration, filters.team)

    async def fetch_live_stats(
        self,
        project: str,
        filters: ClassificationFilters,
        iteration_path: str | None,
    ) -> dict[str, Any]:
        """Live bug query summarized per environment (cached)."""

        async def _compute() -> dict[str, Any]:
            bugs = await self.tracker.query_work_items(
                project,
                filters.work_item_query(iteration_path, (BugFields.WORK_ITEM_TYPE_BUG,)),
            )
            return summarize_bugs(bugs, environment=filters.environment)

        return await self.fetcher.fetch_with_cache(
            CacheNamespace.BUG_CLASSIFICATION,
            project,
            filters.cache_params(iteration_path),
            self.ttl_seconds,
            _compute,
        )

    async def derive_stats_from_sweep(
        self,
        project: str,
        filters: ClassificationFilters,
        iteration_path: str | None,
    ) -> dict[str, Any]:
        """Counts derived from the all-type sweep, without per-bug detail."""
        items = await self.tracker.query_work_items(project, filters.work_item_query(iteration_path))
        return summarize_bugs(items, include_bugs=False, environment=filters.environment)

    async def classify_with_fallback(
        self,
        project: str,
        filters: ClassificationFilters | None = None,
    ) -> FallbackResult[BugClassificationReport]:
        """Classify bugs for a project, degrading through the fallback tiers."""
        filters = filters or ClassificationFilters()
        scope: dict[str, str | None] = {}

        async def _iteration_path() -> str | None:
            if "path" not in scope:
                scope["path"] = await self.resolve_iteration_path(project, filters)
            return scope["path"]

        async def _primary() -> BugClassificationReport:
            path = await _iteration_path()
            return build_report(project, path, await self.fetch_live_stats(project, filters, path))

        async def _fallback() -> BugClassificationReport:
            path = await _iteration_path()
            return build_report(project, path, await self.derive_stats_from_sweep(project, filters, path))

        return await self.orchestrator.run(
            "classify_bugs",
            _primary,
            _fallback,
            lambda: empty_report(project, scope.get("path")),
        )
