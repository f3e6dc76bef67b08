"""Tracker data models.

Normalized views of the raw documents returned by the tracking API.
Models are built from raw payloads with ``from_raw`` and cached as
``model_dump(mode="json")`` documents.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from dashvault.shared.constants import BugFields, TrackerAPI


def _display_name(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("displayName") or value.get("uniqueName")
    return value or None


def as_utc(moment: datetime) -> datetime:
    """Treat a naive datetime as UTC."""
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _find_bug_type(fields: dict[str, Any]) -> str | None:
    for name in BugFields.BUG_TYPE_FIELDS:
        if fields.get(name):
            return str(fields[name])
    for name, value in fields.items():
        lowered = name.lower()
        if value and "bug" in lowered and "type" in lowered:
            return str(value)
    return None


class WorkItemQuery(BaseModel):
    """Filter criteria for a work item query."""

    work_item_types: tuple[str, ...] = Field(default=TrackerAPI.DEFAULT_WORK_ITEM_TYPES)
    states: tuple[str, ...] | None = Field(default=None, description="None excludes only removed items")
    iteration_path: str | None = None
    area_path: str | None = None
    assigned_to: str | None = None
    severity: str | None = Field(default=None, description="Full severity label, e.g. \"2 - High\"")
    created_from: date | None = Field(default=None, description="Inclusive lower bound on the created date")
    created_to: date | None = Field(default=None, description="Inclusive upper bound on the created date")
    max_results: int = Field(default=TrackerAPI.WIQL_MAX_RESULTS, gt=0)

    def cache_params(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class WorkItem(BaseModel):
    """Normalized work item."""

    id: int
    title: str = ""
    work_item_type: str = ""
    state: str = ""
    assignee: str = "Unassigned"
    assignee_email: str | None = None
    story_points: float = 0
    priority: int = 4
    severity: str | None = None
    bug_type: str | None = None
    iteration_path: str | None = None
    area_path: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_date: str | None = None
    changed_date: str | None = None
    closed_date: str | None = None
    project: str | None = None

    @classmethod
    def from_raw(cls, raw: dict[str, Any], project: str | None = None) -> WorkItem:
        """Build from an upstream work item document (``{"id", "fields"}``)."""
        fields = raw.get("fields") or {}
        assigned = fields.get("System.AssignedTo")
        tags = fields.get("System.Tags") or ""
        return cls(
            id=raw.get("id") or fields.get("System.Id"),
            title=fields.get("System.Title") or "",
            work_item_type=fields.get("System.WorkItemType") or "",
            state=fields.get("System.State") or "",
            assignee=_display_name(assigned) or "Unassigned",
            assignee_email=assigned.get("uniqueName") if isinstance(assigned, dict) else None,
            story_points=fields.get("Microsoft.VSTS.Scheduling.StoryPoints") or 0,
            priority=fields.get("Microsoft.VSTS.Common.Priority") or 4,
            severity=fields.get(BugFields.SEVERITY),
            bug_type=_find_bug_type(fields),
            iteration_path=fields.get("System.IterationPath"),
            area_path=fields.get("System.AreaPath"),
            tags=[tag.strip() for tag in tags.split(";") if tag.strip()],
            created_date=fields.get("System.CreatedDate"),
            changed_date=fields.get("System.ChangedDate"),
            closed_date=fields.get("Microsoft.VSTS.Common.ClosedDate"),
            project=project or fields.get("System.TeamProject"),
        )

    @property
    def is_bug(self) -> bool:
        return self.work_item_type == BugFields.WORK_ITEM_TYPE_BUG


class Iteration(BaseModel):
    """Iteration (sprint) of a team."""

    id: str = ""
    name: str
    path: str
    start_date: datetime | None = None
    finish_date: datetime | None = None
    timeframe: str | None = None

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> Iteration:
        attributes = raw.get("attributes") or {}
        return cls(
            id=str(raw.get("id", "")),
            name=raw.get("name", ""),
            path=raw.get("path") or raw.get("name", ""),
            start_date=attributes.get("startDate"),
            finish_date=attributes.get("finishDate"),
            timeframe=attributes.get("timeFrame"),
        )

    def contains(self, moment: datetime) -> bool:
        """Whether ``moment`` falls inside the iteration's dates."""
        if self.start_date is None or self.finish_date is None:
            return False
        return as_utc(self.start_date) <= as_utc(moment) <= as_utc(self.finish_date)


class TeamMember(BaseModel):
    """Member of a team roster."""

    id: str
    display_name: str
    unique_name: str | None = None
    is_team_admin: bool = False

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> TeamMember:
        identity = raw.get("identity") or raw
        return cls(
            id=str(identity.get("id", "")),
            display_name=identity.get("displayName", ""),
            unique_name=identity.get("uniqueName"),
            is_team_admin=bool(raw.get("isTeamAdmin", False)),
        )
