"""Upstream tracking API access: sources, rate-limited client, batching and the cached facade."""

from .batch import BatchCoordinator, create_batches
from .client import RateLimitedClient
from .models import Iteration, TeamMember, WorkItem, WorkItemQuery
from .service import TrackerService, build_wiql
from .sources import LiveSource, StaticFixtureSource, TrackerSource

__all__ = [
    "BatchCoordinator",
    "Iteration",
    "LiveSource",
    "RateLimitedClient",
    "StaticFixtureSource",
    "TeamMember",
    "TrackerService",
    "TrackerSource",
    "WorkItem",
    "WorkItemQuery",
    "build_wiql",
    "create_batches",
]
