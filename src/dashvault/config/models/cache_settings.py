"""Cache configuration model.

Durable backend connection, key prefix, local fallback limits and the
per-namespace TTL table.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from dashvault.shared.constants import CacheConfig, CacheNamespace, CacheTTL


class NamespaceTTLs(BaseModel):
    """TTL (seconds) applied when writing each namespace."""

    work_items: int = Field(default=CacheTTL.WORK_ITEMS, gt=0)
    work_item_details: int = Field(default=CacheTTL.WORK_ITEM_DETAILS, gt=0)
    iterations: int = Field(default=CacheTTL.ITERATIONS, gt=0)
    team_capacity: int = Field(default=CacheTTL.TEAM_CAPACITY, gt=0)
    metrics: int = Field(default=CacheTTL.METRICS, gt=0)
    team_members: int = Field(default=CacheTTL.TEAM_MEMBERS, gt=0)
    trends: int = Field(default=CacheTTL.TRENDS, gt=0)
    health: int = Field(default=CacheTTL.HEALTH, gt=0)
    bug_classification: int = Field(default=CacheTTL.BUG_CLASSIFICATION, gt=0)

    def for_namespace(self, namespace: str) -> int:
        """Look up the TTL for a namespace name such as ``workItems``."""
        mapping = {
            CacheNamespace.WORK_ITEMS: self.work_items,
            CacheNamespace.WORK_ITEM_DETAILS: self.work_item_details,
            CacheNamespace.ITERATIONS: self.iterations,
            CacheNamespace.TEAM_CAPACITY: self.team_capacity,
            CacheNamespace.METRICS: self.metrics,
            CacheNamespace.TEAM_MEMBERS: self.team_members,
            CacheNamespace.TRENDS: self.trends,
            CacheNamespace.HEALTH: self.health,
            CacheNamespace.BUG_CLASSIFICATION: self.bug_classification,
        }
        return mapping.get(namespace, CacheTTL.METRICS)


class CacheSettings(BaseModel):
    """Cache configuration.

    Leaving ``redis_url`` unset runs the store on the local backend only.
    """

    redis_url: str | None = Field(
        default=None,
        repr=False,
        description="Durable backend URL, e.g. redis://localhost:6379/0",
    )
    key_prefix: str = Field(default=CacheConfig.KEY_PREFIX, min_length=1, description="Key prefix")
    socket_timeout: float = Field(
        default=CacheConfig.SOCKET_TIMEOUT,
        gt=0,
        description="Durable backend socket timeout in seconds",
    )
    reconnect_interval: float = Field(
        default=CacheConfig.RECONNECT_INTERVAL,
        ge=0,
        description="Seconds before probing a failed durable backend again",
    )
    local_max_ttl: int = Field(
        default=CacheConfig.LOCAL_MAX_TTL,
        gt=0,
        description="Upper bound on TTLs written to the local backend",
    )
    local_max_entries: int = Field(
        default=CacheConfig.LOCAL_MAX_ENTRIES,
        gt=0,
        description="Maximum entries held by the local backend",
    )
    ttl: NamespaceTTLs = Field(default_factory=NamespaceTTLs)
