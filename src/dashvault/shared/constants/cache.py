"""
Cache Configuration Constants

TTL defaults per cache namespace and limits for the local fallback
backend. Namespaced TTLs can be overridden through CacheSettings.
"""

# Base time units for TTL calculations
BASE_SECOND = 1
BASE_MINUTE = 60 * BASE_SECOND
BASE_HOUR = 60 * BASE_MINUTE


class CacheNamespace:
    """Cache namespaces used as the second segment of every key."""

    WORK_ITEMS = "workItems"
    WORK_ITEM_DETAILS = "workItemDetails"
    ITERATIONS = "iterations"
    TEAM_CAPACITY = "teamCapacity"
    METRICS = "metrics"
    TEAM_MEMBERS = "teamMembers"
    TRENDS = "trends"
    HEALTH = "health"
    BUG_CLASSIFICATION = "bugClassification"

    ALL = frozenset(
        {
            WORK_ITEMS,
            WORK_ITEM_DETAILS,
            ITERATIONS,
            TEAM_CAPACITY,
            METRICS,
            TEAM_MEMBERS,
            TRENDS,
            HEALTH,
            BUG_CLASSIFICATION,
        }
    )


class CacheTTL:
    """Default TTLs (seconds) per namespace."""

    WORK_ITEMS = 5 * BASE_MINUTE
    WORK_ITEM_DETAILS = 15 * BASE_MINUTE
    ITERATIONS = 30 * BASE_MINUTE
    TEAM_CAPACITY = 15 * BASE_MINUTE
    METRICS = 5 * BASE_MINUTE
    TEAM_MEMBERS = 30 * BASE_MINUTE
    TRENDS = BASE_HOUR
    HEALTH = BASE_MINUTE
    BUG_CLASSIFICATION = 5 * BASE_MINUTE
    WARMUP = 30 * BASE_MINUTE


class CacheConfig:
    """Backend limits and key layout."""

    KEY_PREFIX = "dashvault"
    KEY_SEPARATOR = ":"
    PARAMS_HASH_LENGTH = 16

    # Local fallback backend
    LOCAL_MAX_TTL = 5 * BASE_MINUTE
    LOCAL_MAX_ENTRIES = 1000

    # Durable backend
    SOCKET_TIMEOUT = 5 * BASE_SECOND
    RECONNECT_INTERVAL = 30 * BASE_SECOND
    SCAN_COUNT = 500


class CacheHealth:
    """Health status values reported by the cache store."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
