"""
Network Configuration Constants

Defaults for the upstream tracking API client: rate budget, timeouts
and batching.
"""

from .cache import BASE_SECOND


class NetworkConfig:
    """Upstream client configuration constants."""

    # Timeout settings
    REQUEST_TIMEOUT = 30 * BASE_SECOND

    # Rate limiting (sliding window)
    DEFAULT_RATE_LIMIT = 180  # requests per window
    RATE_WINDOW_SECONDS = 60 * BASE_SECOND

    # Batching
    DEFAULT_BATCH_SIZE = 100
    DEFAULT_BATCH_DELAY_MS = 100

    # HTTP headers
    CONTENT_TYPE_JSON = "application/json"
    ACCEPT_JSON = "application/json"
    USER_AGENT = "DashVault/0.1.0"


class TrackerAPI:
    """Tracking API request shapes."""

    DEFAULT_BASE_URL = "https://dev.azure.com"
    API_VERSION = "7.0"
    WIQL_MAX_RESULTS = 1000
    DETAILS_EXPAND = "all"

    SOURCE_LIVE = "live"
    SOURCE_FIXTURE = "fixture"

    TIMEFRAME_CURRENT = "current"

    DEFAULT_WORK_ITEM_TYPES = ("Task", "Bug", "User Story", "Feature")
    EXCLUDED_STATE = "Removed"
