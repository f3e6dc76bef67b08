"""
CLI Constants

Command names, help texts and exit codes of the admin CLI.
"""


class CLIDefaults:
    """Default values for CLI operations."""

    EXIT_SUCCESS = 0
    EXIT_ERROR = 1
    VERSION = "0.1.0"
    DEFAULT_REF = "current"


class CLICommands:
    """CLI command names."""

    CACHE_STATS = "cache-stats"
    INVALIDATE = "invalidate"
    RESOLVE_ITERATION = "resolve-iteration"
    CLASSIFY = "classify"


class CLIHelp:
    """Help texts."""

    APP_NAME = "dashvault"
    APP_DESCRIPTION = "DashVault: resilient data access for tracking dashboards"
    VERSION_TEXT = "DashVault CLI v{version}"
    CONFIG_HELP = "Path to a TOML configuration file"
    JSON_HELP = "Output results in JSON format"
    LOG_LEVEL_HELP = "Log level (DEBUG, INFO, WARNING, ERROR)"
    CACHE_STATS_HELP = "Show cache statistics and backend health"
    INVALIDATE_HELP = "Evict every cache entry under a namespace"
    RESOLVE_HELP = "Resolve a logical iteration reference to a concrete path"
    CLASSIFY_HELP = "Run bug classification with tiered fallback"
    TEAM_HELP = "Team name to resolve against"
    ITERATION_HELP = "Iteration reference ('current', 'latest' or a path)"
    ENVIRONMENT_HELP = "Only bugs of this environment (Deploy, Prod, SIT, UAT, Other)"
    SEVERITY_HELP = "Severity rank from 1 (critical) to 4 (low)"
    START_DATE_HELP = "Earliest created date (YYYY-MM-DD)"
    END_DATE_HELP = "Latest created date (YYYY-MM-DD)"
