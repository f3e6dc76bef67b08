"""
DashVault Constants Module

Centralized constants for the data access layer. All magic values are
defined here to keep a single source of truth.
"""

from .cache import BASE_HOUR, BASE_MINUTE, BASE_SECOND, CacheConfig, CacheHealth, CacheNamespace, CacheTTL
from .classification import BugFields, ClassificationInsight, Environment, IterationRef, Severity
from .cli import CLICommands, CLIDefaults, CLIHelp
from .network import NetworkConfig, TrackerAPI

__all__ = [
    "BASE_HOUR",
    "BASE_MINUTE",
    "BASE_SECOND",
    "BugFields",
    "CLICommands",
    "CLIDefaults",
    "CLIHelp",
    "CacheConfig",
    "CacheHealth",
    "CacheNamespace",
    "CacheTTL",
    "ClassificationInsight",
    "Environment",
    "IterationRef",
    "NetworkConfig",
    "Severity",
    "TrackerAPI",
]
