"""Configuration domain models."""

from __future__ import annotations

from .app_settings import LoggingSettings
from .cache_settings import CacheSettings, NamespaceTTLs
from .settings import Settings
from .tracker_settings import TrackerSettings

__all__ = [
    "CacheSettings",
    "LoggingSettings",
    "NamespaceTTLs",
    "Settings",
    "TrackerSettings",
]
