"""DashVault Configuration Module

Unified access to configuration models and the settings loader.
"""

from __future__ import annotations

from .loader import get_config, load_settings, reload_config
from .models import CacheSettings, LoggingSettings, NamespaceTTLs, Settings, TrackerSettings

__all__ = [
    "CacheSettings",
    "LoggingSettings",
    "NamespaceTTLs",
    "Settings",
    "TrackerSettings",
    "get_config",
    "load_settings",
    "reload_config",
]
