"""DashVault Settings Configuration Model.

Main Settings class that consolidates all configuration domains.
"""

from __future__ import annotations

from pathlib import Path

import toml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from dashvault.config.models.app_settings import LoggingSettings
from dashvault.config.models.cache_settings import CacheSettings
from dashvault.config.models.tracker_settings import TrackerSettings


class Settings(BaseSettings):
    """Settings facade providing unified configuration access.

    Environment overrides use the ``DASHVAULT_`` prefix with ``__`` as the
    nesting delimiter, e.g. ``DASHVAULT_TRACKER__ACCESS_TOKEN``.
    """

    model_config = SettingsConfigDict(
        env_prefix="DASHVAULT_",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_toml_file(cls, file_path: str | Path) -> Settings:
        """Load settings from a TOML file.

        Values from the file take precedence over environment variables;
        sections absent from the file still come from the environment.
        """
        file_path = Path(file_path)
        if not file_path.exists():
            msg = f"Configuration file not found: {file_path}"
            raise FileNotFoundError(msg)

        raw_config = toml.load(file_path)
        return cls(**raw_config)
