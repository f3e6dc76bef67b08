"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from an optional .env file
- Configuration file loading from TOML
- Thread-safe singleton access to the Settings instance
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from dotenv import load_dotenv

from dashvault.config.models.settings import Settings
from dashvault.shared.errors import ApplicationError, ErrorCode, ErrorContext, create_config_error

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS: tuple[Path, ...] = (
    Path("config/dashvault.toml"),
    Path("dashvault.toml"),
    Path.home() / ".dashvault" / "config.toml",
)


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking to ensure thread-safety while minimizing
    lock overhead.
    """

    _instance: Settings | None = None
    _lock: threading.RLock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the global settings instance, loading it if necessary."""
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings()
        return self._instance

    def reload_config(self, config_path: str | Path | None = None) -> Settings:
        """Force a reload of the global settings instance."""
        with self._lock:
            self._instance = load_settings(config_path)
        return self._instance


def _load_env_file(env_file: Path = Path(".env")) -> None:
    """Load environment variables from a .env file when one exists.

    Unlike required settings, the file itself is optional: CI and
    containers usually pass ``DASHVAULT_*`` variables directly.
    """
    if not env_file.exists():
        return
    try:
        load_dotenv(env_file, override=False)
    except OSError as e:
        raise ApplicationError(
            code=ErrorCode.FILE_READ_ERROR,
            message=f"Failed to read .env file: {e}",
            context=ErrorContext(
                operation="load_env",
                additional_data={"file_name": env_file.name},
            ),
            original_error=e,
        ) from e


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from a TOML file or from the environment.

    Args:
        config_path: Optional path to a TOML file. When None, the default
            locations are searched before falling back to environment
            variables only.

    Returns:
        Settings instance loaded from the first available source

    Raises:
        ApplicationError: If the configuration file cannot be parsed
    """
    _load_env_file()

    candidates = [Path(config_path)] if config_path else [p for p in DEFAULT_CONFIG_PATHS if p.exists()]
    if not candidates:
        return Settings()

    path = candidates[0]
    try:
        settings = Settings.from_toml_file(path)
    except FileNotFoundError as e:
        raise create_config_error(str(e), setting="config_path", operation="load_settings") from e
    except (ValueError, TypeError) as e:
        # toml.TomlDecodeError and pydantic.ValidationError are ValueErrors
        raise ApplicationError(
            code=ErrorCode.CONFIG_INVALID,
            message=f"Invalid configuration file {path}: {e}",
            context=ErrorContext(
                operation="load_settings",
                additional_data={"config_path": str(path)},
            ),
            original_error=e,
        ) from e

    logger.debug("Loaded configuration from %s", path)
    return settings


# Global loader instance
_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the global settings instance (thread-safe)."""
    return _loader.get_config()


def reload_config(config_path: str | Path | None = None) -> Settings:
    """Reload the global settings instance from configuration files."""
    return _loader.reload_config(config_path)


__all__ = [
    "SettingsLoader",
    "get_config",
    "load_settings",
    "reload_config",
]
