"""Logging configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field


class LoggingSettings(BaseModel):
    """Logging configuration.

    Console output goes through rich; the optional file always receives
    JSON lines.
    """

    level: str = Field(default="INFO", description="Logging level")
    file: str | None = Field(default=None, description="JSON log file path")
    use_rich_console: bool = Field(default=True, description="Use rich console handler")
