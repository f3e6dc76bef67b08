"""Options set by the root callback and read by every command handler."""

from __future__ import annotations

import contextvars
from enum import Enum

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    """Accepted values of --log-level."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CliContext(BaseModel):
    """Global CLI options of the current invocation."""

    log_level: LogLevel = Field(default=LogLevel.WARNING, description="Logging level")
    json_output: bool = Field(default=False, description="Whether to output in JSON format")

    def is_json_output_enabled(self) -> bool:
        return self.json_output


cli_context_var: contextvars.ContextVar[CliContext | None] = contextvars.ContextVar(
    "cli_context",
    default=None,
)


def get_cli_context() -> CliContext:
    """
    Get the current CLI context.

    Returns a default context when the main callback has not run, e.g.
    when a handler is invoked directly.
    """
    context = cli_context_var.get()
    if context is None:
        return CliContext()
    return context


def set_cli_context(context: CliContext) -> None:
    cli_context_var.set(context)


def clear_cli_context() -> None:
    cli_context_var.set(None)
