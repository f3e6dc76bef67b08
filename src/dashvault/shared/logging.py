"""Structured logging for DashVault.

Console output is rendered by rich; log files always receive one JSON
object per record. The ``log_*`` helpers attach operation names,
durations and error contexts as record extras so that both outputs carry
the same fields.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import orjson
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from dashvault.shared.errors import DashVaultError, ErrorContext

_EXTRA_FIELDS: tuple[str, ...] = (
    "error_code",
    "operation",
    "context",
    "duration_ms",
    "result_info",
)

_CONSOLE_THEME = Theme(
    {
        "logging.level.debug": "dim",
        "logging.level.info": "bright_blue",
        "logging.level.warning": "dark_orange",
        "logging.level.error": "bold red",
        "logging.level.critical": "bold white on red",
        "log.time": "dim",
    }
)


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line including DashVault extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({name: getattr(record, name) for name in _EXTRA_FIELDS if hasattr(record, name)})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(entry, default=str).decode("utf-8")


def setup_structured_logger(
    name: str = "dashvault",
    level: str = "INFO",
    log_file: str | None = None,
    *,
    use_rich_console: bool = True,
) -> logging.Logger:
    """Configure the package logger.

    Calling it again replaces the previous handlers.

    Args:
        name: Logger name
        level: Level name such as ``"DEBUG"`` or ``"WARNING"``
        log_file: Optional JSON-lines file
        use_rich_console: Rich console output instead of JSON on stderr

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logger.setLevel(numeric_level)

    console_handler: logging.Handler
    if use_rich_console:
        console_handler = RichHandler(
            console=Console(theme=_CONSOLE_THEME, stderr=True),
            show_path=False,
            markup=False,
            rich_tracebacks=True,
            log_time_format="%H:%M:%S",
        )
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(StructuredFormatter())
    console_handler.setLevel(numeric_level)
    logger.addHandler(console_handler)

    if log_file:
        json_handler = logging.FileHandler(log_file, encoding="utf-8")
        json_handler.setFormatter(StructuredFormatter())
        logger.addHandler(json_handler)

    logger.propagate = False
    return logger


def _as_dict(context: dict[str, Any] | ErrorContext | None) -> dict[str, Any]:
    if context is None:
        return {}
    if isinstance(context, ErrorContext):
        return context.safe_dict()
    return dict(context)


def log_operation_error(
    logger: logging.Logger,
    error: DashVaultError,
    operation: str | None = None,
    context: dict[str, Any] | ErrorContext | None = None,
    *,
    level: int = logging.ERROR,
) -> None:
    """Log a DashVault error with its code and merged context.

    Degradations that the caller recovers from pass ``level=logging.WARNING``.
    """
    merged = error.context.safe_dict()
    merged.update(_as_dict(context))
    logger.log(
        level,
        error.message,
        extra={
            "error_code": error.code.name,
            "operation": operation or error.context.operation,
            "context": merged,
        },
        exc_info=error.original_error,
    )


def log_operation_success(
    logger: logging.Logger,
    operation: str,
    duration_ms: float,
    result_info: dict[str, Any] | None = None,
    context: dict[str, Any] | ErrorContext | None = None,
) -> None:
    logger.debug(
        "%s finished in %.1f ms",
        operation,
        duration_ms,
        extra={
            "operation": operation,
            "duration_ms": duration_ms,
            "result_info": result_info or {},
            "context": _as_dict(context),
        },
    )


def log_operation_start(
    logger: logging.Logger,
    operation: str,
    context: dict[str, Any] | None = None,
) -> None:
    logger.debug("%s started", operation, extra={"operation": operation, "context": context or {}})


def log_api_call(
    logger: logging.Logger,
    endpoint: str,
    method: str = "GET",
    status_code: int | None = None,
    duration_ms: float | None = None,
    context: dict[str, Any] | None = None,
) -> None:
    """Log one upstream HTTP request.

    Responses with a 4xx/5xx status are logged as errors, everything else
    at debug level.
    """
    details: dict[str, Any] = {"endpoint": endpoint, "method": method, **(context or {})}
    if status_code is not None:
        details["status_code"] = status_code
    if duration_ms is not None:
        details["duration_ms"] = duration_ms

    failed = status_code is not None and status_code >= 400
    suffix = f" -> {status_code}" if status_code is not None else ""
    logger.log(
        logging.ERROR if failed else logging.DEBUG,
        "%s %s%s",
        method,
        endpoint,
        suffix,
        extra={"operation": "api_call", "context": details},
    )


def log_tier_transition(
    logger: logging.Logger,
    operation: str,
    from_tier: str,
    to_tier: str,
    error: Exception,
) -> None:
    """Warn that a tiered operation moved on to its next tier."""
    code = error.code.name if isinstance(error, DashVaultError) else type(error).__name__
    logger.warning(
        "%s: %s tier failed (%s), trying %s",
        operation,
        from_tier,
        error,
        to_tier,
        extra={
            "error_code": code,
            "operation": operation,
            "context": {"from_tier": from_tier, "to_tier": to_tier},
        },
    )
