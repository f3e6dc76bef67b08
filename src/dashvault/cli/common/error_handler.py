"""
CLI Error Handling Utilities

Consistent error output and exit codes for CLI commands.
"""

from __future__ import annotations

import functools
import logging
import sys
from typing import Any, Callable, TypeVar

import orjson

from dashvault.cli.common.context import get_cli_context
from dashvault.shared.constants import CLIDefaults
from dashvault.shared.errors import ApplicationError, DashVaultError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., int])


def format_json_output(
    command: str,
    *,
    success: bool,
    errors: list[str] | None = None,
    data: Any = None,
) -> str:
    """Format command output as a JSON document.

    Args:
        command: The command that was executed
        success: Whether the operation was successful
        errors: List of error messages
        data: Payload to include

    Returns:
        JSON text
    """
    output: dict[str, Any] = {"success": success, "command": command}
    if errors:
        output["errors"] = errors
    if data is not None:
        output["data"] = data
    return orjson.dumps(output, option=orjson.OPT_INDENT_2, default=str).decode("utf-8")


def _to_cli_error(error: Exception, command: str) -> DashVaultError:
    """Map an exception to a DashVault error carrying a CLI-facing message."""
    if isinstance(error, DashVaultError):
        return error
    return ApplicationError(
        ErrorCode.CLI_UNEXPECTED_ERROR,
        f"Unexpected error: {error}",
        ErrorContext(operation=command, additional_data={"error_type": type(error).__name__}),
        original_error=error,
    )


def handle_cli_error(error: Exception, command: str, *, json_output: bool = False) -> int:
    """Log and print an error, returning the exit code.

    Args:
        error: The exception that occurred
        command: The CLI command being executed
        json_output: Whether to output JSON format

    Returns:
        Exit code for the CLI command
    """
    cli_error = _to_cli_error(error, command)
    context = {"command": command, "error_code": cli_error.code.value}

    if cli_error.code == ErrorCode.CLI_UNEXPECTED_ERROR:
        logger.exception("CLI error in %s: %s", command, cli_error.message, extra={"context": context})
    else:
        logger.error("CLI error in %s: %s", command, cli_error.message, extra={"context": context})

    if json_output:
        sys.stdout.write(
            format_json_output(command, success=False, errors=[f"[{cli_error.code.value}] {cli_error.message}"])
            + "\n"
        )
    else:
        sys.stderr.write(f"Error: {cli_error.message}\n")
    return CLIDefaults.EXIT_ERROR


def handle_cli_errors(command: str) -> Callable[[F], F]:
    """Decorator turning exceptions raised by a handler into an exit code.

    Example:
        >>> @handle_cli_errors(command="cache-stats")
        ... def handle_cache_stats(config_path):
        ...     ...
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except KeyboardInterrupt:
                logger.warning("Command interrupted: %s", command)
                return CLIDefaults.EXIT_ERROR
            except Exception as e:  # noqa: BLE001
                return handle_cli_error(e, command, json_output=get_cli_context().is_json_output_enabled())

        return wrapper  # type: ignore[return-value]

    return decorator
