"""Errors raised and reported across DashVault.

Every error carries an ``ErrorCode`` and an ``ErrorContext``. Contexts
hold primitives only so they can be written to JSON logs unchanged, and
the exception that triggered an error is kept in ``original_error``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Sequence, Union

PrimitiveContextValue = Union[str, int, float, bool]

# Dropped from safe_dict output
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ("access_token",)


class ErrorCode(str, Enum):
    """Every code an error in DashVault can carry."""

    # Upstream / network
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    API_TIMEOUT = "API_TIMEOUT"
    API_INVALID_RESPONSE = "API_INVALID_RESPONSE"

    # Cache
    CACHE_ERROR = "CACHE_ERROR"
    CACHE_READ_FAILED = "CACHE_READ_FAILED"
    CACHE_SERIALIZATION_ERROR = "CACHE_SERIALIZATION_ERROR"
    CACHE_BACKEND_UNAVAILABLE = "CACHE_BACKEND_UNAVAILABLE"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Configuration
    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"
    FILE_READ_ERROR = "FILE_READ_ERROR"

    # Data access
    BATCH_EXECUTION_FAILED = "BATCH_EXECUTION_FAILED"
    RESOURCE_CLEANUP_ERROR = "RESOURCE_CLEANUP_ERROR"

    # CLI
    CLI_UNEXPECTED_ERROR = "CLI_UNEXPECTED_ERROR"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Return ``value`` with Enum, Path and Decimal values made primitive.

    Raises:
        TypeError: For a non-dict or for values of any other type
    """
    if value is None:
        return None
    if not isinstance(value, dict):
        raise TypeError(f"additional_data must be a dict, not {type(value).__name__}")

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, item in value.items():
        if isinstance(item, Enum):
            coerced[key] = item.value
        elif isinstance(item, (str, int, float, bool)):
            coerced[key] = item
        elif isinstance(item, Path):
            coerced[key] = str(item)
        elif isinstance(item, Decimal):
            coerced[key] = float(item)
        else:
            raise TypeError(f"Cannot coerce {type(item).__name__} for key '{key}' to a primitive")
    return coerced


@dataclass(frozen=True)
class ErrorContext:
    """Where an error happened and the primitive details that go with it."""

    operation: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        if self.additional_data is not None:
            object.__setattr__(self, "additional_data", _coerce_primitives(self.additional_data))

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Loggable copy of the context without credential keys.

        Example:
            >>> ErrorContext(operation="get", additional_data={"key": "k"}).safe_dict()
            {'operation': 'get', 'additional_data': {'key': 'k'}}
        """
        hidden = SAFE_DICT_MASK_KEYS if mask_keys is None else mask_keys
        exported: dict[str, Any] = {} if self.operation is None else {"operation": self.operation}
        exported["additional_data"] = {
            key: item for key, item in (self.additional_data or {}).items() if key not in hidden
        }
        return exported


class DashVaultError(Exception):
    """Base class of every DashVault error.

    Args:
        code: Error code
        message: Human-readable message
        context: Operation and primitive details
        original_error: Exception this error was raised from
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error
        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready form for logs and CLI output."""
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(DashVaultError):
    """A request that breaks a domain rule, such as an unusable classification filter."""


class InfrastructureError(DashVaultError):
    """Failure of something outside the process.

    Raised when interacting with external systems: the upstream tracking
    API, the durable cache backend or the file system.
    """


class ApplicationError(DashVaultError):
    """Application-level errors such as invalid configuration or arguments."""


class UpstreamUnavailableError(InfrastructureError):
    """Uniform error for every transport failure against the upstream API.

    Network errors, timeouts and non-2xx responses all surface as this
    type. The original exception is kept in ``original_error``.
    """


class CacheError(InfrastructureError):
    """Cache backend failure.

    Never raised out of the cache store; it is reported through
    ``CacheLookup.error`` and the store statistics.
    """


class BatchExecutionError(InfrastructureError):
    """A single batch failed and aborted a batched lookup."""

    def __init__(
        self,
        message: str,
        *,
        batch_index: int,
        batch_count: int,
        batch_ids: Sequence[Any],
        original_error: Exception | None = None,
    ) -> None:
        self.batch_index = batch_index
        self.batch_count = batch_count
        self.batch_ids = list(batch_ids)
        context = ErrorContext(
            operation="run_batched",
            additional_data={
                "batch_index": batch_index,
                "batch_count": batch_count,
                "batch_size": len(self.batch_ids),
                "first_id": str(self.batch_ids[0]) if self.batch_ids else "",
                "last_id": str(self.batch_ids[-1]) if self.batch_ids else "",
            },
        )
        super().__init__(
            ErrorCode.BATCH_EXECUTION_FAILED,
            message,
            context,
            original_error,
        )


def create_upstream_error(
    operation: str,
    original_error: Exception,
    additional_data: dict[str, PrimitiveContextValue] | None = None,
) -> UpstreamUnavailableError:
    """Create the uniform upstream-unavailable error for a failed call."""
    if isinstance(original_error, (TimeoutError, asyncio.TimeoutError)):
        code = ErrorCode.API_TIMEOUT
        detail = "request timed out"
    else:
        code = ErrorCode.UPSTREAM_UNAVAILABLE
        detail = str(original_error) or type(original_error).__name__
    return UpstreamUnavailableError(
        code,
        f"Failed to fetch from upstream ({operation}): {detail}",
        ErrorContext(operation=operation, additional_data=additional_data),
        original_error,
    )


def create_validation_error(
    message: str,
    field: str | None = None,
    operation: str | None = None,
) -> ApplicationError:
    """Create a validation error with context."""
    context = ErrorContext(
        operation=operation,
        additional_data={"field": field} if field else None,
    )
    return ApplicationError(ErrorCode.VALIDATION_ERROR, message, context)


def create_config_error(
    message: str,
    setting: str,
    operation: str | None = None,
) -> ApplicationError:
    """Create a configuration error naming the offending setting."""
    context = ErrorContext(
        operation=operation,
        additional_data={"setting": setting},
    )
    return ApplicationError(ErrorCode.CONFIG_MISSING, message, context)
