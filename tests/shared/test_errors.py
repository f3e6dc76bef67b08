"""Tests for the DashVault error hierarchy and factories."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from dashvault.shared.errors import (
    ApplicationError,
    BatchExecutionError,
    DashVaultError,
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    UpstreamUnavailableError,
    create_config_error,
    create_upstream_error,
    create_validation_error,
)


class TestErrorContext:
    """Tests for ErrorContext."""

    def test_coerces_path_to_string(self) -> None:
        context = ErrorContext(operation="load", additional_data={"path": Path("a/b.json")})
        assert context.additional_data == {"path": str(Path("a/b.json"))}

    def test_rejects_non_primitive_values(self) -> None:
        with pytest.raises(TypeError, match="Cannot coerce"):
            ErrorContext(additional_data={"payload": {"nested": 1}})  # type: ignore[dict-item]

    def test_safe_dict_masks_access_token(self) -> None:
        context = ErrorContext(
            operation="live_source_init",
            additional_data={"access_token": "secret", "organization": "acme"},
        )

        safe = context.safe_dict()

        assert safe["operation"] == "live_source_init"
        assert safe["additional_data"] == {"organization": "acme"}


class TestDashVaultError:
    """Tests for the base error and its dict export."""

    def test_str_includes_code(self) -> None:
        error = ApplicationError(ErrorCode.VALIDATION_ERROR, "bad input")
        assert str(error) == "VALIDATION_ERROR: bad input"
        assert isinstance(error, DashVaultError)

    def test_to_dict(self) -> None:
        original = ValueError("boom")
        error = InfrastructureError(
            ErrorCode.CACHE_ERROR,
            "cache failed",
            ErrorContext(operation="cache_get"),
            original_error=original,
        )

        data = error.to_dict()

        assert data["code"] == "CACHE_ERROR"
        assert data["context"]["operation"] == "cache_get"
        assert data["original_error"] == "boom"


class TestErrorFactories:
    """Tests for the error factory helpers."""

    def test_upstream_error_keeps_original_message(self) -> None:
        original = ConnectionError("connection reset by peer")

        error = create_upstream_error("get_iterations", original)

        assert isinstance(error, UpstreamUnavailableError)
        assert isinstance(error, InfrastructureError)
        assert error.code == ErrorCode.UPSTREAM_UNAVAILABLE
        assert "connection reset by peer" in error.message
        assert error.original_error is original

    @pytest.mark.parametrize("timeout", [asyncio.TimeoutError(), TimeoutError()])
    def test_upstream_error_for_timeout(self, timeout: Exception) -> None:
        error = create_upstream_error("query_work_items", timeout)

        assert error.code == ErrorCode.API_TIMEOUT
        assert "timed out" in error.message

    def test_validation_error(self) -> None:
        error = create_validation_error("TTL must be positive", field="ttl_seconds", operation="fetch")

        assert isinstance(error, ApplicationError)
        assert error.code == ErrorCode.VALIDATION_ERROR
        assert error.context.additional_data == {"field": "ttl_seconds"}

    def test_config_error_names_setting(self) -> None:
        error = create_config_error("missing token", setting="tracker.access_token")

        assert error.code == ErrorCode.CONFIG_MISSING
        assert error.context.additional_data == {"setting": "tracker.access_token"}

    def test_batch_execution_error_identifies_batch(self) -> None:
        cause = RuntimeError("503")

        error = BatchExecutionError(
            "Batch 2 of 3 failed",
            batch_index=1,
            batch_count=3,
            batch_ids=[4, 5, 6],
            original_error=cause,
        )

        assert error.batch_index == 1
        assert error.batch_ids == [4, 5, 6]
        assert error.code == ErrorCode.BATCH_EXECUTION_FAILED
        assert error.context.additional_data["first_id"] == "4"
        assert error.original_error is cause
