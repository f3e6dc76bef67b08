"""Tracking API configuration model.

Settings for the upstream project-tracking API: credentials, source
selection, rate budget, timeout and batching.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from dashvault.shared.constants import NetworkConfig, TrackerAPI


class TrackerSettings(BaseModel):
    """Upstream tracking API configuration.

    Security: access_token is masked in __repr__ to prevent accidental
    exposure in logs.
    """

    organization: str = Field(default="", description="Organization name in the tracking service")
    project: str = Field(default="", description="Default project name")
    access_token: str = Field(
        default="",
        repr=False,
        description="Personal access token used for basic auth",
    )
    base_url: str = Field(default=TrackerAPI.DEFAULT_BASE_URL, description="API base URL")
    api_version: str = Field(default=TrackerAPI.API_VERSION, description="REST API version")

    # Source selection (made once at construction)
    source: Literal["live", "fixture"] = Field(
        default="live",
        description="Data source: live upstream API or static fixtures",
    )
    fixture_path: Path | None = Field(
        default=None,
        description="JSON fixture file served by the fixture source",
    )

    # Request settings
    timeout_seconds: float = Field(
        default=NetworkConfig.REQUEST_TIMEOUT,
        gt=0,
        description="Per-request timeout in seconds",
    )
    rate_limit: int = Field(
        default=NetworkConfig.DEFAULT_RATE_LIMIT,
        gt=0,
        description="Maximum requests per rate window",
    )
    rate_window_seconds: float = Field(
        default=NetworkConfig.RATE_WINDOW_SECONDS,
        gt=0,
        description="Length of the sliding rate window in seconds",
    )

    # Batching
    batch_size: int = Field(
        default=NetworkConfig.DEFAULT_BATCH_SIZE,
        gt=0,
        description="Maximum ids per detail lookup",
    )
    batch_delay_ms: int = Field(
        default=NetworkConfig.DEFAULT_BATCH_DELAY_MS,
        ge=0,
        description="Pause between consecutive batches in milliseconds",
    )
    max_results: int = Field(
        default=TrackerAPI.WIQL_MAX_RESULTS,
        gt=0,
        description="Maximum work item references returned by a query",
    )

    def __repr__(self) -> str:
        """Custom repr that masks the access token."""
        masked = "***" if self.access_token else "''"
        return (
            f"TrackerSettings(organization={self.organization!r}, project={self.project!r}, "
            f"access_token={masked}, source={self.source!r}, rate_limit={self.rate_limit}, "
            f"timeout_seconds={self.timeout_seconds})"
        )
