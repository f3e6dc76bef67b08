"""Command runtime: settings, logging and the data access lifecycle."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

from dashvault.cli.common.context import get_cli_context
from dashvault.config.loader import load_settings
from dashvault.data_access import DataAccessLayer
from dashvault.shared.logging import setup_structured_logger

T = TypeVar("T")


def run_with_data_access(
    config_path: Path | None,
    operation: Callable[[DataAccessLayer], Awaitable[T]],
) -> T:
    """Run ``operation`` against an initialized data access layer.

    The log level comes from the CLI context; the log file and console
    style come from the loaded settings.
    """
    settings = load_settings(config_path)
    setup_structured_logger(
        "dashvault",
        level=get_cli_context().log_level.value,
        log_file=settings.logging.file,
        use_rich_console=settings.logging.use_rich_console,
    )

    async def _run() -> T:
        async with DataAccessLayer.from_settings(settings) as dal:
            return await operation(dal)

    return asyncio.run(_run())
