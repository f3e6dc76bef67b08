"""Cache administration command handlers."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from dashvault.cli.common.context import get_cli_context
from dashvault.cli.common.error_handler import format_json_output, handle_cli_errors
from dashvault.cli.common.runtime import run_with_data_access
from dashvault.data_access import DataAccessLayer
from dashvault.shared.constants import CacheHealth, CacheNamespace, CLICommands, CLIDefaults
from dashvault.shared.errors import create_validation_error

logger = logging.getLogger(__name__)

KNOWN_NAMESPACES = CacheNamespace.ALL


def _render_stats(console: Console, stats: dict[str, Any]) -> None:
    health = stats["health"]
    status_style = "green" if health["status"] == CacheHealth.HEALTHY else "yellow"
    console.print(f"Cache status: [{status_style}]{health['status']}[/{status_style}]")

    table = Table(title="Cache statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in stats["cache"].items():
        table.add_row(name, str(value))
    table.add_row("durable configured", str(health["durable"]["configured"]))
    console.print(table)

    tiers = Table(title="Fallback tiers")
    tiers.add_column("Tier", style="cyan")
    tiers.add_column("Count", justify="right")
    for tier, count in stats["tiers"].items():
        tiers.add_row(tier, str(count))
    console.print(tiers)


@handle_cli_errors(command=CLICommands.CACHE_STATS)
def handle_cache_stats(config_path: Path | None = None) -> int:
    """Print cache counters and backend health.

    Returns:
        Exit code
    """

    async def _collect(dal: DataAccessLayer) -> dict[str, Any]:
        return await dal.get_cache_stats()

    stats = run_with_data_access(config_path, _collect)

    if get_cli_context().is_json_output_enabled():
        typer.echo(format_json_output(CLICommands.CACHE_STATS, success=True, data=stats))
    else:
        _render_stats(Console(), stats)
    return CLIDefaults.EXIT_SUCCESS


@handle_cli_errors(command=CLICommands.INVALIDATE)
def handle_invalidate(namespace: str, config_path: Path | None = None) -> int:
    """Evict every entry of a namespace.

    Raises:
        ApplicationError: If the namespace is not a known cache namespace
    """
    if namespace not in KNOWN_NAMESPACES:
        raise create_validation_error(
            f"Unknown cache namespace '{namespace}'. Expected one of: {', '.join(sorted(KNOWN_NAMESPACES))}",
            field="namespace",
            operation=CLICommands.INVALIDATE,
        )

    async def _invalidate(dal: DataAccessLayer) -> int:
        return await dal.invalidate_namespace(namespace)

    removed = run_with_data_access(config_path, _invalidate)

    if get_cli_context().is_json_output_enabled():
        typer.echo(
            format_json_output(
                CLICommands.INVALIDATE,
                success=True,
                data={"namespace": namespace, "removed": removed},
            )
        )
    else:
        Console().print(f"Removed [bold]{removed}[/bold] entries from namespace [cyan]{namespace}[/cyan]")
    return CLIDefaults.EXIT_SUCCESS
