"""resolve-iteration command handler."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console

from dashvault.cli.common.context import get_cli_context
from dashvault.cli.common.error_handler import format_json_output, handle_cli_errors
from dashvault.cli.common.runtime import run_with_data_access
from dashvault.data_access import DataAccessLayer
from dashvault.services.iteration_resolver import ResolvedIteration
from dashvault.shared.constants import CLICommands, CLIDefaults

logger = logging.getLogger(__name__)


@handle_cli_errors(command=CLICommands.RESOLVE_ITERATION)
def handle_resolve_iteration(
    project: str,
    ref: str = CLIDefaults.DEFAULT_REF,
    team: str | None = None,
    config_path: Path | None = None,
) -> int:
    """Resolve ``ref`` for ``project`` and print the concrete path.

    An unresolvable reference is reported, not treated as a failure.
    """

    async def _resolve(dal: DataAccessLayer) -> ResolvedIteration:
        return await dal.resolver.resolve_detailed(project, ref, team)

    resolved = run_with_data_access(config_path, _resolve)

    if get_cli_context().is_json_output_enabled():
        typer.echo(
            format_json_output(
                CLICommands.RESOLVE_ITERATION,
                success=True,
                data={"project": project, **resolved.to_dict()},
            )
        )
        return CLIDefaults.EXIT_SUCCESS

    console = Console()
    if resolved.resolved_path is None:
        console.print(f"[yellow]No iteration found for '{ref}' in {project}; no iteration filter applies[/yellow]")
    else:
        via = f" (team: {resolved.team})" if resolved.team else ""
        console.print(f"{ref} -> [bold cyan]{resolved.resolved_path}[/bold cyan]{via}")
    return CLIDefaults.EXIT_SUCCESS
