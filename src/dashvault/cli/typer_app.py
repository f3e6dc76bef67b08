"""
DashVault Typer CLI Application

Admin commands for the data access layer: cache statistics and
invalidation, iteration resolution and bug classification.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from dashvault.cli.cache_handler import handle_cache_stats, handle_invalidate
from dashvault.cli.classify_handler import handle_classify
from dashvault.cli.common.context import CliContext, LogLevel, set_cli_context
from dashvault.cli.common.options import config_option, json_output_option, log_level_option, version_option
from dashvault.cli.iteration_handler import handle_resolve_iteration
from dashvault.shared.constants import CLICommands, CLIDefaults, CLIHelp

__version__ = CLIDefaults.VERSION


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(CLIHelp.VERSION_TEXT.format(version=__version__))
        raise typer.Exit


app = typer.Typer(
    name=CLIHelp.APP_NAME,
    help=CLIHelp.APP_DESCRIPTION,
    add_completion=False,
    no_args_is_help=True,
)


@app.callback(invoke_without_command=True)
def main(
    log_level: Annotated[LogLevel, log_level_option] = LogLevel.WARNING,
    json_output: Annotated[bool, json_output_option] = False,
    version: Annotated[bool, version_option] = False,
) -> None:
    """Set up the shared CLI context before any command runs."""
    if version:
        version_callback(value=True)
    set_cli_context(CliContext(log_level=log_level, json_output=json_output))


def _exit(code: int) -> None:
    if code != CLIDefaults.EXIT_SUCCESS:
        raise typer.Exit(code)


@app.command(CLICommands.CACHE_STATS, help=CLIHelp.CACHE_STATS_HELP)
def cache_stats_command(
    config: Annotated[Optional[Path], config_option] = None,
) -> None:
    _exit(handle_cache_stats(config))


@app.command(CLICommands.INVALIDATE, help=CLIHelp.INVALIDATE_HELP)
def invalidate_command(
    namespace: Annotated[str, typer.Argument(help="Cache namespace, e.g. workItems")],
    config: Annotated[Optional[Path], config_option] = None,
) -> None:
    """
    Examples:
        # Drop cached iteration lookups
        dashvault invalidate iterations
    """
    _exit(handle_invalidate(namespace, config))


@app.command(CLICommands.RESOLVE_ITERATION, help=CLIHelp.RESOLVE_HELP)
def resolve_iteration_command(
    project: Annotated[str, typer.Argument(help="Project name")],
    ref: Annotated[str, typer.Argument(help=CLIHelp.ITERATION_HELP)] = CLIDefaults.DEFAULT_REF,
    team: Annotated[Optional[str], typer.Option("--team", "-t", help=CLIHelp.TEAM_HELP)] = None,
    config: Annotated[Optional[Path], config_option] = None,
) -> None:
    _exit(handle_resolve_iteration(project, ref, team, config))


@app.command(CLICommands.CLASSIFY, help=CLIHelp.CLASSIFY_HELP)
def classify_command(
    project: Annotated[str, typer.Argument(help="Project name")],
    iteration: Annotated[Optional[str], typer.Option("--iteration", "-i", help=CLIHelp.ITERATION_HELP)] = None,
    team: Annotated[Optional[str], typer.Option("--team", "-t", help=CLIHelp.TEAM_HELP)] = None,
    area_path: Annotated[Optional[str], typer.Option("--area-path", help="Area path filter")] = None,
    environment: Annotated[Optional[str], typer.Option("--environment", "-e", help=CLIHelp.ENVIRONMENT_HELP)] = None,
    severity: Annotated[Optional[str], typer.Option("--severity", "-s", help=CLIHelp.SEVERITY_HELP)] = None,
    start_date: Annotated[Optional[str], typer.Option("--start-date", help=CLIHelp.START_DATE_HELP)] = None,
    end_date: Annotated[Optional[str], typer.Option("--end-date", help=CLIHelp.END_DATE_HELP)] = None,
    config: Annotated[Optional[Path], config_option] = None,
) -> None:
    """
    Examples:
        # Classify bugs of the current sprint
        dashvault classify "Orion" --iteration current

        # High-severity production bugs created in September
        dashvault classify "Orion" -e Prod -s 2 --start-date 2026-09-01 --end-date 2026-09-30

        # Machine-readable output
        dashvault --json classify "Orion"
    """
    _exit(
        handle_classify(
            project,
            iteration,
            team,
            area_path,
            config,
            environment=environment,
            severity=severity,
            start_date=start_date,
            end_date=end_date,
        )
    )
