"""
Reusable Typer Options Module

Option definitions shared by the main callback and the commands. Use
them as ``Annotated`` metadata, e.g.
``json_output: Annotated[bool, json_output_option] = False``.
"""

from __future__ import annotations

import typer

from dashvault.shared.constants import CLIHelp

# Log level option - enum-based with case-insensitive choices
log_level_option = typer.Option(
    "--log-level",
    case_sensitive=False,
    help=CLIHelp.LOG_LEVEL_HELP,
)

# JSON output option - flag-based
json_output_option = typer.Option(
    "--json",
    help=CLIHelp.JSON_HELP,
)

# Configuration file option - per command
config_option = typer.Option(
    "--config",
    "-c",
    help=CLIHelp.CONFIG_HELP,
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
)

# Version option - for main app only
version_option = typer.Option(
    "--version",
    "-V",
    help="Show version information and exit.",
    is_eager=True,
)
