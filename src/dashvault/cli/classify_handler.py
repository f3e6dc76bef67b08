"""classify command handler."""

from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from dashvault.cli.common.context import get_cli_context
from dashvault.cli.common.error_handler import format_json_output, handle_cli_errors
from dashvault.cli.common.runtime import run_with_data_access
from dashvault.data_access import DataAccessLayer
from dashvault.services.bug_classification import BugClassificationReport, ClassificationFilters
from dashvault.services.fallback import FallbackResult
from dashvault.shared.constants import CLICommands, CLIDefaults

logger = logging.getLogger(__name__)


def _render_report(console: Console, result: FallbackResult[BugClassificationReport]) -> None:
    report = result.payload
    tier_style = "yellow" if result.degraded else "green"
    console.print(
        f"[bold]{report.project}[/bold] "
        f"iteration: {report.iteration_path or 'all'}  "
        f"tier: [{tier_style}]{result.tier.value}[/{tier_style}]"
    )
    console.print(
        f"Bugs: {report.total_bugs}  classified: {report.classified}  "
        f"unclassified: {report.unclassified}  rate: {report.classification_rate}%"
    )

    table = Table(title="Bugs by environment")
    table.add_column("Environment", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("%", justify="right")
    for environment, bucket in report.bugs_by_environment.items():
        table.add_row(environment, str(bucket.count), f"{bucket.percentage:.1f}")
    console.print(table)
    for recommendation in report.insights.recommendations:
        console.print(f"[dim]{recommendation}[/dim]")


@handle_cli_errors(command=CLICommands.CLASSIFY)
def handle_classify(
    project: str,
    iteration: str | None = None,
    team: str | None = None,
    area_path: str | None = None,
    config_path: Path | None = None,
    *,
    environment: str | None = None,
    severity: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> int:
    """Run bug classification with fallback and print the report.

    A degraded result still exits successfully.
    """
    filters = ClassificationFilters.parse(
        {
            "iteration": iteration,
            "team": team,
            "area_path": area_path,
            "environment": environment,
            "severity": severity,
            "start_date": start_date,
            "end_date": end_date,
        }
    )

    async def _classify(dal: DataAccessLayer) -> FallbackResult[BugClassificationReport]:
        return await dal.classify_with_fallback(project, filters)

    result = run_with_data_access(config_path, _classify)

    if get_cli_context().is_json_output_enabled():
        typer.echo(format_json_output(CLICommands.CLASSIFY, success=True, data=result.to_dict()))
    else:
        _render_report(Console(), result)
    return CLIDefaults.EXIT_SUCCESS
