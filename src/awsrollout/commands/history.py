"""History command: read past rollout outcomes from the run log."""

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ..rollout.reporting import STATUS_STYLES, RunLogReader
from ..utils.config import Config
from .common import console


def show_history(
    run_id: Optional[str] = typer.Option(
        None, "--run-id", "-r", help="Show the outcomes of a single run"
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of runs to list"),
):
    """Show past rollout runs, or the outcomes of one run."""
    run_log = Config().get_rollout_config()["run_log"]
    if not run_log:
        console.print("[yellow]Run log is disabled in the configuration.[/yellow]")
        return

    reader = RunLogReader(Path(run_log))
    try:
        if run_id:
            _show_run(reader, run_id)
        else:
            _show_runs(reader, limit)
    except OSError as e:
        console.print(f"[red]Error reading run log {reader.run_log_path}: {e}[/red]")
        raise typer.Exit(1)


def _show_runs(reader: RunLogReader, limit: int) -> None:
    runs = reader.list_runs(limit=limit)
    if not runs:
        console.print(f"[yellow]No runs recorded in {reader.run_log_path}[/yellow]")
        return

    table = Table(title="Rollout Runs", show_header=True, header_style="bold blue")
    table.add_column("Run ID", style="cyan")
    table.add_column("Started")
    table.add_column("Targets", justify="right")
    table.add_column("Succeeded", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Blocked", justify="right", style="magenta")

    for run in runs:
        table.add_row(
            str(run["run_id"]),
            str(run["started_at"]),
            str(run["total"]),
            str(run["Succeeded"]),
            str(run["Failed"]),
            str(run["Skipped"]),
            str(run["Blocked"]),
        )
    console.print(table)


def _show_run(reader: RunLogReader, run_id: str) -> None:
    rows = reader.read_rows(run_id=run_id)
    if not rows:
        console.print(f"[red]Error: Run '{run_id}' not found in {reader.run_log_path}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Run {run_id}", show_header=True, header_style="bold blue")
    table.add_column("Account", style="dim")
    table.add_column("Region")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Stack")
    table.add_column("Reason")

    for row in rows:
        style = STATUS_STYLES.get(row.get("status", ""), "white")
        table.add_row(
            row.get("account_id", ""),
            row.get("region", ""),
            f"[{style}]{row.get('status', '')}[/{style}]",
            row.get("attempts", ""),
            row.get("deployment_name", ""),
            row.get("reason", ""),
        )
    console.print(table)
