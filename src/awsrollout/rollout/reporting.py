"""Reporting components for rollout runs.

Classes:
    ReportingSink: Accumulates outcomes and appends them to the run log
    RunLogReader: Reads run log rows back for history views
    ReportGenerator: Rich console reports for a run
"""

import csv
import logging
import threading
import time
import uuid
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import DeploymentOutcome, DeploymentStatus, RunSummary

logger = logging.getLogger(__name__)

RUN_LOG_COLUMNS = [
    "run_id",
    "account_id",
    "region",
    "status",
    "success",
    "reason",
    "resource_id",
    "error",
    "error_category",
    "attempts",
    "deployment_name",
    "started_at",
    "finished_at",
]

STATUS_STYLES = {
    DeploymentStatus.SUCCEEDED.value: "green",
    DeploymentStatus.SKIPPED.value: "yellow",
    DeploymentStatus.FAILED.value: "red",
    DeploymentStatus.BLOCKED.value: "magenta",
}


def new_run_id() -> str:
    """Generate a run identifier."""
    return f"{time.strftime('%Y%m%dT%H%M%S')}-{uuid.uuid4().hex[:8]}"


class ReportingSink:
    """Owns the outcome accumulator for one run.

    Outcomes may arrive in any order. Persistence appends to the run log at
    the end of a cycle and is never retried; a failure is logged and reported
    through the return value.
    """

    def __init__(self, run_log_path: Optional[Path] = None, run_id: Optional[str] = None):
        """Initialize the sink.

        Args:
            run_log_path: CSV file the outcomes are appended to (None disables persistence)
            run_id: Identifier for the run (generated if not provided)
        """
        self.run_log_path = Path(run_log_path).expanduser() if run_log_path else None
        self.run_id = run_id or new_run_id()
        self.started_at = time.time()
        self._outcomes: List[DeploymentOutcome] = []
        self._lock = threading.Lock()

    def record(self, outcome: DeploymentOutcome) -> None:
        """Record one outcome."""
        with self._lock:
            self._outcomes.append(outcome)

    @property
    def outcomes(self) -> List[DeploymentOutcome]:
        """Copy of the recorded outcomes."""
        with self._lock:
            return list(self._outcomes)

    def summary(self, finished_at: Optional[float] = None) -> RunSummary:
        """Compute the run summary from the recorded outcomes."""
        return RunSummary.from_outcomes(
            self.run_id, self.outcomes, started_at=self.started_at, finished_at=finished_at
        )

    def persist(self) -> bool:
        """Append all recorded outcomes to the run log.

        Returns:
            True if the rows were written, False if persistence is disabled or failed
        """
        if self.run_log_path is None:
            logger.debug("Run log persistence disabled")
            return False

        rows = [outcome.to_row(self.run_id) for outcome in self.outcomes]
        try:
            self.run_log_path.parent.mkdir(parents=True, exist_ok=True)
            write_header = not self.run_log_path.exists() or self.run_log_path.stat().st_size == 0
            with open(self.run_log_path, "a", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=RUN_LOG_COLUMNS)
                if write_header:
                    writer.writeheader()
                writer.writerows(rows)
        except OSError as e:
            logger.error(f"Failed to persist run log to {self.run_log_path}: {e}")
            return False

        logger.info(f"Appended {len(rows)} outcomes for run {self.run_id} to {self.run_log_path}")
        return True


class RunLogReader:
    """Reads rows from the run log."""

    def __init__(self, run_log_path: Path):
        self.run_log_path = Path(run_log_path).expanduser()

    def read_rows(self, run_id: Optional[str] = None) -> List[Dict[str, str]]:
        """Read run log rows, optionally for a single run."""
        if not self.run_log_path.exists():
            return []

        with open(self.run_log_path, "r", newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))

        if run_id:
            rows = [row for row in rows if row.get("run_id") == run_id]
        return rows

    def list_runs(self, limit: Optional[int] = None) -> List[Dict[str, object]]:
        """Summarize runs in the log, most recent first."""
        runs: Dict[str, Dict[str, object]] = {}
        for row in self.read_rows():
            run_id = row.get("run_id", "")
            run = runs.setdefault(
                run_id,
                {
                    "run_id": run_id,
                    "started_at": row.get("started_at", ""),
                    "total": 0,
                    **{status.value: 0 for status in DeploymentStatus},
                },
            )
            run["total"] = int(run["total"]) + 1  # type: ignore[call-overload]
            status = row.get("status", "")
            if status in run:
                run[status] = int(run[status]) + 1  # type: ignore[call-overload]
            if row.get("started_at", "") < str(run["started_at"]):
                run["started_at"] = row["started_at"]

        ordered = sorted(runs.values(), key=lambda r: str(r["started_at"]), reverse=True)
        return ordered[:limit] if limit else ordered


class ReportGenerator:
    """Generates summary and detailed reports for rollout runs."""

    def __init__(self, console: Console):
        """Initialize report generator.

        Args:
            console: Rich console for output
        """
        self.console = console

    def generate_summary_report(self, summary: RunSummary, title: str = "Rollout") -> None:
        """Display the run summary panel."""
        summary_table = Table(show_header=False, box=None, padding=(0, 1))
        summary_table.add_column("Metric", style="bold cyan")
        summary_table.add_column("Value", style="bold")

        summary_table.add_row("Run ID", summary.run_id)
        summary_table.add_row("Total Attempted", str(summary.total_attempted))
        summary_table.add_row("Succeeded", f"[green]{summary.succeeded}[/green]")
        summary_table.add_row("Failed", f"[red]{summary.failed}[/red]")
        summary_table.add_row("Skipped", f"[yellow]{summary.skipped}[/yellow]")
        summary_table.add_row("Blocked", f"[magenta]{summary.blocked}[/magenta]")
        summary_table.add_row("Success Rate", f"{summary.success_rate:.1f}%")
        summary_table.add_row("Duration", self._format_duration(summary.duration))

        self.console.print()
        self.console.print(
            Panel(summary_table, title=f"[bold]{title} Summary[/bold]", border_style="blue")
        )

    def generate_outcome_table(
        self, outcomes: List[DeploymentOutcome], include_successful: bool = False
    ) -> None:
        """Display a table of outcomes, failures first."""
        rows = [o for o in outcomes if include_successful or not o.success]
        if not rows:
            return

        rows.sort(key=lambda o: (o.success, o.target))

        table = Table(show_header=True, header_style="bold blue")
        table.add_column("Account", style="dim")
        table.add_column("Region")
        table.add_column("Status")
        table.add_column("Attempts", justify="right")
        table.add_column("Reason")

        for outcome in rows:
            style = STATUS_STYLES.get(outcome.status.value, "white")
            reason = outcome.reason
            if outcome.error and outcome.error != outcome.reason:
                reason = f"{reason}: {outcome.error}"
            table.add_row(
                outcome.target.account_id,
                outcome.target.region,
                f"[{style}]{outcome.status.value}[/{style}]",
                str(outcome.attempts),
                reason,
            )

        self.console.print()
        self.console.print(table)

    def _format_duration(self, seconds: float) -> str:
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes, secs = divmod(int(seconds), 60)
        if minutes < 60:
            return f"{minutes}m {secs}s"
        hours, minutes = divmod(minutes, 60)
        return f"{hours}h {minutes}m {secs}s"
