"""Deploy command for awsrollout.

Deploys the template named in a rollout plan to every eligible account and
region, in waves of bounded concurrency, and reports one outcome per target.

Examples:
    # Deploy once
    $ awsrollout deploy plan.yaml

    # Show what would be deployed without calling CloudFormation
    $ awsrollout deploy plan.yaml --dry-run

    # Re-run the rollout every hour until interrupted
    $ awsrollout deploy plan.yaml --watch --interval 3600
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn

from ..plans.inspector import TemplateInspector
from ..plans.models import RolloutPlan
from ..rollout.backoff import ExponentialBackoffStrategy
from ..rollout.cancellation import CancellationToken
from ..rollout.errors import ErrorClassifier
from ..rollout.exceptions import AuthenticationError, PlanValidationError, TemplateError
from ..rollout.executor import DeployExecutor
from ..rollout.naming import UniqueNameGenerator
from ..rollout.provider import CloudFormationProvider
from ..rollout.recurring import CycleResult, RecurringRollout
from ..rollout.reporting import ReportGenerator
from ..rollout.scheduler import BatchScheduler
from ..utils.config import Config
from .common import (
    build_enumerator,
    configure_logging,
    console,
    create_client_manager,
    load_plan,
    load_rollout_config,
    profile_option,
    verbose_option,
)

logger = logging.getLogger(__name__)


def deploy_plan(
    plan_file: Path = typer.Argument(..., help="Rollout plan file (YAML or JSON)"),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Enumerate targets and report without deploying"
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", "-c", help="Targets deployed in parallel per wave"
    ),
    max_retries: Optional[int] = typer.Option(
        None, "--max-retries", help="Retries per target after the first attempt"
    ),
    watch: bool = typer.Option(False, "--watch", help="Repeat the rollout on a fixed interval"),
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Seconds between rollout cycles in watch mode"
    ),
    cycles: Optional[int] = typer.Option(
        None, "--cycles", help="Stop after this many cycles in watch mode"
    ),
    profile: Optional[str] = profile_option(),
    verbose: bool = verbose_option(),
):
    """Deploy a rollout plan to every eligible account and region.

    Each target gets an idempotent create-or-update of one CloudFormation
    stack. Failures are isolated per target. The command exits with status 1
    if authentication fails or if every attempted target failed.
    """
    config = Config()
    configure_logging(config, verbose)
    rollout_config = load_rollout_config(config)
    plan = load_plan(plan_file)

    settings = resolve_settings(plan, rollout_config, concurrency, max_retries)
    if settings["concurrency"] < 1:
        console.print("[red]Error: --concurrency must be at least 1[/red]")
        raise typer.Exit(1)
    if settings["max_retries"] < 0:
        console.print("[red]Error: --max-retries cannot be negative[/red]")
        raise typer.Exit(1)

    console.print(f"[blue]Rollout plan:[/blue] [bold]{plan.name}[/bold]")
    console.print(f"[blue]Template:[/blue] {plan.template_url}")
    if dry_run:
        console.print("[yellow]Dry run: no stacks will be created or updated[/yellow]")

    client_manager = create_client_manager(profile)

    try:
        inspector = TemplateInspector(client_manager.get_client("cloudformation"))
        parameters = inspector.resolve_parameters(plan)
    except PlanValidationError as e:
        console.print(f"[red]Error: {e}[/red]")
        for error in e.errors:
            console.print(f"  [red]•[/red] {error}")
        raise typer.Exit(1)
    except TemplateError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    cancellation = CancellationToken()
    executor = build_executor(plan, parameters, rollout_config, settings, cancellation, dry_run)
    reporter = ReportGenerator(console)
    results: List[CycleResult] = []

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Deploying", total=None)

        def on_progress(completed: int, total: int) -> None:
            progress.update(task, completed=completed, total=total)

        def on_cycle_complete(result: CycleResult) -> None:
            progress.update(task, completed=0, total=None)
            results.append(result)
            report_cycle(reporter, result, verbose)

        enumerator = build_enumerator(client_manager, plan, rollout_config)
        scheduler = BatchScheduler(
            executor,
            concurrency=settings["concurrency"],
            wave_delay=rollout_config["wave_delay_seconds"],
            cancellation=cancellation,
            progress_callback=on_progress,
            context_refresher=enumerator.refresh_context,
            refresh_margin=rollout_config["credential_refresh_margin_seconds"],
        )
        rollout = RecurringRollout(
            enumerator,
            scheduler,
            interval=interval if interval is not None else rollout_config["watch_interval_seconds"],
            run_log_path=Path(rollout_config["run_log"]) if rollout_config["run_log"] else None,
            cancellation=cancellation,
            on_cycle_complete=on_cycle_complete,
        )

        try:
            rollout.run(max_cycles=cycles if watch else 1)
        except AuthenticationError as e:
            console.print(f"[red]Error: Authentication failed, rollout aborted: {e}[/red]")
            raise typer.Exit(1)
        except KeyboardInterrupt:
            cancellation.cancel("interrupted")
            console.print(
                "[yellow]Rollout interrupted; remaining targets were not attempted[/yellow]"
            )
            raise typer.Exit(1)

    if results and all_attempted_failed(results[-1]):
        raise typer.Exit(1)


def resolve_settings(
    plan: RolloutPlan,
    rollout_config: Dict[str, Any],
    concurrency: Optional[int] = None,
    max_retries: Optional[int] = None,
) -> Dict[str, Any]:
    """Merge run settings: command line over plan over configuration."""

    def pick(cli_value: Any, plan_value: Any, config_value: Any) -> Any:
        if cli_value is not None:
            return cli_value
        if plan_value is not None:
            return plan_value
        return config_value

    return {
        "concurrency": pick(concurrency, plan.concurrency, rollout_config["concurrency"]),
        "max_retries": pick(max_retries, plan.max_retries, rollout_config["max_retries"]),
        "name_prefix": pick(None, plan.name_prefix, rollout_config["name_prefix"]),
    }


def build_executor(
    plan: RolloutPlan,
    parameters: Dict[str, Any],
    rollout_config: Dict[str, Any],
    settings: Dict[str, Any],
    cancellation: CancellationToken,
    dry_run: bool = False,
) -> DeployExecutor:
    """Wire the provider, classifier, backoff and name generator into an executor."""
    cfn_config = rollout_config["cloudformation"]
    backoff_config = rollout_config["backoff"]
    classifier_config = rollout_config["classifier"]

    provider = CloudFormationProvider(
        capabilities=plan.capabilities,
        on_failure=cfn_config["on_failure"],
        poll_delay=cfn_config["poll_delay"],
        max_wait_attempts=cfn_config["max_wait_attempts"],
    )
    return DeployExecutor(
        provider,
        plan.template_ref(parameters),
        UniqueNameGenerator(prefix=settings["name_prefix"]),
        classifier=ErrorClassifier(
            extra_codes=classifier_config.get("extra_codes"),
            extra_patterns=classifier_config.get("extra_patterns"),
        ),
        backoff=ExponentialBackoffStrategy(
            base_delay=backoff_config["base_delay"],
            max_delay=backoff_config["max_delay"],
            exponential_base=backoff_config["exponential_base"],
            jitter_factor=backoff_config["jitter_factor"],
        ),
        max_retries=settings["max_retries"],
        cancellation=cancellation,
        tags={"awsrollout:plan": plan.name, **plan.tags},
        dry_run=dry_run,
    )


def report_cycle(reporter: ReportGenerator, result: CycleResult, verbose: bool = False) -> None:
    """Print the summary and outcome table for a finished cycle."""
    enumeration = result.enumeration
    if enumeration is not None and enumeration.excluded_accounts:
        console.print(
            f"[yellow]Warning: {len(enumeration.excluded_accounts)} accounts were excluded "
            "(see log for details)[/yellow]"
        )

    reporter.generate_summary_report(result.summary)
    reporter.generate_outcome_table(result.outcomes, include_successful=verbose)

    if result.summary.has_failures() and result.persisted:
        console.print(
            f"[dim]Review failures with: awsrollout history --run-id {result.summary.run_id}[/dim]"
        )

    if not result.persisted:
        console.print("[yellow]Warning: Outcomes were not written to the run log[/yellow]")


def all_attempted_failed(result: CycleResult) -> bool:
    """Check if a cycle attempted targets and none of them succeeded or was skipped."""
    summary = result.summary
    return summary.has_failures() and summary.failed + summary.blocked == summary.total_attempted
