"""Targets command: list the accounts and regions a plan would deploy to."""

from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.table import Table

from ..rollout.exceptions import AuthenticationError
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


def list_targets(
    plan_file: Path = typer.Argument(..., help="Rollout plan file (YAML or JSON)"),
    profile: Optional[str] = profile_option(),
    verbose: bool = verbose_option(),
):
    """List the eligible (account, region) targets for a plan."""
    config = Config()
    configure_logging(config, verbose)
    rollout_config = load_rollout_config(config)
    plan = load_plan(plan_file)
    client_manager = create_client_manager(profile)

    with console.status("[blue]Enumerating accounts and regions...[/blue]"):
        try:
            result = build_enumerator(client_manager, plan, rollout_config).enumerate()
        except AuthenticationError as e:
            console.print(f"[red]Error: Authentication failed: {e}[/red]")
            raise typer.Exit(1)

    if not result.targets:
        console.print("[yellow]No eligible targets found.[/yellow]")
    else:
        regions_by_account: Dict[str, List[str]] = {}
        for target in result.targets:
            regions_by_account.setdefault(target.account_id, []).append(target.region)

        table = Table(title=f"Targets for {plan.name}", show_header=True, header_style="bold blue")
        table.add_column("Account", style="cyan")
        table.add_column("Regions", justify="right")
        table.add_column("Region Names")
        for account_id, regions in regions_by_account.items():
            table.add_row(account_id, str(len(regions)), ", ".join(regions))
        console.print(table)
        accounts = len(result.account_ids)
        console.print(f"[green]{len(result.targets)} targets across {accounts} accounts[/green]")

    if result.excluded_accounts:
        console.print("\n[yellow]Excluded accounts:[/yellow]")
        for account_id, reason in result.excluded_accounts.items():
            console.print(f"  [yellow]•[/yellow] {account_id}: {reason}")
