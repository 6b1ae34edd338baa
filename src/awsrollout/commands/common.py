"""Common command infrastructure for awsrollout CLI commands.

This module provides shared functionality for all CLI commands including:
- Standard options
- Plan loading and validation
- AWS session creation
- Logging setup
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console

from ..aws_clients.manager import AWSClientManager
from ..plans.models import RolloutPlan
from ..plans.parser import PlanParser
from ..rollout.enumerator import TargetEnumerator
from ..rollout.exceptions import AuthenticationError
from ..utils.config import Config
from ..utils.logging_config import LoggingConfig, setup_rollout_logging

# Shared instances
console = Console()
logger = logging.getLogger(__name__)


def profile_option() -> Any:
    """
    Create a standardized --profile option for commands.

    Returns:
        Typer option for AWS profile selection
    """
    return typer.Option(
        None, "--profile", "-p", help="AWS profile to use (uses default profile if not specified)"
    )


def verbose_option() -> Any:
    """Create a verbose option for CLI commands."""
    return typer.Option(False, "--verbose", "-v", help="Show debug logging")


def configure_logging(config: Config, verbose: bool = False) -> None:
    """Set up logging from the configuration file."""
    setup_rollout_logging(LoggingConfig.from_dict(config.get_logging_config(), verbose=verbose))


def load_rollout_config(config: Config) -> Dict[str, Any]:
    """
    Load and validate the rollout configuration.

    Raises:
        typer.Exit: If the configuration is invalid
    """
    rollout_config = config.get_rollout_config()
    errors = config.validate_rollout_config(rollout_config)
    if errors:
        console.print("[red]Error: Invalid rollout configuration:[/red]")
        for error in errors:
            console.print(f"  [red]•[/red] {error}")
        console.print(f"[dim]Configuration file: {config.get_config_file_path()}[/dim]")
        raise typer.Exit(1)
    return rollout_config


def load_plan(plan_file: Path) -> RolloutPlan:
    """
    Parse and validate a rollout plan file.

    Raises:
        typer.Exit: If the plan cannot be parsed or is invalid
    """
    try:
        plan = PlanParser().parse_file(plan_file)
    except FileNotFoundError:
        console.print(f"[red]Error: Plan file not found: {plan_file}[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    errors = plan.validate()
    if errors:
        console.print(f"[red]Error: Plan '{plan.name}' is invalid:[/red]")
        for error in errors:
            console.print(f"  [red]•[/red] {error}")
        raise typer.Exit(1)

    logger.debug(f"Loaded plan '{plan.name}' from {plan_file}")
    return plan


def create_client_manager(profile: Optional[str] = None) -> AWSClientManager:
    """
    Create an AWS client manager and validate its credentials.

    Raises:
        typer.Exit: If the credentials cannot be used
    """
    try:
        client_manager = AWSClientManager(profile=profile)
        identity = client_manager.get_caller_identity()
    except AuthenticationError as e:
        console.print(f"[red]Error: Authentication failed: {e}[/red]")
        console.print("[dim]Check your AWS credentials or pass --profile.[/dim]")
        raise typer.Exit(1)

    console.print(f"[dim]Using identity {identity.get('Arn', 'unknown')}[/dim]")
    return client_manager


def build_enumerator(
    client_manager: AWSClientManager, plan: RolloutPlan, rollout_config: Dict[str, Any]
) -> TargetEnumerator:
    """Build the target enumerator for a plan."""
    return TargetEnumerator(
        client_manager,
        required_services=plan.required_services,
        include_accounts=plan.accounts.include,
        exclude_accounts=plan.accounts.exclude,
        include_regions=plan.regions.include,
        exclude_regions=plan.regions.exclude,
        role_name=rollout_config["role_name"],
    )
