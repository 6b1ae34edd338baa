#!/usr/bin/env python3
"""
awsrollout - multi-account, multi-region CloudFormation rollouts

A CLI tool for deploying one template to every eligible account and region
of an AWS Organization.
"""
import typer
from rich.console import Console

from . import __version__
from .commands import config, deploy, history, targets

app = typer.Typer(
    help="Deploy a CloudFormation template across the accounts and regions of an AWS Organization.",
    add_completion=True,
    no_args_is_help=True,
)
console = Console()

# Add subcommands
app.command("deploy")(deploy.deploy_plan)
app.command("targets")(targets.list_targets)
app.command("history")(history.show_history)
app.add_typer(config.app, name="config")


@app.command()
def version():
    """Show the application version and exit."""
    console.print(f"awsrollout version: {__version__}")
    raise typer.Exit()


if __name__ == "__main__":
    app()
