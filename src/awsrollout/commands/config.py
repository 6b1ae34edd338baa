"""Configuration management commands for awsrollout."""

import json
from typing import Any, Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from ..utils.config import Config

app = typer.Typer(help="Manage awsrollout configuration settings.")
console = Console()


@app.command("show")
def show_config(
    section: Optional[str] = typer.Option(
        None, "--section", "-s", help="Show a specific configuration section (rollout, logging)"
    ),
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, yaml, json"),
) -> None:
    """Show the effective configuration (defaults, file values and environment overrides)."""
    config = Config()
    config_data = {
        "rollout": config.get_rollout_config(),
        "logging": config.get_logging_config(),
    }

    if section:
        if section not in config_data:
            console.print(f"[red]Configuration section '{section}' not found.[/red]")
            console.print(f"Available sections: {', '.join(config_data.keys())}")
            raise typer.Exit(1)
        config_data = {section: config_data[section]}

    if format == "yaml":
        yaml_output = yaml.dump(config_data, default_flow_style=False, indent=2, sort_keys=False)
        console.print(Syntax(yaml_output, "yaml", theme="monokai", line_numbers=True))
    elif format == "json":
        console.print(json.dumps(config_data, indent=2))
    elif format == "table":
        for name, values in config_data.items():
            _display_section_table(name, values)
    else:
        console.print(f"[red]Error: Unsupported format '{format}'. Use table, yaml or json.[/red]")
        raise typer.Exit(1)


@app.command("path")
def show_config_path():
    """Show the path to the configuration file."""
    config_path = Config().get_config_file_path()

    console.print(f"[green]Configuration file:[/green] {config_path}")
    if config_path.exists():
        console.print("[green]File exists:[/green] Yes")
        console.print(f"[green]File size:[/green] {config_path.stat().st_size} bytes")
    else:
        console.print("[yellow]File exists:[/yellow] No")


@app.command("set")
def set_config(
    key_value: str = typer.Argument(
        ..., help="Configuration key=value pair (e.g., rollout.concurrency=10)"
    ),
) -> None:
    """Set a configuration value using key=value format.

    Examples:
    - awsrollout config set rollout.concurrency=10
    - awsrollout config set rollout.backoff.max_delay=120
    - awsrollout config set logging.level=DEBUG
    """
    if "=" not in key_value:
        console.print(
            "[red]Error: Invalid format. Use 'key=value' (e.g., rollout.concurrency=10)[/red]"
        )
        raise typer.Exit(1)

    key, value = key_value.split("=", 1)
    key = key.strip()
    value = value.strip()

    if not key or not value:
        console.print("[red]Error: Both key and value are required[/red]")
        raise typer.Exit(1)

    config = Config()
    parsed_value = _parse_config_value(value)
    config.set(key, parsed_value)

    if key.startswith("rollout."):
        errors = config.validate_rollout_config()
        if errors:
            console.print("[yellow]Warning: The rollout configuration is now invalid:[/yellow]")
            for error in errors:
                console.print(f"  [yellow]•[/yellow] {error}")

    console.print(f"[green]✓ Configuration '{key}' set to '{parsed_value}'[/green]")


@app.command("validate")
def validate_config():
    """Validate the rollout configuration."""
    config = Config()
    errors = config.validate_rollout_config()
    if errors:
        console.print("[red]✗ Rollout configuration is invalid:[/red]")
        for error in errors:
            console.print(f"  [red]•[/red] {error}")
        raise typer.Exit(1)

    console.print("[green]✓ Rollout configuration is valid[/green]")


def _parse_config_value(value: str) -> Any:
    """Parse configuration value string into appropriate Python type."""
    lowered = value.lower()
    if lowered in ["true", "false", "yes", "no", "on", "off"]:
        return lowered in ["true", "yes", "on"]

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value


def _display_section_table(name: str, values: Any) -> None:
    table = Table(title=f"{name} configuration", show_header=True, header_style="bold blue")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in _flatten(values):
        table.add_row(key, str(value))
    console.print(table)


def _flatten(values: Any, prefix: str = ""):
    if not isinstance(values, dict) or not values:
        yield prefix, values
        return
    for key, value in values.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict) and value:
            yield from _flatten(value, full_key)
        else:
            yield full_key, value
