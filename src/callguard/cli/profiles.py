"""
CLI: ``callguard profiles`` — built-in default profiles.
"""

from __future__ import annotations

import typer
from rich.table import Table

from callguard.cli.utils import console, err_console, print_config
from callguard.core.errors import InvalidConfigError
from callguard.execution.config import DEFAULT_PROFILES, get_profile

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_profiles() -> None:
    """List built-in profiles."""
    table = Table(title="Profiles")
    table.add_column("Name")
    table.add_column("Max retries", justify="right")
    table.add_column("Base delay (ms)", justify="right")
    table.add_column("Failure threshold", justify="right")
    table.add_column("Req/s", justify="right")
    table.add_column("Burst", justify="right")

    for name, config in DEFAULT_PROFILES.items():
        table.add_row(
            name,
            str(config.retry.max_retries),
            f"{config.retry.base_delay_ms:g}",
            str(config.circuit_breaker.failure_threshold),
            str(config.rate_limit.requests_per_second),
            str(config.rate_limit.burst_limit),
        )

    console.print(table)


@app.command("show")
def show_profile(
    name: str = typer.Argument(..., help="Profile name"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show every setting of a profile."""
    try:
        config = get_profile(name)
    except InvalidConfigError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1) from e

    print_config(config.to_dict(), as_json=json_out, title=f"Profile: {name}")
