"""
CLI: ``callguard config`` — effective configuration.
"""

from __future__ import annotations

import typer

from callguard.cli.utils import err_console, print_config
from callguard.core.errors import CallguardError

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    profile: str | None = typer.Option(None, "--profile", "-p", help="Base profile (default: CALLGUARD_DEFAULT_PROFILE)"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the configuration resolved from the environment."""
    from callguard.core.settings import build_config, get_settings

    settings = get_settings()
    try:
        config = build_config(settings, profile)
    except CallguardError as e:
        err_console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1) from e

    print_config(
        config.to_dict(),
        as_json=json_out,
        title=f"Effective config ({profile or settings.default_profile})",
    )
