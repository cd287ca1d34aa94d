"""
Root Typer application for the callguard CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from callguard.cli.config import app as config_app
from callguard.cli.profiles import app as profiles_app

app = Typer(
    name="callguard",
    help="callguard — resilient execution layer for outbound service calls.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from callguard import __version__

        typer.echo(f"callguard {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """callguard CLI — inspect profiles and effective configuration."""
    from callguard.core.logging import configure_logging
    from callguard.core.settings import get_settings

    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")


app.add_typer(profiles_app, name="profiles", help="Built-in default profiles.")
app.add_typer(config_app, name="config", help="Effective configuration.")


if __name__ == "__main__":
    app()
