"""
CLI layer for callguard.

Provides a Typer application for inspecting the built-in profiles and
the effective configuration resolved from ``CALLGUARD_*`` settings.

Entry point::

    callguard --help
"""

from callguard.cli.app import app

__all__ = ["app"]
