"""
CLI utility helpers — output formatting.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested sections into ``section.key`` pairs."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict):
            result.update(flatten(value, prefix=f"{name}."))
        else:
            result[name] = value
    return result


def print_config(data: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a configuration dict as JSON or a two-column table."""
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    for key, value in flatten(data).items():
        table.add_row(key, str(value))
    console.print(table)
