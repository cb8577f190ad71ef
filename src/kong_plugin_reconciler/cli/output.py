"""Output rendering for CLI commands."""

from __future__ import annotations

import json
from enum import StrEnum
from typing import Any

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormat(StrEnum):
    """Supported output formats for CLI commands."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


def _format_value(value: Any) -> str:
    if value is None or value == "" or value == []:
        return "[dim]-[/dim]"
    if isinstance(value, bool):
        return "[green]yes[/green]" if value else "[red]no[/red]"
    if isinstance(value, list):
        return escape(", ".join(str(v) for v in value))
    return escape(str(value))


def render_state(
    console: Console,
    state: dict[str, Any],
    output: OutputFormat = OutputFormat.TABLE,
    title: str = "Plugin",
) -> None:
    """Render a resource state in the requested format.

    Args:
        console: Rich console for output.
        state: Resource state as produced by ``ResourceData.to_dict``.
        output: Output format.
        title: Table title (table format only).
    """
    if output == OutputFormat.JSON:
        console.print(
            json.dumps(state, indent=2, default=str),
            highlight=False,
            markup=False,
            soft_wrap=True,
        )
        return
    if output == OutputFormat.YAML:
        console.print(
            yaml.safe_dump(state, sort_keys=False, default_flow_style=False).rstrip(),
            highlight=False,
            markup=False,
            soft_wrap=True,
        )
        return

    table = Table(title=title, show_header=True)
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    for field, value in state.items():
        table.add_row(field, _format_value(value))
    console.print(table)
