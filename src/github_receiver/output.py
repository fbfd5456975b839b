"""Output formatting for the command line."""

import json
from typing import Any

import click
import yaml

MAX_COLUMN_WIDTH = 60


def format_output(rows: list[dict[str, Any]], format: str = "table") -> str:
    """
    Format a list of records for output.

    Args:
        rows: Records to format
        format: Output format (json, yaml, table)

    Returns:
        Formatted string
    """
    if format == "json":
        return json.dumps(rows, indent=2)
    elif format == "yaml":
        return yaml.safe_dump(rows, default_flow_style=False, sort_keys=False)
    return format_table(rows)


def format_table(rows: list[dict[str, Any]]) -> str:
    """Format records as a simple left-aligned table."""
    if not rows:
        return "No items"

    keys = list(rows[0].keys())
    cells = [
        [_cell(row.get(key, "")) for key in keys]
        for row in rows
    ]
    widths = [
        max([len(key)] + [len(line[i]) for line in cells])
        for i, key in enumerate(keys)
    ]

    header = "  ".join(key.ljust(widths[i]) for i, key in enumerate(keys))
    separator = "  ".join("-" * width for width in widths)
    body = ["  ".join(value.ljust(widths[i]) for i, value in enumerate(line)) for line in cells]
    return "\n".join([header, separator] + body).rstrip()


def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        value = ",".join(str(v) for v in value) if isinstance(value, list) else json.dumps(value)
    text = "" if value is None else str(value)
    if len(text) > MAX_COLUMN_WIDTH:
        text = text[: MAX_COLUMN_WIDTH - 3] + "..."
    return text


def print_output(rows: list[dict[str, Any]], format: str = "table") -> None:
    """Print formatted output to stdout."""
    click.echo(format_output(rows, format))


def print_error(message: str) -> None:
    """Print an error message in red."""
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)
