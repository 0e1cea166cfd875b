"""Output formatting utilities for CLI output."""

from __future__ import annotations

import json
import sys
from enum import Enum
from typing import Any

from rich.console import Console
from rich.table import Table

console = Console(stderr=True)


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


def print_output(
    data: Any,
    fmt: OutputFormat = OutputFormat.TABLE,
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print data in the requested format.

    Args:
        data: The data to display. Dicts and lists of dicts become rows,
            anything else is shown in a single "value" column.
        fmt: Output format (table, json).
        columns: Which columns to show in table mode. None = all.
        title: Optional title for table output.
    """
    if fmt == OutputFormat.JSON:
        print_json(data)
    else:
        print_table(data, columns, title)


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout."""
    json.dump(data, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")


def _rows(data: Any) -> list[dict[str, Any]]:
    """Normalize an API payload into table rows.

    Scalars and non-object list items become a single ``value`` column.
    """
    if isinstance(data, dict):
        return [data]
    if not isinstance(data, list):
        return [{"value": data}]
    return [item if isinstance(item, dict) else {"value": item} for item in data]


def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def print_table(
    data: Any,
    columns: list[str] | None = None,
    title: str | None = None,
) -> None:
    """Print data as a Rich table."""
    rows = _rows(data)

    if not rows:
        console.print("[dim]No results.[/dim]")
        return

    # Union of keys across rows, in first-seen order
    if columns is None:
        columns = list(dict.fromkeys(key for row in rows for key in row))

    table = Table(title=title, show_lines=False)
    for col in columns:
        table.add_column(col, overflow="fold")

    for row in rows:
        table.add_row(*[_cell(row.get(col, "")) for col in columns])

    console.print(table)
