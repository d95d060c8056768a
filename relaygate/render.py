"""
Rendering functions for relaygate output.

This module handles all pretty-printing and table formatting.
Services return data, this module makes it human-readable.
"""

from rich.table import Table
from rich.console import Console
from rich import box
from typing import Any, Dict, List

from .domain.index_entry import SYSTEM_FIELDS, BRANCH_FIELD, META_DIR_FIELD, UPDATED_FIELD
from .services.index_query import QueryResult

console = Console()

PREFERRED_COLUMNS = ['title', 'release_date', 'genre']


def _format_value(value: Any) -> str:
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    if value is None:
        return ""
    return str(value)


def index_columns(items: List[Dict[str, Any]]) -> List[str]:
    """Document fields to show: the schema fields first, then any others seen."""
    seen: List[str] = []
    for item in items:
        for key in item:
            if key not in SYSTEM_FIELDS and key not in seen:
                seen.append(key)
    preferred = [c for c in PREFERRED_COLUMNS if c in seen]
    return preferred + [c for c in seen if c not in preferred]


def render_index_table(result: QueryResult) -> None:
    """
    Render one page of index entries as a pretty table.

    Args:
        result: Query result to display
    """
    if not result.items:
        console.print("[yellow]No index entries found.[/yellow]")
        return

    columns = index_columns(result.items)
    first = result.page * result.page_size + 1
    last = first + len(result.items) - 1

    table = Table(
        title=f"Index ({result.branch})",
        caption=f"{first}-{last} of {result.total}",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold magenta"
    )

    table.add_column("Directory", style="cyan")
    if result.branch == 'all':
        table.add_column("Branch", style="green")
    for column in columns:
        table.add_column(column)
    table.add_column("Updated", style="dim")

    for item in result.items:
        row = [item.get(META_DIR_FIELD, "")]
        if result.branch == 'all':
            row.append(item.get(BRANCH_FIELD, ""))
        row += [_format_value(item.get(column)) for column in columns]
        row.append(item.get(UPDATED_FIELD, ""))
        table.add_row(*[str(val) for val in row])

    console.print(table)
