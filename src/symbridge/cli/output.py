"""
Console output for the symbridge CLI.

Status lines, tables and (when enabled) log records all go through one
rich console so they interleave in order.
"""

import logging
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

console = Console()

_MARKS = {
    "success": "[green]✓[/green]",
    "error": "[red]✗[/red]",
    "info": "[blue]i[/blue]",
}


def _status(kind: str, message: str) -> None:
    console.print(f"{_MARKS[kind]} {message}")


def print_success(message: str) -> None:
    _status("success", message)


def print_error(message: str) -> None:
    _status("error", message)


def print_info(message: str) -> None:
    _status("info", message)


def print_table(headers: list[str], rows: list[list[Any]], title: str | None = None) -> None:
    """Render ``rows`` under ``headers``; long values wrap instead of being cut."""
    table = Table(title=title)
    for header in headers:
        table.add_column(header, overflow="fold")
    for row in rows:
        table.add_row(*(str(cell) for cell in row))
    console.print(table)


def setup_logging(level: str = "INFO", rich: bool = True) -> None:
    """
    Send log records to the console.

    Args:
        level: Root log level name.
        rich: Use rich formatting; otherwise a plain timestamped format.
    """
    if rich:
        handler: logging.Handler = RichHandler(
            console=console, rich_tracebacks=True, show_path=False
        )
        fmt = "%(message)s"
    else:
        handler = logging.StreamHandler()
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    logging.basicConfig(level=level, format=fmt, handlers=[handler], force=True)
    # httpx logs every request at INFO, one per datafeed read
    logging.getLogger("httpx").setLevel(logging.WARNING)
