"""
CLI utility helpers: output formatting and connection management.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import pydantic
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from portadb.database import Database
from portadb.errors import PortaError
from portadb.settings import DatabaseSettings

console = Console()
err_console = Console(stderr=True)


# ── Connection helper ────────────────────────────────────────────────────


@contextmanager
def open_database(database: str | None = None) -> Iterator[Database]:
    """Connect using ``PORTADB_*`` settings, with ``database`` overriding the URL.

    Invalid settings, and any :class:`PortaError` raised while connecting
    or inside the block, are printed in red and turned into exit code 1.
    """
    settings = load_settings()
    if database:
        settings = settings.model_copy(update={"url": database})
    try:
        db = Database.from_settings(settings)
    except PortaError as e:
        fail(e)

    try:
        yield db
    except PortaError as e:
        fail(e)
    finally:
        db.disconnect()


def load_settings(**overrides: Any) -> DatabaseSettings:
    """Read ``PORTADB_*`` settings; invalid values exit with code 1."""
    try:
        return DatabaseSettings(**overrides)
    except pydantic.ValidationError as e:
        err_console.print(f"[bold red]Error[/bold red] (InvalidSettings): {e.error_count()} invalid setting(s)")
        for item in e.errors():
            field = ".".join(str(part) for part in item["loc"])
            err_console.print(f"  {escape(field)}: {escape(item['msg'])}")
        raise typer.Exit(code=1) from e


def fail(error: PortaError) -> None:
    """Print ``error`` to stderr and exit with code 1."""
    err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {escape(error.message)}")
    raise typer.Exit(code=1)


def parse_params(values: list[str] | None) -> list[Any]:
    """Positional bind values from repeated ``--param`` options.

    Values are passed as strings; the literal ``NULL`` binds SQL ``NULL``.
    """
    return [None if v == "NULL" else v for v in values or []]


# ── Output helpers ───────────────────────────────────────────────────────


def output_rows(rows: list[dict[str, Any]], *, as_json: bool = False, title: str = "") -> None:
    """Render query rows as a Rich table or JSON."""
    if as_json:
        console.print_json(json.dumps(rows, default=str))
        return

    if not rows:
        console.print("[dim]No rows.[/dim]")
        return

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*("NULL" if v is None else str(v) for v in row.values()))
    console.print(table)


def output_mapping(data: dict[str, Any], *, as_json: bool = False, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if as_json:
        console.print_json(json.dumps(data, default=str))
        return
    if title:
        console.print(f"[bold]{title}[/bold]")
    if not data:
        console.print("[dim]No items.[/dim]")
        return
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {v}")
