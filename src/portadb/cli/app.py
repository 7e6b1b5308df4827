"""
Root Typer application for the portadb CLI.

Every command takes ``--database/-d`` (or ``PORTADB_URL``) and opens one
connection for the duration of the command.
"""

from __future__ import annotations

import sys

import typer
from typer import Typer

from portadb.cli.utils import console, load_settings, open_database, output_mapping, output_rows, parse_params

app = Typer(
    name="portadb",
    help="portadb — portable relational data access from the terminal.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = Typer(no_args_is_help=True)
app.add_typer(config_app, name="config", help="Key/value config table.")

DatabaseOption = typer.Option(
    None,
    "--database",
    "-d",
    envvar="PORTADB_URL",
    help="SQLAlchemy URL, SQLite file path, or 'memory'.",
)
ParamOption = typer.Option(None, "--param", "-p", help="Positional bind value for '?' (repeatable).")


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from portadb import __version__

        typer.echo(f"portadb {__version__}")
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
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level for diagnostics on stderr."),
) -> None:
    """portadb CLI — run queries and manage the config table."""
    load_settings(log_level=log_level, log_json=False).configure_logging(stream=sys.stderr)


# ── Statements ───────────────────────────────────────────────────────────


@app.command()
def query(
    sql: str = typer.Argument(..., help="SELECT statement; use '?' for bind values."),
    params: list[str] | None = ParamOption,
    database: str | None = DatabaseOption,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Run a query and print its rows."""
    with open_database(database) as db:
        rows = db.get_rows(sql, parse_params(params))
    output_rows(rows, as_json=json_out)


@app.command("exec")
def exec_(
    sql: str = typer.Argument(..., help="INSERT/UPDATE/DELETE/DDL statement."),
    params: list[str] | None = ParamOption,
    database: str | None = DatabaseOption,
) -> None:
    """Run a statement and print the affected-row count."""
    with open_database(database) as db:
        affected = db.execute(sql, parse_params(params))
    console.print(f"[green]✓[/green] {affected} row(s) affected")


@app.command()
def count(
    table: str = typer.Argument(..., help="Table name."),
    where: str | None = typer.Option(None, "--where", "-w", help="WHERE clause without the keyword."),
    params: list[str] | None = ParamOption,
    database: str | None = DatabaseOption,
) -> None:
    """Count rows in a table."""
    with open_database(database) as db:
        total = db.count(table, where, parse_params(params))
    console.print(str(total))


# ── Config table ─────────────────────────────────────────────────────────


TableOption = typer.Option("config", "--table", "-t", help="Config table name.")


@config_app.command("get")
def config_get(
    key: str = typer.Argument(...),
    database: str | None = DatabaseOption,
    table: str = TableOption,
) -> None:
    """Print the value stored under KEY (exit 1 if absent)."""
    from portadb.stores import ConfigStore

    with open_database(database) as db:
        store = ConfigStore(db, table=table)
        found = store.has(key)
        value = store.get(key)
    if not found:
        console.print(f"[yellow]{key} is not set[/yellow]")
        raise typer.Exit(code=1)
    console.print("NULL" if value is None else value, markup=False)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(...),
    value: str = typer.Argument(...),
    database: str | None = DatabaseOption,
    table: str = TableOption,
) -> None:
    """Store VALUE under KEY, creating the table if needed."""
    from portadb.stores import ConfigStore

    with open_database(database) as db:
        store = ConfigStore(db, table=table)
        store.create_table()
        store.set(key, value)
    console.print(f"[green]✓[/green] {key} set")


@config_app.command("list")
def config_list(
    database: str | None = DatabaseOption,
    table: str = TableOption,
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show every key and value."""
    from portadb.stores import ConfigStore

    with open_database(database) as db:
        values = ConfigStore(db, table=table).all()
    output_mapping(values, as_json=json_out, title="Config")
