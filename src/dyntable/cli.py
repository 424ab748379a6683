"""
dyntable command-line interface.

Commands:
- serve: run the HTTP adapter with uvicorn
- logs: show recent entries of the JSONL log
- tables: list, describe, create and drop tables
- columns: list, add and drop columns
- records: list, get, create, update and delete records

Store selection comes from --db-path / --database-url, falling back to
DYNTABLE_DB_PATH / DATABASE_URL.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from dyntable import __version__
from dyntable.runtime.config import EngineConfig
from dyntable.runtime.db_backend import normalize_database_url
from dyntable.runtime.errors import DyntableError
from dyntable.runtime.logging import get_log_file, get_recent_logs, setup_logging
from dyntable.runtime.record_engine import RecordEngine
from dyntable.runtime.table_manager import TableManager

app = typer.Typer(help="Schema-on-write record store", no_args_is_help=True)
tables_app = typer.Typer(help="Manage tables", no_args_is_help=True)
columns_app = typer.Typer(help="Manage table columns", no_args_is_help=True)
records_app = typer.Typer(help="Manage records", no_args_is_help=True)
app.add_typer(tables_app, name="tables")
app.add_typer(columns_app, name="columns")
app.add_typer(records_app, name="records")

console = Console()


# =============================================================================
# Shared helpers
# =============================================================================


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"dyntable {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    db_path: Path | None = typer.Option(None, "--db-path", help="SQLite database file"),
    database_url: str | None = typer.Option(
        None, "--database-url", help="PostgreSQL URL (overrides --db-path)"
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
    log_dir: Path | None = typer.Option(None, "--log-dir", help="Directory of the JSONL log"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version"
    ),
) -> None:
    """Schema-on-write record store."""
    config = EngineConfig.from_env()
    if db_path is not None:
        config.db_path = db_path
        config.database_url = None
    if database_url:
        config.database_url = normalize_database_url(database_url)
    if log_level:
        config.log_level = log_level.upper()
    if log_dir is not None:
        config.log_dir = log_dir
    ctx.obj = config


def _config(ctx: typer.Context) -> EngineConfig:
    config: EngineConfig = ctx.obj
    return config


@contextmanager
def _open(ctx: typer.Context) -> Iterator[tuple[TableManager, RecordEngine]]:
    """Open the configured store and yield a table manager and engine on it."""
    config = _config(ctx)
    store = config.create_store()
    tables = TableManager(
        store,
        protected_relations=config.protected_relations,
        default_relations=config.default_relations,
    )
    try:
        with store:
            tables.ensure_default_relations()
            yield tables, RecordEngine(store, tables)
    except DyntableError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        raise typer.Exit(1)


def _parse_json_object(text: str, what: str) -> dict[str, Any]:
    try:
        data = json.loads(text, parse_float=Decimal)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON for {what}: {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(data, dict):
        console.print(f"[red]{what} must be a JSON object[/red]")
        raise typer.Exit(1)
    return data


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


# =============================================================================
# serve
# =============================================================================


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8080, "--port", "-p", help="Bind port"),
) -> None:
    """Run the HTTP API."""
    import uvicorn

    from dyntable.runtime.server import create_app

    config = _config(ctx)
    setup_logging(config.log_dir, config.log_level)
    uvicorn.run(create_app(config), host=host, port=port)


@app.command()
def logs(
    ctx: typer.Context,
    count: int = typer.Option(50, "--count", "-n", help="Number of entries to show"),
    level: str | None = typer.Option(None, "--level", "-l", help="Only this level"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Show recent entries from the JSONL log written by `serve`."""
    config = _config(ctx)
    if config.log_dir is None:
        console.print("[yellow]File logging is disabled (DYNTABLE_LOG_DIR is empty)[/yellow]")
        raise typer.Exit(1)

    entries = get_recent_logs(count, level=level, log_dir=config.log_dir)
    if as_json:
        _print_json(entries)
        return
    if not entries:
        console.print(f"[dim]No log entries in {get_log_file(config.log_dir)}[/dim]")
        return

    output = Table(title="Recent logs")
    output.add_column("Time")
    output.add_column("Level")
    output.add_column("Component")
    output.add_column("Message")
    for entry in entries:
        output.add_row(
            str(entry.get("timestamp", "")),
            str(entry.get("level", "")),
            str(entry.get("component", "")),
            str(entry.get("message", "")),
        )
    console.print(output)


# =============================================================================
# tables
# =============================================================================


@tables_app.command("list")
def tables_list(ctx: typer.Context) -> None:
    """List tables."""
    with _open(ctx) as (tables, _):
        for name in tables.list_relations():
            console.print(name)


@tables_app.command("describe")
def tables_describe(ctx: typer.Context, name: str = typer.Argument(...)) -> None:
    """Show the columns of a table with their storage types."""
    with _open(ctx) as (tables, _):
        descriptor = tables.describe_relation(name)

    table = Table(title=descriptor.name)
    table.add_column("Column")
    table.add_column("Type")
    for column in descriptor.columns:
        table.add_row(column.name, column.storage_type.to_sql())
    console.print(table)


@tables_app.command("create")
def tables_create(
    ctx: typer.Context,
    name: str = typer.Argument(...),
    columns: str | None = typer.Option(
        None, "--columns", help='Column types as JSON, e.g. \'{"title": "VARCHAR(100)"}\''
    ),
    sample: str | None = typer.Option(
        None, "--sample", help='Sample record as JSON, e.g. \'{"title": "hi", "count": 3}\''
    ),
) -> None:
    """Create a table."""
    column_spec = _parse_json_object(columns, "--columns") if columns else None
    sample_data = _parse_json_object(sample, "--sample") if sample else None
    with _open(ctx) as (tables, _):
        descriptor = tables.create_relation(name, columns=column_spec, sample_data=sample_data)
    console.print(
        f"[green]Table '{descriptor.name}' created with columns: "
        f"{', '.join(descriptor.column_names)}[/green]"
    )


@tables_app.command("drop")
def tables_drop(ctx: typer.Context, name: str = typer.Argument(...)) -> None:
    """Drop a table."""
    with _open(ctx) as (tables, _):
        tables.drop_relation(name)
    console.print(f"[green]Table '{name}' dropped[/green]")


# =============================================================================
# columns
# =============================================================================


@columns_app.command("list")
def columns_list(ctx: typer.Context, table: str = typer.Argument(...)) -> None:
    """List the columns of a table."""
    with _open(ctx) as (tables, _):
        for column in tables.list_columns(table):
            console.print(column)


@columns_app.command("add")
def columns_add(
    ctx: typer.Context,
    table: str = typer.Argument(...),
    column: str = typer.Argument(...),
    sample: str | None = typer.Option(
        None, "--sample", help="Sample value as JSON, used to infer the type"
    ),
) -> None:
    """Add a column; its type is inferred from the name and sample."""
    sample_value: Any = None
    if sample is not None:
        try:
            sample_value = json.loads(sample, parse_float=Decimal)
        except json.JSONDecodeError:
            sample_value = sample
    with _open(ctx) as (tables, _):
        actual = tables.add_column(table, column, sample_value)
    console.print(f"[green]Column '{actual}' added to '{table}'[/green]")


@columns_app.command("drop")
def columns_drop(
    ctx: typer.Context,
    table: str = typer.Argument(...),
    column: str = typer.Argument(...),
) -> None:
    """Drop a column."""
    with _open(ctx) as (tables, _):
        tables.drop_column(table, column)
    console.print(f"[green]Column '{column}' removed from '{table}'[/green]")


# =============================================================================
# records
# =============================================================================


@records_app.command("list")
def records_list(
    ctx: typer.Context,
    table: str = typer.Option("users", "--table", "-t"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """List the records of a table."""
    with _open(ctx) as (tables, engine):
        columns = tables.list_columns(table)
        records = engine.list_records(table)

    if as_json:
        _print_json(records)
        return

    output = Table(title=table)
    for column in columns:
        output.add_column(column)
    for record in records:
        output.add_row(*(str(record.get(column, "")) for column in columns))
    console.print(output)


@records_app.command("get")
def records_get(
    ctx: typer.Context,
    record_id: int = typer.Argument(...),
    table: str = typer.Option("users", "--table", "-t"),
) -> None:
    """Show one record."""
    with _open(ctx) as (_, engine):
        record = engine.get_record(table, record_id)
    _print_json(record)


@records_app.command("create")
def records_create(
    ctx: typer.Context,
    payload: str = typer.Argument(..., help="Record as a JSON object"),
    table: str = typer.Option("users", "--table", "-t"),
) -> None:
    """Create a record; unknown fields become new columns."""
    data = _parse_json_object(payload, "record")
    with _open(ctx) as (_, engine):
        record = engine.create_record(table, data)
    _print_json(record)


@records_app.command("update")
def records_update(
    ctx: typer.Context,
    record_id: int = typer.Argument(...),
    payload: str = typer.Argument(..., help="Fields to change as a JSON object"),
    table: str = typer.Option("users", "--table", "-t"),
) -> None:
    """Update existing fields of a record."""
    data = _parse_json_object(payload, "record")
    with _open(ctx) as (_, engine):
        engine.update_record(table, record_id, data)
    console.print(f"[green]Record {record_id} updated[/green]")


@records_app.command("delete")
def records_delete(
    ctx: typer.Context,
    record_id: int = typer.Argument(...),
    table: str = typer.Option("users", "--table", "-t"),
) -> None:
    """Delete a record."""
    with _open(ctx) as (_, engine):
        engine.delete_record(table, record_id)
    console.print(f"[green]Record {record_id} deleted[/green]")


if __name__ == "__main__":
    app()
