"""``migrate`` command line: apply, roll back, scaffold and inspect migrations."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import get_settings
from .db import close_mongo_connection, connect_to_mongo, get_db
from .migrations.runner import MigrationRunner
from .migrations.scaffold import create_migration
from .repositories.exceptions import RepositoryError, translate_error

T = TypeVar("T")

app = typer.Typer(
    name="migrate",
    help="Manage MongoDB schema migrations.",
    no_args_is_help=True,
    add_completion=False,
)
console = Console(soft_wrap=True, highlight=False)
err_console = Console(stderr=True, soft_wrap=True, highlight=False)


def _report(exc: RepositoryError) -> None:
    settings = get_settings()
    migration = exc.context.get("migration")
    if migration:
        err_console.print(f"[red]Migration {escape(str(migration))} failed:[/red] {escape(exc.message)}")
    else:
        err_console.print(f"[red]Migration error:[/red] {escape(exc.message)}")
    if not settings.is_production and exc.cause is not None:
        err_console.print(f"  cause: {escape(repr(exc.cause))}")


def _run(command: Callable[[MigrationRunner], Awaitable[T]]) -> T:
    async def _main() -> T:
        try:
            await connect_to_mongo()
        except Exception as exc:
            raise translate_error(exc) from exc
        try:
            runner = MigrationRunner(get_db(), get_settings().migrations_dir)
            return await command(runner)
        finally:
            await close_mongo_connection()

    try:
        return asyncio.run(_main())
    except RepositoryError as exc:
        _report(exc)
        raise typer.Exit(code=1) from exc


@app.command("up")
def up() -> None:
    """Run all pending migrations."""
    applied = _run(lambda runner: runner.apply())
    if not applied:
        console.print("No pending migrations to apply")
        return
    for migration in applied:
        console.print(f"[green]applied[/green] {escape(migration.label)}")
    console.print(f"{len(applied)} migration(s) applied")


@app.command("down")
def down() -> None:
    """Rollback the most recent migration."""
    record = _run(lambda runner: runner.rollback())
    if record is None:
        console.print("No migrations to rollback")
        return
    console.print(f"[yellow]reverted[/yellow] {escape(record.label)}")


@app.command("create")
def create(name: str = typer.Argument(..., help="Human readable migration name")) -> None:
    """Create a new migration file."""
    if not name.strip():
        raise typer.BadParameter("Please provide a name for the migration", param_hint="NAME")
    try:
        path = create_migration(name, get_settings().migrations_dir)
    except RepositoryError as exc:
        _report(exc)
        raise typer.Exit(code=1) from exc
    console.print(escape(str(path)))


@app.command("status")
def status() -> None:
    """Show applied and pending migrations."""
    rows = _run(lambda runner: runner.status())
    table = Table(title="Migrations")
    table.add_column("Version", justify="right")
    table.add_column("Name")
    table.add_column("Applied")
    for row in rows:
        applied = row.applied_at.isoformat() if row.applied_at else "[yellow]pending[/yellow]"
        name = escape(row.name) if row.has_source else f"{escape(row.name)} [red](source missing)[/red]"
        table.add_row(str(row.version), name, applied)
    console.print(table)


def main(argv: Optional[list[str]] = None) -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
    app(args=argv)


if __name__ == "__main__":
    main()
