"""CLI for dbtest: provision and reset local test databases by hand."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import NoReturn

import click
from sqlalchemy.exc import SQLAlchemyError

from dbtest import __version__, config
from dbtest.core import acquire_database
from dbtest.db import open_database
from dbtest.errors import DBTestError, ResetError
from dbtest.logging import LOG_FORMATS, configure_logging
from dbtest.paths import resolve_migrations_path
from dbtest.registry import InitializationRegistry
from dbtest.reset import USER_TABLES_VIEW, list_user_tables, reset_database


def _fail(exc: DBTestError) -> NoReturn:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--log-level", default="INFO", show_default=True, help="Root log level")
@click.option(
    "--log-format",
    type=click.Choice(LOG_FORMATS),
    default="text",
    show_default=True,
    help="Log output format",
)
def cli(log_level: str, log_format: str) -> None:
    """dbtest: disposable, migrated PostgreSQL databases for tests."""
    configure_logging(level=log_level, fmt=log_format)


@cli.command()
@click.argument("name")
@click.option(
    "--migrations",
    "migrations_path",
    default="",
    help="Migrations directory, searched upward from the current directory",
)
def provision(name: str, migrations_path: str) -> None:
    """Drop, recreate, migrate and empty the test database for NAME."""
    try:
        engine = acquire_database(migrations_path, name, registry=InitializationRegistry())
    except DBTestError as exc:
        _fail(exc)
    engine.dispose()
    click.echo(f"Provisioned {config.settings.physical_name(name)}")


@cli.command()
@click.argument("name")
def reset(name: str) -> None:
    """Truncate every table of the test database for NAME."""
    settings = config.settings
    try:
        engine = open_database(
            settings.db_username, settings.db_password, settings.physical_name(name)
        )
        try:
            truncated = reset_database(engine)
        finally:
            engine.dispose()
    except DBTestError as exc:
        _fail(exc)
    click.echo(f"Truncated {len(truncated)} table(s) in {settings.physical_name(name)}")


@cli.command()
@click.argument("name")
def tables(name: str) -> None:
    """List the tables a reset of NAME would truncate."""
    settings = config.settings
    try:
        engine = open_database(
            settings.db_username, settings.db_password, settings.physical_name(name)
        )
    except DBTestError as exc:
        _fail(exc)
    try:
        with engine.connect() as conn:
            user_tables = list_user_tables(conn)
    except SQLAlchemyError as exc:
        _fail(ResetError(USER_TABLES_VIEW, str(exc)))
    finally:
        engine.dispose()
    for schema, table in user_tables:
        click.echo(f"{schema}.{table}")


@cli.command()
@click.argument("fragment")
@click.option(
    "--start-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Directory to start searching from (default: current directory)",
)
def resolve(fragment: str, start_dir: Path | None) -> None:
    """Print the migrations directory FRAGMENT resolves to."""
    try:
        path = resolve_migrations_path(fragment, start_dir)
    except DBTestError as exc:
        _fail(exc)
    click.echo(str(path))


def main() -> None:
    cli()
