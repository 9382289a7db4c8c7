"""Drop, recreate and migrate a test database on first use."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import Connection
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from dbtest.config import Settings
from dbtest.db import open_database
from dbtest.errors import DatabaseCreateError
from dbtest.migrations import MigrationRunner, run_migrations
from dbtest.paths import resolve_migrations_path
from dbtest.registry import InitializationRegistry

logger = logging.getLogger(__name__)


class DropStatus(enum.StrEnum):
    """Outcome of the best-effort ``DROP DATABASE IF EXISTS``."""

    DROPPED = "dropped"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class DropResult:
    """Result of :func:`drop_database`.

    ``SKIPPED`` carries the error that prevented the drop, typically another
    session still connected to the database.  Provisioning continues either
    way.
    """

    status: DropStatus
    error: str | None = None

    @property
    def dropped(self) -> bool:
        return self.status is DropStatus.DROPPED


def drop_database(conn: Connection, name: str) -> DropResult:
    """Issue ``DROP DATABASE IF EXISTS`` for *name* without raising on SQL errors."""
    try:
        conn.exec_driver_sql(f"DROP DATABASE IF EXISTS {name}")
    except SQLAlchemyError as exc:
        logger.warning("Could not drop database %s, continuing: %s", name, exc)
        return DropResult(DropStatus.SKIPPED, error=str(exc))
    return DropResult(DropStatus.DROPPED)


def create_database(conn: Connection, name: str) -> None:
    """Issue ``CREATE DATABASE`` for *name*.

    Raises
    ------
    DatabaseCreateError
        If the server rejects the statement.
    """
    try:
        conn.exec_driver_sql(f"CREATE DATABASE {name}")
    except SQLAlchemyError as exc:
        raise DatabaseCreateError(name, str(exc)) from exc
    logger.info("Created database: %s", name)


def initialize_database(
    name: str,
    migrations_path: str | Path | None,
    *,
    settings: Settings,
    registry: InitializationRegistry,
    start_dir: str | Path | None = None,
    runner: MigrationRunner | None = None,
) -> Engine:
    """Recreate database *name* from scratch and migrate it.

    *name* is the physical database name (suffix already applied).  The
    database name is interpolated into DDL as-is and must come from trusted
    test code.

    Returns an engine connected to the new database with the test database
    credentials.  The name is recorded in *registry* as soon as the database
    has been created, even if the migrations later fail.
    """
    root = open_database(
        settings.username, settings.password, settings.root_db_name, autocommit=True
    )
    try:
        with root.connect() as conn:
            drop_database(conn, name)
            create_database(conn, name)
        registry.mark_initialized(name)
    finally:
        root.dispose()

    engine = open_database(settings.db_username, settings.db_password, name)
    if migrations_path:
        try:
            directory = resolve_migrations_path(migrations_path, start_dir)
            run_migrations(engine, directory, runner)
        except Exception:
            engine.dispose()
            raise
    return engine
