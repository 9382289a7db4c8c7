"""Migration runners applied to freshly created test databases.

Two directory layouts are understood:

* Plain SQL files named ``<version>_<title>.up.sql`` (``.down.sql`` files are
  ignored), tracked in a single-row ``schema_migrations (version, dirty)``
  table.  This is the layout used by golang-migrate and similar tools.
* An Alembic script location (a directory containing ``env.py``), upgraded to
  ``heads`` with ``schema_migrations`` as the version table.

Both runners are idempotent: versions already recorded in
``schema_migrations`` are skipped.
"""

from __future__ import annotations

import logging
import re
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from alembic import command
from alembic.config import Config
from alembic.util import CommandError
from sqlalchemy import Connection, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from dbtest.errors import MigrationError

logger = logging.getLogger(__name__)

MIGRATIONS_TABLE = "schema_migrations"

_MIGRATION_FILE_RE = re.compile(r"^(\d+)_(.*)\.up\.sql$")
# Multiplier golang-migrate applies to the crc32 of the database name.
_ADVISORY_LOCK_SALT = 1486364155


class MigrationRunner(Protocol):
    """Applies every pending migration found in *directory* to *engine*."""

    def run(self, engine: Engine, directory: Path) -> None: ...


@dataclass(frozen=True)
class Migration:
    """A single ``up`` migration file."""

    version: int
    title: str
    path: Path

    def read_sql(self) -> str:
        return self.path.read_text(encoding="utf-8")


def load_migrations(directory: Path) -> list[Migration]:
    """Return the ``up`` migrations in *directory*, ordered by version.

    Raises
    ------
    MigrationError
        If two files declare the same version.
    """
    by_version: dict[int, Migration] = {}
    for entry in sorted(directory.iterdir()):
        if not entry.is_file():
            continue
        match = _MIGRATION_FILE_RE.match(entry.name)
        if match is None:
            continue
        version = int(match.group(1))
        if version in by_version:
            raise MigrationError(
                f"duplicate migration version {version}: "
                f"{by_version[version].path.name} and {entry.name}"
            )
        by_version[version] = Migration(version=version, title=match.group(2), path=entry)
    return [by_version[v] for v in sorted(by_version)]


def advisory_lock_id(database_name: str) -> int:
    """Return the advisory lock key guarding migrations of *database_name*."""
    return zlib.crc32(database_name.encode("utf-8")) * _ADVISORY_LOCK_SALT


class SqlMigrationRunner:
    """Runs ``<version>_<title>.up.sql`` files against a PostgreSQL database.

    Each migration is bracketed by writes to ``schema_migrations``: the
    version is first recorded as dirty, the SQL file is executed in its own
    transaction, and the version is then marked clean.  A failure leaves the
    version dirty, and later runs refuse to continue until the database is
    recreated.
    """

    def run(self, engine: Engine, directory: Path) -> None:
        migrations = load_migrations(directory)
        lock_id = advisory_lock_id(engine.url.database or "")
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT pg_advisory_lock(:id)"), {"id": lock_id})
                conn.commit()
                try:
                    self._apply(conn, migrations)
                finally:
                    conn.execute(text("SELECT pg_advisory_unlock(:id)"), {"id": lock_id})
                    conn.commit()
        except SQLAlchemyError as exc:
            raise MigrationError(f"migrations in {directory} failed: {exc}") from exc

    def _apply(self, conn: Connection, migrations: list[Migration]) -> None:
        with conn.begin():
            conn.exec_driver_sql(
                f"CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} "
                "(version bigint NOT NULL PRIMARY KEY, dirty boolean NOT NULL)"
            )
            row = conn.execute(
                text(f"SELECT version, dirty FROM {MIGRATIONS_TABLE} LIMIT 1")
            ).first()

        current: int | None = None
        if row is not None:
            current, dirty = int(row[0]), bool(row[1])
            if dirty:
                raise MigrationError(f"dirty database version {current}; fix and recreate it")

        pending = [m for m in migrations if current is None or m.version > current]
        if not pending:
            logger.debug("No pending migrations (version=%s)", current)
            return

        for migration in pending:
            try:
                sql = migration.read_sql()
            except (OSError, UnicodeDecodeError) as exc:
                raise MigrationError(
                    f"cannot read migration {migration.path.name}: {exc}"
                ) from exc
            self._set_version(conn, migration.version, dirty=True)
            if sql.strip():
                # No parameter collection, so "%" in the file reaches the server as is.
                with conn.begin():
                    conn.exec_driver_sql(sql, execution_options={"no_parameters": True})
            self._set_version(conn, migration.version, dirty=False)
            logger.info("Applied migration %s_%s", migration.version, migration.title)

    @staticmethod
    def _set_version(conn: Connection, version: int, *, dirty: bool) -> None:
        with conn.begin():
            conn.exec_driver_sql(f"DELETE FROM {MIGRATIONS_TABLE}")
            conn.execute(
                text(f"INSERT INTO {MIGRATIONS_TABLE} (version, dirty) VALUES (:v, :d)"),
                {"v": version, "d": dirty},
            )


class AlembicMigrationRunner:
    """Upgrades an Alembic script location to ``heads``.

    The open connection is shared with ``env.py`` through
    ``config.attributes["connection"]`` and the version table name is passed
    as the ``version_table`` main option; ``env.py`` is expected to honour
    both (see the Alembic cookbook recipe for sharing a connection).
    """

    def run(self, engine: Engine, directory: Path) -> None:
        config = Config()
        config.set_main_option("script_location", str(directory))
        config.set_main_option("version_table", MIGRATIONS_TABLE)
        try:
            with engine.begin() as conn:
                config.attributes["connection"] = conn
                command.upgrade(config, "heads")
        except (CommandError, SQLAlchemyError) as exc:
            raise MigrationError(f"alembic upgrade of {directory} failed: {exc}") from exc
        logger.info("Alembic migrations in %s upgraded to heads", directory)


def runner_for(directory: Path) -> MigrationRunner:
    """Pick the runner matching the layout of *directory*."""
    if (directory / "env.py").is_file():
        return AlembicMigrationRunner()
    return SqlMigrationRunner()


def run_migrations(engine: Engine, directory: Path, runner: MigrationRunner | None = None) -> None:
    """Apply all pending migrations in *directory* to *engine*."""
    if runner is None:
        runner = runner_for(directory)
    logger.info("Running migrations from %s (runner=%s)", directory, type(runner).__name__)
    runner.run(engine, directory)
