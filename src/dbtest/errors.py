"""Error taxonomy for test database provisioning.

Every failure raised by the provisioning core is a :class:`DBTestError`.
The pytest boundary (``dbtest.plugin``) turns these into a failed test; the
core itself never calls into pytest.
"""

from __future__ import annotations

from pathlib import Path


class DBTestError(Exception):
    """Base class for all provisioning failures."""


class DatabaseConnectionError(DBTestError):
    """Raised when a connection to PostgreSQL cannot be opened."""

    def __init__(self, dbname: str, user: str, reason: str) -> None:
        self.dbname = dbname
        self.user = user
        super().__init__(f"failed to open DB connection to {dbname!r} as {user!r}: {reason}")


class DatabaseCreateError(DBTestError):
    """Raised when ``CREATE DATABASE`` fails."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        super().__init__(f"failed to create database {name!r}: {reason}")


class MigrationsPathNotFound(DBTestError):
    """Raised when the upward search for a migrations directory reaches the root."""

    def __init__(self, fragment: str, start_dir: Path) -> None:
        self.fragment = fragment
        self.start_dir = start_dir
        super().__init__(
            f"migrations path not found: {fragment!r} (searched upward from {start_dir})"
        )


class MigrationError(DBTestError):
    """Raised when the migration runner fails."""


class ResetError(DBTestError):
    """Raised when a reset fails.

    ``table`` is the table whose truncate failed, or the step that failed when
    no single table is involved.
    """

    def __init__(self, table: str, reason: str) -> None:
        self.table = table
        super().__init__(f"reset failed at {table!r}: {reason}")
