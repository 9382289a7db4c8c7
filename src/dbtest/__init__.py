"""dbtest: freshly migrated, empty PostgreSQL databases for tests.

The first request for a database name in a test run drops, recreates and
migrates it; every request truncates all tables except ``schema_migrations``
before handing back an engine.
"""

from __future__ import annotations

from dbtest.config import ConfigError, Settings, configure, settings
from dbtest.core import acquire_database
from dbtest.errors import (
    DatabaseConnectionError,
    DatabaseCreateError,
    DBTestError,
    MigrationError,
    MigrationsPathNotFound,
    ResetError,
)
from dbtest.paths import resolve_migrations_path
from dbtest.registry import InitializationRegistry, default_registry

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "DBTestError",
    "DatabaseConnectionError",
    "DatabaseCreateError",
    "InitializationRegistry",
    "MigrationError",
    "MigrationsPathNotFound",
    "ResetError",
    "Settings",
    "acquire_database",
    "configure",
    "default_registry",
    "resolve_migrations_path",
    "settings",
]
