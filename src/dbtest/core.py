"""Acquire a clean, migrated test database.

This is the state-reconciliation step behind every test database request:

* first request for a name in this run: drop, create, migrate, reset;
* every later request: connect, reset.

Errors are raised as :class:`~dbtest.errors.DBTestError` subclasses; turning
them into a failed test is left to ``dbtest.plugin``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.engine import Engine

from dbtest import config
from dbtest.config import Settings
from dbtest.db import open_database
from dbtest.migrations import MigrationRunner
from dbtest.provision import initialize_database
from dbtest.registry import InitializationRegistry, default_registry
from dbtest.reset import reset_database

logger = logging.getLogger(__name__)


def acquire_database(
    migrations_path: str | Path | None,
    name: str,
    *,
    settings: Settings | None = None,
    registry: InitializationRegistry | None = None,
    start_dir: str | Path | None = None,
    runner: MigrationRunner | None = None,
) -> Engine:
    """Return an engine for the freshly reset test database of logical *name*.

    Parameters
    ----------
    migrations_path:
        Migrations directory, resolved by searching upward from *start_dir*
        (see :func:`dbtest.paths.resolve_migrations_path`).  Empty or None
        skips migrations.
    name:
        Logical database name; the configured suffix is appended.
    settings:
        Defaults to the process-wide :data:`dbtest.config.settings`, read at
        call time.
    registry:
        Defaults to the process-wide registry.
    start_dir:
        Directory the migrations search starts from; defaults to the current
        working directory.
    runner:
        Migration runner; chosen from the directory layout when omitted.

    The caller owns the returned engine and must ``dispose()`` it.
    """
    if settings is None:
        settings = config.settings
    if registry is None:
        registry = default_registry

    physical_name = settings.physical_name(name)

    if not registry.is_initialized(physical_name):
        logger.info("Initializing test database %s", physical_name)
        engine = initialize_database(
            physical_name,
            migrations_path,
            settings=settings,
            registry=registry,
            start_dir=start_dir,
            runner=runner,
        )
    else:
        engine = open_database(settings.db_username, settings.db_password, physical_name)

    try:
        reset_database(engine)
    except Exception:
        engine.dispose()
        raise
    return engine
