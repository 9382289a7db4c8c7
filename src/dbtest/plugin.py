"""pytest integration: fail the test on provisioning errors and dispose on teardown.

Installed through the ``pytest11`` entry point, so any project depending on
``dbtest`` gets the fixtures without touching its conftest::

    def test_create_user(dbtest_database):
        engine = dbtest_database("./migrations", "iam")
        with engine.begin() as conn:
            conn.execute(text("INSERT INTO users (email) VALUES ('a@example.com')"))

Settings can be overridden in ``pytest.ini`` / ``pyproject.toml``::

    [tool.pytest.ini_options]
    dbtest_suffix = "_ci"

Empty ini values are ignored; use ``DBTEST_SUFFIX=""`` to drop the suffix.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Protocol

import pytest
from sqlalchemy.engine import Engine

from dbtest import config as dbtest_config
from dbtest.config import ConfigError, Settings
from dbtest.core import acquire_database
from dbtest.errors import DBTestError
from dbtest.registry import InitializationRegistry, default_registry

# ini option -> Settings field
_INI_OPTIONS: dict[str, str] = {
    "dbtest_user": "username",
    "dbtest_password": "password",
    "dbtest_root_db": "root_db_name",
    "dbtest_suffix": "db_suffix",
    "dbtest_db_user": "db_username",
    "dbtest_db_password": "db_password",
}


class FinalizerScope(Protocol):
    """Anything that can register teardown work, e.g. ``pytest.FixtureRequest``."""

    def addfinalizer(self, finalizer: Callable[[], object]) -> None: ...


def acquire_test_database(
    request: FinalizerScope,
    migrations_path: str | Path | None,
    name: str,
    **kwargs: Any,
) -> Engine:
    """Acquire a clean test database for the test owning *request*.

    Any provisioning failure fails the test immediately via ``pytest.fail``.
    On success the engine is disposed when the test scope finishes, whether
    the test passed or not.  Extra keyword arguments are forwarded to
    :func:`dbtest.core.acquire_database`.
    """
    try:
        engine = acquire_database(migrations_path, name, **kwargs)
    except DBTestError as exc:
        pytest.fail(f"dbtest: could not provision database {name!r}: {exc}", pytrace=False)
    request.addfinalizer(engine.dispose)
    return engine


def pytest_addoption(parser: pytest.Parser) -> None:
    for option, field_name in _INI_OPTIONS.items():
        parser.addini(option, help=f"dbtest: override Settings.{field_name}", default="")


def pytest_configure(config: pytest.Config) -> None:
    overrides = {}
    for option, field_name in _INI_OPTIONS.items():
        value = config.getini(option)
        if value:
            overrides[field_name] = value
    if overrides:
        try:
            dbtest_config.configure(**overrides)
        except ConfigError as exc:
            raise pytest.UsageError(f"dbtest: {exc}") from exc


@pytest.fixture(scope="session")
def dbtest_settings() -> Settings:
    """The process-wide dbtest settings."""
    return dbtest_config.settings


@pytest.fixture(scope="session")
def dbtest_registry() -> InitializationRegistry:
    """Registry of test databases initialized during this session."""
    return default_registry


@pytest.fixture
def dbtest_database(
    request: pytest.FixtureRequest,
    dbtest_settings: Settings,
    dbtest_registry: InitializationRegistry,
) -> Callable[..., Engine]:
    """Factory returning a clean, migrated engine per call.

    Usage: ``engine = dbtest_database("./migrations", "iam")``.  The search
    for the migrations directory starts at the test file's directory.
    """
    start_dir = Path(request.path).parent

    def _acquire(migrations_path: str | Path | None, name: str, **kwargs: Any) -> Engine:
        kwargs.setdefault("settings", dbtest_settings)
        kwargs.setdefault("registry", dbtest_registry)
        kwargs.setdefault("start_dir", start_dir)
        return acquire_test_database(request, migrations_path, name, **kwargs)

    return _acquire
