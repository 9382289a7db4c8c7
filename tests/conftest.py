"""Shared fixtures for the dbtest test suite.

Integration tests run against a session-scoped PostgreSQL testcontainer.  The
package talks to a fixed ``127.0.0.1:5432`` endpoint, so the ``pg_server``
fixture points the connection factory at the container's mapped port for the
duration of one test.
"""

from __future__ import annotations

import shutil
import uuid
from collections.abc import Iterator
from typing import TYPE_CHECKING

import pytest

from dbtest.config import Settings
from dbtest.registry import InitializationRegistry

if TYPE_CHECKING:
    from testcontainers.postgres import PostgresContainer

docker_available = shutil.which("docker") is not None

PG_USER = "postgres"
PG_PASSWORD = "postgres"


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """Shared Postgres testcontainer for all DB-backed tests in this pytest session."""
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer(
        "postgres:16", username=PG_USER, password=PG_PASSWORD, dbname="postgres"
    ) as pg:
        yield pg


@pytest.fixture
def pg_server(postgres_container, monkeypatch) -> PostgresContainer:
    """Route dbtest's fixed endpoint to the testcontainer."""
    monkeypatch.setattr("dbtest.db.HOST", postgres_container.get_container_host_ip())
    monkeypatch.setattr("dbtest.db.PORT", int(postgres_container.get_exposed_port(5432)))
    return postgres_container


@pytest.fixture
def settings() -> Settings:
    return Settings(
        username=PG_USER,
        password=PG_PASSWORD,
        db_username=PG_USER,
        db_password=PG_PASSWORD,
    )


@pytest.fixture
def registry() -> InitializationRegistry:
    """A registry private to one test, i.e. a fresh test run."""
    return InitializationRegistry()


@pytest.fixture
def unique_name() -> str:
    """Logical database name unique to one test."""
    return f"it_{uuid.uuid4().hex[:10]}"
