"""Connection factory for the local PostgreSQL test server."""

from __future__ import annotations

import logging

from psycopg2.extensions import parse_dsn
from sqlalchemy import URL, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from dbtest.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)

HOST = "127.0.0.1"
PORT = 5432
SSLMODE = "disable"
DRIVERNAME = "postgresql+psycopg2"


def _dsn_value(value: str) -> str:
    # Bare libpq values must be non-empty and free of whitespace, quotes and backslashes.
    if value and not any(ch.isspace() or ch in "'\\" for ch in value):
        return value
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def connection_string(user: str, password: str, dbname: str) -> str:
    """Build the libpq keyword connection string for *dbname*."""
    return (
        f"host={HOST} port={PORT} sslmode={SSLMODE} "
        f"user={_dsn_value(user)} password={_dsn_value(password)} dbname={_dsn_value(dbname)}"
    )


def database_url(user: str, password: str, dbname: str) -> URL:
    """Build the SQLAlchemy URL for the parameters of :func:`connection_string`.

    The URL is parsed back out of the connection string, so both always
    describe the same endpoint.
    """
    params = parse_dsn(connection_string(user, password, dbname))
    return URL.create(
        DRIVERNAME,
        username=params["user"],
        password=params["password"],
        host=params["host"],
        port=int(params["port"]),
        database=params["dbname"],
        query={"sslmode": params["sslmode"]},
    )


def open_database(user: str, password: str, dbname: str, *, autocommit: bool = False) -> Engine:
    """Create an engine for *dbname* and check that a connection can be opened.

    ``autocommit`` is needed for the root connection, since PostgreSQL refuses
    to run ``CREATE DATABASE`` / ``DROP DATABASE`` inside a transaction block.

    Raises
    ------
    DatabaseConnectionError
        If the server cannot be reached or rejects the credentials.
    """
    engine_kwargs = {}
    if autocommit:
        engine_kwargs["isolation_level"] = "AUTOCOMMIT"
    engine = create_engine(database_url(user, password, dbname), **engine_kwargs)
    try:
        with engine.connect():
            pass
    except SQLAlchemyError as exc:
        engine.dispose()
        raise DatabaseConnectionError(dbname, user, str(exc)) from exc
    logger.debug("Opened connection to %s as %s", dbname, user)
    return engine
