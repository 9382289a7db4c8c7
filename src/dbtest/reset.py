"""Empty every user table of a test database, keeping schema and migration history."""

from __future__ import annotations

import logging

from sqlalchemy import Connection, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from dbtest.errors import ResetError
from dbtest.migrations import MIGRATIONS_TABLE

logger = logging.getLogger(__name__)

USER_TABLES_VIEW = "pg_stat_user_tables"
# Label for failures of the surrounding transaction (connect, commit, rollback).
TRANSACTION_LABEL = "<transaction>"

_USER_TABLES_QUERY = (
    f"SELECT schemaname, relname FROM {USER_TABLES_VIEW} ORDER BY schemaname, relname"
)


def quote_ident(identifier: str) -> str:
    """Quote a SQL identifier for safe interpolation."""
    return '"' + identifier.replace('"', '""') + '"'


def list_user_tables(conn: Connection) -> list[tuple[str, str]]:
    """Return ``(schema, table)`` pairs a reset would truncate.

    The table set is read from ``pg_stat_user_tables`` on every call and
    excludes the migration tracking table.
    """
    rows = conn.execute(text(_USER_TABLES_QUERY)).all()
    return [(schema, table) for schema, table in rows if table != MIGRATIONS_TABLE]


def reset_database(engine: Engine) -> list[str]:
    """Truncate all user tables except ``schema_migrations`` in one transaction.

    Each table is truncated with ``RESTART IDENTITY CASCADE``.  If any
    statement fails the whole transaction is rolled back, so either every
    table is emptied or none is.

    Returns
    -------
    list[str]
        Qualified names of the truncated tables.

    Raises
    ------
    ResetError
        If listing or truncating a table fails, or the transaction itself
        cannot be opened or committed.  ``table`` is then the statistics view
        or ``<transaction>`` respectively.
    """
    truncated: list[str] = []
    try:
        with engine.begin() as conn:
            try:
                tables = list_user_tables(conn)
            except SQLAlchemyError as exc:
                raise ResetError(USER_TABLES_VIEW, str(exc)) from exc
            for schema, table in tables:
                qualified = f"{schema}.{table}"
                try:
                    conn.exec_driver_sql(
                        f"TRUNCATE {quote_ident(schema)}.{quote_ident(table)} "
                        "RESTART IDENTITY CASCADE",
                        execution_options={"no_parameters": True},
                    )
                except SQLAlchemyError as exc:
                    raise ResetError(qualified, str(exc)) from exc
                logger.debug("Truncated %s", qualified)
                truncated.append(qualified)
    except SQLAlchemyError as exc:
        raise ResetError(TRANSACTION_LABEL, str(exc)) from exc
    logger.info("Reset %s: truncated %d table(s)", engine.url.database, len(truncated))
    return truncated
