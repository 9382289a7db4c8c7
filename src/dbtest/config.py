"""Process-wide configuration for test database provisioning.

The defaults match a stock local PostgreSQL install (``postgres`` user,
password and maintenance database).  Settings may be changed before the
first database is requested, either by mutating :data:`settings` directly,
through :func:`configure`, from ``DBTEST_*`` environment variables, or via
the pytest ini options registered by ``dbtest.plugin``::

    import dbtest

    dbtest.settings.db_suffix = "_ci"
    dbtest.configure(username="admin", password="secret")
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any

from dbtest.errors import DBTestError

DEFAULT_USER = "postgres"
DEFAULT_PASSWORD = "postgres"
DEFAULT_ROOT_DB_NAME = "postgres"
DEFAULT_SUFFIX = "_test"

# Settings field -> environment variable
_ENV_VARS: dict[str, str] = {
    "username": "DBTEST_USER",
    "password": "DBTEST_PASSWORD",
    "root_db_name": "DBTEST_ROOT_DB",
    "db_suffix": "DBTEST_SUFFIX",
    "db_username": "DBTEST_DB_USER",
    "db_password": "DBTEST_DB_PASSWORD",
}


class ConfigError(DBTestError):
    """Raised when settings are missing, malformed, or invalid."""


@dataclass
class Settings:
    """Credentials and naming used when provisioning test databases.

    Attributes
    ----------
    username, password:
        Credentials for the root connection that issues DROP/CREATE DATABASE.
    root_db_name:
        Pre-existing administrative database the root connection opens.
        Never the database the tests run against.
    db_suffix:
        Appended to every logical name, so ``"iam"`` becomes ``"iam_test"``.
        An empty suffix uses the logical name unchanged.
    db_username, db_password:
        Credentials for connections to the test databases themselves.
    """

    username: str = DEFAULT_USER
    password: str = DEFAULT_PASSWORD
    root_db_name: str = DEFAULT_ROOT_DB_NAME
    db_suffix: str = DEFAULT_SUFFIX
    db_username: str = DEFAULT_USER
    db_password: str = DEFAULT_PASSWORD

    def physical_name(self, name: str) -> str:
        """Return the database name actually used for logical *name*."""
        if not name:
            raise ConfigError("Database name must be a non-empty string")
        return name + self.db_suffix

    def update(self, **overrides: Any) -> None:
        """Update fields in place, rejecting unknown keys and non-strings."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigError(f"Unknown dbtest setting(s): {', '.join(unknown)}")
        for key, value in overrides.items():
            if not isinstance(value, str):
                raise ConfigError(f"dbtest setting {key!r} must be a string, got {value!r}")
            setattr(self, key, value)

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from ``DBTEST_*`` environment variables.

        Unset variables fall back to the defaults.  ``DBTEST_SUFFIX`` set to an
        empty string is honoured and disables the suffix.
        """
        values: dict[str, str] = {}
        for field_name, env_var in _ENV_VARS.items():
            value = os.environ.get(env_var)
            if value is None:
                continue
            if field_name != "db_suffix" and not value.strip():
                continue
            values[field_name] = value
        return cls(**values)


settings = Settings.from_env()


def configure(**overrides: Any) -> Settings:
    """Update the process-wide :data:`settings` and return it."""
    settings.update(**overrides)
    return settings
