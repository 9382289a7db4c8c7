"""Locate a migrations directory by searching upward from a start directory.

Tests usually run from the directory of the package under test, while the
migrations live somewhere near the project root.  A single fragment such as
``"./migrations"`` or ``"db/migrations"`` is therefore joined onto the start
directory and then onto each of its ancestors until a directory matches.

Any ancestor that happens to contain an unrelated directory with the same
name wins the search.
"""

from __future__ import annotations

import logging
from pathlib import Path

from dbtest.errors import MigrationsPathNotFound

logger = logging.getLogger(__name__)


def resolve_migrations_path(fragment: str | Path, start_dir: str | Path | None = None) -> Path:
    """Return the absolute path of the first directory matching *fragment*.

    Parameters
    ----------
    fragment:
        Path fragment to look for.  Relative fragments are joined onto
        *start_dir* and each of its ancestors, the filesystem root included.
    start_dir:
        Directory the search starts from.  Defaults to the current working
        directory at call time.  The process working directory is never
        changed.

    Raises
    ------
    MigrationsPathNotFound
        If no ancestor of *start_dir* contains a matching directory.
    """
    start = Path.cwd() if start_dir is None else Path(start_dir)
    start = start.absolute()

    base = start
    while True:
        candidate = base / fragment
        if candidate.is_dir():
            resolved = candidate.resolve()
            logger.debug("Resolved migrations path %s -> %s", fragment, resolved)
            return resolved
        if base.parent == base:
            raise MigrationsPathNotFound(str(fragment), start)
        base = base.parent
