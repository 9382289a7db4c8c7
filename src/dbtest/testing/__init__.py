"""Test support utilities for the dbtest package.

Helpers here inspect a provisioned test database.  They have no dependency on
pytest itself so they can be imported from any test context.
"""

from __future__ import annotations
