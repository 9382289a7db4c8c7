"""Tracks which test databases were already initialized in this run."""

from __future__ import annotations


class InitializationRegistry:
    """Set of physical database names that have been dropped, created and migrated.

    A name is added once its ``CREATE DATABASE`` succeeded and is never removed;
    later requests for it only reset the data.  The registry is not
    synchronized, so concurrent first use of the same name is unsupported.
    """

    def __init__(self) -> None:
        self._names: set[str] = set()

    def is_initialized(self, name: str) -> bool:
        return name in self._names

    def mark_initialized(self, name: str) -> None:
        self._names.add(name)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def names(self) -> frozenset[str]:
        return frozenset(self._names)


# Shared by every acquisition that does not inject its own registry.
default_registry = InitializationRegistry()
