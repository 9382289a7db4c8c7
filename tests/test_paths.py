"""Tests for dbtest.paths: upward search for the migrations directory."""

from __future__ import annotations

import os
import uuid

import pytest

from dbtest.errors import MigrationsPathNotFound
from dbtest.paths import resolve_migrations_path

pytestmark = pytest.mark.unit


@pytest.fixture
def project(tmp_path):
    """A small project tree: project/migrations and project/pkg/sub/deep."""
    root = tmp_path / "project"
    (root / "migrations").mkdir(parents=True)
    deep = root / "pkg" / "sub" / "deep"
    deep.mkdir(parents=True)
    return root


def test_match_in_start_dir(project):
    assert resolve_migrations_path("./migrations", project) == (project / "migrations").resolve()


def test_match_three_levels_up(project):
    start = project / "pkg" / "sub" / "deep"
    result = resolve_migrations_path("./migrations", start)
    assert result == (project / "migrations").resolve()
    assert result.is_absolute()


def test_nested_fragment(project):
    (project / "db" / "migrations").mkdir(parents=True)
    start = project / "pkg" / "sub"
    expected = (project / "db" / "migrations").resolve()
    assert resolve_migrations_path("db/migrations", start) == expected


def test_nearest_ancestor_wins(project):
    closer = project / "pkg" / "migrations"
    closer.mkdir()
    start = project / "pkg" / "sub" / "deep"
    assert resolve_migrations_path("migrations", start) == closer.resolve()


def test_files_with_matching_name_are_skipped(project):
    (project / "pkg" / "sub" / "migrations").write_text("not a directory")
    start = project / "pkg" / "sub" / "deep"
    assert resolve_migrations_path("migrations", start) == (project / "migrations").resolve()


def test_absolute_fragment(project, tmp_path):
    target = project / "migrations"
    assert resolve_migrations_path(str(target), tmp_path) == target.resolve()


def test_not_found_raises(project):
    fragment = f"missing-{uuid.uuid4().hex}"
    start = project / "pkg" / "sub" / "deep"
    with pytest.raises(MigrationsPathNotFound, match="migrations path not found") as excinfo:
        resolve_migrations_path(fragment, start)
    assert excinfo.value.fragment == fragment
    assert excinfo.value.start_dir == start


def test_defaults_to_current_directory(project, monkeypatch):
    monkeypatch.chdir(project / "pkg" / "sub")
    assert resolve_migrations_path("./migrations") == (project / "migrations").resolve()


def test_does_not_change_working_directory(project, monkeypatch):
    start = project / "pkg" / "sub" / "deep"
    monkeypatch.chdir(start)
    resolve_migrations_path("./migrations")
    with pytest.raises(MigrationsPathNotFound):
        resolve_migrations_path(f"missing-{uuid.uuid4().hex}")
    assert os.path.realpath(os.getcwd()) == os.path.realpath(start)


def test_relative_start_dir_is_made_absolute(project, monkeypatch):
    monkeypatch.chdir(project)
    result = resolve_migrations_path("migrations", "pkg/sub")
    assert result == (project / "migrations").resolve()
