"""Tests for dbtest.plugin: the pytest boundary around acquire_database."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from dbtest import config as dbtest_config
from dbtest.config import Settings
from dbtest.errors import MigrationsPathNotFound
from dbtest.plugin import _INI_OPTIONS, acquire_test_database, pytest_configure
from dbtest.registry import InitializationRegistry

pytestmark = pytest.mark.unit


class FakeRequest:
    def __init__(self) -> None:
        self.finalizers: list = []

    def addfinalizer(self, finalizer) -> None:
        self.finalizers.append(finalizer)


class FakeConfig:
    def __init__(self, values: dict[str, str]) -> None:
        self._values = values

    def getini(self, name: str) -> str:
        return self._values.get(name, "")


class TestAcquireTestDatabase:
    def test_registers_dispose_finalizer(self):
        engine = MagicMock()
        request = FakeRequest()
        with patch("dbtest.plugin.acquire_database", return_value=engine) as acquire:
            result = acquire_test_database(request, "./migrations", "iam")

        assert result is engine
        acquire.assert_called_once_with("./migrations", "iam")
        assert request.finalizers == [engine.dispose]
        engine.dispose.assert_not_called()

    def test_failure_fails_the_test(self):
        request = FakeRequest()
        error = MigrationsPathNotFound("./migrations", Path("/work/pkg"))
        with patch("dbtest.plugin.acquire_database", side_effect=error):
            with pytest.raises(pytest.fail.Exception) as excinfo:
                acquire_test_database(request, "./migrations", "iam")

        assert "could not provision database 'iam'" in str(excinfo.value)
        assert "migrations path not found" in str(excinfo.value)
        assert request.finalizers == []

    def test_forwards_keyword_arguments(self):
        registry = InitializationRegistry()
        with patch("dbtest.plugin.acquire_database", return_value=MagicMock()) as acquire:
            acquire_test_database(FakeRequest(), "", "iam", registry=registry)
        assert acquire.call_args.kwargs == {"registry": registry}


class TestDatabaseFixture:
    def test_factory_binds_settings_registry_and_test_dir(
        self, dbtest_database, dbtest_settings, dbtest_registry
    ):
        with patch("dbtest.plugin.acquire_database", return_value=MagicMock()) as acquire:
            dbtest_database("./migrations", "iam")

        kwargs = acquire.call_args.kwargs
        assert kwargs["settings"] is dbtest_settings
        assert kwargs["registry"] is dbtest_registry
        assert kwargs["start_dir"] == Path(__file__).parent

    def test_explicit_arguments_win(self, dbtest_database, tmp_path):
        registry = InitializationRegistry()
        with patch("dbtest.plugin.acquire_database", return_value=MagicMock()) as acquire:
            dbtest_database("./migrations", "iam", registry=registry, start_dir=tmp_path)

        kwargs = acquire.call_args.kwargs
        assert kwargs["registry"] is registry
        assert kwargs["start_dir"] == tmp_path

    def test_session_fixtures(self, dbtest_settings, dbtest_registry):
        assert dbtest_settings is dbtest_config.settings
        assert isinstance(dbtest_registry, InitializationRegistry)


class TestIniOptions:
    @pytest.fixture
    def global_settings(self, monkeypatch):
        fresh = Settings()
        monkeypatch.setattr(dbtest_config, "settings", fresh)
        return fresh

    def test_ini_values_override_settings(self, global_settings):
        pytest_configure(FakeConfig({"dbtest_suffix": "_ci", "dbtest_user": "admin"}))
        assert global_settings.db_suffix == "_ci"
        assert global_settings.username == "admin"
        assert global_settings.password == "postgres"

    def test_empty_ini_values_are_ignored(self, global_settings):
        pytest_configure(FakeConfig({}))
        assert global_settings == Settings()

    def test_every_option_maps_to_a_setting(self):
        fields = set(Settings.__dataclass_fields__)
        assert set(_INI_OPTIONS.values()) <= fields
