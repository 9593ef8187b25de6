"""
Unit tests for configuration loading and validation.

Tests the validate_configuration method to ensure warnings are logged in
all code paths, and that environment variables reach the nested sections.
"""

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from multilang import config
from multilang.config import CacheConfig, DatabaseConfig, Settings


@pytest.fixture
def postgres_without_credentials() -> Settings:
    """Networked storage with no user and no password."""
    return Settings(
        storage="postgresql",
        database=DatabaseConfig(user="", password=""),
        cache=CacheConfig(idle_seconds=600.0, refresh_interval_seconds=120.0),
    )


@pytest.fixture
def postgres_with_credentials() -> Settings:
    return Settings(
        storage="postgres",
        database=DatabaseConfig(user="minecraft", password="hunter2"),
        cache=CacheConfig(idle_seconds=600.0, refresh_interval_seconds=120.0),
    )


def test_validate_configuration_without_credentials(postgres_without_credentials, caplog):
    with caplog.at_level(logging.WARNING):
        postgres_without_credentials.validate_configuration()

    assert any("no database user configured" in record.message for record in caplog.records)
    assert any("empty database password" in record.message for record in caplog.records)


def test_validate_configuration_with_credentials(postgres_with_credentials, caplog):
    with caplog.at_level(logging.WARNING):
        postgres_with_credentials.validate_configuration()

    assert not any("database user" in record.message for record in caplog.records)
    assert not any("database password" in record.message for record in caplog.records)
    # Password never rendered in plain text
    assert "hunter2" not in repr(postgres_with_credentials)


def test_validate_configuration_cache_schedule_warnings(caplog):
    settings = Settings(
        storage="file",
        cache=CacheConfig(idle_seconds=1.0, refresh_interval_seconds=5.0),
    )

    with caplog.at_level(logging.WARNING):
        settings.validate_configuration()

    assert any("Very short cache refresh interval: 5.0s" in record.message for record in caplog.records)
    assert any("spilled on every tick" in record.message for record in caplog.records)
    assert not any("database" in record.message for record in caplog.records)


def test_unknown_storage_is_not_a_settings_error():
    """Backend names are checked when a reload installs them, not here."""
    settings = Settings(storage="mongodb")
    settings.validate_configuration()

    assert settings.storage == "mongodb"


def test_derived_paths(tmp_path: Path):
    settings = Settings(
        data_folder=tmp_path,
        database=DatabaseConfig(sqlite_file="players.db"),
        cache=CacheConfig(folder_name="dumps"),
    )

    assert settings.sqlite_path == tmp_path / "players.db"
    assert settings.cache_folder == tmp_path / "dumps"


@pytest.mark.parametrize("sqlite_file", ["/etc/passwd", "../outside.db"])
def test_sqlite_file_must_stay_in_data_folder(sqlite_file):
    with pytest.raises(ValidationError):
        DatabaseConfig(sqlite_file=sqlite_file)


@pytest.mark.parametrize("folder_name", ["a/b", "..", "."])
def test_cache_folder_name_must_be_single_directory(folder_name):
    with pytest.raises(ValidationError):
        CacheConfig(folder_name=folder_name)


def test_environment_overrides(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("MULTILANG_STORAGE", "file")
    monkeypatch.setenv("MULTILANG_DATA_FOLDER", str(tmp_path))
    monkeypatch.setenv("MULTILANG_DEFAULT_LOCALE", "it_IT")
    monkeypatch.setenv("MULTILANG_CACHE_MAX_ENTRIES", "42")
    monkeypatch.setenv("MULTILANG_DATABASE_PORT", "6543")

    settings = Settings()

    assert settings.storage == "file"
    assert settings.data_folder == tmp_path
    assert settings.default_locale == "it_IT"
    assert settings.cache.max_entries == 42
    assert settings.database.port == 6543


def test_reload_settings_rereads_environment(monkeypatch):
    monkeypatch.setattr(config, "_settings", None)
    monkeypatch.setenv("MULTILANG_STORAGE", "file")

    first = config.get_settings()
    assert config.get_settings() is first
    assert first.storage == "file"

    monkeypatch.setenv("MULTILANG_STORAGE", "sqlite")
    second = config.reload_settings()

    assert second is not first
    assert second.storage == "sqlite"
