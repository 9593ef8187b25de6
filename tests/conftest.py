"""
Pytest configuration and fixtures.

Provides shared fixtures for:
- Settings pointing at a temporary data folder
- Player identifiers and records
- Player cache with a temporary spill folder
"""

import logging
from pathlib import Path
from uuid import UUID, uuid4

import pytest

from multilang.cache.players import PlayersCache
from multilang.config import CacheConfig, DatabaseConfig, LoggingConfig, Settings
from multilang.models.player import LocalizedPlayer
from multilang.observability.logging import PACKAGE_LOGGER

EXAMPLE_PLAYER_ID = UUID("11111111-1111-1111-1111-111111111111")


def make_settings(data_folder: Path, storage: str = "sqlite", **cache_overrides) -> Settings:
    """Settings isolated from the environment, rooted at data_folder."""
    cache_values = {
        "max_entries": 100,
        "idle_seconds": 600.0,
        "initial_delay_seconds": 60.0,
        "refresh_interval_seconds": 120.0,
    }
    cache_values.update(cache_overrides)
    return Settings(
        storage=storage,
        data_folder=data_folder,
        default_locale="en_US",
        database=DatabaseConfig(
            sqlite_file="database.db",
            host="localhost",
            name="multilang",
            user="",
            connect_attempts=1,
            connect_timeout_seconds=1,
        ),
        cache=CacheConfig(**cache_values),
        logging=LoggingConfig(level="DEBUG", json_output=False),
    )


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers added by configure_logging() so later tests never write to a closed capture stream."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield
    package_logger.handlers = handlers
    package_logger.setLevel(level)


@pytest.fixture
def data_folder(tmp_path: Path) -> Path:
    folder = tmp_path / "data"
    folder.mkdir()
    return folder


@pytest.fixture
def sqlite_settings(data_folder: Path) -> Settings:
    return make_settings(data_folder, storage="sqlite")


@pytest.fixture
def file_settings(data_folder: Path) -> Settings:
    return make_settings(data_folder, storage="file")


@pytest.fixture
def player_id() -> UUID:
    return EXAMPLE_PLAYER_ID


@pytest.fixture
def other_player_id() -> UUID:
    return uuid4()


@pytest.fixture
def sample_player(player_id: UUID) -> LocalizedPlayer:
    return LocalizedPlayer(uuid=player_id, locale="en_US")


@pytest.fixture
def cache_folder(data_folder: Path) -> Path:
    return data_folder / "cache"


@pytest.fixture
def players_cache(cache_folder: Path) -> PlayersCache:
    return PlayersCache(cache_folder=cache_folder, max_entries=3)


@pytest.fixture
def settings_for(data_folder: Path):
    """Build settings for another backend (or cache tuning) in the same data folder."""

    def build(storage: str, **cache_overrides) -> Settings:
        return make_settings(data_folder, storage=storage, **cache_overrides)

    return build
