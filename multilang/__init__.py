"""
MultiLang - per-player locale directory.

Maps a player UUID to a locale, serves lookups from an in-process cache and
persists records to a flat JSON file, SQLite or PostgreSQL. The backend can be
switched at runtime with reload() without restarting the process.

Example:
    >>> from multilang import LocaleDirectory, Settings
    >>> directory = LocaleDirectory(Settings(storage="file", data_folder="./data"))
    >>> await directory.start()
    >>> await directory.assign(player_id, "it_IT")
    >>> await directory.lookup(player_id)
    'it_IT'
"""

from multilang.config import Settings, get_settings
from multilang.directory import LocaleDirectory, lifespan
from multilang.exceptions import (
    ConfigurationError,
    MultiLangError,
    NotReadyError,
    ProvisioningError,
    ReloadInProgressError,
    SchemaError,
    TeardownError,
)
from multilang.models.player import LocalizedPlayer
from multilang.storage.types import StorageType

__version__ = "1.0.0"

__all__ = [
    "ConfigurationError",
    "LocaleDirectory",
    "LocalizedPlayer",
    "MultiLangError",
    "NotReadyError",
    "ProvisioningError",
    "ReloadInProgressError",
    "SchemaError",
    "Settings",
    "StorageType",
    "TeardownError",
    "get_settings",
    "lifespan",
]
