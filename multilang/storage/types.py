"""
Closed set of storage variants selectable through the `storage` setting.
"""

from enum import Enum

from multilang.exceptions import ConfigurationError
from multilang.storage.backends.base import StorageBackend
from multilang.storage.backends.file import JsonFileBackend
from multilang.storage.backends.postgres import PostgresBackend
from multilang.storage.backends.sqlite import SQLiteBackend


class StorageType(str, Enum):
    """Supported storage backends."""

    FILE = "file"  # Flat JSON file
    SQLITE = "sqlite"  # Embedded relational
    POSTGRESQL = "postgresql"  # Networked relational

    @classmethod
    def parse(cls, value: str | None) -> "StorageType":
        """
        Resolve a configuration string to a storage type.

        Matching is case-insensitive on the member name, its value, or one of
        the accepted aliases.

        Raises:
            ConfigurationError: If the value is empty or unknown
        """
        if value is None or not str(value).strip():
            raise ConfigurationError("Invalid storage type: no storage configured")

        key = str(value).strip().lower()
        for member in cls:
            if key in (member.name.lower(), member.value):
                return member

        alias = _ALIASES.get(key)
        if alias is not None:
            return alias

        valid = ", ".join(member.value for member in cls)
        raise ConfigurationError(f"Invalid storage type: {value!r} (expected one of: {valid})")

    @property
    def relational(self) -> bool:
        return self is not StorageType.FILE

    def create_backend(self) -> StorageBackend:
        """Fresh, not yet installed backend for this variant."""
        return _BACKENDS[self]()


_ALIASES: dict[str, StorageType] = {
    "flat-file": StorageType.FILE,
    "flatfile": StorageType.FILE,
    "json": StorageType.FILE,
    "yaml": StorageType.FILE,
    "relational": StorageType.SQLITE,
    "embedded": StorageType.SQLITE,
    "h2": StorageType.SQLITE,
    "postgres": StorageType.POSTGRESQL,
    "networked": StorageType.POSTGRESQL,
}

_BACKENDS: dict[StorageType, type[StorageBackend]] = {
    StorageType.FILE: JsonFileBackend,
    StorageType.SQLITE: SQLiteBackend,
    StorageType.POSTGRESQL: PostgresBackend,
}
