"""
Storage backend variants.

- **JsonFileBackend**: flat JSON file with atomic writes
- **SQLiteBackend**: embedded relational database
- **PostgresBackend**: networked relational database
"""

from multilang.storage.backends.base import InstallContext, RecordStore, StorageBackend
from multilang.storage.backends.file import JsonFileBackend
from multilang.storage.backends.postgres import PostgresBackend
from multilang.storage.backends.sqlite import SQLiteBackend

__all__ = [
    "InstallContext",
    "JsonFileBackend",
    "PostgresBackend",
    "RecordStore",
    "SQLiteBackend",
    "StorageBackend",
]
