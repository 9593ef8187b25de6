"""
Storage layer for localized player records.

Backends: flat JSON file, SQLite (embedded), PostgreSQL (networked).
The StorageManager picks one from the `storage` setting and fronts it.
"""

from multilang.storage.manager import ActiveStorage, StorageManager
from multilang.storage.types import StorageType

__all__ = ["ActiveStorage", "StorageManager", "StorageType"]
