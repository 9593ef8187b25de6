"""
Embedded relational storage using SQLite.

The connection is opened with check_same_thread=False because store calls
run in worker threads; the DatabaseManager lock serializes them.
"""

import logging
import sqlite3

from multilang.database.manager import DatabaseManager
from multilang.database.schema import SQLITE
from multilang.exceptions import ConfigurationError, ProvisioningError
from multilang.storage.backends.base import InstallContext, RecordStore, StorageBackend
from multilang.storage.repository import PlayerRepository

logger = logging.getLogger(__name__)

# ON CONFLICT ... DO UPDATE needs 3.24
MIN_SQLITE_VERSION = (3, 24, 0)


class SQLiteBackend(StorageBackend):
    """Embedded relational storage variant."""

    name = "sqlite"
    relational = True
    dialect = SQLITE

    def _provision(self, context: InstallContext) -> None:
        if sqlite3.sqlite_version_info < MIN_SQLITE_VERSION:
            raise ProvisioningError(
                f"SQLite {sqlite3.sqlite_version} is too old, "
                f"{'.'.join(map(str, MIN_SQLITE_VERSION))} or newer is required"
            )

        db_path = context.settings.sqlite_path
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProvisioningError(f"Unable to create database folder {db_path.parent}: {e}") from e

        if db_path.exists() and not db_path.is_file():
            raise ProvisioningError(f"Database path {db_path} is not a file")

    def create_connection(self, context: InstallContext) -> sqlite3.Connection:
        self._require_installed()
        db_path = context.settings.sqlite_path
        if not str(db_path):
            raise ConfigurationError("SQLite database path is empty")

        try:
            connection = sqlite3.connect(
                str(db_path),
                check_same_thread=False,
                timeout=context.settings.database.connect_timeout_seconds,
            )
        except sqlite3.Error as e:
            raise ProvisioningError(f"Unable to open SQLite database {db_path}: {e}") from e

        try:
            # WAL mode for better concurrency
            connection.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as e:
            connection.close()
            raise ProvisioningError(f"Unable to configure SQLite database {db_path}: {e}") from e

        logger.info(f"Opened SQLite database at {db_path}")
        return connection

    def open_store(
        self, context: InstallContext, database: DatabaseManager | None = None
    ) -> RecordStore:
        self._require_installed()
        if database is None:
            raise ConfigurationError("SQLite storage requires a database manager")
        return PlayerRepository(database)
