"""
Owner of the single relational connection and its table layout.

Lifecycle:
    UNINITIALIZED --ensure_schema()--> SCHEMA_APPLIED --close()--> CLOSED

CLOSED is terminal. Nothing else may close the connection or change the
schema through it; other collaborators borrow it via `connection` while
holding `lock`.
"""

import logging
import threading
from collections.abc import Sequence
from enum import Enum
from typing import Any

from multilang.database.schema import SQLITE, Dialect, Table
from multilang.exceptions import (
    ConfigurationError,
    DatabaseClosedError,
    SchemaError,
)

logger = logging.getLogger(__name__)


class DatabaseState(str, Enum):
    """Lifecycle state of a DatabaseManager."""

    UNINITIALIZED = "uninitialized"
    SCHEMA_APPLIED = "schema_applied"
    CLOSED = "closed"


class DatabaseManager:
    """
    Schema-owning wrapper around one DB-API connection.

    Schema creation is idempotent: tables are created if absent and declared
    columns missing from an existing table are added.
    """

    def __init__(
        self,
        tables: Sequence[Table],
        connection: Any,
        dialect: Dialect = SQLITE,
    ):
        """
        Initialize database manager.

        Args:
            tables: Declared table layout (fixed for the manager's lifetime)
            connection: Open DB-API 2.0 connection, owned from now on
            dialect: SQL dialect of the connection

        Raises:
            ConfigurationError: If connection is None or no tables are declared
        """
        if connection is None:
            raise ConfigurationError("Connection cannot be null")
        if not tables:
            raise ConfigurationError("At least one table must be declared")

        self._tables: tuple[Table, ...] = tuple(tables)
        self._connection = connection
        self.dialect = dialect
        self.state = DatabaseState.UNINITIALIZED
        # Serializes use of the single connection across worker threads
        self.lock = threading.RLock()

    @property
    def tables(self) -> tuple[Table, ...]:
        return self._tables

    @property
    def connection(self) -> Any:
        """The live connection. Raises DatabaseClosedError after close()."""
        if self.state is DatabaseState.CLOSED:
            raise DatabaseClosedError("Database manager is closed")
        return self._connection

    @property
    def closed(self) -> bool:
        return self.state is DatabaseState.CLOSED

    def table(self, name: str) -> Table:
        for table in self._tables:
            if table.name == name:
                return table
        raise KeyError(f"Unknown table: {name}")

    def ensure_schema(self) -> None:
        """
        Create every declared table and add missing columns.

        Safe to call on an already-correct schema.

        Raises:
            SchemaError: If a DDL statement fails (changes are rolled back)
            DatabaseClosedError: If the manager is closed
        """
        connection = self.connection

        with self.lock:
            try:
                cursor = connection.cursor()
                try:
                    for table in self._tables:
                        cursor.execute(table.create_statement(self.dialect))

                        present = set(self.dialect.list_columns(connection, table.name))
                        for column in table.columns:
                            if column.name not in present:
                                logger.info(f"Adding {column.name} column to {table.name} table")
                                cursor.execute(table.add_column_statement(column, self.dialect))
                finally:
                    cursor.close()
                connection.commit()

            except Exception as e:
                try:
                    connection.rollback()
                except Exception as rollback_error:
                    logger.warning(f"Rollback after schema failure failed: {rollback_error}")
                logger.error(f"Failed to apply database schema: {e}")
                raise SchemaError(f"Failed to apply database schema: {e}") from e

        if self.state is DatabaseState.UNINITIALIZED:
            self.state = DatabaseState.SCHEMA_APPLIED
        logger.info(
            f"Database schema ready ({self.dialect.name}): "
            f"{', '.join(table.name for table in self._tables)}"
        )

    def table_columns(self, name: str) -> list[str]:
        """Columns currently present on a table in the live database."""
        with self.lock:
            return self.dialect.list_columns(self.connection, name)

    def close(self) -> None:
        """
        Close the connection.

        Safe to call more than once. Close failures are logged and never raised
        so teardown can finish.
        """
        if self.state is DatabaseState.CLOSED:
            return

        self.state = DatabaseState.CLOSED
        logger.info("Closing database connection..")

        with self.lock:
            try:
                self._connection.close()
            except Exception as e:
                logger.warning(f"An error has occurred while closing database connection: {e}")
