"""
Relational record store for the players table.

All statements go through the DatabaseManager's connection while holding its
lock, one statement per call, committed immediately (write-through).
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar
from uuid import UUID

from pybreaker import CircuitBreaker

from multilang.database.manager import DatabaseManager
from multilang.database.schema import PLAYERS_TABLE
from multilang.models.player import LocalizedPlayer
from multilang.resilience.circuit_breakers import call_with_breaker
from multilang.storage.backends.base import RecordStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlayerRepository(RecordStore):
    """Reads and writes LocalizedPlayer rows through a DatabaseManager."""

    def __init__(self, database: DatabaseManager, breaker: CircuitBreaker | None = None):
        self.database = database
        self.breaker = breaker
        self.table = database.table(PLAYERS_TABLE.name)

        dialect = database.dialect
        self._select_sql = dialect.sql(f"SELECT uuid, locale FROM {self.table.name} WHERE uuid = ?")
        self._upsert_sql = dialect.upsert_statement(self.table, key="uuid")
        self._delete_sql = dialect.sql(f"DELETE FROM {self.table.name} WHERE uuid = ?")
        self._count_sql = f"SELECT COUNT(*) FROM {self.table.name}"

    def _call(self, func: Callable[..., T], *args: Any) -> T:
        if self.breaker is None:
            return func(*args)
        return call_with_breaker(self.breaker, func, *args)

    def _run(self, statement: str, params: tuple = (), fetch: bool = False) -> Any:
        with self.database.lock:
            connection = self.database.connection
            cursor = connection.cursor()
            try:
                cursor.execute(statement, params)
                result = cursor.fetchone() if fetch else cursor.rowcount
                connection.commit()
                return result
            except Exception:
                connection.rollback()
                raise
            finally:
                cursor.close()

    def load(self, player_id: UUID) -> LocalizedPlayer | None:
        row = self._call(self._run, self._select_sql, (str(player_id),), True)
        if row is None:
            return None
        return LocalizedPlayer(uuid=UUID(row[0]), locale=row[1])

    def save(self, record: LocalizedPlayer) -> None:
        self._call(self._run, self._upsert_sql, (str(record.uuid), record.locale))
        logger.debug(f"Saved locale {record.locale} for {record.uuid}")

    def delete(self, player_id: UUID) -> bool:
        rowcount = self._call(self._run, self._delete_sql, (str(player_id),))
        return rowcount > 0

    def count(self) -> int:
        row = self._call(self._run, self._count_sql, (), True)
        return int(row[0]) if row else 0
