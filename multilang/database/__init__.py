"""
Relational schema and connection ownership.

Used by the embedded (SQLite) and networked (PostgreSQL) storage backends.
"""

from multilang.database.manager import DatabaseManager, DatabaseState
from multilang.database.schema import PLAYERS_TABLE, POSTGRESQL, SQLITE, Column, Dialect, Table

__all__ = [
    "Column",
    "DatabaseManager",
    "DatabaseState",
    "Dialect",
    "PLAYERS_TABLE",
    "POSTGRESQL",
    "SQLITE",
    "Table",
]
