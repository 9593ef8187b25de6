"""
Declarative table layout for relational backends.

Tables are declared once as ordered (column name, declared type) pairs and
rendered per SQL dialect. Names are interpolated into DDL, so they are
restricted to plain identifiers at declaration time.
"""

import re
from dataclasses import dataclass, field
from typing import Any

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(name: str, kind: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid {kind} name: {name!r}")
    return name


@dataclass(frozen=True)
class Column:
    """Column name plus declared (dialect-neutral) type, e.g. STRING."""

    name: str
    type: str

    def __post_init__(self) -> None:
        _check_identifier(self.name, "column")
        if not self.type or not self.type.replace(" ", "").isalnum():
            raise ValueError(f"Invalid column type: {self.type!r}")


@dataclass(frozen=True)
class Table:
    """One logical table. Immutable after declaration."""

    name: str
    columns: tuple[Column, ...]
    primary_key: str | None = None

    def __post_init__(self) -> None:
        _check_identifier(self.name, "table")
        if not self.columns:
            raise ValueError(f"Table {self.name} declares no columns")
        # Accept any sequence but store a tuple
        object.__setattr__(self, "columns", tuple(self.columns))
        names = [column.name for column in self.columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Table {self.name} declares duplicate columns: {names}")
        if self.primary_key is not None and self.primary_key not in names:
            raise ValueError(f"Primary key {self.primary_key} is not a column of {self.name}")

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def create_statement(self, dialect: "Dialect") -> str:
        """CREATE TABLE IF NOT EXISTS for this table."""
        parts = []
        for column in self.columns:
            definition = f"{column.name} {dialect.render_type(column.type)} NOT NULL"
            if column.name == self.primary_key:
                definition += " PRIMARY KEY"
            parts.append(definition)
        return f"CREATE TABLE IF NOT EXISTS {self.name} ({', '.join(parts)})"

    def add_column_statement(self, column: Column, dialect: "Dialect") -> str:
        # Existing rows have no value for the new column, so no NOT NULL here
        return f"ALTER TABLE {self.name} ADD COLUMN {column.name} {dialect.render_type(column.type)}"


@dataclass(frozen=True)
class Dialect:
    """SQL differences between the relational backends."""

    name: str
    placeholder: str
    type_map: dict[str, str] = field(default_factory=dict)

    def render_type(self, declared: str) -> str:
        return self.type_map.get(declared.upper(), declared.upper())

    def sql(self, statement: str) -> str:
        """Rewrite '?' placeholders into this dialect's parameter style."""
        if self.placeholder == "?":
            return statement
        return statement.replace("?", self.placeholder)

    def upsert_statement(self, table: Table, key: str) -> str:
        columns = table.column_names
        values = ", ".join("?" for _ in columns)
        updates = ", ".join(f"{name} = excluded.{name}" for name in columns if name != key)
        return self.sql(
            f"INSERT INTO {table.name} ({', '.join(columns)}) VALUES ({values}) "
            f"ON CONFLICT({key}) DO UPDATE SET {updates}"
        )

    def list_columns(self, connection: Any, table_name: str) -> list[str]:
        """Column names currently present on a table (empty if the table is missing)."""
        cursor = connection.cursor()
        try:
            if self.name == "sqlite":
                cursor.execute(f"PRAGMA table_info({_check_identifier(table_name, 'table')})")
                return [row[1] for row in cursor.fetchall()]

            cursor.execute(
                self.sql(
                    "SELECT column_name FROM information_schema.columns "
                    "WHERE table_schema = current_schema() AND table_name = ? "
                    "ORDER BY ordinal_position"
                ),
                (table_name,),
            )
            return [row[0] for row in cursor.fetchall()]
        finally:
            cursor.close()


SQLITE = Dialect(name="sqlite", placeholder="?", type_map={"STRING": "TEXT"})
POSTGRESQL = Dialect(name="postgresql", placeholder="%s", type_map={"STRING": "TEXT"})


PLAYERS_TABLE = Table(
    name="players",
    columns=(
        Column("uuid", "STRING"),
        Column("locale", "STRING"),
    ),
    primary_key="uuid",
)
