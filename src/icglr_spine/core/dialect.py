"""SQL dialect for the relational store.

The mapper and the repositories never spell SQL keywords that vary between
engines; they ask the dialect. Only SQLite is supported.

Usage::

    from icglr_spine.core.dialect import SQLiteDialect

    d = SQLiteDialect()
    d.insert("addresses", ["country", "address_locality_text"])
    # 'INSERT INTO addresses (country, address_locality_text) VALUES (?, ?)'
"""

from __future__ import annotations

from collections.abc import Sequence


class SQLiteDialect:
    """SQLite dialect — ``?`` placeholders, ``INSERT OR IGNORE``."""

    @property
    def name(self) -> str:
        return "sqlite"

    # -- Placeholders ------------------------------------------------------

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    # -- Predicates --------------------------------------------------------

    def equals(self, columns: Sequence[str], *, null_safe: bool = False) -> str:
        """``a = ? AND b = ?``; ``IS`` comparison when NULLs must match."""
        op = "IS" if null_safe else "="
        return " AND ".join(f"{c} {op} ?" for c in columns)

    # -- DML ---------------------------------------------------------------

    def insert(self, table: str, columns: Sequence[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT INTO {table} ({cols}) VALUES ({ph})"

    def insert_or_ignore(self, table: str, columns: Sequence[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT OR IGNORE INTO {table} ({cols}) VALUES ({ph})"

    def update(self, table: str, columns: Sequence[str], key_columns: Sequence[str]) -> str:
        sets = ", ".join(f"{c} = ?" for c in columns)
        return f"UPDATE {table} SET {sets} WHERE {self.equals(key_columns)}"

    def delete(self, table: str, key_columns: Sequence[str]) -> str:
        return f"DELETE FROM {table} WHERE {self.equals(key_columns)}"

    def select(
        self,
        table: str,
        columns: Sequence[str],
        where: str | None = None,
        order_by: Sequence[str] = (),
    ) -> str:
        sql = f"SELECT {', '.join(columns)} FROM {table}"
        if where:
            sql += f" WHERE {where}"
        if order_by:
            sql += f" ORDER BY {', '.join(order_by)}"
        return sql

    def limit_offset(self) -> str:
        return "LIMIT ? OFFSET ?"

    # -- DDL ---------------------------------------------------------------

    def auto_increment(self) -> str:
        return "INTEGER PRIMARY KEY AUTOINCREMENT"

    def create_table(self, table: str, body: Sequence[str]) -> str:
        inner = ",\n    ".join(body)
        return f"CREATE TABLE IF NOT EXISTS {table} (\n    {inner}\n);"

    def create_unique_index(self, name: str, table: str, columns: Sequence[str]) -> str:
        return f"CREATE UNIQUE INDEX IF NOT EXISTS {name} ON {table} ({', '.join(columns)});"

    def enable_foreign_keys(self) -> str:
        return "PRAGMA foreign_keys = ON;"

    # -- Introspection -----------------------------------------------------

    def list_tables_query(self) -> str:
        return (
            "SELECT name FROM sqlite_master WHERE type='table' "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )


__all__ = [
    "SQLiteDialect",
]
