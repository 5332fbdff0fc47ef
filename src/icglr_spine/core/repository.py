"""Base repository with dialect-aware database access.

Provides :class:`BaseRepository` — a base class that pairs a
:class:`~icglr_spine.core.protocols.Connection` with a
:class:`~icglr_spine.core.dialect.SQLiteDialect` so that the mapper writes
SQL through one set of helpers.

Architecture::

    ┌────────────────────────────────────────────────────────────────────┐
    │                       BaseRepository                               │
    │                                                                    │
    │   conn: Connection        ← protocol from icglr_spine.core.protocols│
    │   dialect: SQLiteDialect  ← from icglr_spine.core.dialect           │
    │                                                                    │
    │   execute(sql, params)     → cursor                                │
    │   query(sql, params)       → list[dict]                            │
    │   query_one(sql, params)   → dict | None                           │
    │   scalar(sql, params)      → first column of first row             │
    │   insert(table, data)      → lastrowid                             │
    └────────────────────────────────────────────────────────────────────┘

Tags:
    repository, database, abstraction
"""

from __future__ import annotations

from typing import Any

from icglr_spine.core.dialect import SQLiteDialect
from icglr_spine.core.protocols import Connection


class BaseRepository:
    """Dialect-aware base class for data-access repositories.

    Parameters:
        conn: Any object satisfying the :class:`Connection` protocol.
        dialect: SQL dialect to use. Defaults to :class:`SQLiteDialect`.
    """

    def __init__(self, conn: Connection, dialect: SQLiteDialect | None = None) -> None:
        self.conn = conn
        self.dialect = dialect or SQLiteDialect()

    # -- Convenience shortcuts ---------------------------------------------

    def ph(self, count: int) -> str:
        """Shortcut for ``self.dialect.placeholders(count)``."""
        return self.dialect.placeholders(count)

    # -- Query helpers -----------------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a statement and return the raw cursor."""
        return self.conn.execute(sql, params)

    def execute_many(self, sql: str, params: list[tuple]) -> Any:
        """Execute a statement with multiple parameter sets."""
        return self.conn.executemany(sql, params)

    def query(self, sql: str, params: tuple = ()) -> list[dict[str, Any]]:
        """Execute a SELECT and return rows as dicts."""
        cursor = self.conn.execute(sql, params)
        rows = cursor.fetchall()
        if not rows:
            return []
        try:
            return [dict(row) for row in rows]
        except (TypeError, ValueError):
            pass
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row, strict=False)) for row in rows]

    def query_one(self, sql: str, params: tuple = ()) -> dict[str, Any] | None:
        """Execute a SELECT and return the first row as a dict (or None)."""
        results = self.query(sql, params)
        return results[0] if results else None

    def scalar(self, sql: str, params: tuple = ()) -> Any:
        """Execute a SELECT and return the first column of the first row."""
        row = self.conn.execute(sql, params).fetchone()
        return None if row is None else row[0]

    # -- Insert helpers ----------------------------------------------------

    def insert(self, table: str, data: dict[str, Any]) -> int | None:
        """Insert a single row from a dict and return its rowid."""
        columns = list(data.keys())
        cursor = self.conn.execute(self.dialect.insert(table, columns), tuple(data.values()))
        return cursor.lastrowid

    def insert_or_ignore(self, table: str, data: dict[str, Any]) -> int:
        """Insert a row unless it violates a uniqueness constraint. Returns rows written."""
        columns = list(data.keys())
        cursor = self.conn.execute(self.dialect.insert_or_ignore(table, columns), tuple(data.values()))
        return cursor.rowcount

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()


__all__ = [
    "BaseRepository",
]
