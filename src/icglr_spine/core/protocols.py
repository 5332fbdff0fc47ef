"""
Canonical protocol definitions for icglr-spine.

Every module that needs a database connection types it against the
protocols here rather than against ``sqlite3`` directly.

Architecture:
    ::

        protocols.py
        ├── Connection              — execute / fetch / commit / rollback
        └── TransactionalConnection — Connection + transaction() + read()

    Consumers:
        repository.py, schema_loader.py, mapping/mapper.py, ops/*

Guardrails:
    ❌ DON'T: Call commit() from inside mapper code
    ✅ DO: Wrap writes in ``with conn.transaction():``

Tags:
    protocol, connection, database, contracts, icglr-spine
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Protocol, runtime_checkable

# ---------------------------------------------------------------------------
# Database Connection Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Connection(Protocol):
    """
    Minimal synchronous connection interface.

    ::

        ┌────────────────────────────────────────────────────────┐
        │ execute(sql, params)   → Execute single statement      │
        │ executemany(sql, list) → Execute for multiple params   │
        │ fetchone()             → Get one result row            │
        │ fetchall()             → Get all result rows           │
        │ commit()               → Commit transaction            │
        │ rollback()             → Rollback transaction          │
        └────────────────────────────────────────────────────────┘
    """

    def execute(self, sql: str, params: tuple = ()) -> Any: ...

    def executemany(self, sql: str, params: list[tuple]) -> Any: ...

    def fetchone(self) -> Any: ...

    def fetchall(self) -> list[Any]: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@runtime_checkable
class TransactionalConnection(Connection, Protocol):
    """
    Connection that owns its write discipline.

    ``transaction()`` serializes writers and guarantees all-or-nothing
    application of the enclosed statements. ``read()`` guards a batch of
    reads on a connection shared between threads.
    """

    def transaction(self) -> AbstractContextManager[Any]: ...

    def read(self) -> AbstractContextManager[Any]: ...

    @property
    def in_transaction(self) -> bool: ...


__all__ = [
    "Connection",
    "TransactionalConnection",
]
