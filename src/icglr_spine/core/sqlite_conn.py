"""SQLite connection adapter.

Wraps a raw :class:`sqlite3.Connection` to satisfy the
:class:`~icglr_spine.core.protocols.TransactionalConnection` protocol.

The adapter runs sqlite3 in autocommit mode and opens transactions itself
with ``BEGIN IMMEDIATE``, which takes SQLite's writer lock up front. A
process-level re-entrant lock serializes writers sharing one adapter; nested
``transaction()`` blocks join the outermost one.

Usage::

    from icglr_spine.core.sqlite_conn import SqliteConnection

    conn = SqliteConnection(":memory:")
    with conn.transaction():
        conn.execute("CREATE TABLE t (id INTEGER)")
        conn.execute("INSERT INTO t VALUES (?)", (1,))
    conn.execute("SELECT * FROM t")
    row = conn.fetchone()
    conn.close()
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from icglr_spine.core.errors import TransactionError
from icglr_spine.core.logging import get_logger

logger = get_logger(__name__)


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` → ``TransactionalConnection`` protocol.

    Keeps the last cursor so that ``execute`` / ``fetchone`` / ``fetchall``
    operate on the same result set.
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        row_factory: Any = sqlite3.Row,
        wal: bool = False,
        timeout: float = 5.0,
    ) -> None:
        self._conn = sqlite3.connect(
            path, check_same_thread=False, isolation_level=None, timeout=timeout
        )
        self._conn.row_factory = row_factory
        self._conn.execute("PRAGMA foreign_keys = ON")
        if wal:
            self._conn.execute("PRAGMA journal_mode = WAL")
        self._cursor = self._conn.cursor()
        self._lock = threading.RLock()
        self._depth = 0
        self.path = path

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._cursor = self._conn.execute(sql, params)
        return self._cursor

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        self._cursor = self._conn.executemany(sql, params)
        return self._cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        if self._depth == 0 and self._conn.in_transaction:
            self._conn.commit()

    def rollback(self) -> None:
        if self._depth == 0 and self._conn.in_transaction:
            self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    # -- Transactions ------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def transaction(self) -> Iterator[SqliteConnection]:
        """All-or-nothing write unit.

        The outermost block issues ``BEGIN IMMEDIATE`` and ``COMMIT``; an
        exception anywhere inside rolls the whole unit back. sqlite3 failures
        surface as :class:`TransactionError` once the rollback has completed.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                try:
                    self._conn.execute("BEGIN IMMEDIATE")
                except sqlite3.Error as exc:
                    raise TransactionError("Could not open write transaction", cause=exc) from exc
            self._depth += 1
            try:
                yield self
            except BaseException as exc:
                self._depth -= 1
                if outermost:
                    self._conn.rollback()
                    logger.warning("transaction_rolled_back", error=str(exc), error_type=type(exc).__name__)
                    if isinstance(exc, sqlite3.Error):
                        raise TransactionError(f"Write failed: {exc}", cause=exc) from exc
                raise
            else:
                self._depth -= 1
                if outermost:
                    try:
                        self._conn.commit()
                    except sqlite3.Error as exc:
                        self._conn.rollback()
                        raise TransactionError(f"Commit failed: {exc}", cause=exc) from exc

    @contextmanager
    def read(self) -> Iterator[SqliteConnection]:
        """Hold the adapter lock for a batch of reads."""
        with self._lock:
            yield self

    # -- convenience -------------------------------------------------------

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self.path!r})"
