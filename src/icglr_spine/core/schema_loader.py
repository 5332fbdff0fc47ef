"""SQL schema loading utilities.

Applies a DDL script (as produced by
:func:`icglr_spine.relational.ddl.emit_ddl`) to a connection, one statement
at a time. Every statement is creation-idempotent, so applying the same
script twice is a no-op.
"""

from __future__ import annotations

from icglr_spine.core.dialect import SQLiteDialect
from icglr_spine.core.logging import get_logger
from icglr_spine.core.protocols import Connection

logger = get_logger(__name__)


def split_sql(sql: str) -> list[str]:
    """Split a SQL script into individual statements.

    Statements end with a line whose last character is ``;``. Comment-only
    and blank lines are dropped.
    """
    statements = []
    current = []
    for line in sql.splitlines():
        stripped = line.strip()
        if stripped.startswith("--") or not stripped:
            continue
        current.append(line)
        if stripped.endswith(";"):
            stmt = "\n".join(current).strip()
            if stmt and stmt != ";":
                statements.append(stmt)
            current = []
    # Remaining unterminated statement
    if current:
        stmt = "\n".join(current).strip()
        if stmt:
            statements.append(stmt)
    return statements


def apply_ddl(conn: Connection, ddl: str) -> int:
    """Execute every statement of ``ddl``. Returns the statement count."""
    statements = split_sql(ddl)
    for stmt in statements:
        conn.execute(stmt)
    conn.commit()
    logger.info("ddl_applied", statements=len(statements))
    return len(statements)


def get_table_list(conn: Connection, dialect: SQLiteDialect | None = None) -> list[str]:
    """Names of the user tables in the database, sorted."""
    dialect = dialect or SQLiteDialect()
    conn.execute(dialect.list_tables_query())
    return [row[0] for row in conn.fetchall()]


__all__ = [
    "split_sql",
    "apply_ddl",
    "get_table_list",
]
