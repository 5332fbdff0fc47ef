"""
DDL emission for a compiled relational model.

Output layout::

    -- header
    PRAGMA foreign_keys = ON;
    CREATE TABLE IF NOT EXISTS <tables, referenced tables first>;
    CREATE TABLE IF NOT EXISTS <junction tables, parents before nested>;
    CREATE UNIQUE INDEX IF NOT EXISTS ux_<table>_natural_key ...;

Every statement is creation-idempotent, so the script can be applied to an
existing database.
"""

from __future__ import annotations

from collections.abc import Sequence

from icglr_spine.core.dialect import SQLiteDialect
from icglr_spine.core.errors import UnsupportedSchemaShapeError
from icglr_spine.relational.model import TableSpec

HEADER = "-- Generated by icglr-spine. Do not edit by hand."


def order_tables(tables: Sequence[TableSpec]) -> list[TableSpec]:
    """Topological order: referenced tables before the tables referencing them.

    Ties keep declaration order. Self-references and references to tables
    outside ``tables`` do not constrain the order.

    Raises:
        UnsupportedSchemaShapeError: two or more distinct tables reference
            each other in a cycle.
    """
    names = [t.name for t in tables]
    known = set(names)
    pending = {t.name: {d for d in t.dependencies if d in known and d != t.name} for t in tables}
    by_name = {t.name: t for t in tables}

    ordered: list[TableSpec] = []
    while pending:
        ready = [name for name in names if name in pending and not pending[name]]
        if not ready:
            cycle = sorted(pending)
            raise UnsupportedSchemaShapeError(
                f"Foreign key cycle between tables: {', '.join(cycle)}", path=cycle[0]
            )
        name = ready[0]
        ordered.append(by_name[name])
        del pending[name]
        for deps in pending.values():
            deps.discard(name)
    return ordered


def create_table(table: TableSpec, dialect: SQLiteDialect | None = None) -> str:
    """``CREATE TABLE IF NOT EXISTS`` statement for one table."""
    dialect = dialect or SQLiteDialect()
    single_key = len(table.primary_key) == 1
    body = [col.ddl(primary_key=single_key and col.name == table.primary_key[0]) for col in table.columns]

    if not single_key:
        body.append(f"PRIMARY KEY ({', '.join(table.primary_key)})")

    parents = table.parent_columns
    if parents:
        target = parents[0].references.table
        body.append(
            f"FOREIGN KEY ({', '.join(c.name for c in parents)}) "
            f"REFERENCES {target}({', '.join(c.references.column for c in parents)}) ON DELETE CASCADE"
        )
    return dialect.create_table(table.name, body)


def natural_key_index(table: TableSpec, dialect: SQLiteDialect | None = None) -> str | None:
    if not table.natural_key or table.natural_key == table.primary_key:
        return None
    dialect = dialect or SQLiteDialect()
    return dialect.create_unique_index(f"ux_{table.name}_natural_key", table.name, table.natural_key)


def emit_ddl(tables: Sequence[TableSpec], dialect: SQLiteDialect | None = None) -> str:
    """Full creation script for ``tables`` and their junctions."""
    dialect = dialect or SQLiteDialect()
    ordered = order_tables(tables)

    statements = [HEADER, dialect.enable_foreign_keys()]
    statements.extend(create_table(table, dialect) for table in ordered)
    for table in ordered:
        statements.extend(create_table(child, dialect) for child in junction_tables(table))

    for table in ordered:
        index = natural_key_index(table, dialect)
        if index:
            statements.append(index)

    return "\n\n".join(statements) + "\n"


def junction_tables(table: TableSpec) -> list[TableSpec]:
    """Every junction table below ``table``, parents first."""
    return [child for junction in table.junctions for child in junction.table.walk()]


__all__ = [
    "HEADER",
    "order_tables",
    "create_table",
    "natural_key_index",
    "emit_ddl",
    "junction_tables",
]
