"""
Natural-key helpers for idempotent writes.

Shared entities (addresses, contact details, business entities, ...) are
stored once per natural key. Writing the same natural key twice must resolve
to the row written first. ``LogicalKey`` carries the key parts and renders
the lookup predicate; ``IdempotencyHelper`` runs the check-then-act.

Architecture:
    ::

        ┌────────────────────────────────────────────────────────┐
        │ key = LogicalKey(country="CD",                         │
        │                  subnational_division_l1="CD-SK",      │
        │                  address_locality_text="Bukavu")       │
        │                                                        │
        │ key.where_clause()  → "country IS ? AND ... IS ?"      │
        │ key.values()        → ("CD", "CD-SK", "Bukavu")        │
        └────────────────────────────────────────────────────────┘

        get_or_insert:
            Absent  ──insert──▶ new key
            Present ─────────▶ existing key

Guardrails:
    ❌ DON'T: Run get_or_insert outside a write transaction
    ✅ DO: Call it inside ``with conn.transaction():`` so racing writers
       resolve to exactly one insert

    ❌ DON'T: Dedup by full structural equality
    ✅ DO: Dedup by the entity's declared natural key

Tags:
    idempotency, natural-key, get-or-insert, icglr-spine
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from icglr_spine.core.dialect import SQLiteDialect
from icglr_spine.core.protocols import Connection


class LogicalKey:
    """
    Natural key of a stored row.

    Key parts compare with ``IS`` by default, so a NULL key part matches a
    stored NULL.

    Examples:
        >>> key = LogicalKey(latitude=-2.5, longitude=28.86)
        >>> key
        LogicalKey(latitude=-2.5, longitude=28.86)
        >>> key.where_clause()
        'latitude IS ? AND longitude IS ?'
        >>> key.values()
        (-2.5, 28.86)
    """

    def __init__(self, **parts: Any):
        self._parts = parts

    def where_clause(self, *, null_safe: bool = True) -> str:
        """SQL WHERE predicate (without the keyword)."""
        return SQLiteDialect().equals(list(self._parts), null_safe=null_safe)

    def values(self) -> tuple:
        """Parameter tuple matching :meth:`where_clause`."""
        return tuple(self._parts.values())

    def as_dict(self) -> dict[str, Any]:
        return dict(self._parts)

    def columns(self) -> list[str]:
        return list(self._parts)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, LogicalKey) and self._parts == other._parts

    def __hash__(self) -> int:
        return hash(tuple(self._parts.items()))

    def __repr__(self) -> str:
        parts = ", ".join(f"{k}={v!r}" for k, v in self._parts.items())
        return f"LogicalKey({parts})"


class IdempotencyHelper:
    """Check-then-act over a natural key."""

    def __init__(self, conn: Connection):
        self.conn = conn

    def find(self, table: str, key: LogicalKey, returning: str) -> Any:
        """Return ``returning`` of the row matching ``key``, or None."""
        self.conn.execute(
            f"SELECT {returning} FROM {table} WHERE {key.where_clause()} LIMIT 1",
            key.values(),
        )
        row = self.conn.fetchone()
        return None if row is None else row[0]

    def get_or_insert(
        self,
        table: str,
        key: LogicalKey,
        returning: str,
        insert: Callable[[], Any],
    ) -> tuple[Any, bool]:
        """Return ``(key_value, inserted)``.

        ``insert`` runs only when no row matches and must return the new
        row's ``returning`` value.
        """
        existing = self.find(table, key, returning)
        if existing is not None:
            return existing, False
        return insert(), True


__all__ = [
    "LogicalKey",
    "IdempotencyHelper",
]
