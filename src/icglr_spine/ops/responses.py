"""
Typed response objects for operations.

Each dataclass represents the *output* of a single operation beyond the
generic :class:`OperationResult` envelope. Responses carry only domain
data, no CLI formatting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ------------------------------------------------------------------ #
# Database responses
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class DatabaseInitResult:
    """Result payload for :func:`icglr_spine.ops.database.initialize_database`."""

    tables_created: list[str]
    statements: int = 0
    dry_run: bool = False
    ddl: str | None = None


@dataclass(frozen=True, slots=True)
class TableSummary:
    """One compiled table for :func:`icglr_spine.ops.database.describe_model`."""

    name: str
    role: str  # "record", "entity" or "junction"
    primary_key: list[str]
    columns: int
    junctions: int = 0
    parent: str | None = None


# ------------------------------------------------------------------ #
# Record responses
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class LoadOutcome:
    """Outcome of one record in a bulk load."""

    index: int
    stored: bool
    key: Any = None
    error: str | None = None


@dataclass(slots=True)
class LoadSummary:
    """Result payload for :func:`icglr_spine.ops.records.load_records`."""

    table: str
    stored: int = 0
    failed: int = 0
    outcomes: list[LoadOutcome] = field(default_factory=list)
