"""
Typed request objects for operations.

Each dataclass represents the *input* contract for a single operation
function. Requests carry only transport-agnostic data: no Typer params,
no raw file handles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ------------------------------------------------------------------ #
# Database operations
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class DatabaseInitRequest:
    """Request for :func:`icglr_spine.ops.database.initialize_database`."""

    include_ddl: bool = False


# ------------------------------------------------------------------ #
# Record operations
# ------------------------------------------------------------------ #


@dataclass(frozen=True, slots=True)
class ListRecordsRequest:
    """Request for :func:`icglr_spine.ops.records.list_records`.

    Attributes:
        table: Record table (``mine_sites``, ``lots``, ``export_certificates``).
        filters: Property name → value. ``<property>From`` / ``<property>To``
            bound date properties; array properties match by element.
        page: 1-based page number.
        limit: Page size; ``None`` uses the configured default.
    """

    table: str = ""
    filters: dict[str, Any] = field(default_factory=dict)
    page: int = 1
    limit: int | None = None


@dataclass(frozen=True, slots=True)
class GetRecordRequest:
    """Request for :func:`icglr_spine.ops.records.get_record`.

    ``key`` is the primary key value, or a tuple for composite keys.
    """

    table: str = ""
    key: Any = None


@dataclass(frozen=True, slots=True)
class CreateRecordRequest:
    """Request for :func:`icglr_spine.ops.records.create_record`."""

    table: str = ""
    record: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class UpdateRecordRequest:
    """Request for :func:`icglr_spine.ops.records.update_record`."""

    table: str = ""
    key: Any = None
    record: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class LoadRecordsRequest:
    """Request for :func:`icglr_spine.ops.records.load_records`.

    Records come either inline (``records``) or from a JSON file (``path``)
    holding an array of records or ``{"records": [...]}``.
    """

    table: str = ""
    records: list[dict[str, Any]] | None = None
    path: Path | None = None
