"""
Relational model — tables, columns and junctions compiled from schemas.

Everything here is immutable and built once at start-up. The mapper reads
and writes rows exclusively through these specs: it never asks the database
which columns a table has, and every column knows the property path it was
flattened from, so reconstruction needs no reverse name mangling.

Architecture:
    ::

        RelationalModel
        ├── TableSpec  addresses            (shared entity, surrogate id)
        ├── TableSpec  business_entities    (shared entity, natural pk)
        ├── TableSpec  mine_sites           (record)
        │     ├── Column owner_id ──REFERENCES──▶ business_entities(identifier)
        │     └── JunctionSpec mine_site_mineral   (VALUE)
        │           └── TableSpec (mine_site_icglr_id, mineral_value, position)
        └── TableSpec  lots
              └── JunctionSpec lot_input_lot       (REFERENCE, self)

Tags:
    relational-model, ddl, junction-table, foreign-key, icglr-spine
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

from icglr_spine.core.errors import ValidationError


class ColumnKind(str, Enum):
    VALUE = "value"              # scalar flattened from the record
    REFERENCE = "reference"      # key of a shared entity or another record
    PARENT_KEY = "parent_key"    # junction column pointing at the owning row
    POSITION = "position"        # element index inside the source array
    SURROGATE = "surrogate"      # generated integer primary key
    PRESENCE = "presence"        # set when an optional array was supplied, even empty


class JunctionKind(str, Enum):
    VALUE = "value"              # array of scalars
    REFERENCE = "reference"      # array of shared entities or records
    COMPOSITE = "composite"      # array of inline objects


@dataclass(frozen=True, slots=True)
class ForeignKeyRef:
    """Target of a foreign key: ``table(column)``."""

    table: str
    column: str

    def __str__(self) -> str:
        return f"{self.table}({self.column})"


@dataclass(frozen=True, slots=True)
class Column:
    """One column of a table.

    ``path`` is the property path relative to the table's row object;
    ``value_kind`` is the schema scalar kind used to decode stored values.
    """

    name: str
    sql_type: str
    nullable: bool = True
    path: tuple[str, ...] = ()
    references: ForeignKeyRef | None = None
    kind: ColumnKind = ColumnKind.VALUE
    value_kind: str | None = None

    def ddl(self, *, primary_key: bool = False) -> str:
        """Column definition, e.g. ``owner_id INTEGER NOT NULL REFERENCES business_entities(identifier)``."""
        if self.kind is ColumnKind.SURROGATE:
            return f"{self.name} INTEGER PRIMARY KEY AUTOINCREMENT"
        parts = [self.name, self.sql_type]
        if not self.nullable:
            parts.append("NOT NULL")
        if primary_key:
            parts.append("PRIMARY KEY")
        if self.references is not None and self.kind is ColumnKind.REFERENCE:
            parts.append(f"REFERENCES {self.references}")
        return " ".join(parts)


@dataclass(frozen=True, slots=True)
class TableSpec:
    """A table: ordered columns, exactly one primary key, child junctions.

    ``row_name`` is the singular noun used to prefix junction names and
    parent key columns (``mine_sites`` -> ``mine_site``). ``natural_key`` is
    set for shared-entity tables and names the dedup columns.
    """

    name: str
    columns: tuple[Column, ...]
    primary_key: tuple[str, ...]
    row_name: str
    junctions: tuple[JunctionSpec, ...] = ()
    natural_key: tuple[str, ...] = ()
    source: str | None = None
    surrogate: bool = False

    def column(self, name: str) -> Column:
        for col in self.columns:
            if col.name == name:
                return col
        raise KeyError(name)

    def has_column(self, name: str) -> bool:
        return any(col.name == name for col in self.columns)

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(col.name for col in self.columns)

    @property
    def key_columns(self) -> tuple[Column, ...]:
        return tuple(self.column(name) for name in self.primary_key)

    @property
    def parent_columns(self) -> tuple[Column, ...]:
        return tuple(col for col in self.columns if col.kind is ColumnKind.PARENT_KEY)

    @property
    def foreign_keys(self) -> tuple[Column, ...]:
        return tuple(col for col in self.columns if col.kind is ColumnKind.REFERENCE)

    @property
    def dependencies(self) -> frozenset[str]:
        """Tables this one references (its own name included for self-references)."""
        return frozenset(col.references.table for col in self.columns if col.references is not None)

    def walk(self) -> Iterator[TableSpec]:
        """This table, then every junction table below it, parents first."""
        yield self
        for junction in self.junctions:
            yield from junction.table.walk()


@dataclass(frozen=True, slots=True)
class JunctionSpec:
    """One array property normalized into its own table.

    The junction table's primary key is ``parent columns + element column``:
    the scalar value column for VALUE junctions, the referenced key for
    REFERENCE junctions, and the position for COMPOSITE junctions.
    Optional arrays carry a ``presence_column`` on the owning table so that
    an empty array and a missing one reconstruct differently.
    """

    name: str
    path: tuple[str, ...]
    kind: JunctionKind
    table: TableSpec
    element_column: Column
    position_column: Column
    required: bool = False
    target: ForeignKeyRef | None = None
    presence_column: Column | None = None

    @property
    def parent_columns(self) -> tuple[Column, ...]:
        return self.table.parent_columns

    @property
    def primary_key(self) -> tuple[str, ...]:
        return self.table.primary_key


@dataclass(frozen=True)
class RelationalModel:
    """All compiled tables, shared entities first, then records."""

    tables: tuple[TableSpec, ...]
    record_tables: frozenset[str] = field(default_factory=frozenset)

    def table(self, name: str) -> TableSpec:
        for spec in self.tables:
            if spec.name == name:
                return spec
        raise ValidationError(
            f"Unknown table {name!r}",
            field="table",
            errors=[{"loc": "table", "msg": f"expected one of {', '.join(self.table_names)}", "type": "unknown_table"}],
        )

    def has_table(self, name: str) -> bool:
        return any(spec.name == name for spec in self.tables)

    @property
    def table_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.tables)

    def is_record(self, name: str) -> bool:
        return name in self.record_tables

    def all_tables(self) -> Iterator[TableSpec]:
        for spec in self.tables:
            yield from spec.walk()

    def ddl(self) -> str:
        from icglr_spine.relational.ddl import emit_ddl

        return emit_ddl(self.tables)


__all__ = [
    "ColumnKind",
    "JunctionKind",
    "ForeignKeyRef",
    "Column",
    "TableSpec",
    "JunctionSpec",
    "RelationalModel",
]
