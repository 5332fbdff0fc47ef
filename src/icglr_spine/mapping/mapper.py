"""
Mapper — nested records to rows and back.

Manifesto:
    - **Model-driven:** every read and write goes through the compiled
      TableSpecs; the mapper never asks the database which columns exist
    - **One transaction per record:** flatten, get-or-insert and all row
      writes happen inside a single ``conn.transaction()``; any failure
      leaves no trace
    - **Shared entities are stored once:** get-or-insert by natural key,
      NULL-safe, never by full structural equality
    - **Nothing half-built:** reconstruct either returns the whole record or
      raises; a dangling reference is a ConsistencyError, not a gap

Architecture:
    ::

        upsert(table, entity)
          │  validate (pydantic)
          ▼
        ┌── conn.transaction() ─────────────────────────────────────────┐
        │  key from entity → exists?                                     │
        │  flatten(entity) ─▶ FlatRecord(row, children)                  │
        │      REFERENCE column ─▶ record: must exist                    │
        │                       └▶ shared entity: get-or-insert          │
        │  new:      INSERT row, INSERT children (position = index)      │
        │  existing: DELETE children (nested first), UPDATE row,         │
        │            INSERT children                                     │
        └────────────────────────────────────────────────────────────────┘

        reconstruct(table, key)
          row ─▶ nested dict from column paths
              ─▶ REFERENCE: shared entity rebuilt / record as key stub
              ─▶ junctions ORDER BY position

Examples:
    >>> mapper = Mapper(conn, model)
    >>> mapper.upsert("mine_sites", mine_site)
    'CD-SK-0001'
    >>> mapper.reconstruct("mine_sites", "CD-SK-0001")["mineral"]
    ['gold', 'tin']

Guardrails:
    ❌ DON'T: Delete shared entity rows when a record is replaced
    ✅ DO: Delete and re-insert only the record's own junction rows

    ❌ DON'T: Call flatten() outside a write transaction
    ✅ DO: Let upsert() open the transaction, or open one yourself

Tags:
    mapper, flatten, reconstruct, upsert, get-or-insert, icglr-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from icglr_spine.core.dialect import SQLiteDialect
from icglr_spine.core.errors import (
    ConflictError,
    ConsistencyError,
    NotFoundError,
    ValidationError,
)
from icglr_spine.core.idempotency import IdempotencyHelper, LogicalKey
from icglr_spine.core.logging import get_logger
from icglr_spine.core.protocols import TransactionalConnection
from icglr_spine.core.repository import BaseRepository
from icglr_spine.core.settings import DedupPolicy
from icglr_spine.relational.ddl import junction_tables
from icglr_spine.relational.model import (
    Column,
    ColumnKind,
    JunctionKind,
    JunctionSpec,
    RelationalModel,
    TableSpec,
)
from icglr_spine.relational.naming import dotted

if TYPE_CHECKING:
    from icglr_spine.mapping.validation import RecordValidator

logger = get_logger(__name__)

STRUCTURAL_KINDS = frozenset({ColumnKind.PARENT_KEY, ColumnKind.POSITION, ColumnKind.SURROGATE})
FILTER_OPERATORS = frozenset({"=", ">=", "<="})
CONTAINS = "contains"  # (junction name, CONTAINS, value)

Condition = tuple[str, str, Any]


class WriteMode(str, Enum):
    UPSERT = "upsert"    # insert or replace
    CREATE = "create"    # existing key is a conflict
    UPDATE = "update"    # missing key is not found


@dataclass
class FlatRecord:
    """One row to insert plus the junction rows hanging off it."""

    table: TableSpec
    row: dict[str, Any]
    children: list[ChildRowSet] = field(default_factory=list)


@dataclass
class ChildRowSet:
    """Elements of one array property, in source order."""

    junction: JunctionSpec
    elements: list[FlatRecord] = field(default_factory=list)


# ── Value helpers ────────────────────────────────────────────────


def _lookup(entity: Any, path: Sequence[str]) -> Any:
    current = entity
    for part in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def _assign(target: dict[str, Any], path: Sequence[str], value: Any) -> None:
    for part in path[:-1]:
        target = target.setdefault(part, {})
    target[path[-1]] = value


def _encode(value: Any, path: Sequence[str]) -> Any:
    if isinstance(value, Mapping | list):
        raise ValidationError(f"Expected a scalar at {dotted(path)}", field=dotted(path))
    if isinstance(value, bool):
        return int(value)
    return value


def _decode(value_kind: str | None, value: Any) -> Any:
    """Stored value back to its schema kind (SQLite affinity may have coerced it)."""
    if value is None:
        return None
    if value_kind == "boolean":
        return bool(value)
    if value_kind == "string" and not isinstance(value, str):
        return str(value)
    if value_kind == "integer" and isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _unwrap(key: tuple) -> Any:
    return key[0] if len(key) == 1 else key


def _prune(value: Any) -> Any:
    """Copy of ``value`` without nulls or empty objects inside mappings."""
    if isinstance(value, Mapping):
        pruned = {}
        for name, item in value.items():
            item = _prune(item)
            if item is None or item == {}:
                continue
            pruned[name] = item
        return pruned
    if isinstance(value, list):
        return [_prune(item) for item in value]
    return value


class Mapper(BaseRepository):
    """Writes nested records into a compiled model's tables and reads them back."""

    def __init__(
        self,
        conn: TransactionalConnection,
        model: RelationalModel,
        *,
        dedup_policy: DedupPolicy = DedupPolicy.FIRST_WRITE_WINS,
        validator: RecordValidator | None = None,
        dialect: SQLiteDialect | None = None,
    ) -> None:
        super().__init__(conn, dialect)
        self.model = model
        self.dedup_policy = DedupPolicy(dedup_policy)
        self.validator = validator
        self._idempotency = IdempotencyHelper(conn)

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    def upsert(
        self,
        table: str,
        entity: Mapping[str, Any],
        *,
        mode: WriteMode = WriteMode.UPSERT,
        key: Any = None,
    ) -> Any:
        """Validate and store ``entity`` as one record of ``table``.

        Returns the record key: the column value for single-column keys, a
        tuple for composite keys.

        Raises:
            ValidationError: payload fails validation or ``key`` disagrees
                with the key carried by the payload.
            ConflictError: CREATE on an existing key, or a divergent shared
                entity under the strict dedup policy.
            NotFoundError: UPDATE on a missing key, or a record reference to
                a record that does not exist.
            TransactionError: the database rejected a write (rolled back).
        """
        mode = WriteMode(mode)
        spec = self._record_table(table)
        if not isinstance(entity, Mapping):
            raise ValidationError(f"A {spec.row_name} record must be an object", field=spec.name)
        if self.validator is not None:
            self.validator.validate(spec.name, entity)

        record_key = self._record_key(spec, entity, key)

        with self.conn.transaction():
            exists = record_key is not None and self._exists(spec, record_key)
            if mode is WriteMode.CREATE and exists:
                raise ConflictError(spec.name, _unwrap(record_key))
            if mode is WriteMode.UPDATE and not exists:
                raise NotFoundError(spec.name, None if record_key is None else _unwrap(record_key))

            flat = self.flatten(entity, spec)
            if exists:
                self._delete_children(spec, record_key)
                self._update_row(flat, record_key)
                self._insert_children(flat, record_key)
            else:
                record_key = self._insert(flat)

        logger.info(
            "record_upserted",
            table=spec.name,
            key=_unwrap(record_key),
            mode=mode.value,
            created=not exists,
        )
        return _unwrap(record_key)

    def flatten(self, entity: Mapping[str, Any], table: str | TableSpec) -> FlatRecord:
        """Rows for ``entity``; shared entities are resolved to keys on the way.

        Must run inside the caller's write transaction: shared entities it
        has not seen before are inserted immediately.
        """
        spec = self.model.table(table) if isinstance(table, str) else table
        row: dict[str, Any] = {}
        for col in spec.columns:
            if col.kind in STRUCTURAL_KINDS:
                continue
            value = _lookup(entity, col.path)
            if col.kind is ColumnKind.REFERENCE:
                row[col.name] = None if value is None else self._resolve_reference(col, value)
            elif col.kind is ColumnKind.PRESENCE:
                row[col.name] = None if value is None else 1
            else:
                row[col.name] = _encode(value, col.path)

        children = [self._flatten_junction(junction, entity) for junction in spec.junctions]
        return FlatRecord(spec, row, children)

    def delete_children(self, table: str, key: Any) -> None:
        """Remove every junction row owned by one record."""
        spec = self.model.table(table)
        with self.conn.transaction():
            self._delete_children(spec, self._as_key(spec, key))

    # ── Flattening ───────────────────────────────────────────────

    def _flatten_junction(self, junction: JunctionSpec, entity: Any) -> ChildRowSet:
        values = _lookup(entity, junction.path)
        if values is None:
            values = []
        if not isinstance(values, list):
            raise ValidationError(f"Expected an array at {dotted(junction.path)}", field=dotted(junction.path))

        element = junction.element_column
        child = ChildRowSet(junction)
        for value in values:
            if junction.kind is JunctionKind.VALUE:
                if value is None:
                    raise ValidationError(
                        f"Null element in {dotted(junction.path)}", field=dotted(junction.path)
                    )
                child.elements.append(FlatRecord(junction.table, {element.name: _encode(value, junction.path)}))
            elif junction.kind is JunctionKind.REFERENCE:
                child.elements.append(
                    FlatRecord(junction.table, {element.name: self._resolve_reference(element, value)})
                )
            else:
                child.elements.append(self.flatten(value, junction.table))
        return child

    def _resolve_reference(self, col: Column, value: Any) -> Any:
        if not isinstance(value, Mapping):
            raise ValidationError(f"Expected an object at {dotted(col.path) or col.name}", field=col.name)
        target = self.model.table(col.references.table)
        if self.model.is_record(target.name):
            return self._record_reference(target, value)
        return self._get_or_insert(target, value)

    def _record_reference(self, target: TableSpec, stub: Mapping[str, Any]) -> Any:
        key = self._key_from_entity(target, stub)
        if not self._exists(target, key):
            raise NotFoundError(target.name, _unwrap(key), f"Referenced {target.row_name} {_unwrap(key)!r} does not exist")
        return _unwrap(key)

    # ── Shared entities ──────────────────────────────────────────

    def _natural_key(self, target: TableSpec, entity: Mapping[str, Any]) -> LogicalKey:
        parts: dict[str, Any] = {}
        for name in target.natural_key:
            col = target.column(name)
            value = _lookup(entity, col.path)
            if col.kind is ColumnKind.REFERENCE:
                parts[name] = None if value is None else self._resolve_reference(col, value)
            else:
                parts[name] = _encode(value, col.path)
        return LogicalKey(**parts)

    def _get_or_insert(self, target: TableSpec, entity: Mapping[str, Any]) -> Any:
        natural_key = self._natural_key(target, entity)
        returning = target.primary_key[0]

        def insert() -> Any:
            key = _unwrap(self._insert(self.flatten(entity, target)))
            logger.debug("shared_entity_inserted", table=target.name, key=key, natural_key=natural_key.as_dict())
            return key

        key, inserted = self._idempotency.get_or_insert(target.name, natural_key, returning, insert)
        if not inserted:
            self._check_divergence(target, key, entity, natural_key)
        return key

    def _check_divergence(self, target: TableSpec, key: Any, entity: Mapping[str, Any], natural_key: LogicalKey) -> None:
        stored = self._build(target, self._fetch_row(target, (key,)))
        incoming = self._comparable(target, entity)
        diverged = [
            name
            for name in dict.fromkeys([*stored, *incoming])
            if stored.get(name) != incoming.get(name)
        ]
        if not diverged:
            return
        if self.dedup_policy is DedupPolicy.STRICT:
            raise ConflictError(
                target.name,
                key,
                f"Shared {target.row_name} {natural_key.as_dict()} already stored with different {', '.join(diverged)}",
            )
        logger.warning(
            "shared_entity_divergence",
            table=target.name,
            key=key,
            natural_key=natural_key.as_dict(),
            fields=diverged,
        )

    def _comparable(self, spec: TableSpec, entity: Mapping[str, Any]) -> dict[str, Any]:
        """``entity`` shaped the way :meth:`reconstruct` would return it.

        Nulls and empty inline objects are dropped, record references shrink
        to key stubs and repeated scalar or reference elements keep their
        first occurrence.
        """
        result = _prune(entity)
        for col in spec.foreign_keys:
            value = _lookup(result, col.path)
            if isinstance(value, Mapping):
                _assign(result, col.path, self._comparable_reference(col, value))
        for junction in spec.junctions:
            items = _lookup(result, junction.path)
            if not isinstance(items, list):
                continue
            if junction.kind is JunctionKind.COMPOSITE:
                items = [self._comparable(junction.table, item) if isinstance(item, Mapping) else item for item in items]
            else:
                if junction.kind is JunctionKind.REFERENCE:
                    items = [
                        self._comparable_reference(junction.element_column, item) if isinstance(item, Mapping) else item
                        for item in items
                    ]
                unique: list[Any] = []
                for item in items:
                    if item not in unique:
                        unique.append(item)
                items = unique
            _assign(result, junction.path, items)
        return result

    def _comparable_reference(self, col: Column, value: Mapping[str, Any]) -> dict[str, Any]:
        target = self.model.table(col.references.table)
        if self.model.is_record(target.name):
            stub: dict[str, Any] = {}
            for key_col in target.key_columns:
                _assign(stub, key_col.path, _lookup(value, key_col.path))
            return stub
        return self._comparable(target, value)

    # ── Row writes ───────────────────────────────────────────────

    def _insert(self, flat: FlatRecord) -> tuple:
        rowid = self.insert(flat.table.name, flat.row)
        if flat.table.surrogate:
            key: tuple = (rowid,)
        else:
            key = tuple(flat.row[name] for name in flat.table.primary_key)
        self._insert_children(flat, key)
        return key

    def _insert_children(self, flat: FlatRecord, key: tuple) -> None:
        for child in flat.children:
            junction = child.junction
            parent_names = [col.name for col in junction.parent_columns]
            for position, element in enumerate(child.elements):
                row = dict(zip(parent_names, key, strict=True))
                row[junction.position_column.name] = position
                row.update(element.row)
                if junction.kind is JunctionKind.COMPOSITE:
                    self.insert(junction.table.name, row)
                    self._insert_children(element, tuple(row[name] for name in junction.table.primary_key))
                else:
                    # a repeated (parent, element) pair keeps its first position
                    self.insert_or_ignore(junction.table.name, row)

    def _update_row(self, flat: FlatRecord, key: tuple) -> None:
        spec = flat.table
        columns = [name for name in flat.row if name not in spec.primary_key]
        if not columns:
            return
        self.execute(
            self.dialect.update(spec.name, columns, spec.primary_key),
            tuple(flat.row[name] for name in columns) + key,
        )

    def _delete_children(self, spec: TableSpec, key: tuple) -> None:
        if not spec.junctions:
            return
        # Owning key columns keep their names all the way down nested junctions
        owner = [col.name for col in spec.junctions[0].parent_columns]
        for child in reversed(junction_tables(spec)):
            self.execute(self.dialect.delete(child.name, owner), key)

    # =========================================================================
    # READ PATH
    # =========================================================================

    def reconstruct(self, table: str, key: Any) -> dict[str, Any] | None:
        """The nested record stored under ``key``, or None.

        Raises:
            ConsistencyError: a required reference points at a missing row.
        """
        spec = self.model.table(table)
        record_key = self._as_key(spec, key)
        with self.conn.read():
            row = self._fetch_row(spec, record_key)
            if row is None:
                return None
            return self._build(spec, row)

    def exists(self, table: str, key: Any) -> bool:
        spec = self.model.table(table)
        with self.conn.read():
            return self._exists(spec, self._as_key(spec, key))

    def count(self, table: str, conditions: Sequence[Condition] = ()) -> int:
        """Rows of ``table`` matching every condition."""
        spec = self.model.table(table)
        where, params = self._where(spec, conditions)
        with self.conn.read():
            return self.scalar(self.dialect.select(spec.name, ["COUNT(*)"], where), params)

    def select_keys(
        self,
        table: str,
        conditions: Sequence[Condition] = (),
        *,
        limit: int,
        offset: int = 0,
    ) -> list[Any]:
        """Keys of one page of matching rows, in insertion order."""
        spec = self.model.table(table)
        where, params = self._where(spec, conditions)
        sql = f"{self.dialect.select(spec.name, spec.primary_key, where, ('rowid',))} {self.dialect.limit_offset()}"
        with self.conn.read():
            rows = self.query(sql, params + (limit, offset))
        return [_unwrap(tuple(row[name] for name in spec.primary_key)) for row in rows]

    # ── Reconstruction ───────────────────────────────────────────

    def _build(self, spec: TableSpec, row: Mapping[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for col in spec.columns:
            if col.kind in STRUCTURAL_KINDS or col.kind is ColumnKind.PRESENCE:
                continue
            value = row[col.name]
            if col.kind is ColumnKind.REFERENCE:
                if value is None:
                    if not col.nullable:
                        raise ConsistencyError(f"Required reference {spec.name}.{col.name} is NULL")
                    continue
                value = self._reconstruct_reference(spec, col, value)
            elif value is None:
                continue
            else:
                value = _decode(col.value_kind, value)
            _assign(result, col.path, value)

        key = tuple(row[name] for name in spec.primary_key)
        for junction in spec.junctions:
            items = self._load_junction(junction, key)
            present = junction.presence_column is not None and row[junction.presence_column.name]
            if items or junction.required or present:
                _assign(result, junction.path, items)
        return result

    def _reconstruct_reference(self, owner: TableSpec, col: Column, value: Any) -> Any:
        target = self.model.table(col.references.table)
        target_key = target.key_columns[0]
        value = _decode(target_key.value_kind, value)

        if self.model.is_record(target.name):
            if not self._exists(target, (value,)):
                raise ConsistencyError(
                    f"{owner.name}.{col.name} references missing {target.row_name} {value!r}"
                )
            stub: dict[str, Any] = {}
            _assign(stub, target_key.path, value)
            return stub

        row = self._fetch_row(target, (value,))
        if row is None:
            raise ConsistencyError(f"{owner.name}.{col.name} references missing {target.row_name} {value!r}")
        return self._build(target, row)

    def _load_junction(self, junction: JunctionSpec, key: tuple) -> list[Any]:
        table = junction.table
        parent_names = [col.name for col in junction.parent_columns]
        rows = self.query(
            self.dialect.select(
                table.name,
                table.column_names,
                self.dialect.equals(parent_names),
                (junction.position_column.name,),
            ),
            key,
        )
        element = junction.element_column
        if junction.kind is JunctionKind.VALUE:
            return [_decode(element.value_kind, row[element.name]) for row in rows]
        if junction.kind is JunctionKind.REFERENCE:
            return [self._reconstruct_reference(table, element, row[element.name]) for row in rows]
        return [self._build(table, row) for row in rows]

    # ── Keys and lookups ─────────────────────────────────────────

    def _record_table(self, table: str) -> TableSpec:
        spec = self.model.table(table)
        if not self.model.is_record(spec.name):
            raise ValidationError(
                f"{spec.name} is not a record table",
                field="table",
                errors=[{"loc": "table", "msg": "expected a record table", "type": "not_a_record"}],
            )
        return spec

    def _key_from_entity(self, spec: TableSpec, entity: Mapping[str, Any]) -> tuple:
        key = []
        for col in spec.key_columns:
            value = _lookup(entity, col.path)
            if value is None:
                raise ValidationError(
                    f"Missing key field {dotted(col.path)} for {spec.row_name}",
                    field=dotted(col.path),
                    errors=[{"loc": dotted(col.path), "msg": "Field required", "type": "missing"}],
                )
            key.append(_encode(value, col.path))
        return tuple(key)

    def _record_key(self, spec: TableSpec, entity: Mapping[str, Any], key: Any) -> tuple | None:
        if spec.surrogate:
            return None if key is None else self._as_key(spec, key)
        record_key = self._key_from_entity(spec, entity)
        if key is not None and self._as_key(spec, key) != record_key:
            raise ValidationError(
                f"Key {key!r} does not match the {spec.row_name} payload key {_unwrap(record_key)!r}",
                field=spec.primary_key[0],
            )
        return record_key

    def _as_key(self, spec: TableSpec, key: Any) -> tuple:
        """Normalize a scalar, sequence or column mapping into a key tuple."""
        if isinstance(key, Mapping):
            try:
                values = tuple(key[name] for name in spec.primary_key)
            except KeyError as exc:
                raise ValidationError(f"Key is missing column {exc.args[0]!r}", field=str(exc.args[0])) from None
        elif isinstance(key, tuple | list):
            values = tuple(key)
        else:
            values = (key,)
        if len(values) != len(spec.primary_key):
            raise ValidationError(
                f"{spec.name} key has {len(spec.primary_key)} column(s): {', '.join(spec.primary_key)}",
                field="key",
            )
        return values

    def _exists(self, spec: TableSpec, key: tuple) -> bool:
        sql = self.dialect.select(spec.name, ["1"], self.dialect.equals(spec.primary_key))
        return self.scalar(f"{sql} LIMIT 1", key) is not None

    def _fetch_row(self, spec: TableSpec, key: tuple) -> dict[str, Any] | None:
        return self.query_one(
            self.dialect.select(spec.name, spec.column_names, self.dialect.equals(spec.primary_key)),
            key,
        )

    def _where(self, spec: TableSpec, conditions: Sequence[Condition]) -> tuple[str | None, tuple]:
        clauses = []
        params: list[Any] = []
        for column, op, value in conditions:
            if op == CONTAINS:
                clauses.append(self._contains_clause(spec, column))
            elif spec.has_column(column) and op in FILTER_OPERATORS:
                clauses.append(f"{column} {op} ?")
            else:
                raise ValidationError(f"Unsupported filter {column} {op}", field=column)
            params.append(_encode(value, (column,)))
        return (" AND ".join(clauses) or None), tuple(params)

    def _contains_clause(self, spec: TableSpec, junction_name: str) -> str:
        """``EXISTS`` over a scalar junction: the record's array holds the value."""
        junction = next(
            (j for j in spec.junctions if j.name == junction_name and j.kind is JunctionKind.VALUE), None
        )
        if junction is None:
            raise ValidationError(f"Unsupported filter {junction_name} {CONTAINS}", field=junction_name)
        owner = " AND ".join(
            f"j.{col.name} = {spec.name}.{col.references.column}" for col in junction.parent_columns
        )
        return (
            f"EXISTS (SELECT 1 FROM {junction.table.name} AS j "
            f"WHERE {owner} AND j.{junction.element_column.name} = ?)"
        )


__all__ = [
    "WriteMode",
    "FlatRecord",
    "ChildRowSet",
    "Mapper",
]
