"""
Relational compiler — record schemas to table specifications.

Manifesto:
    - **Depth-first flattening:** inline objects become prefixed columns;
      the classifier decides where a branch stops and becomes a foreign key
    - **Arrays never become columns:** every array property is exactly one
      junction table keyed on (parent key, element)
    - **Keys from a fixed map:** natural primary keys where the domain has
      them, a surrogate ``id`` everywhere else
    - **Fail loudly at start-up:** any node without a derivable column or
      relation raises UnsupportedSchemaShapeError naming its property path

Architecture:
    ::

        SchemaCatalog ─┐
                       ├─▶ RelationalCompiler.compile(root, table) ─▶ TableSpec
        EntityRegistry ┘            │
                                    ├── ScalarNode  → Column(VALUE)
                                    ├── ObjectNode  → classify
                                    │      ├── Flatten    → recurse, prefix_
                                    │      └── ForeignKey → Column(REFERENCE, *_id)
                                    └── ArrayNode   → JunctionSpec
                                           ├── scalar items  → VALUE
                                           ├── entity items  → REFERENCE
                                           └── inline items  → COMPOSITE (child table)

Type inference:
    ::

        integer, boolean          → INTEGER
        number                    → REAL   (latitude/longitude included)
        string, format date       → DATE
        string, format date-time  → DATETIME
        string, name has "date"   → DATE
        string, name has "time"   → DATETIME
        string                    → TEXT
        foreign key               → INTEGER

Examples:
    >>> model = compile_schemas(catalog)
    >>> model.table("mine_sites").column("owner_id").ddl()
    'owner_id INTEGER NOT NULL REFERENCES business_entities(identifier)'
    >>> model.table("mine_sites").junctions[0].name
    'mine_site_mineral'

Guardrails:
    ❌ DON'T: Flatten an object that loops back to itself
    ✅ DO: Reject inline cycles; use a record or entity reference instead

Tags:
    compiler, ddl, flattening, junction-table, foreign-key, icglr-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from icglr_spine.core.errors import UnsupportedSchemaShapeError
from icglr_spine.core.logging import get_logger
from icglr_spine.relational.classifier import ForeignKey, ReferenceClassifier
from icglr_spine.relational.model import (
    Column,
    ColumnKind,
    ForeignKeyRef,
    JunctionKind,
    JunctionSpec,
    RelationalModel,
    TableSpec,
)
from icglr_spine.relational.naming import column_name, dotted, singular, snake_case, tokens
from icglr_spine.relational.registry import EntityRegistry, default_registry
from icglr_spine.schema.catalog import SchemaCatalog
from icglr_spine.schema.nodes import ArrayNode, ObjectNode, ScalarNode, SchemaNode, UnsupportedNode

logger = get_logger(__name__)

SURROGATE_KEY = "id"
POSITION = "position"

DATE_MARKERS = frozenset({"date"})
TIME_MARKERS = frozenset({"time", "timestamp"})


def infer_sql_type(node: ScalarNode, name: str) -> str:
    """SQL type for a scalar node stored in column ``name``."""
    if node.kind in ("integer", "boolean"):
        return "INTEGER"
    if node.kind == "number":
        return "REAL"
    if node.format == "date":
        return "DATE"
    if node.format == "date-time":
        return "DATETIME"
    words = set(tokens(name))
    if words & DATE_MARKERS:
        return "DATE"
    if words & TIME_MARKERS:
        return "DATETIME"
    return "TEXT"


@dataclass
class _PendingArray:
    path: tuple[str, ...]
    node: ArrayNode
    required: bool
    stack: tuple[str, ...]
    presence: Column | None = None


@dataclass
class _TableBuilder:
    name: str
    row_name: str
    source: str | None
    columns: list[Column] = field(default_factory=list)
    arrays: list[_PendingArray] = field(default_factory=list)

    def add(self, column: Column, path: tuple[str, ...]) -> None:
        if any(existing.name == column.name for existing in self.columns):
            raise UnsupportedSchemaShapeError(
                f"Column name {column.name!r} produced twice in {self.name}", path=dotted(path)
            )
        self.columns.append(column)


class RelationalCompiler:
    """Compiles schema nodes into :class:`TableSpec` objects."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        registry: EntityRegistry | None = None,
        classifier: ReferenceClassifier | None = None,
    ):
        self.catalog = catalog
        self.registry = (registry or default_registry()).bind(catalog)
        self.classifier = classifier or ReferenceClassifier(self.registry)

    # ── Public API ───────────────────────────────────────────────

    def compile(self, root: SchemaNode | str, table_name: str) -> TableSpec:
        """Compile the object schema ``root`` into table ``table_name``."""
        node = self.catalog.resolve(self.catalog.node(root) if isinstance(root, str) else root)
        if not isinstance(node, ObjectNode):
            raise UnsupportedSchemaShapeError(
                "Table root must be an object schema", path=table_name, pointer=node.pointer
            )

        builder = _TableBuilder(table_name, singular(table_name), node.pointer)
        self._walk(node, (), True, builder, (node.pointer,))

        key_columns = self.registry.primary_key(table_name)
        if key_columns is None:
            builder.columns.insert(0, Column(SURROGATE_KEY, "INTEGER", False, kind=ColumnKind.SURROGATE))
            primary_key: tuple[str, ...] = (SURROGATE_KEY,)
        else:
            primary_key = self._natural_primary_key(builder, key_columns)

        spec = TableSpec(
            name=table_name,
            columns=tuple(builder.columns),
            primary_key=primary_key,
            row_name=builder.row_name,
            source=node.pointer,
            surrogate=key_columns is None,
        )
        junctions = tuple(self._junction(spec, pending) for pending in builder.arrays)
        spec = TableSpec(
            name=spec.name,
            columns=spec.columns,
            primary_key=spec.primary_key,
            row_name=spec.row_name,
            junctions=junctions,
            natural_key=self._natural_key(spec),
            source=spec.source,
            surrogate=spec.surrogate,
        )
        logger.debug(
            "table_compiled",
            table=table_name,
            columns=len(spec.columns),
            junctions=len(spec.junctions),
            primary_key=list(spec.primary_key),
        )
        return spec

    def compile_model(self) -> RelationalModel:
        """Compile every bound shared entity, then every record."""
        tables = []
        for entity in self.registry.entities:
            tables.append(self.compile(self.catalog.node(entity.source), entity.table))
        for record in self.registry.records:
            tables.append(self.compile(self.catalog.node(record.source), record.table))

        model = RelationalModel(tuple(tables), self.registry.record_tables)
        logger.info(
            "model_compiled",
            tables=len(model.tables),
            total_tables=sum(1 for _ in model.all_tables()),
            records=sorted(model.record_tables),
        )
        return model

    # ── Flattening ───────────────────────────────────────────────

    def _walk(
        self,
        node: ObjectNode,
        prefix: tuple[str, ...],
        required: bool,
        builder: _TableBuilder,
        stack: tuple[str, ...],
    ) -> None:
        for name, child in node.properties:
            path = prefix + (name,)
            is_required = required and node.is_required(name)
            resolved = self.catalog.resolve(child)

            if isinstance(resolved, UnsupportedNode):
                raise UnsupportedSchemaShapeError(resolved.reason, path=dotted(path), pointer=resolved.pointer)

            if isinstance(resolved, ScalarNode):
                col = column_name(path)
                builder.add(
                    Column(
                        col,
                        infer_sql_type(resolved, col),
                        not is_required,
                        path,
                        value_kind=resolved.kind,
                    ),
                    path,
                )
            elif isinstance(resolved, ArrayNode):
                presence = None
                if not is_required:
                    presence = Column(f"{column_name(path)}_present", "INTEGER", True, path, kind=ColumnKind.PRESENCE)
                    builder.add(presence, path)
                builder.arrays.append(_PendingArray(path, resolved, is_required, stack, presence))
            elif isinstance(resolved, ObjectNode):
                decision = self.classifier.classify(name, resolved)
                if isinstance(decision, ForeignKey):
                    builder.add(self._reference_column(f"{column_name(path)}_id", decision, path, is_required), path)
                    continue
                if resolved.pointer in stack:
                    raise UnsupportedSchemaShapeError(
                        "Inline object refers back to itself", path=dotted(path), pointer=resolved.pointer
                    )
                self._walk(resolved, path, is_required, builder, stack + (resolved.pointer,))

    def _reference_column(
        self, name: str, decision: ForeignKey, path: tuple[str, ...], required: bool
    ) -> Column:
        return Column(
            name,
            "INTEGER",
            not required,
            path,
            references=self._target_key(decision.table, path),
            kind=ColumnKind.REFERENCE,
        )

    def _target_key(self, table: str, path: tuple[str, ...]) -> ForeignKeyRef:
        key = self.registry.primary_key(table) or (SURROGATE_KEY,)
        if len(key) != 1:
            raise UnsupportedSchemaShapeError(
                f"Cannot reference {table}: composite primary key {key}", path=dotted(path)
            )
        return ForeignKeyRef(table, key[0])

    # ── Keys ─────────────────────────────────────────────────────

    def _natural_primary_key(self, builder: _TableBuilder, key_columns: tuple[str, ...]) -> tuple[str, ...]:
        by_name = {col.name: col for col in builder.columns}
        for key in key_columns:
            col = by_name.get(key)
            if col is None or col.kind is not ColumnKind.VALUE:
                raise UnsupportedSchemaShapeError(
                    f"Primary key column {key!r} not found among scalar columns", path=builder.name
                )
            if col.nullable:
                # Key columns are required regardless of the schema
                builder.columns[builder.columns.index(col)] = Column(
                    col.name, col.sql_type, False, col.path, col.references, col.kind, col.value_kind
                )
        return key_columns

    def _natural_key(self, spec: TableSpec) -> tuple[str, ...]:
        entity = self.registry.entity_for_table(spec.name)
        if entity is None:
            return ()
        columns: list[str] = []
        for prop in entity.natural_key:
            matched = [col.name for col in spec.columns if col.path[:1] == (prop,)]
            if not matched:
                raise UnsupportedSchemaShapeError(
                    f"Natural key property {prop!r} has no column in {spec.name}", path=prop
                )
            columns.extend(matched)
        return tuple(columns)

    # ── Junctions ────────────────────────────────────────────────

    def _parent_columns(self, parent: TableSpec) -> list[Column]:
        columns = []
        for key in parent.key_columns:
            if key.kind is ColumnKind.PARENT_KEY:
                name = key.name
            elif key.name.startswith(f"{parent.row_name}_"):
                name = key.name
            else:
                name = f"{parent.row_name}_{key.name}"
            columns.append(
                Column(
                    name,
                    key.sql_type,
                    False,
                    references=ForeignKeyRef(parent.name, key.name),
                    kind=ColumnKind.PARENT_KEY,
                )
            )
        return columns

    def _junction(self, parent: TableSpec, pending: _PendingArray) -> JunctionSpec:
        path = pending.path
        name = f"{parent.row_name}_{column_name(path)}"
        items = self.catalog.resolve(pending.node.items)
        parent_cols = self._parent_columns(parent)
        position = Column(POSITION, "INTEGER", False, kind=ColumnKind.POSITION)
        prop = path[-1]

        if isinstance(items, UnsupportedNode):
            raise UnsupportedSchemaShapeError(items.reason, path=dotted(path) + "[]", pointer=items.pointer)
        if isinstance(items, ArrayNode):
            raise UnsupportedSchemaShapeError("Nested arrays are not supported", path=dotted(path) + "[]")

        if isinstance(items, ScalarNode):
            value_name = f"{snake_case(prop)}_value"
            element = Column(
                value_name, infer_sql_type(items, value_name), False, value_kind=items.kind
            )
            table = self._junction_table(name, parent_cols, element, position, pending)
            return JunctionSpec(
                name, path, JunctionKind.VALUE, table, element, position, pending.required,
                presence_column=pending.presence,
            )

        decision = self.classifier.classify(prop, items)
        if isinstance(decision, ForeignKey):
            element = Column(
                f"{snake_case(prop)}_id",
                "INTEGER",
                False,
                references=self._target_key(decision.table, path),
                kind=ColumnKind.REFERENCE,
            )
            table = self._junction_table(name, parent_cols, element, position, pending)
            return JunctionSpec(
                name, path, JunctionKind.REFERENCE, table, element, position, pending.required, element.references,
                pending.presence,
            )

        if items.pointer in pending.stack:
            raise UnsupportedSchemaShapeError(
                "Inline array element refers back to its parent", path=dotted(path) + "[]", pointer=items.pointer
            )
        return self._composite_junction(name, path, items, parent_cols, position, pending)

    def _junction_table(
        self,
        name: str,
        parent_cols: list[Column],
        element: Column,
        position: Column,
        pending: _PendingArray,
    ) -> TableSpec:
        return TableSpec(
            name=name,
            columns=tuple(parent_cols) + (element, position),
            primary_key=tuple(col.name for col in parent_cols) + (element.name,),
            row_name=name,
            source=pending.node.pointer,
        )

    def _composite_junction(
        self,
        name: str,
        path: tuple[str, ...],
        items: ObjectNode,
        parent_cols: list[Column],
        position: Column,
        pending: _PendingArray,
    ) -> JunctionSpec:
        builder = _TableBuilder(name, name, items.pointer)
        for col in parent_cols:
            builder.add(col, path)
        builder.add(position, path)
        self._walk(items, (), True, builder, pending.stack + (items.pointer,))

        table = TableSpec(
            name=name,
            columns=tuple(builder.columns),
            primary_key=tuple(col.name for col in parent_cols) + (POSITION,),
            row_name=name,
            source=items.pointer,
        )
        nested = tuple(self._junction(table, child) for child in builder.arrays)
        table = TableSpec(
            name=table.name,
            columns=table.columns,
            primary_key=table.primary_key,
            row_name=table.row_name,
            junctions=nested,
            source=table.source,
        )
        return JunctionSpec(
            name, path, JunctionKind.COMPOSITE, table, position, position, pending.required,
            presence_column=pending.presence,
        )


def compile_schemas(
    schemas: SchemaCatalog | Iterable[dict[str, Any]] | Mapping[str, dict[str, Any]],
    registry: EntityRegistry | None = None,
) -> RelationalModel:
    """Compile a catalog (or raw documents) with ``registry`` into a model."""
    catalog = schemas if isinstance(schemas, SchemaCatalog) else SchemaCatalog.load(schemas)
    return RelationalCompiler(catalog, registry).compile_model()


__all__ = [
    "infer_sql_type",
    "RelationalCompiler",
    "compile_schemas",
]
