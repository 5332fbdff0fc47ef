"""
Record payload validation.

One pydantic model is generated per record schema from the catalog nodes,
once, at start-up. Payloads are checked in strict mode before anything is
written:

- required properties must be present, optional ones may be omitted
- scalars must already have their schema kind (``"5"`` is not an integer)
- unknown properties are rejected
- a property pointing at another record accepts a key stub only
  (``{"lotNumber": "LOT-1"}``); the rest of the stub is ignored

Failures surface as :class:`~icglr_spine.core.errors.ValidationError` with
one ``{"loc", "msg", "type"}`` entry per offending field.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, create_model
from pydantic import ValidationError as PydanticValidationError

from icglr_spine.core.errors import UnsupportedSchemaShapeError, ValidationError
from icglr_spine.core.logging import get_logger
from icglr_spine.relational.model import RelationalModel, TableSpec
from icglr_spine.schema.catalog import SchemaCatalog
from icglr_spine.schema.nodes import ArrayNode, ObjectNode, ScalarNode, SchemaNode

logger = get_logger(__name__)

SCALAR_TYPES: dict[str, type] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
}

RECORD_CONFIG = ConfigDict(extra="forbid", strict=True)
STUB_CONFIG = ConfigDict(extra="ignore", strict=True)

_NON_WORD = re.compile(r"\W+")


def _model_name(pointer: str) -> str:
    return _NON_WORD.sub("_", pointer.rpartition("/")[2] or pointer).strip("_") or "Record"


class RecordValidator:
    """Validates record payloads against models derived from their schemas."""

    def __init__(self, catalog: SchemaCatalog, model: RelationalModel):
        self.catalog = catalog
        self.model = model
        self._records: dict[str, TableSpec] = {
            spec.source: spec for spec in model.tables if model.is_record(spec.name) and spec.source
        }
        self._models: dict[str, type[BaseModel]] = {}
        self._building: set[str] = set()
        self._by_table: dict[str, type[BaseModel]] = {}
        for spec in self._records.values():
            root = self.catalog.resolve(self.catalog.node(spec.source))
            self._by_table[spec.name] = self._object_model(root, spec.name)
        logger.debug("validators_built", tables=sorted(self._by_table))

    def validate(self, table: str, entity: Mapping[str, Any]) -> None:
        """Raise :class:`ValidationError` unless ``entity`` fits ``table``'s schema."""
        model = self._by_table.get(table)
        if model is None:
            raise ValidationError(f"No record schema for table {table!r}", field="table")
        try:
            model.model_validate(entity)
        except PydanticValidationError as exc:
            errors = [
                {
                    "loc": ".".join(str(part) for part in error["loc"]),
                    "msg": error["msg"],
                    "type": error["type"],
                }
                for error in exc.errors()
            ]
            raise ValidationError(
                f"Invalid {table} record: {len(errors)} error(s)",
                field=errors[0]["loc"] if errors else None,
                errors=errors,
            ) from None

    # ── Model generation ─────────────────────────────────────────

    def _annotation(self, node: SchemaNode, path: str) -> Any:
        resolved = self.catalog.resolve(node)
        if isinstance(resolved, ScalarNode):
            return SCALAR_TYPES[resolved.kind]
        if isinstance(resolved, ArrayNode):
            return list[self._annotation(resolved.items, f"{path}[]")]
        if isinstance(resolved, ObjectNode):
            record = self._records.get(resolved.pointer)
            if record is not None:
                return self._stub_model(record)
            return self._object_model(resolved, path)
        raise UnsupportedSchemaShapeError("No validation type for schema node", path=path, pointer=resolved.pointer)

    def _object_model(self, node: ObjectNode, path: str) -> type[BaseModel]:
        cached = self._models.get(node.pointer)
        if cached is not None:
            return cached
        if node.pointer in self._building:
            raise UnsupportedSchemaShapeError("Inline object refers back to itself", path=path, pointer=node.pointer)

        self._building.add(node.pointer)
        try:
            fields: dict[str, Any] = {}
            # Positional field names with aliases, so any property name is accepted
            for index, (name, child) in enumerate(node.properties):
                annotation = self._annotation(child, f"{path}.{name}")
                if node.is_required(name):
                    fields[f"f{index}"] = (annotation, Field(..., alias=name))
                else:
                    fields[f"f{index}"] = (annotation | None, Field(None, alias=name))
            model = create_model(_model_name(node.pointer), __config__=RECORD_CONFIG, **fields)
        finally:
            self._building.discard(node.pointer)

        self._models[node.pointer] = model
        return model

    def _stub_model(self, record: TableSpec) -> type[BaseModel]:
        pointer = f"{record.source}@stub"
        cached = self._models.get(pointer)
        if cached is not None:
            return cached
        fields: dict[str, Any] = {}
        for index, col in enumerate(record.key_columns):
            fields[f"f{index}"] = (SCALAR_TYPES[col.value_kind or "string"], Field(..., alias=col.path[0]))
        model = create_model(f"{record.row_name}_key", __config__=STUB_CONFIG, **fields)
        self._models[pointer] = model
        return model


__all__ = [
    "RecordValidator",
]
