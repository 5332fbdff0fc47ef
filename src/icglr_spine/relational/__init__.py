"""Schema-to-table compilation: classification, table specs and DDL."""

from icglr_spine.relational.classifier import Flatten, ForeignKey, ReferenceClassifier
from icglr_spine.relational.compiler import RelationalCompiler, compile_schemas
from icglr_spine.relational.ddl import emit_ddl
from icglr_spine.relational.model import (
    Column,
    ColumnKind,
    JunctionKind,
    JunctionSpec,
    RelationalModel,
    TableSpec,
)
from icglr_spine.relational.registry import EntityDefinition, EntityRegistry, RecordDefinition, default_registry

__all__ = [
    "ReferenceClassifier",
    "Flatten",
    "ForeignKey",
    "RelationalCompiler",
    "compile_schemas",
    "emit_ddl",
    "Column",
    "ColumnKind",
    "JunctionKind",
    "JunctionSpec",
    "TableSpec",
    "RelationalModel",
    "EntityDefinition",
    "RecordDefinition",
    "EntityRegistry",
    "default_registry",
]
