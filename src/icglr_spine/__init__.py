"""
icglr-spine — schema-driven relational storage for ICGLR traceability records.

Compiles the ICGLR JSON schemas (mine sites, lots, export certificates and
the shared entities they reference) into SQLite tables, and maps nested
records onto those tables and back.

Examples:
    >>> from icglr_spine import Mapper, apply_ddl, compile_schemas, load_catalog
    >>> from icglr_spine.core import PACKAGED_SCHEMA_DIR, create_connection
    >>> model = compile_schemas(load_catalog(PACKAGED_SCHEMA_DIR))
    >>> conn, _ = create_connection("memory")
    >>> apply_ddl(conn, model.ddl())
    >>> Mapper(conn, model).upsert("mine_sites", mine_site)
    'CD-SK-0001'
"""

from icglr_spine.core.schema_loader import apply_ddl
from icglr_spine.mapping.mapper import Mapper, WriteMode
from icglr_spine.relational.classifier import ReferenceClassifier
from icglr_spine.relational.compiler import RelationalCompiler, compile_schemas
from icglr_spine.relational.ddl import emit_ddl
from icglr_spine.relational.model import RelationalModel, TableSpec
from icglr_spine.schema.catalog import SchemaCatalog
from icglr_spine.schema.loader import load_catalog

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "SchemaCatalog",
    "load_catalog",
    "ReferenceClassifier",
    "RelationalCompiler",
    "compile_schemas",
    "emit_ddl",
    "RelationalModel",
    "TableSpec",
    "Mapper",
    "WriteMode",
    "apply_ddl",
]
