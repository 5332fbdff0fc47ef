"""Schema documents, their node graph and reference resolution."""

from icglr_spine.schema.catalog import SchemaCatalog, canonical_pointer, pointer_for
from icglr_spine.schema.loader import load_catalog, load_documents
from icglr_spine.schema.nodes import ArrayNode, ObjectNode, RefNode, ScalarNode, SchemaNode, UnsupportedNode

__all__ = [
    "SchemaCatalog",
    "canonical_pointer",
    "pointer_for",
    "load_catalog",
    "load_documents",
    "SchemaNode",
    "ScalarNode",
    "ObjectNode",
    "ArrayNode",
    "RefNode",
    "UnsupportedNode",
]
