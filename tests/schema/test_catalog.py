"""
Tests for SchemaCatalog: indexing, reference resolution and supported subset.
"""

import pytest

from icglr_spine.core.errors import SchemaResolutionError
from icglr_spine.schema.catalog import (
    SchemaCatalog,
    canonical_pointer,
    escape_token,
    pointer_for,
    pointer_path,
    unescape_token,
)
from icglr_spine.schema.nodes import ArrayNode, ObjectNode, RefNode, ScalarNode, UnsupportedNode

BASE = "https://example.org/schemas/"

COMMON = {
    "$id": f"{BASE}common.json",
    "definitions": {
        "Address": {
            "type": "object",
            "properties": {
                "country": {"type": "string"},
                "locality": {"type": "string"},
            },
            "required": ["country"],
        },
        "Alias": {"$ref": "#/definitions/Address"},
        "a/b~c": {"type": "integer"},
    },
}

SITE = {
    "$id": f"{BASE}site/site.json",
    "type": "object",
    "properties": {
        "siteId": {"type": "string"},
        "opened": {"type": "string", "format": "date"},
        "address": {"$ref": "../common.json#/definitions/Address"},
        "alias": {"$ref": "../common.json#/definitions/Alias"},
        "odd": {"$ref": "../common.json#/definitions/a~1b~0c"},
        "minerals": {"type": "array", "items": {"type": "string"}},
        "parent": {"$ref": "#"},
    },
    "required": ["siteId"],
}


@pytest.fixture()
def catalog():
    return SchemaCatalog.load([COMMON, SITE])


class TestPointers:
    def test_escape_round_trip(self):
        assert escape_token("a/b~c") == "a~1b~0c"
        assert unescape_token("a~1b~0c") == "a/b~c"

    def test_canonical_pointer(self):
        assert canonical_pointer("doc.json") == "doc.json#"
        assert canonical_pointer("doc.json#/definitions/X/") == "doc.json#/definitions/X"

    def test_non_pointer_fragment_is_rejected(self):
        with pytest.raises(SchemaResolutionError):
            canonical_pointer("doc.json#anchor")

    def test_pointer_for_joins_against_the_base_document(self):
        assert pointer_for("common.json#/definitions/Address", f"{BASE}mine-site.json") == (
            f"{BASE}common.json#/definitions/Address"
        )
        assert pointer_for("#/definitions/X", f"{BASE}lot.json") == f"{BASE}lot.json#/definitions/X"

    def test_pointer_path(self):
        assert pointer_path("doc.json#/definitions/a~1b") == ["definitions", "a/b"]
        assert pointer_path("doc.json#") == []


class TestLoad:
    def test_documents_are_indexed_by_id(self, catalog):
        assert catalog.document_ids == [f"{BASE}common.json", f"{BASE}site/site.json"]

    def test_root_is_an_object(self, catalog):
        root = catalog.root(f"{BASE}site/site.json")
        assert isinstance(root, ObjectNode)
        assert root.property_names[0] == "siteId"
        assert root.is_required("siteId")
        assert not root.is_required("opened")

    def test_node_kinds(self, catalog):
        root = catalog.root(f"{BASE}site/site.json")
        assert root.get("opened") == ScalarNode(f"{BASE}site/site.json#/properties/opened", "string", "date")
        assert isinstance(root.get("minerals"), ArrayNode)
        assert isinstance(root.get("address"), RefNode)
        assert root.get("missing") is None

    def test_documents_without_id_need_a_mapping(self):
        with pytest.raises(SchemaResolutionError):
            SchemaCatalog.load([{"type": "object", "properties": {"a": {"type": "string"}}}])
        catalog = SchemaCatalog.load({"file:///tmp/a.json": {"type": "object", "properties": {"a": {"type": "string"}}}})
        assert catalog.document_ids == ["file:///tmp/a.json"]

    def test_duplicate_ids_are_rejected(self):
        with pytest.raises(SchemaResolutionError):
            SchemaCatalog.load([COMMON, dict(COMMON)])


class TestResolve:
    def test_cross_document_reference(self, catalog):
        address = catalog.resolve(catalog.root(f"{BASE}site/site.json").get("address"))
        assert address.pointer == f"{BASE}common.json#/definitions/Address"

    def test_reference_chain(self, catalog):
        alias = catalog.resolve(catalog.root(f"{BASE}site/site.json").get("alias"))
        assert alias.pointer == f"{BASE}common.json#/definitions/Address"

    def test_escaped_tokens(self, catalog):
        odd = catalog.resolve(catalog.root(f"{BASE}site/site.json").get("odd"))
        assert isinstance(odd, ScalarNode)
        assert odd.kind == "integer"

    def test_self_reference_is_a_finite_graph(self, catalog):
        root = catalog.root(f"{BASE}site/site.json")
        assert catalog.resolve(root.get("parent")) is root

    def test_resolution_is_memoized(self, catalog):
        ref = catalog.root(f"{BASE}site/site.json").get("address")
        assert catalog.resolve(ref) is catalog.resolve(ref)

    def test_unresolvable_reference_fails_at_load(self):
        doc = {"$id": f"{BASE}bad.json", "type": "object", "properties": {"x": {"$ref": "nowhere.json"}}}
        with pytest.raises(SchemaResolutionError) as exc_info:
            SchemaCatalog.load([doc])
        assert exc_info.value.ref == "nowhere.json"

    def test_reference_cycle_fails_at_load(self):
        doc = {
            "$id": f"{BASE}loop.json",
            "definitions": {"A": {"$ref": "#/definitions/B"}, "B": {"$ref": "#/definitions/A"}},
        }
        with pytest.raises(SchemaResolutionError, match="cycle"):
            SchemaCatalog.load([doc])

    def test_unknown_document(self, catalog):
        with pytest.raises(SchemaResolutionError):
            catalog.root(f"{BASE}nope.json")


class TestSupportedSubset:
    @pytest.mark.parametrize(
        "fragment, reason",
        [
            ({"oneOf": [{"type": "string"}]}, "oneOf"),
            ({"type": ["string", "null"]}, "type list"),
            ({"type": "object"}, "without properties"),
            ({"type": "array"}, "without items"),
            ({"description": "nothing"}, "no derivable type"),
        ],
    )
    def test_unsupported_fragments_are_kept_as_nodes(self, fragment, reason):
        doc = {"$id": f"{BASE}u.json", "type": "object", "properties": {"x": fragment}}
        node = SchemaCatalog.load([doc]).root(f"{BASE}u.json").get("x")
        assert isinstance(node, UnsupportedNode)
        assert reason in node.reason

    def test_properties_imply_object(self):
        doc = {"$id": f"{BASE}o.json", "properties": {"a": {"type": "number"}}}
        assert isinstance(SchemaCatalog.load([doc]).root(f"{BASE}o.json"), ObjectNode)
