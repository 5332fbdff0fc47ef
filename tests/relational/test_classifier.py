"""
Tests for ReferenceClassifier: structural matching, precedence and the
narrow name-pattern fallback.
"""

import pytest

from icglr_spine.relational.classifier import FLATTEN, ForeignKey, MatchKind, ReferenceClassifier
from icglr_spine.relational.registry import EntityDefinition, EntityRegistry, default_registry
from icglr_spine.schema.nodes import ObjectNode, ScalarNode

COMMON = "https://schemas.icglr.org/core/common.json#/definitions"


def _object(pointer, *names, required=()):
    return ObjectNode(
        pointer,
        tuple((name, ScalarNode(f"{pointer}/properties/{name}", "string")) for name in names),
        frozenset(required),
    )


@pytest.fixture(scope="module")
def registry(catalog):
    return default_registry().bind(catalog)


@pytest.fixture(scope="module")
def classifier(registry):
    return ReferenceClassifier(registry)


class TestSharedEntities:
    def test_business_entity(self, classifier, catalog):
        node = catalog.resolve(catalog.node(f"{COMMON}/BusinessEntity"))
        decision = classifier.classify("owner", node)
        assert decision == ForeignKey("business_entity", "business_entities", MatchKind.SIGNATURE)

    def test_address_matches_on_its_full_property_set(self, classifier, catalog):
        node = catalog.resolve(catalog.node(f"{COMMON}/Address"))
        decision = classifier.classify("legalAddress", node)
        assert decision.table == "addresses"
        assert decision.match is MatchKind.PROPERTIES

    def test_required_subset_matches_the_signature(self, classifier):
        node = _object("x#/a", "addressLocalityText", "country", "subnationalDivisionL1")
        assert classifier.classify("anything", node).table == "addresses"

    def test_property_order_does_not_matter(self, classifier):
        forward = _object("x#/g1", "latitude", "longitude")
        backward = _object("x#/g2", "longitude", "latitude")
        assert classifier.classify("geo", forward) == classifier.classify("geo", backward)
        assert classifier.classify("geo", forward).table == "geolocalizations"

    def test_record_root_is_a_record_reference(self, classifier, catalog):
        lot = catalog.root("https://schemas.icglr.org/chain-of-custody/lot.json")
        decision = classifier.classify("inputLot", lot)
        assert decision.is_record
        assert decision.table == "lots"


class TestNameFallback:
    def test_optional_variant_with_matching_name(self, classifier):
        node = _object("x#/v", "country", "subnationalDivisionL1", "addressLocalityText", "subnationalDivisionL2")
        decision = classifier.classify("shippingAddress", node)
        assert decision.table == "addresses"
        assert decision.match is MatchKind.NAME

    def test_optional_variant_without_matching_name_is_flattened(self, classifier):
        node = _object("x#/v", "country", "subnationalDivisionL1", "addressLocalityText", "subnationalDivisionL2")
        assert classifier.classify("origin", node) is FLATTEN

    def test_matching_name_with_foreign_properties_is_flattened(self, classifier):
        node = _object("x#/v", "country", "subnationalDivisionL1", "addressLocalityText", "postcode")
        assert classifier.classify("shippingAddress", node) is FLATTEN


class TestPrecedence:
    def test_earliest_entity_wins(self):
        signature = frozenset({"code"})
        registry = EntityRegistry(
            entities=(
                EntityDefinition("first", "firsts", "x#/a", ("code",), signature, signature),
                EntityDefinition("second", "seconds", "x#/b", ("code",), signature, signature),
            )
        )
        decision = ReferenceClassifier(registry).classify("thing", _object("x#/c", "code"))
        assert decision.entity == "first"

    def test_unknown_inline_object_is_flattened(self, classifier):
        assert classifier.classify("meta", _object("x#/m", "sourceSystem")) is FLATTEN

    def test_scalar_is_flattened(self, classifier):
        assert classifier.classify("name", ScalarNode("x#/s", "string")) is FLATTEN


class TestRegistry:
    def test_every_fixed_key_names_a_compiled_table(self, model):
        from icglr_spine.relational.registry import PRIMARY_KEYS

        assert set(PRIMARY_KEYS) <= set(model.table_names)
        assert "inspections" not in PRIMARY_KEYS

    def test_bind_fills_signatures(self, registry):
        address = registry.entity_for_table("addresses")
        assert address.signature == frozenset({"country", "subnationalDivisionL1", "addressLocalityText"})
        assert "subnationalDivisionL4" in address.properties

    def test_bind_drops_definitions_missing_from_the_catalog(self):
        from icglr_spine.schema.catalog import SchemaCatalog

        catalog = SchemaCatalog.load([{"$id": "https://example.org/x.json", "type": "string"}])
        bound = default_registry().bind(catalog)
        assert bound.entities == ()
        assert bound.records == ()

    def test_primary_keys(self, registry):
        assert registry.primary_key("export_certificates") == ("identifier", "issuing_country")
        assert registry.primary_key("addresses") is None
