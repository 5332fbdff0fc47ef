"""
Entity registry — which schema shapes are stored once and referenced.

The registry is the single source of truth for three decisions the compiler
and mapper share:

- **Shared entities** (``EntityDefinition``): addresses, contact details,
  geolocations, mine-site locations, business entities, tags. Each has a
  table, a structural signature (its required property names), a natural
  key used for dedup, and the schema node it is compiled from.
- **Records** (``RecordDefinition``): the root documents exposed to callers
  (mine sites, lots, export certificates). A property resolving to a record
  root is stored as a key reference.
- **Primary keys**: a fixed table -> key-column map; tables absent from it
  get a surrogate ``id``.

Entity order is precedence order: when several definitions could match a
node, the earliest one wins.

Examples:
    >>> registry = default_registry().bind(catalog)
    >>> registry.entity_for_table("addresses").natural_key
    ('country', 'subnationalDivisionL1', 'addressLocalityText')
    >>> registry.primary_key("export_certificates")
    ('identifier', 'issuing_country')

Tags:
    registry, shared-entity, natural-key, primary-key, icglr-spine
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING

from icglr_spine.core.logging import get_logger
from icglr_spine.schema.catalog import canonical_pointer
from icglr_spine.schema.nodes import ObjectNode

if TYPE_CHECKING:
    from icglr_spine.schema.catalog import SchemaCatalog

logger = get_logger(__name__)

SCHEMA_BASE = "https://schemas.icglr.org/"

# Table -> primary key columns. Everything else gets a surrogate id.
PRIMARY_KEYS: dict[str, tuple[str, ...]] = {
    "mine_sites": ("icglr_id",),
    "business_entities": ("identifier",),
    "lots": ("lot_number",),
    "tags": ("identifier",),
    "export_certificates": ("identifier", "issuing_country"),
}


@dataclass(frozen=True, slots=True)
class EntityDefinition:
    """A shared entity type.

    ``signature`` and ``properties`` are filled in by
    :meth:`EntityRegistry.bind` from the source node unless given.
    ``name_patterns`` are snake_case property-name globs consulted only when
    the structural match fails on optional-field variance.
    """

    name: str
    table: str
    source: str
    natural_key: tuple[str, ...]
    signature: frozenset[str] = frozenset()
    properties: frozenset[str] = frozenset()
    name_patterns: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RecordDefinition:
    """A root record document exposed through the CRUD operations."""

    name: str
    table: str
    source: str


@dataclass(frozen=True)
class EntityRegistry:
    entities: tuple[EntityDefinition, ...]
    records: tuple[RecordDefinition, ...] = ()
    primary_keys: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType(dict(PRIMARY_KEYS))
    )

    # ── Binding ──────────────────────────────────────────────────

    def bind(self, catalog: SchemaCatalog) -> EntityRegistry:
        """Fill signatures from ``catalog`` and drop definitions it lacks.

        Source pointers are canonicalized; definitions whose source is not in
        the catalog are skipped, so partial schema sets compile.
        """
        entities = []
        for entity in self.entities:
            source = canonical_pointer(entity.source)
            if not catalog.has_node(source):
                logger.debug("entity_definition_unbound", entity=entity.name, source=source)
                continue
            node = catalog.resolve(catalog.node(source))
            if not isinstance(node, ObjectNode):
                logger.debug("entity_definition_not_object", entity=entity.name, source=source)
                continue
            entities.append(
                replace(
                    entity,
                    source=node.pointer,
                    signature=entity.signature or node.required,
                    properties=entity.properties or frozenset(node.property_names),
                )
            )

        records = []
        for record in self.records:
            source = canonical_pointer(record.source)
            if not catalog.has_node(source):
                logger.debug("record_definition_unbound", record=record.name, source=source)
                continue
            node = catalog.resolve(catalog.node(source))
            records.append(replace(record, source=node.pointer))

        return EntityRegistry(tuple(entities), tuple(records), self.primary_keys)

    # ── Lookup ───────────────────────────────────────────────────

    def primary_key(self, table: str) -> tuple[str, ...] | None:
        return self.primary_keys.get(table)

    def entity_for_table(self, table: str) -> EntityDefinition | None:
        return next((e for e in self.entities if e.table == table), None)

    def record_for_pointer(self, pointer: str) -> RecordDefinition | None:
        return next((r for r in self.records if r.source == pointer), None)

    def record_for_table(self, table: str) -> RecordDefinition | None:
        return next((r for r in self.records if r.table == table), None)

    @property
    def record_tables(self) -> frozenset[str]:
        return frozenset(r.table for r in self.records)


def default_registry(base: str = SCHEMA_BASE) -> EntityRegistry:
    """The ICGLR entity set, in classification precedence order."""
    common = f"{base}core/common.json#/definitions"
    return EntityRegistry(
        entities=(
            EntityDefinition(
                name="address",
                table="addresses",
                source=f"{common}/Address",
                natural_key=("country", "subnationalDivisionL1", "addressLocalityText"),
                name_patterns=("address", "*_address", "local_geographic_designation", "*_local_geographic_designation"),
            ),
            EntityDefinition(
                name="contact_details",
                table="contact_details",
                source=f"{common}/ContactDetails",
                natural_key=("contactEmail",),
                name_patterns=("contact_details", "*_contact_details"),
            ),
            EntityDefinition(
                name="geolocalization",
                table="geolocalizations",
                source=f"{common}/Geolocalization",
                natural_key=("latitude", "longitude"),
                name_patterns=("geolocalization", "*_geolocalization"),
            ),
            EntityDefinition(
                name="mine_site_location",
                table="mine_site_locations",
                source=f"{base}mine-site/mine-site-location.json",
                natural_key=("geolocalization", "localGeographicDesignation", "nationalCadasterLocalization"),
            ),
            EntityDefinition(
                name="business_entity",
                table="business_entities",
                source=f"{common}/BusinessEntity",
                natural_key=("identifier",),
            ),
            EntityDefinition(
                name="tag",
                table="tags",
                source=f"{base}chain-of-custody/tag.json",
                natural_key=("identifier",),
            ),
        ),
        records=(
            RecordDefinition("mine_site", "mine_sites", f"{base}mine-site/mine-site.json"),
            RecordDefinition("lot", "lots", f"{base}chain-of-custody/lot.json"),
            RecordDefinition("export_certificate", "export_certificates", f"{base}export/export-certificate.json"),
        ),
    )


__all__ = [
    "PRIMARY_KEYS",
    "SCHEMA_BASE",
    "EntityDefinition",
    "RecordDefinition",
    "EntityRegistry",
    "default_registry",
]
