"""
Reference classifier — flatten a nested object or store it by key?

Manifesto:
    - **Structure first:** a node is a shared entity when its property-name
      set equals a registered signature; iteration order never matters
    - **Precedence, not discovery order:** ties go to the earliest registry
      entry (address > contact details > geolocation > location > ...)
    - **Names last, and narrowly:** the property-name patterns only apply when
      the node is a plausible optional-field variant of the entity

Algorithm:
    ::

        classify(name, node)
          │
          ├── not an ObjectNode ───────────────────────────▶ Flatten
          ├── node is a registered record root ────────────▶ ForeignKey(record)
          ├── props == signature or props == all props ────▶ ForeignKey(entity)
          │     (first match in precedence order)
          ├── name matches a pattern and
          │   signature ⊆ props ⊆ known props ─────────────▶ ForeignKey(entity)
          └── otherwise ───────────────────────────────────▶ Flatten

Examples:
    >>> classifier = ReferenceClassifier(registry)
    >>> classifier.classify("owner", business_entity_node)
    ForeignKey(entity='business_entity', table='business_entities', ...)
    >>> classifier.classify("inspection", inspection_node)
    Flatten()

Tags:
    classification, shared-entity, signature-match, icglr-spine
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase

from icglr_spine.relational.naming import snake_case
from icglr_spine.relational.registry import EntityDefinition, EntityRegistry
from icglr_spine.schema.nodes import ObjectNode, SchemaNode


class MatchKind(str, Enum):
    RECORD = "record"            # node is a record document root
    SIGNATURE = "signature"      # property set equals the required set
    PROPERTIES = "properties"    # property set equals the full property set
    NAME = "name"                # property-name pattern fallback


@dataclass(frozen=True, slots=True)
class Flatten:
    """Inline the object's properties as prefixed columns."""


@dataclass(frozen=True, slots=True)
class ForeignKey:
    """Store the object once in ``table`` and reference it by key."""

    entity: str
    table: str
    match: MatchKind = MatchKind.SIGNATURE

    @property
    def is_record(self) -> bool:
        return self.match is MatchKind.RECORD


Classification = Flatten | ForeignKey

FLATTEN = Flatten()


class ReferenceClassifier:
    """Decides flatten vs. foreign key for object-typed properties."""

    def __init__(self, registry: EntityRegistry):
        self.registry = registry

    def classify(self, property_name: str, node: SchemaNode) -> Classification:
        """Classify a resolved node found under ``property_name``."""
        if not isinstance(node, ObjectNode):
            return FLATTEN

        record = self.registry.record_for_pointer(node.pointer)
        if record is not None:
            return ForeignKey(record.name, record.table, MatchKind.RECORD)

        props = frozenset(node.property_names)
        for entity in self.registry.entities:
            if props == entity.signature:
                return ForeignKey(entity.name, entity.table, MatchKind.SIGNATURE)
            if props == entity.properties:
                return ForeignKey(entity.name, entity.table, MatchKind.PROPERTIES)

        name = snake_case(property_name)
        for entity in self.registry.entities:
            if self._name_matches(entity, name) and entity.signature <= props <= entity.properties:
                return ForeignKey(entity.name, entity.table, MatchKind.NAME)

        return FLATTEN

    @staticmethod
    def _name_matches(entity: EntityDefinition, name: str) -> bool:
        return any(fnmatchcase(name, pattern) for pattern in entity.name_patterns)


__all__ = [
    "MatchKind",
    "Flatten",
    "ForeignKey",
    "Classification",
    "FLATTEN",
    "ReferenceClassifier",
]
