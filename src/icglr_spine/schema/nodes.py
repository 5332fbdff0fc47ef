"""Immutable schema node types.

A schema document is turned into a graph of these nodes, each addressed by
its canonical pointer (``<document id>#<json pointer>``). ``RefNode`` stores
the canonical pointer of its target instead of the target itself, which is
what lets self-referencing documents be represented without recursion.
"""

from __future__ import annotations

from dataclasses import dataclass

SCALAR_KINDS = frozenset({"string", "integer", "number", "boolean"})


@dataclass(frozen=True, slots=True)
class ScalarNode:
    pointer: str
    kind: str
    format: str | None = None


@dataclass(frozen=True, slots=True)
class ObjectNode:
    pointer: str
    properties: tuple[tuple[str, SchemaNode], ...]
    required: frozenset[str] = frozenset()

    @property
    def property_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.properties)

    def get(self, name: str) -> SchemaNode | None:
        for prop, node in self.properties:
            if prop == name:
                return node
        return None

    def is_required(self, name: str) -> bool:
        return name in self.required


@dataclass(frozen=True, slots=True)
class ArrayNode:
    pointer: str
    items: SchemaNode


@dataclass(frozen=True, slots=True)
class RefNode:
    pointer: str
    target: str
    ref: str


@dataclass(frozen=True, slots=True)
class UnsupportedNode:
    """A schema fragment outside the supported subset (kept so errors can name it)."""

    pointer: str
    reason: str


SchemaNode = ScalarNode | ObjectNode | ArrayNode | RefNode | UnsupportedNode


__all__ = [
    "SCALAR_KINDS",
    "ScalarNode",
    "ObjectNode",
    "ArrayNode",
    "RefNode",
    "UnsupportedNode",
    "SchemaNode",
]
