"""
Schema catalog — indexed, reference-resolved record schema documents.

The catalog turns a set of JSON schema documents into an arena of immutable
nodes keyed by canonical pointer, and resolves ``$ref`` values across
documents (``$id``-relative URIs) and within them (JSON pointers).

Manifesto:
    - **Arena over recursion:** every node is built exactly once, addressed by
      its canonical pointer; a ``RefNode`` is a placeholder holding its
      target's pointer, so self-referencing schemas are finite graphs
    - **Fail at load:** every reference is resolved while loading, so an
      unresolvable ``$ref`` stops start-up instead of a later request
    - **Memoized:** ``resolve`` is a dict lookup after the first call
    - **Immutable:** a loaded catalog is never mutated and is passed
      explicitly to the compiler and the mapper

Architecture:
    ::

        documents ──▶ SchemaCatalog.load()
                          │
                          ├── index by $id (or the mapping key)
                          ├── build nodes   pointer ──▶ ScalarNode | ObjectNode
                          │                              | ArrayNode | RefNode
                          └── resolve every RefNode (raises SchemaResolutionError)

        canonical pointer:
            https://schemas.icglr.org/core/common.json#/definitions/Address

Examples:
    >>> catalog = SchemaCatalog.load([common, mine_site])
    >>> owner = catalog.root(MINE_SITE_ID).get("owner")
    >>> catalog.resolve(owner).pointer
    'https://schemas.icglr.org/core/common.json#/definitions/BusinessEntity'

Guardrails:
    ❌ DON'T: Recursively expand ``$ref`` targets while building
    ✅ DO: Keep RefNode placeholders and resolve on demand

Tags:
    json-schema, references, json-pointer, catalog, icglr-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import unquote, urldefrag, urljoin

from icglr_spine.core.errors import SchemaResolutionError
from icglr_spine.core.logging import get_logger
from icglr_spine.schema.nodes import (
    SCALAR_KINDS,
    ArrayNode,
    ObjectNode,
    RefNode,
    SchemaNode,
    ScalarNode,
    UnsupportedNode,
)

logger = get_logger(__name__)

# Keywords whose presence puts a fragment outside the supported subset
UNSUPPORTED_KEYWORDS = ("oneOf", "anyOf", "allOf", "not", "if", "patternProperties")

DEFINITION_KEYWORDS = ("definitions", "$defs")


def escape_token(token: str) -> str:
    """Escape one JSON-pointer reference token."""
    return token.replace("~", "~0").replace("/", "~1")


def unescape_token(token: str) -> str:
    """Undo :func:`escape_token`."""
    return token.replace("~1", "/").replace("~0", "~")


def canonical_pointer(uri: str) -> str:
    """Normalize ``doc#/a/b`` so equal targets compare equal."""
    doc, fragment = urldefrag(uri)
    fragment = unquote(fragment)
    if fragment and not fragment.startswith("/"):
        raise SchemaResolutionError(
            f"Unsupported fragment {fragment!r}: only JSON pointers are allowed", ref=uri
        )
    return f"{doc}#{fragment.rstrip('/')}"


def pointer_for(ref: str, base: str) -> str:
    """Canonical pointer a ``$ref`` written inside document ``base`` targets."""
    return canonical_pointer(urljoin(base, ref))


def pointer_path(pointer: str) -> list[str]:
    """Unescaped reference tokens of a canonical pointer's fragment."""
    _, _, fragment = pointer.partition("#")
    return [unescape_token(t) for t in fragment.split("/")[1:]] if fragment else []


class SchemaCatalog:
    """An immutable, fully resolved set of schema documents."""

    def __init__(self, documents: dict[str, dict[str, Any]], nodes: dict[str, SchemaNode]):
        self._documents = documents
        self._nodes = nodes
        self._resolved: dict[str, SchemaNode] = {}

    # ── Loading ──────────────────────────────────────────────────

    @classmethod
    def load(
        cls,
        documents: Iterable[dict[str, Any]] | Mapping[str, dict[str, Any]],
    ) -> SchemaCatalog:
        """Index, build and resolve ``documents``.

        ``documents`` is either a list of documents carrying ``$id`` or a
        mapping of fallback identifiers (e.g. file URIs) to documents.

        Raises:
            SchemaResolutionError: a document has no identifier, two documents
                share one, or any ``$ref`` does not resolve.
        """
        if isinstance(documents, Mapping):
            items = [(doc.get("$id") or key, doc) for key, doc in documents.items()]
        else:
            items = []
            for doc in documents:
                if "$id" not in doc:
                    raise SchemaResolutionError("Schema document without $id")
                items.append((doc["$id"], doc))

        indexed: dict[str, dict[str, Any]] = {}
        for doc_id, doc in items:
            doc_id, _ = urldefrag(doc_id)
            if doc_id in indexed:
                raise SchemaResolutionError(f"Duplicate schema document id {doc_id!r}")
            indexed[doc_id] = doc

        nodes: dict[str, SchemaNode] = {}
        for doc_id, doc in indexed.items():
            _Builder(doc_id, nodes).build(doc, f"{doc_id}#")

        catalog = cls(indexed, nodes)
        refs = [node for node in nodes.values() if isinstance(node, RefNode)]
        for ref in refs:
            catalog.resolve(ref)

        logger.info("catalog_loaded", documents=len(indexed), nodes=len(nodes), references=len(refs))
        return catalog

    # ── Lookup ───────────────────────────────────────────────────

    @property
    def document_ids(self) -> list[str]:
        return list(self._documents)

    def document(self, doc_id: str) -> dict[str, Any]:
        try:
            return self._documents[doc_id]
        except KeyError:
            raise SchemaResolutionError(f"Unknown schema document {doc_id!r}", ref=doc_id) from None

    def node(self, pointer: str) -> SchemaNode:
        """Node at a canonical pointer (not resolved)."""
        key = canonical_pointer(pointer)
        try:
            return self._nodes[key]
        except KeyError:
            raise SchemaResolutionError(f"No schema node at {key!r}", pointer=key) from None

    def root(self, doc_id: str) -> SchemaNode:
        """Resolved root node of a document."""
        self.document(doc_id)
        return self.resolve(self.node(f"{doc_id}#"))

    def has_node(self, pointer: str) -> bool:
        return canonical_pointer(pointer) in self._nodes

    # ── Resolution ───────────────────────────────────────────────

    def resolve(self, node: SchemaNode) -> SchemaNode:
        """Follow references until a concrete node is reached.

        Memoized per reference pointer. A chain of references that loops back
        on itself without reaching a concrete node raises
        :class:`SchemaResolutionError`.
        """
        if not isinstance(node, RefNode):
            return node
        cached = self._resolved.get(node.pointer)
        if cached is not None:
            return cached

        in_progress: list[str] = []
        current: SchemaNode = node
        while isinstance(current, RefNode):
            done = self._resolved.get(current.pointer)
            if done is not None:
                current = done
                break
            if current.pointer in in_progress:
                raise SchemaResolutionError(
                    f"Reference cycle: {' -> '.join(in_progress + [current.pointer])}",
                    ref=current.ref,
                    pointer=current.pointer,
                )
            in_progress.append(current.pointer)
            target = self._nodes.get(current.target)
            if target is None:
                raise SchemaResolutionError(
                    f"Unresolvable reference {current.ref!r} (target {current.target!r})",
                    ref=current.ref,
                    pointer=current.pointer,
                )
            current = target

        for pointer in in_progress:
            self._resolved[pointer] = current
        return current

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"SchemaCatalog(documents={len(self._documents)}, nodes={len(self._nodes)})"


class _Builder:
    """Walks one document and registers a node for every subschema."""

    def __init__(self, doc_id: str, nodes: dict[str, SchemaNode]):
        self.doc_id = doc_id
        self.nodes = nodes

    def build(self, fragment: Any, pointer: str) -> SchemaNode:
        node = self._make(fragment, pointer)
        self.nodes[pointer] = node
        if isinstance(fragment, dict):
            for keyword in DEFINITION_KEYWORDS:
                for name, sub in (fragment.get(keyword) or {}).items():
                    self.build(sub, f"{pointer}/{keyword}/{escape_token(name)}")
        return node

    def _make(self, fragment: Any, pointer: str) -> SchemaNode:
        if not isinstance(fragment, dict):
            return UnsupportedNode(pointer, "schema is not an object")

        if "$ref" in fragment:
            ref = fragment["$ref"]
            return RefNode(pointer, pointer_for(ref, self.doc_id), ref)

        for keyword in UNSUPPORTED_KEYWORDS:
            if keyword in fragment:
                return UnsupportedNode(pointer, f"unsupported keyword {keyword!r}")

        kind = fragment.get("type")
        if kind is None and "properties" in fragment:
            kind = "object"
        if isinstance(kind, list):
            return UnsupportedNode(pointer, f"type list {kind!r}")

        if kind == "object":
            props = tuple(
                (name, self.build(sub, f"{pointer}/properties/{escape_token(name)}"))
                for name, sub in (fragment.get("properties") or {}).items()
            )
            if not props:
                return UnsupportedNode(pointer, "object without properties")
            return ObjectNode(pointer, props, frozenset(fragment.get("required") or ()))

        if kind == "array":
            if "items" not in fragment:
                return UnsupportedNode(pointer, "array without items")
            return ArrayNode(pointer, self.build(fragment["items"], f"{pointer}/items"))

        if kind in SCALAR_KINDS:
            return ScalarNode(pointer, kind, fragment.get("format"))

        return UnsupportedNode(pointer, "no derivable type" if kind is None else f"unknown type {kind!r}")


__all__ = [
    "SchemaCatalog",
    "canonical_pointer",
    "escape_token",
    "unescape_token",
    "pointer_path",
]
