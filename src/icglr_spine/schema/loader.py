"""Read schema documents from disk."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from icglr_spine.core.errors import SchemaResolutionError
from icglr_spine.core.logging import get_logger
from icglr_spine.schema.catalog import SchemaCatalog

logger = get_logger(__name__)


def load_documents(directory: Path | str) -> dict[str, dict[str, Any]]:
    """Read every ``*.json`` file below ``directory``.

    Returns a mapping of file URI to parsed document, in path order. Hidden
    directories are skipped.
    """
    root = Path(directory)
    if not root.is_dir():
        raise SchemaResolutionError(f"Schema directory not found: {root}")

    documents: dict[str, dict[str, Any]] = {}
    for path in sorted(root.rglob("*.json")):
        if any(part.startswith(".") for part in path.relative_to(root).parts):
            continue
        try:
            documents[path.resolve().as_uri()] = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.error("schema_parse_failed", path=str(path), error=str(exc))
            raise SchemaResolutionError(f"Invalid JSON in {path}: {exc}", cause=exc) from exc

    logger.debug("schema_documents_read", directory=str(root), count=len(documents))
    return documents


def load_catalog(directory: Path | str) -> SchemaCatalog:
    """Read ``directory`` and build a resolved catalog from it."""
    return SchemaCatalog.load(load_documents(directory))


__all__ = [
    "load_documents",
    "load_catalog",
]
