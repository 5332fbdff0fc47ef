"""Identifier helpers: property names to SQL names."""

from __future__ import annotations

import re
from collections.abc import Sequence

_ACRONYM_BOUNDARY = re.compile(r"(?<=[A-Z])(?=[A-Z][a-z])")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_SEPARATORS = re.compile(r"[^0-9A-Za-z]+")


def snake_case(name: str) -> str:
    """``subnationalDivisionL1`` -> ``subnational_division_l1``.

    Already-snake names are returned unchanged.
    """
    name = _ACRONYM_BOUNDARY.sub("_", name)
    name = _CAMEL_BOUNDARY.sub("_", name)
    name = _SEPARATORS.sub("_", name)
    return name.strip("_").lower()


def column_name(path: Sequence[str]) -> str:
    """Column for a property path: ``("owner", "legalAddress")`` -> ``owner_legal_address``."""
    return "_".join(snake_case(part) for part in path)


def dotted(path: Sequence[str]) -> str:
    return ".".join(path)


def singular(table: str) -> str:
    """Row noun of a plural table name: ``business_entities`` -> ``business_entity``."""
    head, _, last = table.rpartition("_")
    if last.endswith("ies"):
        last = last[:-3] + "y"
    elif last.endswith(("sses", "xes", "ches", "shes")):
        last = last[:-2]
    elif last.endswith("s") and not last.endswith("ss"):
        last = last[:-1]
    return f"{head}_{last}" if head else last


def tokens(name: str) -> list[str]:
    return snake_case(name).split("_")


__all__ = [
    "snake_case",
    "column_name",
    "dotted",
    "singular",
    "tokens",
]
