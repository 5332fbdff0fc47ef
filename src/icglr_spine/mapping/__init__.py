"""Record mapping: flatten on write, reconstruct on read, payload validation."""

from icglr_spine.mapping.mapper import ChildRowSet, FlatRecord, Mapper, WriteMode
from icglr_spine.mapping.validation import RecordValidator

__all__ = [
    "Mapper",
    "WriteMode",
    "FlatRecord",
    "ChildRowSet",
    "RecordValidator",
]
