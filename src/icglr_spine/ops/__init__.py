"""
Operations layer.

Transport-agnostic functions taking an :class:`OperationContext` and a
typed request, returning an :class:`OperationResult`. The CLI is a thin
shell over these.
"""

from icglr_spine.ops.context import OperationContext
from icglr_spine.ops.result import OperationError, OperationResult, PagedResult

__all__ = [
    "OperationContext",
    "OperationError",
    "OperationResult",
    "PagedResult",
]
