"""
Structured error types for icglr-spine.

Provides a typed hierarchy of errors raised by the schema catalog, the
relational compiler, the record mapper and the storage layer. Every error
carries a category, a retry flag, structured context (table, pointer, path,
key) and an optional chained cause.

Manifesto:
    - **Typed Error Hierarchy:** Startup errors and per-request errors are
      distinct types so callers can tell "fix the schema" from "fix the payload"
    - **Explicit Retry Semantics:** Nothing in the engine is retryable; the
      caller decides after a confirmed rollback
    - **Rich Context:** Errors carry the schema pointer or table/key involved
    - **Error Chaining:** Storage exceptions are preserved as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       SpineError                                 │
        │  (category, retryable, context, cause)                          │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  SchemaError                ValidationError                      │
        │  (SCHEMA, startup)          (VALIDATION, field-level errors)     │
        │     │                                                            │
        │  SchemaResolutionError      NotFoundError     ConflictError      │
        │  UnsupportedSchemaShapeError (NOT_FOUND)      (CONFLICT)         │
        │                                                                  │
        │  DatabaseError              ConfigError                          │
        │  (DATABASE)                 (CONFIG)                             │
        │     │                          │                                 │
        │  TransactionError           InvalidConfigError                   │
        │  ConsistencyError                                                │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = NotFoundError("mine_sites", "M1")
    >>> error.category
    <ErrorCategory.NOT_FOUND: 'NOT_FOUND'>
    >>> error.to_dict()["context"]
    {'table': 'mine_sites', 'key': 'M1'}

    >>> UnsupportedSchemaShapeError("no type", path="owner.legalAddress").path
    'owner.legalAddress'

Guardrails:
    ❌ DON'T: Catch SchemaError at request time and carry on
    ✅ DO: Let startup errors halt initialization

    ❌ DON'T: Swallow the sqlite3 exception when wrapping it
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, schema, mapping, icglr-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Categories map one-to-one onto the failure domains of the engine:
    schema compilation at startup, payload validation and lookups at request
    time, and the storage layer underneath.
    """

    # Startup errors (never retryable)
    SCHEMA = "SCHEMA"             # Unresolved refs, unsupported shapes
    CONFIG = "CONFIG"             # Missing or invalid settings

    # Request errors
    VALIDATION = "VALIDATION"     # Payload does not match its schema
    NOT_FOUND = "NOT_FOUND"       # Lookup by key has no match
    CONFLICT = "CONFLICT"         # Key already exists, divergent shared entity

    # Storage errors
    DATABASE = "DATABASE"         # Transaction failure, dangling references

    # Internal errors
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover what the engine knows when it fails (which table, which
    record key, which schema pointer, which property path); anything else
    goes into ``metadata``.

    Attributes:
        table: Table the operation was addressing
        key: Primary key value of the record involved
        pointer: Canonical schema pointer of the offending node
        path: Dotted property path from the record root
        operation: Name of the operation that failed
        metadata: Additional key-value pairs
    """

    table: str | None = None
    key: Any = None
    pointer: str | None = None
    path: str | None = None
    operation: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "key", "pointer", "path", "operation"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class SpineError(Exception):
    """
    Base exception for all icglr-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so raising
    sites only pass what is specific to the failure.

    Examples:
        >>> error = SpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(table="lots").context.table
        'lots'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("lots", "LOT-1").with_context(operation="get")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# SCHEMA ERRORS (Startup, never retryable)
# =============================================================================


class SchemaError(SpineError):
    """Schema catalog or compilation error. Halts initialization."""

    default_category = ErrorCategory.SCHEMA
    default_retryable = False


class SchemaResolutionError(SchemaError):
    """A ``$ref`` could not be resolved to a concrete schema node."""

    def __init__(self, message: str, *, ref: str | None = None, pointer: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.ref = ref
        self.context.pointer = pointer
        if ref is not None:
            self.context.metadata["ref"] = ref


class UnsupportedSchemaShapeError(SchemaError):
    """The compiler cannot derive a column or relation for a schema node."""

    def __init__(self, message: str, *, path: str, pointer: str | None = None, **kwargs: Any):
        super().__init__(f"{message} (at {path})", **kwargs)
        self.path = path
        self.context.path = path
        self.context.pointer = pointer


# =============================================================================
# REQUEST ERRORS (Recoverable, reported to the caller)
# =============================================================================


class ValidationError(SpineError):
    """
    Record payload failed schema checks.

    Never retryable - data must be fixed. ``errors`` holds one entry per
    offending field: ``{"loc": "owner.identifier", "msg": ..., "type": ...}``.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.errors = errors or []

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.errors:
            result["errors"] = self.errors
        return result


class NotFoundError(SpineError):
    """Lookup by key has no match."""

    default_category = ErrorCategory.NOT_FOUND
    default_retryable = False

    def __init__(self, table: str, key: Any, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"No record in {table} with key {key!r}", **kwargs)
        self.table = table
        self.key = key
        self.context.table = table
        self.context.key = key


class ConflictError(SpineError):
    """Create with an existing key, or a divergent shared entity under strict dedup."""

    default_category = ErrorCategory.CONFLICT
    default_retryable = False

    def __init__(self, table: str, key: Any, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"Record in {table} with key {key!r} already exists", **kwargs)
        self.table = table
        self.key = key
        self.context.table = table
        self.context.key = key


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(SpineError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class DatabaseError(SpineError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class TransactionError(DatabaseError):
    """Storage failure mid-write. Raised only after the rollback completed."""

    pass


class ConsistencyError(DatabaseError):
    """A stored row references a row that does not exist."""

    pass


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, SpineError):
        return error.retryable
    return False


def categorize_error(error: Exception) -> ErrorCategory:
    """Categorize any exception."""
    if isinstance(error, SpineError):
        return error.category
    return ErrorCategory.INTERNAL


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SpineError",
    # Schema
    "SchemaError",
    "SchemaResolutionError",
    "UnsupportedSchemaShapeError",
    # Request
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    # Config
    "ConfigError",
    "InvalidConfigError",
    # Storage
    "DatabaseError",
    "TransactionError",
    "ConsistencyError",
    # Utilities
    "is_retryable",
    "categorize_error",
]
