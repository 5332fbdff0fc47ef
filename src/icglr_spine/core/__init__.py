"""
Core primitives: errors, logging, settings and SQLite access.

Nothing in this package knows about schemas or records; the schema,
relational and mapping packages build on it.
"""

from icglr_spine.core.connection import ConnectionInfo, create_connection
from icglr_spine.core.dialect import SQLiteDialect
from icglr_spine.core.errors import (
    ConfigError,
    ConflictError,
    ConsistencyError,
    DatabaseError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    NotFoundError,
    SchemaError,
    SchemaResolutionError,
    SpineError,
    TransactionError,
    UnsupportedSchemaShapeError,
    ValidationError,
)
from icglr_spine.core.logging import LogContext, configure_logging, get_logger
from icglr_spine.core.settings import PACKAGED_SCHEMA_DIR, DedupPolicy, IcglrSettings, get_settings
from icglr_spine.core.sqlite_conn import SqliteConnection

__all__ = [
    # errors
    "ErrorCategory",
    "ErrorContext",
    "SpineError",
    "SchemaError",
    "SchemaResolutionError",
    "UnsupportedSchemaShapeError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ConfigError",
    "InvalidConfigError",
    "DatabaseError",
    "TransactionError",
    "ConsistencyError",
    # logging
    "configure_logging",
    "get_logger",
    "LogContext",
    # settings
    "IcglrSettings",
    "DedupPolicy",
    "PACKAGED_SCHEMA_DIR",
    "get_settings",
    # storage
    "SqliteConnection",
    "SQLiteDialect",
    "ConnectionInfo",
    "create_connection",
]
