"""Connection factory — single entry point for database connections.

``create_connection`` accepts a URL, a bare path or a keyword and returns a
``(connection, info)`` pair:

- ``None``, ``"memory"``, ``":memory:"`` — in-memory SQLite
- ``"sqlite:///path/to/file.db"`` — explicit SQLite URL
- ``"path/to/file.db"`` — file-based SQLite

File databases run in WAL mode so readers on separate connections proceed
while a writer holds the lock.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from icglr_spine.core.errors import InvalidConfigError
from icglr_spine.core.logging import get_logger
from icglr_spine.core.sqlite_conn import SqliteConnection

logger = get_logger(__name__)


# ── ConnectionInfo ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a database connection."""

    backend: str
    """Backend identifier, always ``"sqlite"``."""

    persistent: bool
    """Whether data survives process exit."""

    url: str
    """The original URL or path used to create the connection."""

    resolved_path: str | None = None
    """For file-based SQLite, the resolved absolute path."""

    def __repr__(self) -> str:
        parts = [f"backend={self.backend!r}", f"persistent={self.persistent}"]
        if self.resolved_path:
            parts.append(f"path={self.resolved_path!r}")
        else:
            parts.append(f"url={self.url!r}")
        return f"ConnectionInfo({', '.join(parts)})"


# ── URL parsing ──────────────────────────────────────────────────────────


def _parse_url(db: str | None) -> tuple[str, str]:
    """Parse a database URL into ``(scheme, target)``.

    scheme is ``"memory"`` or ``"file"``.
    """
    if db is None or db in ("", "memory", ":memory:"):
        return "memory", ":memory:"

    for prefix in ("sqlite:///", "sqlite://"):
        if db.startswith(prefix):
            path = db[len(prefix):]
            if not path or path == ":memory:":
                return "memory", ":memory:"
            return "file", path

    if "://" in db:
        raise InvalidConfigError("database_url", db, f"Unsupported database URL scheme: {db!r}")

    return "file", db


# ── Main factory ─────────────────────────────────────────────────────────


def create_connection(
    db: str | None = None,
    *,
    data_dir: str | Path | None = None,
) -> tuple[SqliteConnection, ConnectionInfo]:
    """Create a database connection from a URL, path, or keyword.

    Parameters
    ----------
    db:
        Database URL, file path, or keyword (see module docstring).
    data_dir:
        Relative file paths are resolved within this directory.

    Returns
    -------
    tuple[SqliteConnection, ConnectionInfo]
    """
    scheme, target = _parse_url(db)

    if scheme == "memory":
        conn = SqliteConnection(":memory:")
        info = ConnectionInfo(backend="sqlite", persistent=False, url=":memory:")
    else:
        path = Path(target)
        if data_dir and not path.is_absolute():
            path = Path(data_dir) / path
        path.parent.mkdir(parents=True, exist_ok=True)
        resolved = str(path.resolve())
        conn = SqliteConnection(resolved, wal=True)
        info = ConnectionInfo(backend="sqlite", persistent=True, url=target, resolved_path=resolved)

    logger.debug("connection_created", backend=info.backend, persistent=info.persistent, url=info.url)
    return conn, info
