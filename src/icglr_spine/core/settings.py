"""Settings for icglr-spine.

``IcglrSettings`` reads ``ICGLR_``-prefixed environment variables (and a
``.env`` file) so the CLI and library callers share one validated source of
configuration: where the database lives, which schema set to compile, how
shared entities are deduplicated and how listings are paged.

Examples:
    >>> import os
    >>> os.environ["ICGLR_DATABASE_URL"] = "sqlite:///icglr.db"
    >>> IcglrSettings().database_url
    'sqlite:///icglr.db'

Tags:
    settings, configuration, pydantic, environment, icglr-spine
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Schema documents shipped with the package
PACKAGED_SCHEMA_DIR = Path(__file__).resolve().parent.parent / "schemas"


class DedupPolicy(str, Enum):
    """How get-or-insert treats a shared entity whose non-key fields differ.

    FIRST_WRITE_WINS keeps the stored row and logs the divergence.
    STRICT rejects the write with a ConflictError.
    """

    FIRST_WRITE_WINS = "first_write_wins"
    STRICT = "strict"


class IcglrSettings(BaseSettings):
    """Runtime configuration.

    Fields
    ──────
    database_url        : ``memory``, ``sqlite:///path`` or a bare file path
    schema_dir          : Directory of JSON schema documents to compile
    log_level           : Structlog log level
    json_logs           : JSON log output (None = auto-detect from TTY)
    dedup_policy        : Shared-entity divergence handling
    default_page_limit  : Page size when a listing does not ask for one
    max_page_limit      : Upper bound for requested page sizes
    """

    model_config = SettingsConfigDict(
        env_prefix="ICGLR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_url: str = "memory"

    # ── Schemas ──────────────────────────────────────────────────
    schema_dir: Path = Field(
        default_factory=lambda: PACKAGED_SCHEMA_DIR,
        description="Directory holding the record schema documents",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None

    # ── Mapping ──────────────────────────────────────────────────
    dedup_policy: DedupPolicy = DedupPolicy.FIRST_WRITE_WINS

    # ── Listing ──────────────────────────────────────────────────
    default_page_limit: int = Field(default=20, ge=1)
    max_page_limit: int = Field(default=100, ge=1)

    @model_validator(mode="after")
    def _check_limits(self) -> IcglrSettings:
        if self.default_page_limit > self.max_page_limit:
            raise ValueError("default_page_limit must not exceed max_page_limit")
        return self


@lru_cache(maxsize=1)
def get_settings() -> IcglrSettings:
    """Return the process-wide settings instance."""
    return IcglrSettings()
