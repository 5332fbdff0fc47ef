"""
Request-scoped context for operations.

Every operation function receives an :class:`OperationContext` as its first
argument. The context carries the database connection, the compiled model
and the mapper bound to both, together with caller identity, the dry-run
flag and arbitrary metadata. The model is built once per process and shared
by every context.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from icglr_spine.core.protocols import TransactionalConnection
from icglr_spine.core.settings import IcglrSettings, get_settings
from icglr_spine.mapping.mapper import Mapper
from icglr_spine.relational.model import RelationalModel


@dataclass
class OperationContext:
    """Context passed to every operation function.

    Attributes:
        conn: Connection satisfying :class:`TransactionalConnection`.
        model: The compiled relational model.
        mapper: Mapper over ``conn`` and ``model``.
        settings: Runtime settings (page limits, dedup policy).
        request_id: Unique ID for this operation invocation (auto-generated).
        caller: Origin of the request, ``"cli"`` or ``"sdk"``.
        user: Optional authenticated user identifier.
        dry_run: When ``True``, write operations validate without storing.
        metadata: Arbitrary key/value pairs forwarded to logging.
    """

    conn: TransactionalConnection
    model: RelationalModel
    mapper: Mapper
    settings: IcglrSettings = field(default_factory=get_settings)
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    caller: str = "sdk"
    user: str | None = None
    dry_run: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
