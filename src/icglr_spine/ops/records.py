"""
Record operations.

CRUD over the record tables (mine sites, lots, export certificates). Each
function validates its request, delegates to the context's
:class:`~icglr_spine.mapping.mapper.Mapper` and maps engine errors to
result codes:

==========================  ====================
Engine error                Result code
==========================  ====================
ValidationError             ``VALIDATION_FAILED``
NotFoundError               ``NOT_FOUND``
ConflictError               ``CONFLICT``
anything else               ``INTERNAL``
==========================  ====================

Listing filters:

- ``<property>=value`` on a top-level scalar property is a SQL equality
- ``<property>From`` / ``<property>To`` bound a top-level date property
- ``<property>=value`` on an array of scalars keeps records whose array
  contains the value (an ``EXISTS`` over the junction table)
- ``mineral`` on mine sites is the exception: it runs on the fetched page,
  after the SQL count and LIMIT/OFFSET, so ``total`` and ``hasNext``
  describe the unfiltered query; the result carries a warning saying so
"""

from __future__ import annotations

import json
from typing import Any, TypeVar

from icglr_spine.core.errors import (
    ErrorCategory,
    SpineError,
    ValidationError,
    categorize_error,
    is_retryable,
)
from icglr_spine.core.logging import LogContext, get_logger
from icglr_spine.mapping.mapper import CONTAINS, Condition, WriteMode
from icglr_spine.ops.context import OperationContext
from icglr_spine.ops.requests import (
    CreateRecordRequest,
    GetRecordRequest,
    ListRecordsRequest,
    LoadRecordsRequest,
    UpdateRecordRequest,
)
from icglr_spine.ops.responses import LoadOutcome, LoadSummary
from icglr_spine.ops.result import OperationResult, PagedResult, start_timer
from icglr_spine.relational.model import ColumnKind, JunctionKind, TableSpec

logger = get_logger(__name__)

_CODES: dict[ErrorCategory, str] = {
    ErrorCategory.VALIDATION: "VALIDATION_FAILED",
    ErrorCategory.NOT_FOUND: "NOT_FOUND",
    ErrorCategory.CONFLICT: "CONFLICT",
}

_RANGE_SUFFIXES = (("From", ">="), ("To", "<="))
_DATE_TYPES = frozenset({"DATE", "DATETIME"})
# Array filters applied to the fetched page instead of in SQL
_PAGE_ONLY_FILTERS = frozenset({("mine_sites", "mineral")})

R = TypeVar("R", bound=OperationResult)


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _fail(
    result_cls: type[R], exc: Exception, action: str, elapsed_ms: float
) -> R:
    """Map an exception raised by the engine onto a failed result."""
    category = categorize_error(exc)
    if isinstance(exc, SpineError) and category in _CODES:
        details = exc.with_context(operation=action).context.to_dict()
        if isinstance(exc, ValidationError):
            if exc.field:
                details["field"] = exc.field
            if exc.errors:
                details["errors"] = exc.errors
        logger.info("op_rejected", action=action, code=_CODES[category], error=exc.message)
        return result_cls.fail(
            _CODES[category],
            exc.message,
            category=category,
            details=details,
            elapsed_ms=elapsed_ms,
        )

    logger.exception("op_failed", action=action, error=str(exc))
    return result_cls.fail(
        "INTERNAL",
        f"Failed to {action}: {exc}",
        category=category,
        retryable=is_retryable(exc),
        elapsed_ms=elapsed_ms,
    )


def _top_level_column(spec: TableSpec, prop: str):
    for col in spec.columns:
        if col.kind is ColumnKind.VALUE and col.path == (prop,):
            return col
    return None


def _parse_filters(
    spec: TableSpec, filters: dict[str, Any]
) -> tuple[list[Condition], dict[str, Any]]:
    """Split filters into SQL conditions and page-only array filters."""
    conditions: list[Condition] = []
    in_memory: dict[str, Any] = {}

    for name, value in filters.items():
        if value is None:
            continue

        col = _top_level_column(spec, name)
        if col is not None:
            conditions.append((col.name, "=", value))
            continue

        matched = False
        for suffix, op in _RANGE_SUFFIXES:
            base = name.removesuffix(suffix)
            if base == name:
                continue
            col = _top_level_column(spec, base)
            if col is not None and col.sql_type in _DATE_TYPES:
                conditions.append((col.name, op, value))
                matched = True
            break
        if matched:
            continue

        junction = next(
            (j for j in spec.junctions if j.path == (name,) and j.kind is JunctionKind.VALUE), None
        )
        if junction is not None:
            if (spec.name, name) in _PAGE_ONLY_FILTERS:
                in_memory[name] = value
            else:
                conditions.append((junction.name, CONTAINS, value))
            continue

        raise ValidationError(
            f"Unsupported filter {name!r} for {spec.name}",
            field=name,
            errors=[{"loc": name, "msg": "not a filterable property", "type": "unknown_filter"}],
        )
    return conditions, in_memory


def _matches(record: dict[str, Any], in_memory: dict[str, Any]) -> bool:
    return all(value in (record.get(name) or []) for name, value in in_memory.items())


def _record_table(ctx: OperationContext, table: str) -> TableSpec:
    spec = ctx.model.table(table)
    if not ctx.model.is_record(spec.name):
        raise ValidationError(
            f"{spec.name} is not a record table",
            field="table",
            errors=[{"loc": "table", "msg": "expected a record table", "type": "not_a_record"}],
        )
    return spec


# ------------------------------------------------------------------ #
# Operations
# ------------------------------------------------------------------ #


def list_records(
    ctx: OperationContext,
    request: ListRecordsRequest,
) -> PagedResult[dict[str, Any]]:
    """List one page of records, optionally filtered.

    Returns:
        Page of reconstructed records with pagination info.
    """
    timer = start_timer()
    settings = ctx.settings
    limit = min(request.limit or settings.default_page_limit, settings.max_page_limit)

    if request.page < 1 or limit < 1:
        return PagedResult.fail(
            "VALIDATION_FAILED",
            "page and limit must be positive",
            category=ErrorCategory.VALIDATION,
            details={"page": request.page, "limit": request.limit},
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        with LogContext(request_id=ctx.request_id, table=request.table):
            spec = _record_table(ctx, request.table)
            conditions, in_memory = _parse_filters(spec, request.filters)

            total = ctx.mapper.count(spec.name, conditions)
            keys = ctx.mapper.select_keys(
                spec.name, conditions, limit=limit, offset=(request.page - 1) * limit
            )
            records = [ctx.mapper.reconstruct(spec.name, key) for key in keys]
            records = [r for r in records if r is not None]

            warnings = []
            if in_memory:
                records = [r for r in records if _matches(r, in_memory)]
                warnings.append(
                    f"Filter on {', '.join(sorted(in_memory))} applied to the fetched page; "
                    "total and hasNext reflect the unfiltered query"
                )

        return PagedResult.from_items(
            records,
            total=total,
            page=request.page,
            limit=limit,
            warnings=warnings,
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return _fail(PagedResult, exc, "list records", timer.elapsed_ms)


def get_record(
    ctx: OperationContext,
    request: GetRecordRequest,
) -> OperationResult[dict[str, Any]]:
    """Return one reconstructed record."""
    timer = start_timer()

    if request.key is None or request.key == "":
        return OperationResult.fail(
            "VALIDATION_FAILED",
            "key is required",
            category=ErrorCategory.VALIDATION,
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        with LogContext(request_id=ctx.request_id, table=request.table):
            spec = _record_table(ctx, request.table)
            record = ctx.mapper.reconstruct(spec.name, request.key)
        if record is None:
            return OperationResult.fail(
                "NOT_FOUND",
                f"No {spec.row_name} with key {request.key!r}",
                category=ErrorCategory.NOT_FOUND,
                details={"table": spec.name, "key": request.key},
                elapsed_ms=timer.elapsed_ms,
            )
        return OperationResult.ok(record, elapsed_ms=timer.elapsed_ms)
    except Exception as exc:
        return _fail(OperationResult, exc, "get record", timer.elapsed_ms)


def create_record(
    ctx: OperationContext,
    request: CreateRecordRequest,
) -> OperationResult[dict[str, Any]]:
    """Store a new record; an existing key is a ``CONFLICT``."""
    return _write(ctx, request.table, request.record, WriteMode.CREATE, None, "create record")


def update_record(
    ctx: OperationContext,
    request: UpdateRecordRequest,
) -> OperationResult[dict[str, Any]]:
    """Replace a stored record, its array rows included; a missing key is ``NOT_FOUND``."""
    timer = start_timer()
    if request.key is None or request.key == "":
        return OperationResult.fail(
            "VALIDATION_FAILED",
            "key is required",
            category=ErrorCategory.VALIDATION,
            elapsed_ms=timer.elapsed_ms,
        )
    return _write(ctx, request.table, request.record, WriteMode.UPDATE, request.key, "update record")


def _write(
    ctx: OperationContext,
    table: str,
    record: dict[str, Any],
    mode: WriteMode,
    key: Any,
    action: str,
) -> OperationResult[dict[str, Any]]:
    timer = start_timer()
    try:
        with LogContext(request_id=ctx.request_id, table=table):
            spec = _record_table(ctx, table)
            if ctx.dry_run:
                if ctx.mapper.validator is not None:
                    ctx.mapper.validator.validate(spec.name, record)
                return OperationResult.ok(
                    record, elapsed_ms=timer.elapsed_ms, metadata={"dry_run": True}
                )
            stored_key = ctx.mapper.upsert(spec.name, record, mode=mode, key=key)
            stored = ctx.mapper.reconstruct(spec.name, stored_key)
        return OperationResult.ok(
            stored, elapsed_ms=timer.elapsed_ms, metadata={"key": stored_key}
        )
    except Exception as exc:
        return _fail(OperationResult, exc, action, timer.elapsed_ms)


def load_records(
    ctx: OperationContext,
    request: LoadRecordsRequest,
) -> OperationResult[LoadSummary]:
    """Upsert a batch of records, each in its own transaction.

    One failing record does not stop the batch; its error is reported in
    the per-record outcomes and as a warning.
    """
    timer = start_timer()

    try:
        spec = _record_table(ctx, request.table)
        records = request.records
        if records is None:
            if request.path is None:
                raise ValidationError("Either records or path is required", field="records")
            payload = json.loads(request.path.read_text(encoding="utf-8"))
            records = payload.get("records") if isinstance(payload, dict) else payload
            if not isinstance(records, list):
                raise ValidationError(
                    f"{request.path} must hold an array of records", field="path"
                )
    except json.JSONDecodeError as exc:
        return OperationResult.fail(
            "VALIDATION_FAILED",
            f"{request.path} is not valid JSON: {exc}",
            category=ErrorCategory.VALIDATION,
            elapsed_ms=timer.elapsed_ms,
        )
    except OSError as exc:
        return OperationResult.fail(
            "VALIDATION_FAILED",
            f"Cannot read {request.path}: {exc}",
            category=ErrorCategory.VALIDATION,
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        return _fail(OperationResult, exc, "load records", timer.elapsed_ms)

    summary = LoadSummary(table=spec.name)
    warnings: list[str] = []

    with LogContext(request_id=ctx.request_id, table=spec.name):
        for index, record in enumerate(records):
            if ctx.dry_run:
                outcome = _dry_run_outcome(ctx, spec, index, record)
            else:
                try:
                    key = ctx.mapper.upsert(spec.name, record, mode=WriteMode.UPSERT)
                    outcome = LoadOutcome(index=index, stored=True, key=key)
                except SpineError as exc:
                    outcome = LoadOutcome(index=index, stored=False, error=exc.message)
                except Exception as exc:
                    logger.exception("record_load_failed", index=index, error=str(exc))
                    outcome = LoadOutcome(index=index, stored=False, error=str(exc))

            summary.outcomes.append(outcome)
            if outcome.stored:
                summary.stored += 1
            if outcome.error is not None:
                summary.failed += 1
                warnings.append(f"Record {index}: {outcome.error}")

    logger.info("records_loaded", table=spec.name, stored=summary.stored, failed=summary.failed)
    return OperationResult.ok(
        summary,
        warnings=warnings,
        elapsed_ms=timer.elapsed_ms,
        metadata={"dry_run": True} if ctx.dry_run else None,
    )


def _dry_run_outcome(ctx: OperationContext, spec: TableSpec, index: int, record: Any) -> LoadOutcome:
    try:
        if ctx.mapper.validator is not None:
            ctx.mapper.validator.validate(spec.name, record)
    except ValidationError as exc:
        return LoadOutcome(index=index, stored=False, error=exc.message)
    return LoadOutcome(index=index, stored=False)
