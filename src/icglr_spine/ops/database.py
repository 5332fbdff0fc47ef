"""
Database operations.

Context assembly (schemas → catalog → model → connection → mapper), table
creation from the compiled model, and a summary of the compiled tables.
"""

from __future__ import annotations

from icglr_spine.core.connection import create_connection
from icglr_spine.core.logging import get_logger
from icglr_spine.core.schema_loader import apply_ddl, split_sql
from icglr_spine.core.settings import IcglrSettings, get_settings
from icglr_spine.mapping.mapper import Mapper
from icglr_spine.mapping.validation import RecordValidator
from icglr_spine.ops.context import OperationContext
from icglr_spine.ops.requests import DatabaseInitRequest
from icglr_spine.ops.responses import DatabaseInitResult, TableSummary
from icglr_spine.ops.result import OperationResult, start_timer
from icglr_spine.relational.compiler import compile_schemas
from icglr_spine.schema.loader import load_catalog

logger = get_logger(__name__)


def build_context(
    settings: IcglrSettings | None = None,
    *,
    database_url: str | None = None,
    caller: str = "sdk",
    dry_run: bool = False,
) -> OperationContext:
    """Compile the configured schemas and open the configured database.

    In-memory databases start empty, so their tables are created here.

    Raises:
        SchemaResolutionError: a schema reference does not resolve.
        UnsupportedSchemaShapeError: a schema has no relational mapping.
        InvalidConfigError: the database URL is not supported.
    """
    settings = settings or get_settings()
    catalog = load_catalog(settings.schema_dir)
    model = compile_schemas(catalog)

    conn, info = create_connection(database_url or settings.database_url)
    if not info.persistent:
        apply_ddl(conn, model.ddl())

    mapper = Mapper(
        conn,
        model,
        dedup_policy=settings.dedup_policy,
        validator=RecordValidator(catalog, model),
    )
    logger.debug("context_built", database=info.url, tables=len(model.tables), caller=caller)
    return OperationContext(
        conn=conn,
        model=model,
        mapper=mapper,
        settings=settings,
        caller=caller,
        dry_run=dry_run,
        metadata={"database": info.resolved_path or info.url},
    )


def initialize_database(
    ctx: OperationContext,
    request: DatabaseInitRequest | None = None,
) -> OperationResult[DatabaseInitResult]:
    """Create every compiled table and index (idempotent)."""
    request = request or DatabaseInitRequest()
    timer = start_timer()
    ddl = ctx.model.ddl()
    table_names = [table.name for table in ctx.model.all_tables()]

    if ctx.dry_run:
        return OperationResult.ok(
            DatabaseInitResult(
                tables_created=table_names,
                statements=len(split_sql(ddl)),
                dry_run=True,
                ddl=ddl if request.include_ddl else None,
            ),
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        statements = apply_ddl(ctx.conn, ddl)
        return OperationResult.ok(
            DatabaseInitResult(
                tables_created=table_names,
                statements=statements,
                ddl=ddl if request.include_ddl else None,
            ),
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL",
            f"Failed to create tables: {exc}",
            elapsed_ms=timer.elapsed_ms,
        )


def describe_model(ctx: OperationContext) -> OperationResult[list[TableSummary]]:
    """Summarize every compiled table, junctions included."""
    timer = start_timer()
    summaries: list[TableSummary] = []

    for table in ctx.model.tables:
        summaries.append(
            TableSummary(
                name=table.name,
                role="record" if ctx.model.is_record(table.name) else "entity",
                primary_key=list(table.primary_key),
                columns=len(table.columns),
                junctions=len(table.junctions),
            )
        )
        for child in table.walk():
            for junction in child.junctions:
                summaries.append(
                    TableSummary(
                        name=junction.name,
                        role="junction",
                        primary_key=list(junction.primary_key),
                        columns=len(junction.table.columns),
                        junctions=len(junction.table.junctions),
                        parent=child.name,
                    )
                )

    return OperationResult.ok(summaries, elapsed_ms=timer.elapsed_ms)
