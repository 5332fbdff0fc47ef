"""
CLI: ``icglr-spine db`` — database management commands.
"""

from __future__ import annotations

import typer

from icglr_spine.cli.utils import make_context, output_result

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database URL or path"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without changes"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Create every compiled table (idempotent)."""
    from icglr_spine.ops.database import initialize_database
    from icglr_spine.ops.requests import DatabaseInitRequest

    ctx = make_context(database, dry_run=dry_run)
    result = initialize_database(ctx, DatabaseInitRequest())
    output_result(result, as_json=json_out, title="Database Init")
