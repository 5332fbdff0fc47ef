"""
CLI: ``icglr-spine records`` — read and load records.
"""

from __future__ import annotations

from pathlib import Path

import typer

from icglr_spine.cli.utils import make_context, output_paged, output_result

app = typer.Typer(no_args_is_help=True)


def _parse_filters(pairs: list[str]) -> dict[str, str]:
    filters: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise typer.BadParameter(f"expected NAME=VALUE, got {pair!r}", param_hint="--filter")
        filters[name] = value
    return filters


@app.command("list")
def list_records(
    table: str = typer.Argument(..., help="Record table, e.g. mine_sites"),
    filters: list[str] | None = typer.Option(
        None, "--filter", "-f", help="NAME=VALUE; repeatable. Dates take NAMEFrom / NAMETo."
    ),
    page: int = typer.Option(1, "--page", "-p"),
    limit: int | None = typer.Option(None, "--limit", "-n"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List records of one table, a page at a time."""
    from icglr_spine.ops.records import list_records as _list
    from icglr_spine.ops.requests import ListRecordsRequest

    request = ListRecordsRequest(
        table=table, filters=_parse_filters(filters or []), page=page, limit=limit
    )
    ctx = make_context(database)
    output_paged(_list(ctx, request), as_json=json_out, title=table)


@app.command("get")
def get_record(
    table: str = typer.Argument(..., help="Record table"),
    key: list[str] = typer.Argument(..., help="Primary key value(s), in key column order"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show one record, fully reconstructed."""
    from icglr_spine.ops.records import get_record as _get
    from icglr_spine.ops.requests import GetRecordRequest

    ctx = make_context(database)
    record_key = key[0] if len(key) == 1 else tuple(key)
    result = _get(ctx, GetRecordRequest(table=table, key=record_key))
    output_result(result, as_json=json_out, title=f"{table}: {' / '.join(key)}")


@app.command("load")
def load_records(
    table: str = typer.Argument(..., help="Record table"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON array of records"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate without storing"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Upsert every record in FILE, one transaction per record."""
    from icglr_spine.ops.records import load_records as _load
    from icglr_spine.ops.requests import LoadRecordsRequest

    ctx = make_context(database, dry_run=dry_run)
    result = _load(ctx, LoadRecordsRequest(table=table, path=file))
    if result.success and result.data is not None and not json_out:
        summary = result.data
        typer.echo(f"{summary.table}: {summary.stored} stored, {summary.failed} failed")
        for warning in result.warnings:
            typer.echo(f"  {warning}", err=True)
        if summary.failed:
            raise typer.Exit(code=1)
        return
    output_result(result, as_json=json_out, title="Load")
