"""
CLI utility helpers — output formatting and context creation.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from icglr_spine.core.errors import SpineError
from icglr_spine.ops.context import OperationContext
from icglr_spine.ops.result import OperationResult, PagedResult

console = Console()
err_console = Console(stderr=True)


# ── Context helper ───────────────────────────────────────────────────────


def make_context(
    database: str | None = None,
    *,
    dry_run: bool = False,
) -> OperationContext:
    """Build an ``OperationContext`` for CLI commands.

    Schema and configuration errors are fatal: they are printed and the
    command exits with status 2.
    """
    from icglr_spine.ops.database import build_context

    try:
        return build_context(database_url=database, caller="cli", dry_run=dry_run)
    except SpineError as exc:
        err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {exc.message}")
        raise typer.Exit(code=2) from exc


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    """Convert dataclass / dict to plain dict."""
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def _fail(result: OperationResult) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = err.code if err else "ERROR"
    err_console.print(f"[bold red]Error[/bold red] ({code}): {msg}")
    if err is not None:
        for detail in err.details.get("errors", []):
            err_console.print(f"  [red]{detail['loc']}[/red]: {detail['msg']}")
    raise typer.Exit(code=1)


def _warn(result: OperationResult) -> None:
    for warning in result.warnings:
        err_console.print(f"[yellow]Warning[/yellow]: {warning}")


def output_result(
    result: OperationResult,
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render an ``OperationResult`` to the terminal."""
    if not result.success:
        _fail(result)

    data = result.data

    if as_json:
        payload = _to_dict(data) if not isinstance(data, list | tuple) else [_to_dict(d) for d in data]
        console.print_json(json.dumps(payload, default=str))
        _warn(result)
        return

    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
        else:
            _print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)
    _warn(result)


def output_paged(
    result: PagedResult,
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render a ``PagedResult`` with pagination info."""
    if not result.success:
        _fail(result)

    items = result.data or []

    if as_json:
        payload = result.to_dict()
        payload.pop("success", None)
        payload.pop("elapsed_ms", None)
        console.print_json(json.dumps(payload, default=str))
        return

    if not items:
        console.print("[dim]No items.[/dim]")
    else:
        _print_table(items, title=title)
    console.print(
        f"\n[dim]Page {result.page} of {result.total_pages}"
        f" ({result.total} total, {result.limit} per page)[/dim]"
    )
    _warn(result)


# ── Private helpers ──────────────────────────────────────────────────────


def _print_table(items: list, *, title: str = "") -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    columns: list[str] = []
    rows = [_to_dict(item) for item in items]
    for row in rows:
        columns.extend(key for key in row if key not in columns)

    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(_cell(row.get(col)) for col in columns))
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return str(value)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {_cell(v)}")
