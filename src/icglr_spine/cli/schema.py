"""
CLI: ``icglr-spine schema`` — compiled model inspection.
"""

from __future__ import annotations

from pathlib import Path

import typer

from icglr_spine.cli.utils import console, make_context, output_result

app = typer.Typer(no_args_is_help=True)


@app.command()
def tables(
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List every compiled table, junction tables included."""
    from icglr_spine.ops.database import describe_model

    ctx = make_context("memory")
    output_result(describe_model(ctx), as_json=json_out, title="Compiled Tables")


@app.command()
def ddl(
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the DDL to this file"),
) -> None:
    """Print (or write) the CREATE TABLE script for the compiled model."""
    ctx = make_context("memory")
    script = ctx.model.ddl()
    if output is None:
        console.print(script, markup=False, highlight=False, soft_wrap=True)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(script, encoding="utf-8")
    console.print(f"[green]Wrote[/green] {output}")
