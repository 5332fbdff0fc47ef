"""
Root Typer application for the icglr-spine CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from icglr_spine.core.logging import configure_logging

app = Typer(
    name="icglr-spine",
    help="icglr-spine — relational storage for ICGLR mineral traceability records.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("icglr-spine")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"icglr-spine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Override ICGLR_LOG_LEVEL for this command."
    ),
) -> None:
    """icglr-spine CLI — compile schemas, create tables, load and read records."""
    from icglr_spine.core.settings import get_settings

    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.json_logs)


# ── Sub-command registration ─────────────────────────────────────────────

from icglr_spine.cli.db import app as db_app  # noqa: E402
from icglr_spine.cli.records import app as records_app  # noqa: E402
from icglr_spine.cli.schema import app as schema_app  # noqa: E402

app.add_typer(schema_app, name="schema", help="Compiled schema inspection.")
app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(records_app, name="records", help="Record operations.")
