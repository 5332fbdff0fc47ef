"""
CLI layer for icglr-spine.

Provides a Typer application with sub-commands that delegate to the
operations layer (``icglr_spine.ops``). This package handles only terminal
transport: argument parsing, coloured output and table formatting.

Entry point::

    icglr-spine --help
"""

from icglr_spine.cli.app import app

__all__ = ["app"]
