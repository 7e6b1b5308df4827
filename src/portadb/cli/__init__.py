"""
CLI layer for portadb.

A Typer application over :class:`portadb.Database`. All data access lives in
the core package; this package handles only terminal transport: argument
parsing, coloured output, and table formatting.

Entry point::

    portadb --help
"""

from portadb.cli.app import app

__all__ = ["app"]
