"""Command modules for the pycloudkit CLI."""

from pycloudkit.cli.commands import errors, records

__all__ = ["errors", "records"]
