#!/usr/bin/env python
"""Command line interface for pycloudkit."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from pycloudkit.cli.commands import errors, records

app = typer.Typer(help="Command Line Interface for the CloudKit Web Services API")
console = Console()

app.add_typer(records.app, name="records")
app.command("describe-error")(errors.describe_error)


@app.callback()
def callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests."),
    debug: bool = typer.Option(False, "--debug", help="Log signing and decoding details."),
):
    """Interact with a CloudKit container using a server-to-server key."""
    if verbose or debug:
        logging.basicConfig(
            level=logging.DEBUG if debug else logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True))],
        )


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
