"""describe-error command for the pycloudkit CLI."""

import typer
from rich.console import Console

from pycloudkit.enums import ErrorCode

console = Console()


def describe_error(code: str = typer.Argument(..., help="Server error code, e.g. THROTTLED")):
    """Print the description of a server error code."""
    try:
        error_code = ErrorCode.from_wire(code.upper())
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    console.print(f"[bold]{error_code.value}[/bold]: {error_code.description}")
