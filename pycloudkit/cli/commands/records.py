"""Records commands for the pycloudkit CLI."""

import json
from pathlib import Path

import requests
import typer
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from pycloudkit.client import CloudKitClient, is_icloud_container
from pycloudkit.enums import Database, Environment
from pycloudkit.exceptions import CloudKitAPIError, CloudKitException
from pycloudkit.models import CKRecordsRequest

app = typer.Typer(help="Record operations")
console = Console()


def load_private_key(path: Path) -> ec.EllipticCurvePrivateKey:
    """Load an ECDSA P-256 private key from a PEM file."""
    key = serialization.load_pem_private_key(path.read_bytes(), password=None)
    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise ValueError(f"{path} does not contain an ECDSA P-256 private key")
    return key


@app.command("modify")
def modify(
    request_file: Path = typer.Argument(
        ..., exists=True, dir_okay=False, help="JSON file with the operations"
    ),
    container: str = typer.Option(..., envvar="CLOUDKIT_CONTAINER", help="Container ID"),
    key_id: str = typer.Option(..., envvar="CLOUDKIT_KEY_ID", help="Server-to-server key ID"),
    key_file: Path = typer.Option(
        ..., envvar="CLOUDKIT_KEY_FILE", exists=True, dir_okay=False, help="PEM private key"
    ),
    environment: Environment = typer.Option(Environment.DEVELOPMENT, help="Container environment"),
    database: Database = typer.Option(Database.PUBLIC, help="Database to modify"),
):
    """Apply the operations in REQUEST_FILE to records in a database."""
    if not is_icloud_container(container):
        console.print(f"[yellow]Warning:[/yellow] {container!r} is not an iCloud container ID")

    try:
        private_key = load_private_key(key_file)
        with request_file.open("r", encoding="utf-8") as f:
            request = CKRecordsRequest.model_validate(json.load(f))
    except (ValueError, TypeError, UnsupportedAlgorithm, ValidationError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    try:
        with CloudKitClient(container, key_id, private_key, environment) as client:
            response = client.records.modify(database, request)
    except CloudKitAPIError as e:
        console.print(f"[bold red]API error:[/bold red] {e.reason or e.description}")
        console.print(f"Code: [bold]{e.code.value}[/bold]")
        if e.is_retryable:
            console.print(f"Retry after: {e.retry_after.total_seconds():g}s")
        raise typer.Exit(1)
    except (CloudKitException, requests.exceptions.RequestException) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not response.records:
        console.print("No records returned")
        return

    table = Table("Record Name", "Type", "Fields")
    for record in response.records:
        table.add_row(
            record.name or "",
            record.type or "",
            ", ".join(f"{f.name}={json.dumps(f.value)}" for f in record.fields),
        )
    console.print(table)
