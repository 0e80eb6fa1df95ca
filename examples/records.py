"""Example of how to create a record with the records service."""

import argparse
import logging
import os

from cryptography.hazmat.primitives import serialization
from rich import print_json
from rich.console import Console
from rich.traceback import install

from pycloudkit import (
    CKField,
    CKRecord,
    CKRecordOperation,
    CKRecordsRequest,
    CloudKitAPIError,
    CloudKitClient,
    Database,
    Environment,
    OperationType,
)

install(show_locals=True)

console = Console()


def main():
    """Main function."""
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Records service example.")
    parser.add_argument("--container", default=os.getenv("CLOUDKIT_CONTAINER"))
    parser.add_argument("--key-id", default=os.getenv("CLOUDKIT_KEY_ID"))
    parser.add_argument(
        "--key-file",
        default=os.getenv("CLOUDKIT_KEY_FILE"),
        help="PEM file with the server-to-server private key.",
    )
    args = parser.parse_args()

    # 1. Parse the private key; the client expects it already loaded.
    with open(args.key_file, "rb") as f:
        private_key = serialization.load_pem_private_key(f.read(), password=None)

    # 2. Create the client.
    client = CloudKitClient(args.container, args.key_id, private_key, Environment.DEVELOPMENT)

    # 3. Create a record.
    request = CKRecordsRequest(
        operations=[
            CKRecordOperation(
                type=OperationType.CREATE,
                record=CKRecord(
                    type="MyRecord",
                    fields=[
                        CKField(name="MyField", value="Hello, World!"),
                        CKField(name="MyOtherField", value=1000),
                    ],
                ),
            )
        ]
    )
    try:
        response = client.records.modify(Database.PUBLIC, request)
    except CloudKitAPIError as e:
        logging.error("Modify failed: %s (%s)", e.reason, e.code.value)
        return

    console.rule("Response")
    print_json(data=response.to_wire())


if __name__ == "__main__":
    main()
