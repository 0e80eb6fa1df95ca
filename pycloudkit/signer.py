"""
Request signing ("signature v1").

Every request carries three headers:

  x-apple-cloudkit-request-keyid         the key ID issued by CloudKit
  x-apple-cloudkit-request-iso8601date   RFC 3339 UTC date, e.g. 2024-01-02T15:04:05Z
  x-apple-cloudkit-request-signaturev1   base64(ECDSA-P256(SHA-256(message)))

where ``message`` is ``date:base64(sha256(body)):path``. The date in the
header and in the message must be the same string, and ``path`` is the URL
path only (no scheme, host or query).
"""

from __future__ import annotations

import base64
import hashlib
import logging
from datetime import datetime, timezone
from typing import Callable, Optional
from urllib.parse import urlsplit

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from pycloudkit.exceptions import CloudKitSigningError

LOGGER = logging.getLogger(__name__)

HEADER_KEY_ID = "x-apple-cloudkit-request-keyid"
HEADER_DATE = "x-apple-cloudkit-request-iso8601date"
HEADER_SIGNATURE = "x-apple-cloudkit-request-signaturev1"

# SHA-256 of zero bytes, used for requests without a body.
EMPTY_BODY_DIGEST = hashlib.sha256(b"").digest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_request_date(now: datetime) -> str:
    """RFC 3339 in UTC with second precision, e.g. ``2024-01-02T15:04:05Z``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def signature_payload(date: str, body_digest: bytes, path: str) -> bytes:
    """Build the canonical message ``date:base64(body_digest):path``."""
    encoded_body = base64.b64encode(body_digest).decode("ascii")
    return f"{date}:{encoded_body}:{path}".encode("utf-8")


class RequestSigner:
    """Signs prepared requests with an ECDSA P-256 private key."""

    def __init__(
        self,
        key_id: str,
        private_key: Optional[ec.EllipticCurvePrivateKey],
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.key_id = key_id
        self.private_key = private_key
        self._clock = clock

    def sign(self, request, body_digest: bytes = EMPTY_BODY_DIGEST) -> None:
        """
        Add the signature headers to ``request`` (a ``requests.PreparedRequest``).

        ``body_digest`` must be the SHA-256 digest of the exact body bytes.
        """
        if self.private_key is None:
            raise CloudKitSigningError("cannot sign request: no private key configured")

        date = format_request_date(self._clock())
        path = urlsplit(request.url).path
        message = signature_payload(date, body_digest, path)
        LOGGER.debug("Signing %s %s at %s", request.method, path, date)

        try:
            signature = self.private_key.sign(
                hashlib.sha256(message).digest(),
                ec.ECDSA(Prehashed(hashes.SHA256())),
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise CloudKitSigningError(f"cannot sign request: {e}") from e

        request.headers[HEADER_KEY_ID] = self.key_id
        request.headers[HEADER_DATE] = date
        request.headers[HEADER_SIGNATURE] = base64.b64encode(signature).decode("ascii")


__all__ = [
    "EMPTY_BODY_DIGEST",
    "HEADER_DATE",
    "HEADER_KEY_ID",
    "HEADER_SIGNATURE",
    "RequestSigner",
    "format_request_date",
    "signature_payload",
]
