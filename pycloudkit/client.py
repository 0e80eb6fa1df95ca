"""
CloudKit Web Services client.

CloudKitClient owns the configuration, the requests session and the signing
key, and implements the HTTP engine every service goes through:

  - JSON bodies are encoded in a single pass that feeds both the body buffer
    and the SHA-256 digest the signer needs
  - every request is signed (see pycloudkit.signer)
  - success bodies are discarded, copied into a byte sink, or decoded into a
    type; error bodies become CloudKitAPIError
  - transport errors (requests.exceptions.*) propagate unchanged

Options (session, user agent, strict decoding) may be changed after
construction but not while a call is in flight.
"""

from __future__ import annotations

import hashlib
import io
import json
import logging
import posixpath
import re
from contextlib import closing
from http import HTTPStatus
from typing import Any, Optional, Tuple, Union
from urllib.parse import urlsplit, urlunsplit

import requests
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel, TypeAdapter, ValidationError
from requests.adapters import HTTPAdapter

from pycloudkit.config import ClientConfig
from pycloudkit.enums import Environment, ErrorCode
from pycloudkit.exceptions import CloudKitAPIError, CloudKitConfigError
from pycloudkit.models import CKErrorBody, strict_context, supports_strict_decoding
from pycloudkit.services.records import RecordsService
from pycloudkit.signer import EMPTY_BODY_DIGEST, RequestSigner

LOGGER = logging.getLogger(__name__)

BASE_URL = "https://api.apple-cloudkit.com"
API_VERSION = 1

Timeout = Union[None, float, Tuple[Optional[float], Optional[float]]]

_INVALID_URL_CHARS = re.compile(r"[\s\x00-\x1f\x7f?#]")


def is_icloud_container(container: str) -> bool:
    """Return True if ``container`` looks like an iCloud container identifier."""
    return container.startswith("iCloud.")


def default_session() -> requests.Session:
    """Session used when the caller does not supply one (pooled connections)."""
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=10, pool_maxsize=10)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _build_base_url(api_root: str, container: str, environment: Environment) -> str:
    if not container or _INVALID_URL_CHARS.search(container):
        raise CloudKitConfigError(f"invalid container {container!r}")
    url = f"{api_root.rstrip('/')}/database/{API_VERSION}/{container}/{environment.value}"
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise CloudKitConfigError(f"invalid base URL {url!r}")
    if _INVALID_URL_CHARS.search(parts.netloc):
        raise CloudKitConfigError(f"invalid base URL {url!r}")
    return url


# ------------------------------ Body encoding --------------------------------


class _DigestWriter:
    """Writes into a buffer while updating a SHA-256 digest with the same bytes."""

    def __init__(self):
        self.buffer = io.BytesIO()
        self.hash = hashlib.sha256()

    def write(self, data: bytes) -> int:
        self.hash.update(data)
        return self.buffer.write(data)


def _json_default(o: Any) -> Any:
    if isinstance(o, BaseModel):
        return o.model_dump(mode="json", by_alias=True, exclude_none=True)
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


_ENCODER = json.JSONEncoder(separators=(",", ":"), ensure_ascii=False, default=_json_default)


def encode_body(body: Any) -> Tuple[bytes, bytes]:
    """JSON-encode ``body`` once, returning ``(bytes, sha256 digest of those bytes)``."""
    writer = _DigestWriter()
    try:
        for chunk in _ENCODER.iterencode(body):
            writer.write(chunk.encode("utf-8"))
    except UnicodeEncodeError as e:
        raise ValueError(f"request body is not valid UTF-8 text: {e}") from e
    return writer.buffer.getvalue(), writer.hash.digest()


def _status_text(code: int) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return f"HTTP {code}"


# --------------------------------- Client ------------------------------------


class CloudKitClient:
    """
    Client for the CloudKit Web Services API.

        client = CloudKitClient(
            "iCloud.com.example.App", key_id, private_key, Environment.DEVELOPMENT
        )
        client.records.modify(Database.PUBLIC, CKRecordsRequest(operations=[...]))

    ``private_key`` is an already parsed ECDSA P-256 key; loading it from
    PEM/DER is up to the caller.
    """

    def __init__(
        self,
        container: str,
        key_id: str,
        private_key: Optional[ec.EllipticCurvePrivateKey],
        environment: Union[Environment, str],
        *,
        api_root: str = BASE_URL,
        session: Optional[requests.Session] = None,
        config: Optional[ClientConfig] = None,
    ):
        try:
            environment = Environment.from_wire(environment)
        except ValueError as e:
            raise CloudKitConfigError(str(e)) from e

        self._container = container
        self._environment = environment
        self._base_url = _build_base_url(api_root, container, environment)
        self._config = config or ClientConfig.from_env()
        self._signer = RequestSigner(key_id, private_key)
        self._session = session or default_session()

        self.records = RecordsService(self)
        LOGGER.debug("Initialized CloudKitClient with base_url: %s", self._base_url)

    def __repr__(self) -> str:
        return f"<CloudKitClient {self._base_url}>"

    # ----- Configuration -----

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def container(self) -> str:
        return self._container

    @property
    def environment(self) -> Environment:
        return self._environment

    @property
    def key_id(self) -> str:
        return self._signer.key_id

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def session(self) -> requests.Session:
        return self._session

    @session.setter
    def session(self, session: Optional[requests.Session]) -> None:
        if session is None:
            return
        self._session = session

    @property
    def user_agent(self) -> str:
        return self._config.user_agent

    @user_agent.setter
    def user_agent(self, user_agent: str) -> None:
        self._config = self._config.replace(user_agent=user_agent)

    @property
    def strict_decoding(self) -> bool:
        return self._config.strict_decoding

    @strict_decoding.setter
    def strict_decoding(self, strict: bool) -> None:
        self._config = self._config.replace(strict_decoding=bool(strict))

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "CloudKitClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ----- Engine -----

    def _resolve(self, endpoint: str) -> str:
        base = urlsplit(self._base_url)
        rel = urlsplit(endpoint)
        path = posixpath.normpath(f"{base.path}/{rel.path.lstrip('/')}")
        if path.startswith("//"):
            path = "/" + path.lstrip("/")
        return urlunsplit((base.scheme, base.netloc, path, rel.query, ""))

    def new_request(
        self, method: str, endpoint: str, body: Any = None
    ) -> requests.PreparedRequest:
        """
        Build a signed request for ``endpoint`` (relative to the base URL).
        ``body`` is JSON-encoded; ``None`` means an empty body.
        """
        url = self._resolve(endpoint)

        if body is None:
            data, digest = b"", EMPTY_BODY_DIGEST
        else:
            data, digest = encode_body(body)

        req = requests.Request(
            method=method,
            url=url,
            data=data,
            headers={
                "content-type": "application/json",
                "accept": "application/json",
                "user-agent": self._config.user_agent,
            },
        )
        prepared = self._session.prepare_request(req)
        self._signer.sign(prepared, digest)
        return prepared

    def do(
        self,
        request: requests.PreparedRequest,
        out: Any = None,
        *,
        timeout: Timeout = None,
    ) -> Any:
        """
        Send ``request`` and handle the response according to ``out``:

          - None: the body is discarded
          - an object with ``write`` (e.g. BytesIO): the raw body is copied into it
          - a type (pydantic model, dict, ...): the JSON body is decoded and returned

        Non 2xx responses raise CloudKitAPIError. With strict decoding on,
        ``out`` must be built from CKModel types (TypeError otherwise), since
        only those reject unknown keys.
        """
        sink = out is not None and not isinstance(out, type) and hasattr(out, "write")
        strict = self._config.strict_decoding
        if out is not None and not sink and strict and not supports_strict_decoding(out):
            raise TypeError(
                f"strict decoding needs a CKModel based type, cannot enforce it for {out!r}"
            )

        LOGGER.info("%s to %s", request.method, request.url)
        resp = self._session.send(
            request,
            stream=True,
            timeout=self._config.timeout if timeout is None else timeout,
        )
        with closing(resp):
            code = resp.status_code
            LOGGER.debug("%s to %s returned status %d", request.method, request.url, code)
            if code >= 400:
                raise self._api_error(resp)

            if out is None:
                return None

            if sink:
                for chunk in resp.iter_content(chunk_size=65536):
                    if chunk:
                        out.write(chunk)
                return None

            return TypeAdapter(out).validate_json(resp.content, context=strict_context(strict))

    def call(
        self,
        method: str,
        endpoint: str,
        body: Any = None,
        out: Any = None,
        *,
        timeout: Timeout = None,
    ) -> Any:
        """Create a request for ``endpoint`` and execute it (see ``do``)."""
        return self.do(self.new_request(method, endpoint, body), out, timeout=timeout)

    @staticmethod
    def _api_error(resp: requests.Response) -> CloudKitAPIError:
        code = resp.status_code
        content_type = resp.headers.get("content-type", "").lower()
        if not content_type.startswith("application/json"):
            LOGGER.error("Request to %s failed with code %d", resp.url, code)
            return CloudKitAPIError(reason=_status_text(code), code=ErrorCode.UNKNOWN)

        # Keep the raw bytes around; they become the reason if decoding yields nothing.
        raw = resp.content
        raw_text = raw.decode("utf-8", errors="replace").replace("\n", " ").strip()
        try:
            body = CKErrorBody.model_validate_json(raw)
        except ValidationError as e:
            LOGGER.warning("Could not decode %d error response: %s", code, e)
            return CloudKitAPIError(reason=raw_text or _status_text(code))

        if not body.reason and body.code is ErrorCode.UNKNOWN:
            LOGGER.warning("Error response %d without reason, using raw body", code)
            body = body.model_copy(update={"reason": raw_text})

        err = body.to_exception()
        LOGGER.error(
            "Request to %s failed with code %d: %s (%s)", resp.url, code, err.reason, err.code.value
        )
        return err


__all__ = [
    "API_VERSION",
    "BASE_URL",
    "CloudKitClient",
    "default_session",
    "encode_body",
    "is_icloud_container",
]
