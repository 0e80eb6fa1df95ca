"""Tests for the CloudKit client and its HTTP engine."""

import base64
import hashlib
import io
import json
import os
import time
import unittest
from dataclasses import dataclass
from typing import List
from unittest import mock

import requests
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel, ValidationError

from pycloudkit import (
    ClientConfig,
    CloudKitAPIError,
    CloudKitClient,
    CloudKitConfigError,
    CloudKitSigningError,
    Environment,
    ErrorCode,
    is_icloud_container,
)
from pycloudkit.client import encode_body
from pycloudkit.models import CKModel

from ._server import (
    CONTAINER,
    ENVIRONMENT,
    KEY_ID,
    PRIVATE_KEY,
    Response,
    assert_signed,
    setup_client,
)


class Foo(CKModel):
    A: str


class PlainFoo(BaseModel):
    A: str


@dataclass
class DataFoo:
    A: str


def _ok(body: bytes):
    return lambda req: Response(200, body)


def _slow(req):
    time.sleep(1)
    return Response(200, b"{}")


class NewClientTest(unittest.TestCase):
    """Construction and options."""

    def test_new_client(self):
        """Test creating a client with default options."""
        with mock.patch.dict(os.environ, {}, clear=True):
            client = CloudKitClient(CONTAINER, KEY_ID, PRIVATE_KEY, ENVIRONMENT)

        self.assertIsNotNone(client.records)
        self.assertEqual(
            client.base_url,
            "https://api.apple-cloudkit.com/database/1/iCloud.com.lukasmalkmus.Example-App/development",
        )
        self.assertTrue(client.user_agent)
        self.assertFalse(client.strict_decoding)
        self.assertIsInstance(client.session, requests.Session)
        self.assertEqual(client.key_id, KEY_ID)
        self.assertIs(client.environment, Environment.DEVELOPMENT)

    def test_environment_as_string(self):
        """Test passing the environment as a string."""
        client = CloudKitClient(CONTAINER, KEY_ID, None, "production")
        self.assertTrue(client.base_url.endswith("/production"))

    def test_bad_environment(self):
        """Test rejecting an unknown environment."""
        with self.assertRaises(CloudKitConfigError):
            CloudKitClient(CONTAINER, KEY_ID, None, "staging")

    def test_bad_base_url(self):
        """Test rejecting a malformed base URL."""
        with self.assertRaises(CloudKitConfigError):
            CloudKitClient("iCloud.com.bad container", KEY_ID, None, ENVIRONMENT)
        with self.assertRaises(CloudKitConfigError):
            CloudKitClient("", KEY_ID, None, ENVIRONMENT)
        with self.assertRaises(CloudKitConfigError):
            CloudKitClient(CONTAINER, KEY_ID, None, ENVIRONMENT, api_root="api.example.com")

    def test_is_icloud_container(self):
        """Test detecting iCloud container IDs."""
        self.assertTrue(is_icloud_container(CONTAINER))
        self.assertFalse(is_icloud_container("com.lukasmalkmus.Example-App"))

    def test_set_session(self):
        """Test replacing the session."""
        client = CloudKitClient(CONTAINER, KEY_ID, None, ENVIRONMENT)
        session = requests.Session()
        client.session = session
        self.assertIs(client.session, session)

        # None leaves the current session in place
        client.session = None
        self.assertIs(client.session, session)

    def test_set_user_agent(self):
        """Test changing the user agent."""
        client = CloudKitClient(CONTAINER, KEY_ID, None, ENVIRONMENT)
        client.user_agent = "pycloudkit/1.0.0"
        self.assertEqual(client.user_agent, "pycloudkit/1.0.0")

    def test_config_from_env(self):
        """Test reading the configuration from the environment."""
        env = {"PYCLOUDKIT_USER_AGENT": "my-app/2.0", "PYCLOUDKIT_STRICT_DECODING": "on"}
        with mock.patch.dict(os.environ, env, clear=True):
            client = CloudKitClient(CONTAINER, KEY_ID, None, ENVIRONMENT)
        self.assertEqual(client.user_agent, "my-app/2.0")
        self.assertTrue(client.strict_decoding)

    def test_config_timeout(self):
        """Test the (connect, read) timeout of a configuration."""
        config = ClientConfig()
        self.assertEqual(config.timeout, (5.0, None))
        self.assertEqual(config.replace(read_timeout=30.0).timeout, (5.0, 30.0))


class NewRequestTest(unittest.TestCase):
    """Tests for building signed requests."""

    def setUp(self):
        """Set up the test case."""
        self.client = CloudKitClient(
            CONTAINER, KEY_ID, PRIVATE_KEY, ENVIRONMENT, config=ClientConfig()
        )
        self.addCleanup(self.client.close)

    def test_empty_body(self):
        """Test building a request without a body."""
        req = self.client.new_request("GET", "/", None)

        self.assertFalse(req.body)
        self.assertEqual(req.url, self.client.base_url)
        self.assertEqual(req.headers["accept"], "application/json")
        self.assertEqual(req.headers["content-type"], "application/json")
        self.assertEqual(req.headers["user-agent"], "pycloudkit")
        self.assertEqual(req.headers["x-apple-cloudkit-request-keyid"], KEY_ID)
        self.assertTrue(req.headers["x-apple-cloudkit-request-iso8601date"])
        self.assertTrue(req.headers["x-apple-cloudkit-request-signaturev1"])

    def test_endpoint_is_joined_to_base_path(self):
        """Test joining the endpoint to the base path."""
        req = self.client.new_request("POST", "/public/records/modify", {})
        self.assertEqual(req.url, self.client.base_url + "/public/records/modify")

        req = self.client.new_request("POST", "private/./records/../records/modify", {})
        self.assertEqual(req.url, self.client.base_url + "/private/records/modify")

    def test_json_body(self):
        """Test encoding a JSON body."""
        req = self.client.new_request("POST", "/public/records/modify", {"A": "a"})
        self.assertEqual(json.loads(req.body), {"A": "a"})

    def test_no_private_key(self):
        """Test signing without a private key."""
        client = CloudKitClient(CONTAINER, KEY_ID, None, ENVIRONMENT)
        with self.assertRaises(CloudKitSigningError):
            client.new_request("GET", "/", None)


class EncodeBodyTest(unittest.TestCase):
    """Tests for single-pass body encoding."""

    def test_digest_matches_encoded_bytes(self):
        """Test that the digest covers the encoded bytes."""
        data, digest = encode_body({"operations": [{"operationType": "create"}]})
        self.assertEqual(data, b'{"operations":[{"operationType":"create"}]}')
        self.assertEqual(digest, hashlib.sha256(data).digest())

    def test_models_are_encoded_by_wire_name(self):
        """Test encoding models by wire name."""
        data, _ = encode_body(Foo(A="a"))
        self.assertEqual(json.loads(data), {"A": "a"})

    def test_lone_surrogate_is_rejected(self):
        """Test that text which cannot be sent as UTF-8 raises ValueError."""
        with self.assertRaises(ValueError):
            encode_body({"A": "\ud800"})

        client = CloudKitClient(CONTAINER, KEY_ID, PRIVATE_KEY, ENVIRONMENT)
        self.addCleanup(client.close)
        with self.assertRaises(ValueError):
            client.new_request("POST", "/public/records/modify", {"A": "\ud800"})


class DoTest(unittest.TestCase):
    """Tests for sending requests and handling responses."""

    def test_decode_json(self):
        """Test decoding a JSON response."""
        client, server = setup_client(self, _ok(b'{"A":"a"}'))

        req = client.new_request("GET", "/", None)
        body = client.do(req, Foo)

        self.assertEqual(body, Foo(A="a"))
        self.assertEqual(server.requests[0].method, "GET")
        assert_signed(self, server.requests[0])

    def test_decode_into_plain_type(self):
        """Test decoding into a plain type."""
        client, _ = setup_client(self, _ok(b'{"A":"a"}'))
        body = client.call("GET", "/", None, dict)
        self.assertEqual(body, {"A": "a"})

    def test_strict_decoding_rejects_unknown_fields(self):
        """Test that strict decoding rejects unknown fields."""
        client, _ = setup_client(self, _ok(b'{"A":"a","B":1}'))
        with self.assertRaises(ValidationError):
            client.call("GET", "/", None, Foo)

    def test_lenient_decoding_ignores_unknown_fields(self):
        """Test that lenient decoding ignores unknown fields."""
        client, _ = setup_client(self, _ok(b'{"A":"a","B":1}'), strict_decoding=False)
        self.assertEqual(client.call("GET", "/", None, Foo), Foo(A="a"))

    def test_strict_decoding_rejects_unknown_fields_in_lists(self):
        """Test that strict decoding reaches models inside containers."""
        client, _ = setup_client(self, _ok(b'[{"A":"a"},{"A":"b","B":1}]'))
        with self.assertRaises(ValidationError):
            client.call("GET", "/", None, List[Foo])

    def test_strict_decoding_refuses_unchecked_types(self):
        """Test that strict decoding refuses types that cannot reject unknown keys."""
        client, server = setup_client(self, _ok(b'{"A":"a","B":1}'))

        for out in (PlainFoo, DataFoo, List[PlainFoo]):
            with self.subTest(out=out):
                with self.assertRaises(TypeError):
                    client.call("GET", "/", None, out)

        # Refused before anything is sent
        self.assertEqual(server.requests, [])

    def test_lenient_decoding_accepts_any_type(self):
        """Test decoding into plain models and dataclasses without strict decoding."""
        client, _ = setup_client(self, _ok(b'{"A":"a","B":1}'), strict_decoding=False)
        self.assertEqual(client.call("GET", "/", None, PlainFoo), PlainFoo(A="a"))
        self.assertEqual(client.call("GET", "/", None, DataFoo), DataFoo(A="a"))

    def test_malformed_json(self):
        """Test decoding a malformed response."""
        client, _ = setup_client(self, _ok(b'{"A":'))
        with self.assertRaises(ValidationError):
            client.call("GET", "/", None, Foo)

    def test_io_writer(self):
        """Test copying the response into a writer."""
        content = b'{"A":"a"}'
        client, server = setup_client(self, _ok(content))

        buf = io.BytesIO()
        result = client.do(client.new_request("GET", "/", None), buf)

        self.assertIsNone(result)
        self.assertEqual(buf.getvalue(), content)
        self.assertEqual(server.requests[0].method, "GET")

    def test_discard_body(self):
        """Test discarding the response body."""
        client, _ = setup_client(self, _ok(b'{"A":"a"}'))
        self.assertIsNone(client.call("GET", "/", None, None))

    def test_http_error(self):
        """Test decoding an error response."""
        body = json.dumps({"reason": "Bad Request", "serverErrorCode": "BAD_REQUEST"})
        client, _ = setup_client(self, lambda req: Response(400, body.encode()))

        with self.assertRaises(CloudKitAPIError) as ctx:
            client.call("GET", "/", None, None)

        self.assertEqual(ctx.exception.reason, "Bad Request")
        self.assertIs(ctx.exception.code, ErrorCode.BAD_REQUEST)
        self.assertEqual(ctx.exception.retry_after.total_seconds(), 0)

    def test_http_error_retry_after(self):
        """Test the retry hint of an error response."""
        body = json.dumps(
            {"reason": "slow down", "retryAfter": "30s", "serverErrorCode": "THROTTLED", "uuid": "x"}
        )
        client, _ = setup_client(self, lambda req: Response(503, body.encode()))

        with self.assertRaises(CloudKitAPIError) as ctx:
            client.call("GET", "/", None, Foo)

        self.assertIs(ctx.exception.code, ErrorCode.THROTTLED)
        self.assertEqual(ctx.exception.retry_after.total_seconds(), 30)
        self.assertTrue(ctx.exception.is_retryable)

    def test_http_error_not_json(self):
        """Test an error response that is not JSON."""
        client, _ = setup_client(
            self, lambda req: Response(500, b"<html>oops</html>", content_type="text/html")
        )

        with self.assertRaises(CloudKitAPIError) as ctx:
            client.call("GET", "/", None, None)

        self.assertEqual(ctx.exception.reason, "Internal Server Error")
        self.assertIs(ctx.exception.code, ErrorCode.UNKNOWN)

    def test_http_error_raw_body_fallback(self):
        """Test falling back to the raw error body."""
        client, _ = setup_client(
            self, lambda req: Response(404, b'{"message":\n"no such thing"}')
        )

        with self.assertRaises(CloudKitAPIError) as ctx:
            client.call("GET", "/", None, None)

        self.assertTrue(ctx.exception.reason)
        self.assertIn("no such thing", ctx.exception.reason)
        self.assertNotIn("\n", ctx.exception.reason)

    def test_http_error_undecodable_body(self):
        """Test that an error body with an unknown code still raises an API error."""
        body = b'{"reason":"x","serverErrorCode":"NEW_CODE"}'
        client, _ = setup_client(self, lambda req: Response(400, body))

        with self.assertRaises(CloudKitAPIError) as ctx:
            client.call("GET", "/", None, Foo)

        self.assertIs(ctx.exception.code, ErrorCode.UNKNOWN)
        self.assertIn("NEW_CODE", ctx.exception.reason)

    def test_redirect_loop(self):
        """Test that a redirect loop surfaces as a transport error."""
        client, _ = setup_client(
            self,
            lambda req: Response(302, content_type=None, headers={"Location": "/"}),
        )

        req = client.new_request("GET", "/", None)
        with self.assertRaises(requests.exceptions.TooManyRedirects) as ctx:
            client.do(req, None)

        self.assertNotIsInstance(ctx.exception, CloudKitAPIError)

    def test_call_timeout(self):
        """Test that a per-call timeout aborts a slow exchange."""
        client, _ = setup_client(self, _slow)
        with self.assertRaises(requests.exceptions.Timeout):
            client.call("GET", "/", None, None, timeout=0.2)

    def test_configured_timeout(self):
        """Test that the configured read timeout applies when the call sets none."""
        client, _ = setup_client(self, _slow, read_timeout=0.2)
        with self.assertRaises(requests.exceptions.Timeout):
            client.do(client.new_request("GET", "/", None))

        # A per-call timeout takes precedence over the configured one
        self.assertIsNone(client.call("GET", "/", None, None, timeout=5))

    def test_user_agent_option_reaches_server(self):
        """Test that the user agent reaches the server."""
        client, server = setup_client(self, _ok(b"{}"))
        client.user_agent = "pycloudkit/1.0.0"

        client.call("GET", "/", None, None)

        assert_signed(self, server.requests[0], user_agent="pycloudkit/1.0.0")

    def test_signature_covers_sent_body(self):
        """Test that the signature covers the sent body."""
        client, server = setup_client(self, _ok(b"{}"))

        client.call("POST", "/public/records/modify", {"operations": []}, None)

        sent = server.requests[0]
        date = sent.headers["x-apple-cloudkit-request-iso8601date"]
        body_hash = base64.b64encode(hashlib.sha256(sent.body).digest()).decode()
        message = f"{date}:{body_hash}:{sent.path}".encode()
        signature = base64.b64decode(sent.headers["x-apple-cloudkit-request-signaturev1"])

        # Raises InvalidSignature on mismatch
        PRIVATE_KEY.public_key().verify(signature, message, ec.ECDSA(hashes.SHA256()))
        self.assertTrue(sent.path.endswith("/development/public/records/modify"))


if __name__ == "__main__":
    unittest.main()
