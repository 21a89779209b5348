"""Tests for the client and the HTTP transport."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import httpx
import orjson
import pytest
import structlog
from structlog.testing import capture_logs

from rollbar_client.api.codec import TOKEN_MASK
from rollbar_client.api.models import Frame, Level
from rollbar_client.client import Client
from rollbar_client.config import Settings
from rollbar_client.core.sanitizer import REDACTED, InboundRequest
from rollbar_client.core.stack import Stack
from rollbar_client.errors import (
    ApiError,
    ConfigurationError,
    DecodingError,
    EncodingError,
    TransportError,
)
from rollbar_client.version import USER_AGENT

TEST_TOKEN = "xxxxxxxxxxxxxxxx"
ENDPOINT = "https://rollbar.test/api/1/item/"


class Recorder:
    """MockTransport handler that records requests and replies with a fixed response."""

    def __init__(self, status_code=200, content=b'{"err": 0, "result": {"uuid": "abc123"}}'):
        self.status_code = status_code
        self.content = content
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=self.content)

    @property
    def documents(self):
        return [orjson.loads(r.content) for r in self.requests]


def make_client(recorder, **overrides):
    values = dict(access_token=TEST_TOKEN, endpoint=ENDPOINT, server_host="web-1", _env_file=None)
    values.update(overrides)
    return Client(
        Settings(**values),
        http_client=httpx.Client(transport=httpx.MockTransport(recorder)),
        async_http_client=httpx.AsyncClient(transport=httpx.MockTransport(recorder)),
    )


def raise_lookup_error():
    raise LookupError("no such order")


class TestNew:
    """Tests for client construction."""

    def test_new_with_options(self):
        """Test named options end up in the frozen settings."""
        client = Client.new(TEST_TOKEN, environment="production", code_version="2.1.12", _env_file=None)
        assert client.settings.access_token == TEST_TOKEN
        assert client.settings.environment == "production"
        assert client.settings.code_version == "2.1.12"

    def test_clients_do_not_share_settings(self):
        """Test each client gets its own configuration."""
        first = Client.new("token-1", environment="production", _env_file=None)
        second = Client.new("token-2", _env_file=None)
        assert first.settings.access_token == "token-1"
        assert second.settings.access_token == "token-2"
        assert first.settings is not second.settings


class TestDo:
    """Tests for sending items."""

    def setup_method(self):
        """Set up test fixtures."""
        self.recorder = Recorder()
        self.client = make_client(self.recorder)

    @pytest.mark.parametrize(
        "method, level",
        [
            ("debug", "debug"),
            ("info", "info"),
            ("warning", "warning"),
            ("error", "error"),
            ("critical", "critical"),
        ],
    )
    def test_severity_methods(self, method, level):
        """Test every severity method posts with its level."""
        resp = getattr(self.client, method)(ValueError("bad")).do()

        assert resp.err == 0
        assert resp.result.uuid == "abc123"
        assert self.recorder.documents[0]["data"]["level"] == level

    def test_request_shape(self):
        """Test the POST target, headers and token."""
        self.client.error(ValueError("bad")).do()

        request = self.recorder.requests[0]
        assert request.method == "POST"
        assert str(request.url) == ENDPOINT
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["User-Agent"] == USER_AGENT
        assert self.recorder.documents[0]["access_token"] == TEST_TOKEN

    def test_live_stack_starts_at_caller(self):
        """Test the first frame is the line that called do()."""
        self.client.error(Exception("default error")).do()

        data = self.recorder.documents[0]["data"]
        frames = data["body"]["trace"]["frames"]
        assert frames[0]["method"].endswith("test_live_stack_starts_at_caller")
        assert frames[0]["filename"].endswith("test_client.py")
        assert data["title"] == "default error"
        assert data["body"]["trace"]["exception"]["class"] == "{23d90530}"

    def test_exception_traceback_used(self):
        """Test a raised exception reports the frames it was raised through."""
        try:
            raise_lookup_error()
        except LookupError as e:
            self.client.error(e).do()

        frames = self.recorder.documents[0]["data"]["body"]["trace"]["frames"]
        assert frames[0]["method"] == "raise_lookup_error"

    def test_exception_traceback_disabled(self):
        """Test live capture when traceback stacks are turned off."""
        client = make_client(self.recorder, use_exception_traceback=False)
        try:
            raise_lookup_error()
        except LookupError as e:
            client.error(e).do()

        frames = self.recorder.documents[0]["data"]["body"]["trace"]["frames"]
        assert frames[0]["method"].endswith("test_exception_traceback_disabled")

    def test_explicit_stack(self):
        """Test a pre-captured stack and its fingerprint are used."""
        stack = Stack(
            [
                Frame(filename="fileA.x", method="funcA", lineno=10),
                Frame(filename="fileB.x", method="funcB", lineno=20),
            ]
        )
        payload = self.client.error(Exception("default error")).stack(stack).payload()
        assert payload.data.fingerprint == "87d65708"
        assert payload.data.title == "default error"

    def test_same_call_site_same_fingerprint(self):
        """Test repeated reports from one line group together."""
        fingerprints = [self.client.error(ValueError(str(i))).payload().data.fingerprint for i in range(3)]
        assert len(set(fingerprints)) == 1

    def test_call_options(self):
        """Test chained options reach the payload."""
        inbound = InboundRequest(
            url="https://shop.example.com/orders?token=t0k",
            method="POST",
            headers={"Authorization": "Bearer abc"},
        )
        (
            self.client.error(ValueError("bad"))
            .custom({"order_id": 7})
            .uuid("d4c1b2a0-0000-4000-8000-000000000000")
            .person(42, username="ada", email="ada@example.com")
            .request(inbound)
            .context("orders#create")
            .do()
        )

        data = self.recorder.documents[0]["data"]
        assert data["custom"] == {"order_id": 7}
        assert data["uuid"] == "d4c1b2a0-0000-4000-8000-000000000000"
        assert data["person"] == {"id": "42", "username": "ada", "email": "ada@example.com"}
        assert data["context"] == "orders#create"
        assert data["request"]["headers"]["Authorization"] == [REDACTED]
        assert data["request"]["GET"] == {"token": [REDACTED]}
        assert data["request"]["POST"] == {}
        assert data["request"]["user_ip"] == "$remote_ip"

    def test_unset_options_absent(self):
        """Test no optional context means no optional keys."""
        self.client.error(ValueError("bad")).do()

        data = self.recorder.documents[0]["data"]
        for key in ("custom", "person", "request", "uuid", "context"):
            assert key not in data

    def test_message(self):
        """Test message items carry a message body only."""
        self.client.message("warning", "disk almost full").do()

        data = self.recorder.documents[0]["data"]
        assert data["body"] == {"message": {"body": "disk almost full"}}
        assert data["level"] == "warning"
        assert data["title"] == "disk almost full"

    def test_crash_report(self):
        """Test crash items carry the raw crash text only."""
        self.client.crash_report(Level.CRITICAL, "Exception Type: EXC_CRASH").do()

        data = self.recorder.documents[0]["data"]
        assert data["body"] == {"crash_report": {"raw": "Exception Type: EXC_CRASH"}}
        assert "title" not in data

    def test_timeout_passed_through(self):
        """Test the per-call timeout reaches httpx."""
        self.client.error(ValueError("bad")).do(timeout=2.5)
        assert self.recorder.requests[0].extensions["timeout"]["read"] == 2.5

    def test_concurrent_reports(self):
        """Test one client reporting from several threads at once."""

        def report(i):
            return self.client.error(ValueError(f"error {i}")).do()

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(report, range(32)))

        assert all(r.err == 0 for r in results)
        titles = sorted(d["data"]["title"] for d in self.recorder.documents)
        assert titles == sorted(f"error {i}" for i in range(32))


class TestErrors:
    """Tests for the error taxonomy."""

    def test_missing_token(self):
        """Test a missing token fails before any request is made."""
        recorder = Recorder()
        client = make_client(recorder, access_token=None)

        with pytest.raises(ConfigurationError):
            client.error(ValueError("bad")).do()
        assert recorder.requests == []

    def test_encoding_error(self):
        """Test unserializable custom data fails before any request is made."""
        recorder = Recorder()
        client = make_client(recorder)

        with pytest.raises(EncodingError):
            client.error(ValueError("bad")).custom({"conn": object()}).do()
        assert recorder.requests == []

    def test_http_status(self):
        """Test non-2xx responses raise TransportError with the status."""
        client = make_client(Recorder(status_code=503, content=b"unavailable"))

        with pytest.raises(TransportError) as exc_info:
            client.error(ValueError("bad")).do()
        assert exc_info.value.status_code == 503
        assert exc_info.value.body == "unavailable"

    def test_api_error(self):
        """Test a response with err != 0 raises ApiError."""
        client = make_client(Recorder(content=b'{"err": 1, "message": "invalid access token"}'))

        with pytest.raises(ApiError) as exc_info:
            client.error(ValueError("bad")).do()
        assert exc_info.value.err == 1
        assert "invalid access token" in str(exc_info.value)
        assert isinstance(exc_info.value, TransportError)

    def test_decoding_error(self):
        """Test an unparsable body raises DecodingError, not TransportError."""
        client = make_client(Recorder(content=b"<html>gateway</html>"))

        with pytest.raises(DecodingError):
            client.error(ValueError("bad")).do()

    def test_missing_err_field(self):
        """Test a JSON body that is not a response document."""
        client = make_client(Recorder(content=b'{"result": {}}'))

        with pytest.raises(DecodingError):
            client.error(ValueError("bad")).do()

    def test_network_error(self):
        """Test connection failures surface as TransportError."""

        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = Client(
            Settings(access_token=TEST_TOKEN, endpoint=ENDPOINT, _env_file=None),
            http_client=httpx.Client(transport=httpx.MockTransport(refuse)),
        )

        with pytest.raises(TransportError) as exc_info:
            client.error(ValueError("bad")).do()
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_malformed_endpoint(self):
        """Test an endpoint httpx cannot parse surfaces as TransportError."""
        recorder = Recorder()
        client = make_client(recorder, endpoint="http://[::1")

        with pytest.raises(TransportError) as exc_info:
            client.error(ValueError("bad")).do()
        assert isinstance(exc_info.value.__cause__, httpx.InvalidURL)
        assert recorder.requests == []

    def test_malformed_endpoint_async(self):
        """Test the async path wraps unparsable endpoints the same way."""
        client = make_client(Recorder(), endpoint="http://[::1")

        with pytest.raises(TransportError):
            asyncio.run(client.error(ValueError("bad")).do_async())


class TestDoAsync:
    """Tests for the async send path."""

    def test_do_async(self):
        """Test items can be sent from a coroutine."""
        recorder = Recorder()
        client = make_client(recorder)

        async def handler():
            return await client.error(ValueError("bad")).do_async()

        resp = asyncio.run(handler())

        assert resp.result.uuid == "abc123"
        frames = recorder.documents[0]["data"]["body"]["trace"]["frames"]
        assert frames[0]["method"].endswith("handler")

    def test_do_async_status_error(self):
        """Test async failures propagate like sync ones."""
        client = make_client(Recorder(status_code=429, content=b"slow down"))

        with pytest.raises(TransportError):
            asyncio.run(client.warning(ValueError("bad")).do_async())


class TestDebugLogging:
    """Tests for request/response echo."""

    def test_debug_echo(self):
        """Test bodies are logged at debug level when debug is on."""
        recorder = Recorder()
        with capture_logs() as logs:
            client = Client(
                Settings(access_token=TEST_TOKEN, endpoint=ENDPOINT, debug=True, _env_file=None),
                http_client=httpx.Client(transport=httpx.MockTransport(recorder)),
                logger=structlog.get_logger("test"),
            )
            client.error(ValueError("bad")).do()

        events = [entry["event"] for entry in logs]
        assert "rollbar_request" in events
        assert "rollbar_response" in events
        assert "rollbar_item_sent" in events
        request_log = next(entry for entry in logs if entry["event"] == "rollbar_request")
        assert TEST_TOKEN not in request_log["body"]
        assert orjson.loads(request_log["body"])["access_token"] == TOKEN_MASK

    def test_no_echo_by_default(self):
        """Test bodies are not logged unless debug is on."""
        recorder = Recorder()
        with capture_logs() as logs:
            client = Client(
                Settings(access_token=TEST_TOKEN, endpoint=ENDPOINT, debug=False, _env_file=None),
                http_client=httpx.Client(transport=httpx.MockTransport(recorder)),
                logger=structlog.get_logger("test"),
            )
            client.error(ValueError("bad")).do()

        events = [entry["event"] for entry in logs]
        assert "rollbar_request" not in events
        assert "rollbar_item_sent" in events
