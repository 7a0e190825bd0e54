# ABOUTME: Unit tests for the HTTP client abstraction.
# ABOUTME: Tests the HttpClient protocol, MediathequeHttpClient retries, rate limiting, and error handling.

import time
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest

from mediatheque.sources.http import (
    HttpClient,
    MediathequeHttpClient,
    SourceFetchError,
    SourceParseError,
    build_query,
)


class FakeTransport(httpx.BaseTransport):
    """Fake transport for httpx that returns canned responses."""

    def __init__(self, responses: list[httpx.Response | Exception] | None = None) -> None:
        self._responses = list(responses or [])
        self.requests: list[httpx.Request] = []

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._responses:
            response = self._responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return httpx.Response(200, json={"ok": True})

    @property
    def call_count(self) -> int:
        return len(self.requests)


def _client(transport: FakeTransport, **kwargs) -> MediathequeHttpClient:
    kwargs.setdefault("min_request_interval", 0.0)
    kwargs.setdefault("retry_delay", 0.0)
    return MediathequeHttpClient(transport=transport, **kwargs)


class TestHttpClientProtocol:
    """Tests for HttpClient protocol compliance."""

    def test_mediatheque_client_satisfies_protocol(self) -> None:
        """MediathequeHttpClient satisfies the HttpClient protocol."""
        client = MediathequeHttpClient(min_request_interval=0.0)
        assert isinstance(client, HttpClient)


class TestBuildQuery:
    def test_drops_none_and_empty_values(self) -> None:
        assert build_query({"q": "dune", "key": None, "lang": ""}) == [("q", "dune")]

    def test_sequences_repeat_the_key(self) -> None:
        """A list value becomes one pair per element."""
        assert build_query({"embed[]": ["nextepisode", "previousepisode"]}) == [
            ("embed[]", "nextepisode"),
            ("embed[]", "previousepisode"),
        ]

    def test_booleans_are_lowercase(self) -> None:
        assert build_query({"include_adult": False}) == [("include_adult", "false")]

    def test_empty_mapping(self) -> None:
        assert build_query(None) == []


class TestMediathequeHttpClient:
    """Tests for MediathequeHttpClient concrete class."""

    def test_get_json_returns_parsed_body(self) -> None:
        transport = FakeTransport()
        client = _client(transport)
        assert client.get_json("https://example.com/api", params={"q": "test"}) == {"ok": True}
        assert transport.requests[0].url.params["q"] == "test"

    def test_none_params_are_not_sent(self) -> None:
        """Mapping params go through build_query before sending."""
        transport = FakeTransport()
        client = _client(transport)
        client.get_json("https://example.com/api", params={"q": "x", "key": None})
        assert "key" not in transport.requests[0].url.params

    def test_user_agent_header(self) -> None:
        """Requests include the mediatheque User-Agent header."""
        client = _client(FakeTransport())
        assert "mediatheque/" in client._client.headers["user-agent"]

    def test_extra_headers_are_sent(self) -> None:
        transport = FakeTransport()
        client = _client(transport)
        client.get_json("https://example.com/api", headers={"Authorization": "Bearer abc"})
        assert transport.requests[0].headers["authorization"] == "Bearer abc"

    def test_no_content_returns_none(self) -> None:
        """A 204 response decodes to None instead of failing."""
        client = _client(FakeTransport([httpx.Response(204)]))
        assert client.get_json("https://example.com/api") is None

    def test_invalid_json_raises_parse_error(self) -> None:
        client = _client(FakeTransport([httpx.Response(200, text="<html>oops</html>")]))
        with pytest.raises(SourceParseError):
            client.get_json("https://example.com/api")

    def test_get_text_returns_raw_body(self) -> None:
        client = _client(FakeTransport([httpx.Response(200, text="<xml/>")]))
        assert client.get_text("https://example.com/sru") == "<xml/>"

    def test_post_json_sends_payload(self) -> None:
        transport = FakeTransport([httpx.Response(200, json={"choices": []})])
        client = _client(transport)
        result = client.post_json("https://example.com/chat", {"model": "m"})
        assert result == {"choices": []}
        request = transport.requests[0]
        assert request.method == "POST"
        assert b'"model"' in request.content

    def test_rate_limiting_delays_requests(self) -> None:
        """Consecutive requests are delayed by min_request_interval."""
        transport = FakeTransport()
        interval = 0.15
        client = _client(transport, min_request_interval=interval)

        start = time.monotonic()
        client.get_json("https://example.com/1")
        client.get_json("https://example.com/2")
        elapsed = time.monotonic() - start

        assert elapsed >= interval
        assert transport.call_count == 2

    def test_rate_limiting_holds_across_threads(self) -> None:
        """Requests sharing one client from several threads are still spaced out."""
        transport = FakeTransport()
        interval = 0.1
        client = _client(transport, min_request_interval=interval)

        start = time.monotonic()
        with ThreadPoolExecutor(max_workers=3) as executor:
            list(executor.map(client.get_json, [f"https://example.com/{n}" for n in range(3)]))
        elapsed = time.monotonic() - start

        assert elapsed >= 2 * interval
        assert transport.call_count == 3

    def test_http_error_raises_fetch_error_with_body(self) -> None:
        """Non-retryable HTTP errors carry their status and decoded body."""
        transport = FakeTransport([httpx.Response(404, json={"status_message": "not found"})])
        client = _client(transport)

        with pytest.raises(SourceFetchError, match="404") as excinfo:
            client.get_json("https://example.com/missing")

        assert excinfo.value.status == 404
        assert excinfo.value.body == {"status_message": "not found"}
        assert transport.call_count == 1

    def test_text_error_body_is_kept(self) -> None:
        transport = FakeTransport([httpx.Response(400, text="bad query")])
        client = _client(transport)
        with pytest.raises(SourceFetchError) as excinfo:
            client.get_text("https://example.com/sru")
        assert excinfo.value.body == "bad query"

    def test_retries_transient_status_then_succeeds(self) -> None:
        """A 503 is retried and the next success is returned."""
        transport = FakeTransport(
            [httpx.Response(503), httpx.Response(429), httpx.Response(200, json={"ok": 1})]
        )
        client = _client(transport, max_retries=3)
        assert client.get_json("https://example.com/flaky") == {"ok": 1}
        assert transport.call_count == 3

    def test_exhausted_retries_raise(self) -> None:
        transport = FakeTransport([httpx.Response(500)] * 3)
        client = _client(transport, max_retries=2)

        with pytest.raises(SourceFetchError, match="after 3 attempts") as excinfo:
            client.get_json("https://example.com/down")

        assert excinfo.value.status == 500
        assert transport.call_count == 3

    def test_transport_error_raises_fetch_error(self) -> None:
        """Connection failures surface as SourceFetchError without a status."""
        transport = FakeTransport([httpx.ConnectError("connection refused")])
        client = _client(transport)

        with pytest.raises(SourceFetchError, match="Request failed") as excinfo:
            client.get_json("https://example.com/api")

        assert excinfo.value.status is None
