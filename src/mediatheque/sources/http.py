# ABOUTME: HTTP client abstraction shared by every catalog source client.
# ABOUTME: Provides rate limiting, retry with backoff, error bodies, and injectable transport.

import json
import logging
import threading
import time
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

QueryParams = Mapping[str, Any] | Sequence[tuple[str, str]]


class SourceError(Exception):
    """Base class for failures talking to an external catalog."""


class SourceFetchError(SourceError):
    """Raised when a request fails at the transport level or returns non-2xx.

    Carries the HTTP status (None for transport failures) and whatever
    could be parsed from the error body.
    """

    def __init__(self, message: str, *, status: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class SourceParseError(SourceError):
    """Raised when a whole response cannot be parsed."""

    def __init__(self, source: str, detail: str = "") -> None:
        message = f"{source}: parsing failed"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.source = source


class ItemNotFoundError(SourceError):
    """Raised when a single-item lookup returns nothing."""


def build_query(params: Mapping[str, Any] | None) -> list[tuple[str, str]]:
    """Flatten a parameter mapping into query pairs.

    None and empty-string values are dropped. Sequences repeat the key once
    per element. Booleans become "true"/"false".
    """
    pairs: list[tuple[str, str]] = []
    if not params:
        return pairs
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _stringify(v)) for v in value if v is not None and v != "")
        else:
            pairs.append((key, _stringify(value)))
    return pairs


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_error_body(response: httpx.Response) -> Any:
    """Best-effort decode of an error body: JSON first, then text."""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        text = response.text
        return text or None


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for the HTTP operations source clients need."""

    def get_json(
        self,
        url: str,
        params: QueryParams | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any: ...

    def get_text(self, url: str, params: QueryParams | None = None) -> str: ...

    def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
    ) -> Any: ...


class MediathequeHttpClient:
    """HTTP client with rate limiting and retry for catalog API calls.

    Wraps httpx.Client with configurable request intervals and retry logic
    for transient failures (429, 5xx). Thread-safe enough for the fan-out:
    httpx.Client may be shared across threads.
    """

    def __init__(
        self,
        *,
        min_request_interval: float = 0.1,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {
            "headers": {"User-Agent": "mediatheque/0.1.0"},
            "timeout": timeout,
            "follow_redirects": True,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)
        self._min_interval = min_request_interval
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._last_request_time: float = 0.0
        self._rate_lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def get_json(
        self,
        url: str,
        params: QueryParams | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Send a GET request and decode the JSON body.

        Returns None for 204 responses.

        Raises:
            SourceFetchError: On transport errors, non-2xx or exhausted retries.
            SourceParseError: When a 2xx body is not valid JSON.
        """
        response = self._send("GET", url, params=params, headers=headers)
        return self._decode_json(response, url)

    def get_text(self, url: str, params: QueryParams | None = None) -> str:
        """Send a GET request and return the raw body text (XML endpoints)."""
        response = self._send("GET", url, params=params)
        return response.text

    def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Send a POST with a JSON body and decode the JSON response."""
        response = self._send("POST", url, json_body=dict(payload), headers=headers)
        return self._decode_json(response, url)

    @staticmethod
    def _decode_json(response: httpx.Response, url: str) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
            raise SourceParseError(url, str(exc)) from exc

    def _send(
        self,
        method: str,
        url: str,
        *,
        params: QueryParams | None = None,
        headers: Mapping[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send a request with rate limiting and retry on transient statuses."""
        if isinstance(params, Mapping):
            params = build_query(params)

        attempts = 1 + self._max_retries
        response: httpx.Response | None = None
        for attempt in range(attempts):
            self._rate_limit()
            try:
                response = self._client.request(
                    method, url, params=params, headers=headers, json=json_body
                )
            except httpx.HTTPError as exc:
                raise SourceFetchError(f"Request failed: {url}: {exc}") from exc

            if 200 <= response.status_code < 300:
                return response

            if response.status_code not in _RETRYABLE_STATUS_CODES:
                raise SourceFetchError(
                    f"HTTP {response.status_code} from {url}",
                    status=response.status_code,
                    body=_parse_error_body(response),
                )

            if attempt < attempts - 1:
                delay = self._retry_delay * (2**attempt)
                logger.warning(
                    "HTTP %d from %s, retrying in %.1fs (attempt %d/%d)",
                    response.status_code,
                    url,
                    delay,
                    attempt + 1,
                    self._max_retries,
                )
                time.sleep(delay)

        assert response is not None
        raise SourceFetchError(
            f"HTTP {response.status_code} from {url} after {attempts} attempts",
            status=response.status_code,
            body=_parse_error_body(response),
        )

    def _rate_limit(self) -> None:
        """Sleep if needed to maintain minimum interval between requests."""
        if self._min_interval <= 0:
            return
        with self._rate_lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self._min_interval and self._last_request_time > 0:
                time.sleep(self._min_interval - elapsed)
            self._last_request_time = time.monotonic()
