"""Async HTTP transport for the sandbox API.

Wraps a single ``httpx.AsyncClient`` with default headers, bearer
authentication, structured error raising and retry of transient failures.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Mapping, Optional, TypeVar

import httpx
import structlog

from ..models.errors import TransportError, details_from_server_errors

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for transient failures (5xx, 429, network)."""

    max_retries: int = 3
    min_delay: float = 1.0
    max_delay: float = 10.0
    factor: float = 2.0

    def backoff(self, attempt: int) -> float:
        """Delay in seconds before retry number ``attempt`` (1-based)."""
        delay = self.min_delay * (self.factor ** max(attempt - 1, 0))
        return min(delay, self.max_delay)


@dataclass
class HttpResponse:
    """Fully buffered HTTP response."""

    status_code: int
    reason: str
    headers: httpx.Headers
    data: Any
    content: bytes

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


def transport_error_from_httpx(error: httpx.HTTPError) -> TransportError:
    """Convert a network-level httpx failure into a TransportError."""
    if isinstance(error, httpx.TimeoutException):
        return TransportError("Request timeout")
    return TransportError(str(error) or type(error).__name__)


def _is_json_media_type(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


class HttpClient:
    """Base HTTP client with retry, timeout and authentication support."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 30.0,
        headers: Optional[Mapping[str, str]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        debug_http: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the HTTP client.

        Args:
            base_url: URL prepended to every request path
            timeout_seconds: Per-request timeout
            headers: Headers sent with every request, merged over the defaults
            retry_policy: Backoff settings for transient failures
            debug_http: Log request and response bodies at debug level
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self.debug_http = debug_http

        self._default_headers: Dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if headers:
            self._default_headers.update(headers)
        self._auth_token: Optional[str] = None

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout=float(timeout_seconds)),
            transport=transport,
        )

    def set_auth_token(self, token: str) -> None:
        """Set the bearer token sent with every request."""
        self._auth_token = token

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _build_headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers = dict(self._default_headers)
        if extra:
            headers.update(extra)
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"
        return headers

    @staticmethod
    def _build_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
        query: Dict[str, str] = {}
        for key, value in (params or {}).items():
            if value is None:
                continue
            if isinstance(value, bool):
                query[key] = "true" if value else "false"
            else:
                query[key] = str(value)
        return query

    @staticmethod
    def _redact(headers: Mapping[str, str]) -> Dict[str, str]:
        return {
            key: "***" if key.lower() == "authorization" else value
            for key, value in headers.items()
        }

    @staticmethod
    def _to_http_response(response: httpx.Response) -> HttpResponse:
        content = response.content
        data = None
        if content.strip() and _is_json_media_type(response.headers.get("content-type")):
            try:
                data = response.json()
            except ValueError:
                data = None
        return HttpResponse(
            status_code=response.status_code,
            reason=response.reason_phrase,
            headers=response.headers,
            data=data,
            content=content,
        )

    @staticmethod
    def _error_from_response(response: HttpResponse) -> TransportError:
        errors = response.data.get("errors") if isinstance(response.data, dict) else None
        return TransportError(
            response.reason or "Request failed",
            status_code=response.status_code,
            details=details_from_server_errors(errors),
        )

    async def _with_retry(
        self,
        send: Callable[[], Awaitable[T]],
        method: str,
        path: str,
        skip_retry: bool = False,
    ) -> T:
        """Run ``send`` and retry it while it fails with a retryable error."""
        attempt = 0
        while True:
            try:
                return await send()
            except TransportError as e:
                if skip_retry or not e.retryable or attempt >= self.retry_policy.max_retries:
                    raise
                attempt += 1
                delay = self.retry_policy.backoff(attempt)
                logger.warning(
                    "HTTP request failed, retrying",
                    method=method,
                    path=path,
                    status_code=e.status_code,
                    error=e.reason,
                    attempt=attempt,
                    delay_seconds=delay,
                )
                await asyncio.sleep(delay)

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        skip_retry: bool = False,
    ) -> HttpResponse:
        """
        Send a request and buffer the whole response.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            json: JSON body
            params: Query parameters; ``None`` values are dropped
            headers: Extra headers for this request only
            content: Raw body, used instead of ``json``
            skip_retry: Disable retry of transient failures for this call

        Returns:
            The buffered response

        Raises:
            TransportError: Non-2xx status or network failure
        """
        query = self._build_params(params)
        request_headers = self._build_headers(headers)

        async def send() -> HttpResponse:
            if self.debug_http:
                logger.debug(
                    "HTTP request",
                    method=method,
                    path=path,
                    params=query,
                    headers=self._redact(request_headers),
                    body=json,
                )
            try:
                response = await self.client.request(
                    method,
                    path,
                    json=json,
                    content=content,
                    params=query,
                    headers=request_headers,
                )
            except httpx.HTTPError as e:
                raise transport_error_from_httpx(e) from e

            result = self._to_http_response(response)
            if self.debug_http:
                logger.debug(
                    "HTTP response",
                    status_code=result.status_code,
                    body=result.data if result.data is not None else result.text,
                )
            if not response.is_success:
                raise self._error_from_response(result)
            return result

        return await self._with_retry(send, method, path, skip_retry)

    async def get(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        skip_retry: bool = False,
    ) -> HttpResponse:
        return await self.request(
            "GET", path, params=params, headers=headers, skip_retry=skip_retry
        )

    async def post(
        self,
        path: str,
        json: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        skip_retry: bool = False,
    ) -> HttpResponse:
        """POST a JSON body; an empty object is sent when none is given."""
        return await self.request(
            "POST",
            path,
            json=json if json is not None else {},
            params=params,
            headers=headers,
            skip_retry=skip_retry,
        )

    async def put(
        self,
        path: str,
        json: Any = None,
        content: Optional[bytes] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        skip_retry: bool = False,
    ) -> HttpResponse:
        return await self.request(
            "PUT",
            path,
            json=json,
            content=content,
            params=params,
            headers=headers,
            skip_retry=skip_retry,
        )

    async def delete(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        skip_retry: bool = False,
    ) -> HttpResponse:
        return await self.request(
            "DELETE", path, params=params, headers=headers, skip_retry=skip_retry
        )

    @asynccontextmanager
    async def stream(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        skip_retry: bool = False,
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a streamed response for incremental reading.

        The yielded response body has not been read. Error responses are read,
        closed and raised as TransportError before anything is yielded. The
        connection is released when the context exits.
        """
        query = self._build_params(params)
        request_headers = self._build_headers(headers)

        async def open_stream() -> httpx.Response:
            if self.debug_http:
                logger.debug(
                    "HTTP stream request",
                    method=method,
                    path=path,
                    params=query,
                    headers=self._redact(request_headers),
                )
            request = self.client.build_request(
                method, path, params=query, headers=request_headers
            )
            try:
                response = await self.client.send(request, stream=True)
                if not response.is_success:
                    try:
                        await response.aread()
                    finally:
                        await response.aclose()
            except httpx.HTTPError as e:
                raise transport_error_from_httpx(e) from e

            if not response.is_success:
                raise self._error_from_response(self._to_http_response(response))
            if self.debug_http:
                logger.debug(
                    "HTTP stream opened",
                    status_code=response.status_code,
                    content_type=response.headers.get("content-type"),
                )
            return response

        response = await self._with_retry(open_stream, method, path, skip_retry)
        try:
            yield response
        finally:
            await response.aclose()
