"""HTTP transport, payload validation and the REST API client."""

from .http_client import HttpClient, HttpResponse, RetryPolicy, transport_error_from_httpx
from .validation import parse_response, validate_request
from .api_client import SandboxApiClient

__all__ = [
    "HttpClient",
    "HttpResponse",
    "RetryPolicy",
    "SandboxApiClient",
    "parse_response",
    "transport_error_from_httpx",
    "validate_request",
]
