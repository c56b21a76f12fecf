"""Pytest configuration and shared fixtures."""

import json
import os
from typing import Any, Callable, Dict, Iterable, List, Tuple, Union

import httpx
import pytest
import pytest_asyncio

from buddy_sandbox.core import RetryPolicy, SandboxApiClient

API_URL = "https://api.test.local"
WORKSPACE = "acme"
PROJECT = "web"
TOKEN = "test-token-12345"
SANDBOX_ID = "sb-1"

SANDBOXES_PATH = f"/workspaces/{WORKSPACE}/sandboxes"
SANDBOX_PATH = f"{SANDBOXES_PATH}/{SANDBOX_ID}"
JSONL_HEADERS = {"content-type": "application/jsonl"}

Reply = Union[Callable[[httpx.Request], httpx.Response], Tuple[int, Any]]


def command_path(command_id: str) -> str:
    return f"{SANDBOX_PATH}/commands/{command_id}"


def jsonl(*records: Tuple[str, str], trailing_newline: bool = True) -> bytes:
    """Encode (type, data) pairs as a JSONL body."""
    body = "\n".join(json.dumps({"type": t, "data": d}, ensure_ascii=False) for t, d in records)
    if records and trailing_newline:
        body += "\n"
    return body.encode("utf-8")


def sandbox_payload(**overrides) -> Dict[str, Any]:
    payload = {
        "id": SANDBOX_ID,
        "identifier": "build-box",
        "name": "Build box",
        "status": "RUNNING",
        "setup_status": "SUCCESS",
        "os": "ubuntu:24.04",
    }
    payload.update(overrides)
    return payload


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in fixed chunks; records closure."""

    def __init__(self, chunks: Iterable[bytes], error: Exception = None):
        self.chunks = list(chunks)
        self.error = error
        self.chunks_sent = 0
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            self.chunks_sent += 1
            yield chunk
        if self.error is not None:
            raise self.error

    async def aclose(self) -> None:
        self.closed = True


def stream_response(
    stream: ChunkedStream, headers: Dict[str, str] = None, status_code: int = 200
) -> Callable[[httpx.Request], httpx.Response]:
    headers = JSONL_HEADERS if headers is None else headers
    return lambda request: httpx.Response(status_code, headers=headers, stream=stream)


class FakeApi:
    """Route table for ``httpx.MockTransport`` that records every request.

    Each route holds a queue of responses; the last one repeats.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, *responses: Reply) -> "FakeApi":
        self.routes.setdefault((method, path), []).extend(responses)
        return self

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(
                404,
                json={"errors": [{"message": f"No route for {request.method} {request.url.path}"}]},
            )
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            return reply(request)
        status_code, body = reply
        if body is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=body)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest_asyncio.fixture
async def api(fake_api):
    """API client wired to the fake server, with instant retries and polls."""
    client = SandboxApiClient(
        workspace=WORKSPACE,
        project=PROJECT,
        token=TOKEN,
        api_url=API_URL,
        transport=httpx.MockTransport(fake_api),
        retry_policy=RetryPolicy(max_retries=3, min_delay=0, max_delay=0),
        command_poll_interval_ms=1,
        sandbox_poll_interval_ms=1,
        sandbox_wait_timeout_ms=200,
    )
    yield client
    await client.aclose()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove BUDDY_* variables so settings tests start from a blank slate."""
    for key in list(os.environ):
        if key.startswith("BUDDY_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
