"""Sandbox REST API client.

One client is bound to a workspace and a project. Every method is a single
HTTP round trip (plus transport retries); payloads are validated on the way
out and on the way back.
"""

from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Union

import httpx
import structlog

from ..config import (
    API_URLS,
    ConnectionConfig,
    Region,
    ResolvedConnection,
    Settings,
    resolve_connection,
)
from ..models.command import CommandResponse, ExecuteCommandRequest
from ..models.errors import TransportError
from ..models.files import ContentItem, ContentListResponse
from ..models.logs import JSONL_ACCEPT_HEADER, LogRecord
from ..models.sandbox import (
    CreateSandboxRequest,
    SandboxData,
    SandboxListResponse,
    SandboxSummary,
)
from .http_client import HttpClient, RetryPolicy
from .validation import parse_response, validate_request

if TYPE_CHECKING:
    from ..services.log_stream import LogStream

logger = structlog.get_logger(__name__)


class SandboxApiClient(HttpClient):
    """Typed access to the sandbox, command and content endpoints."""

    def __init__(
        self,
        workspace: str,
        project: str,
        token: str,
        api_url: str = API_URLS[Region.US],
        timeout_seconds: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        debug_http: bool = False,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        command_poll_interval_ms: int = 1000,
        sandbox_poll_interval_ms: int = 1000,
        sandbox_wait_timeout_ms: int = 60_000,
    ):
        super().__init__(
            base_url=api_url,
            timeout_seconds=timeout_seconds,
            headers=headers,
            retry_policy=retry_policy,
            debug_http=debug_http,
            transport=transport,
        )
        self.workspace = workspace
        self.project = project
        self.command_poll_interval_ms = command_poll_interval_ms
        self.sandbox_poll_interval_ms = sandbox_poll_interval_ms
        self.sandbox_wait_timeout_ms = sandbox_wait_timeout_ms
        self.set_auth_token(token)

    @classmethod
    def from_resolved(
        cls,
        resolved: ResolvedConnection,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SandboxApiClient":
        return cls(
            workspace=resolved.workspace,
            project=resolved.project,
            token=resolved.token.get_secret_value(),
            api_url=resolved.api_url,
            timeout_seconds=resolved.timeout_seconds,
            retry_policy=RetryPolicy(
                max_retries=resolved.max_retries,
                min_delay=resolved.retry_min_delay_seconds,
                max_delay=resolved.retry_max_delay_seconds,
            ),
            debug_http=resolved.debug_http,
            transport=transport,
            command_poll_interval_ms=resolved.command_poll_interval_ms,
            sandbox_poll_interval_ms=resolved.sandbox_poll_interval_ms,
            sandbox_wait_timeout_ms=resolved.sandbox_wait_timeout_ms,
        )

    @classmethod
    def from_connection(
        cls,
        connection: Optional[ConnectionConfig] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SandboxApiClient":
        """Build a client from explicit overrides and ``BUDDY_*`` settings."""
        return cls.from_resolved(resolve_connection(connection, settings), transport)

    # Paths

    def _sandboxes_path(self) -> str:
        return f"/workspaces/{self.workspace}/sandboxes"

    def _sandbox_path(self, sandbox_id: str) -> str:
        return f"{self._sandboxes_path()}/{sandbox_id}"

    def _command_path(self, sandbox_id: str, command_id: str) -> str:
        return f"{self._sandbox_path(sandbox_id)}/commands/{command_id}"

    def _content_path(self, sandbox_id: str, path: str) -> str:
        return f"{self._sandbox_path(sandbox_id)}/content/{path.lstrip('/')}"

    # Sandboxes

    async def create_sandbox(
        self, request: Union[CreateSandboxRequest, Mapping[str, Any]]
    ) -> SandboxData:
        payload = validate_request(CreateSandboxRequest, request)
        response = await self.post(
            self._sandboxes_path(),
            json=payload.model_dump(),
            params={"project_name": self.project},
        )
        sandbox = parse_response(SandboxData, response)
        logger.info("Sandbox created", sandbox_id=sandbox.id, identifier=sandbox.identifier)
        return sandbox

    async def get_sandbox(self, sandbox_id: str) -> SandboxData:
        response = await self.get(self._sandbox_path(sandbox_id))
        return parse_response(SandboxData, response)

    async def list_sandboxes(self) -> List[SandboxSummary]:
        response = await self.get(
            self._sandboxes_path(), params={"project_name": self.project}
        )
        return parse_response(SandboxListResponse, response).sandboxes

    async def get_sandbox_by_identifier(self, identifier: str) -> Optional[SandboxData]:
        """Look a sandbox up by its identifier; None when there is no match."""
        for summary in await self.list_sandboxes():
            if summary.identifier == identifier:
                return await self.get_sandbox(summary.id)
        return None

    async def start_sandbox(self, sandbox_id: str) -> SandboxData:
        response = await self.post(f"{self._sandbox_path(sandbox_id)}/start")
        return parse_response(SandboxData, response)

    async def stop_sandbox(self, sandbox_id: str) -> SandboxData:
        response = await self.post(f"{self._sandbox_path(sandbox_id)}/stop")
        return parse_response(SandboxData, response)

    async def restart_sandbox(self, sandbox_id: str) -> SandboxData:
        response = await self.post(f"{self._sandbox_path(sandbox_id)}/restart")
        return parse_response(SandboxData, response)

    async def delete_sandbox(self, sandbox_id: str) -> None:
        """Delete a sandbox. Not retried; an already deleted sandbox is ignored."""
        try:
            await self.delete(self._sandbox_path(sandbox_id), skip_retry=True)
        except TransportError as e:
            if e.status_code != 404:
                raise
            logger.debug("Sandbox already deleted", sandbox_id=sandbox_id)
            return
        logger.info("Sandbox deleted", sandbox_id=sandbox_id)

    # Commands

    async def execute_command(
        self,
        sandbox_id: str,
        request: Union[ExecuteCommandRequest, Mapping[str, Any]],
    ) -> CommandResponse:
        payload = validate_request(ExecuteCommandRequest, request)
        response = await self.post(
            f"{self._sandbox_path(sandbox_id)}/commands", json=payload.model_dump()
        )
        command = parse_response(CommandResponse, response)
        logger.debug(
            "Command submitted",
            sandbox_id=sandbox_id,
            command_id=command.id,
            status=command.status,
        )
        return command

    async def get_command(self, sandbox_id: str, command_id: str) -> CommandResponse:
        response = await self.get(self._command_path(sandbox_id, command_id))
        return parse_response(CommandResponse, response)

    async def terminate_command(self, sandbox_id: str, command_id: str) -> None:
        """Request termination. The response body is not inspected."""
        await self.post(f"{self._command_path(sandbox_id, command_id)}/terminate")
        logger.info("Command terminate requested", sandbox_id=sandbox_id, command_id=command_id)

    def stream_command_logs(
        self, sandbox_id: str, command_id: str, follow: bool = True
    ) -> "LogStream":
        """Return an unopened log stream; the request is made on first pull."""
        from ..services.log_stream import LogStream

        path = f"{self._command_path(sandbox_id, command_id)}/logs"

        def opener():
            return self.stream(
                "GET",
                path,
                params={"follow": follow},
                headers={"Accept": JSONL_ACCEPT_HEADER},
            )

        return LogStream(opener, command_id=command_id)

    async def get_command_logs(self, sandbox_id: str, command_id: str) -> List[LogRecord]:
        """Fetch the logs written so far as one buffered response."""
        from ..services.log_stream import check_content_type, decode_log_lines

        async with self.stream(
            "GET",
            f"{self._command_path(sandbox_id, command_id)}/logs",
            params={"follow": False},
            headers={"Accept": JSONL_ACCEPT_HEADER},
        ) as response:
            check_content_type(response)
            body = await response.aread()
        return decode_log_lines(body)

    # Content

    async def list_content(self, sandbox_id: str, path: str) -> List[ContentItem]:
        response = await self.get(self._content_path(sandbox_id, path))
        return parse_response(ContentListResponse, response).contents

    async def create_directory(self, sandbox_id: str, path: str) -> ContentItem:
        response = await self.post(self._content_path(sandbox_id, path))
        return parse_response(ContentItem, response)

    async def delete_content(self, sandbox_id: str, path: str) -> None:
        await self.delete(self._content_path(sandbox_id, path))

    async def download_content(self, sandbox_id: str, path: str) -> bytes:
        response = await self.get(
            f"{self._sandbox_path(sandbox_id)}/download/{path.lstrip('/')}",
            headers={"Accept": "application/octet-stream"},
        )
        return response.content

    async def upload_content(self, sandbox_id: str, path: str, data: bytes) -> None:
        await self.put(
            self._content_path(sandbox_id, path),
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )
