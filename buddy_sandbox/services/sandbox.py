"""Sandbox lifecycle handle."""

import asyncio
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Set, TextIO, Union

import structlog

from ..config import ConnectionConfig
from ..core.api_client import SandboxApiClient
from ..core.validation import validate_request
from ..models.errors import (
    SandboxCreationError,
    SandboxError,
    SandboxNotFoundError,
    SandboxNotReadyError,
    TransportError,
)
from ..models.logs import LogStreamType
from ..models.sandbox import (
    DEFAULT_OS,
    CreateSandboxRequest,
    SandboxData,
    SandboxStatus,
    SandboxSummary,
    SetupStatus,
)
from .command import Command
from .filesystem import FileSystem

logger = structlog.get_logger(__name__)

_CONSTRUCTOR_KEY = object()


def _default_create_params() -> dict:
    now = datetime.now(timezone.utc)
    return {
        "name": f"Sandbox {now.isoformat()}",
        "identifier": f"sandbox_{int(now.timestamp() * 1000)}",
        "os": DEFAULT_OS,
    }


class Sandbox:
    """
    A remote sandbox.

    Instances come from :meth:`create`, :meth:`get`, :meth:`get_by_id` or
    :meth:`list`; the constructor is not public.

    Usage:
        sandbox = await Sandbox.create({"identifier": "build-box"})
        command = await sandbox.run_command("make test", stdout=sys.stdout)
        print(command.exit_code)
    """

    def __init__(self, data: SandboxData, api: SandboxApiClient, _key: object = None):
        if _key is not _CONSTRUCTOR_KEY:
            raise SandboxError(
                "Cannot construct Sandbox directly. Use Sandbox.create(), "
                "Sandbox.get(), Sandbox.get_by_id() or Sandbox.list()"
            )
        self._data = data
        self._api = api
        self._fs: Optional[FileSystem] = None
        self._log_pumps: Set[asyncio.Task] = set()

    def __repr__(self) -> str:
        return f"Sandbox(id={self.id!r}, identifier={self.identifier!r}, status={self.status!r})"

    # Construction

    @classmethod
    async def create(
        cls,
        request: Optional[Union[CreateSandboxRequest, Mapping[str, Any]]] = None,
        connection: Optional[ConnectionConfig] = None,
        api: Optional[SandboxApiClient] = None,
    ) -> "Sandbox":
        """
        Create a sandbox and wait until its setup has finished.

        When ``request`` names an identifier that already exists, that sandbox
        is returned instead. Missing fields get a timestamped name and
        identifier and the default OS image.

        Raises:
            SandboxCreationError: the API rejected the creation request
            SandboxNotReadyError: setup failed
        """
        client = api or SandboxApiClient.from_connection(connection)

        if isinstance(request, CreateSandboxRequest):
            payload = request
            explicit_identifier = True
        else:
            overrides = {k: v for k, v in (request or {}).items() if v is not None}
            explicit_identifier = bool(overrides.get("identifier"))
            payload = validate_request(
                CreateSandboxRequest, {**_default_create_params(), **overrides}
            )

        if explicit_identifier:
            existing = await client.get_sandbox_by_identifier(payload.identifier)
            if existing is not None:
                logger.debug("Found existing sandbox", identifier=payload.identifier)
                return cls(existing, client, _CONSTRUCTOR_KEY)

        try:
            data = await client.create_sandbox(payload)
        except TransportError as e:
            raise SandboxCreationError("Failed to create sandbox", e) from e

        sandbox = cls(data, client, _CONSTRUCTOR_KEY)
        logger.debug("Waiting for sandbox to be ready", sandbox_id=sandbox.id)
        await sandbox.wait_until_ready()
        logger.info(
            "Sandbox ready",
            sandbox_id=sandbox.id,
            identifier=sandbox.identifier,
            setup_status=sandbox.setup_status,
        )
        return sandbox

    @classmethod
    async def get(
        cls,
        identifier: str,
        connection: Optional[ConnectionConfig] = None,
        api: Optional[SandboxApiClient] = None,
    ) -> "Sandbox":
        """Get a sandbox by identifier.

        Raises:
            SandboxNotFoundError: no sandbox has that identifier
        """
        client = api or SandboxApiClient.from_connection(connection)
        data = await client.get_sandbox_by_identifier(identifier)
        if data is None:
            raise SandboxNotFoundError(identifier)
        return cls(data, client, _CONSTRUCTOR_KEY)

    @classmethod
    async def get_by_id(
        cls,
        sandbox_id: str,
        connection: Optional[ConnectionConfig] = None,
        api: Optional[SandboxApiClient] = None,
    ) -> "Sandbox":
        client = api or SandboxApiClient.from_connection(connection)
        try:
            data = await client.get_sandbox(sandbox_id)
        except TransportError as e:
            if e.status_code == 404:
                raise SandboxNotFoundError(sandbox_id) from e
            raise
        return cls(data, client, _CONSTRUCTOR_KEY)

    @classmethod
    async def list(
        cls,
        connection: Optional[ConnectionConfig] = None,
        api: Optional[SandboxApiClient] = None,
        simple: bool = False,
    ) -> Union[List["Sandbox"], List[SandboxSummary]]:
        """List the project's sandboxes.

        With ``simple`` the list entries are returned as is; otherwise the
        full resource of every sandbox is fetched.
        """
        client = api or SandboxApiClient.from_connection(connection)
        summaries = await client.list_sandboxes()
        if simple:
            return summaries
        details = await asyncio.gather(
            *(client.get_sandbox(summary.id) for summary in summaries)
        )
        return [cls(data, client, _CONSTRUCTOR_KEY) for data in details]

    # Properties

    @property
    def id(self) -> str:
        return self._data.id

    @property
    def identifier(self) -> str:
        return self._data.identifier

    @property
    def name(self) -> str:
        return self._data.name

    @property
    def status(self) -> str:
        return self._data.status

    @property
    def setup_status(self) -> Optional[str]:
        return self._data.setup_status

    @property
    def data(self) -> SandboxData:
        return self._data

    @property
    def api(self) -> SandboxApiClient:
        return self._api

    @property
    def fs(self) -> FileSystem:
        if self._fs is None:
            self._fs = FileSystem(self._api, self.id)
        return self._fs

    # Commands

    async def run_command(
        self,
        command: str,
        detached: bool = False,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> Command:
        """
        Run a shell command in the sandbox.

        Args:
            command: Command line to run
            detached: Return as soon as the command is submitted
            stdout: Writer receiving STDOUT lines while the command runs
            stderr: Writer receiving STDERR lines while the command runs

        Returns:
            The pending handle when detached, otherwise the finished handle
        """
        logger.debug("Executing command", sandbox_id=self.id, command=command)
        response = await self._api.execute_command(self.id, {"command": command})
        handle = Command.from_response(self._api, response, self.id)

        pump = None
        if stdout is not None or stderr is not None:
            pump = asyncio.create_task(self._pump_logs(handle, stdout, stderr))

        if detached:
            if pump is not None:
                self._log_pumps.add(pump)
                pump.add_done_callback(self._on_pump_done)
            return handle

        try:
            finished = await handle.wait()
            if pump is not None:
                await pump
        except BaseException:
            if pump is not None:
                pump.cancel()
                await asyncio.gather(pump, return_exceptions=True)
            raise
        return finished

    @staticmethod
    async def _pump_logs(
        command: Command, stdout: Optional[TextIO], stderr: Optional[TextIO]
    ) -> None:
        async with command.logs(follow=True) as stream:
            async for record in stream:
                writer = stdout if record.type is LogStreamType.STDOUT else stderr
                if writer is not None:
                    writer.write(record.data + "\n")

    def _on_pump_done(self, task: asyncio.Task) -> None:
        self._log_pumps.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Log streaming failed",
                sandbox_id=self.id,
                error=str(task.exception()),
            )

    # Lifecycle

    async def refresh(self) -> None:
        self._data = await self._api.get_sandbox(self.id)

    async def get_status(self) -> str:
        data = await self._api.get_sandbox(self.id)
        return data.status

    def _interval(self, poll_interval_ms: Optional[int]) -> float:
        if poll_interval_ms is None:
            poll_interval_ms = self._api.sandbox_poll_interval_ms
        return poll_interval_ms / 1000

    async def wait_until_ready(self, poll_interval_ms: Optional[int] = None) -> None:
        """Wait until the first-boot setup has finished.

        Raises:
            SandboxNotReadyError: setup failed
        """
        interval = self._interval(poll_interval_ms)
        while True:
            await self.refresh()
            if self.setup_status == SetupStatus.SUCCESS.value:
                return
            if self.setup_status == SetupStatus.FAILED.value:
                raise SandboxNotReadyError(self.id, self.setup_status)
            await asyncio.sleep(interval)

    async def _wait_for_status(
        self,
        target: SandboxStatus,
        poll_interval_ms: Optional[int],
        max_wait_ms: Optional[int],
    ) -> None:
        interval = self._interval(poll_interval_ms)
        if max_wait_ms is None:
            max_wait_ms = self._api.sandbox_wait_timeout_ms
        max_wait = max_wait_ms / 1000
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max_wait

        while True:
            await self.refresh()
            if self.status == target.value:
                return
            if self.status == SandboxStatus.FAILED.value:
                raise SandboxNotReadyError(self.id, self.status)
            if loop.time() >= deadline:
                raise SandboxNotReadyError(
                    self.id,
                    f"Timeout waiting for {target.value} status. Current: {self.status}",
                )
            await asyncio.sleep(interval)

    async def wait_until_running(
        self, poll_interval_ms: Optional[int] = None, max_wait_ms: Optional[int] = None
    ) -> None:
        await self._wait_for_status(SandboxStatus.RUNNING, poll_interval_ms, max_wait_ms)

    async def wait_until_stopped(
        self, poll_interval_ms: Optional[int] = None, max_wait_ms: Optional[int] = None
    ) -> None:
        await self._wait_for_status(SandboxStatus.STOPPED, poll_interval_ms, max_wait_ms)

    async def start(self) -> None:
        logger.debug("Starting sandbox", sandbox_id=self.id)
        self._data = await self._api.start_sandbox(self.id)
        await self.wait_until_running()
        logger.info("Sandbox running", sandbox_id=self.id)

    async def stop(self) -> None:
        logger.debug("Stopping sandbox", sandbox_id=self.id)
        self._data = await self._api.stop_sandbox(self.id)
        await self.wait_until_stopped()
        logger.info("Sandbox stopped", sandbox_id=self.id)

    async def restart(self) -> None:
        logger.debug("Restarting sandbox", sandbox_id=self.id)
        self._data = await self._api.restart_sandbox(self.id)
        await self.wait_until_running()
        await self.wait_until_ready()
        logger.info("Sandbox restarted", sandbox_id=self.id, setup_status=self.setup_status)

    async def destroy(self) -> None:
        """Delete the sandbox permanently."""
        await self._api.delete_sandbox(self.id)

    async def close(self) -> None:
        """Cancel background log pumps and close the HTTP client."""
        for task in list(self._log_pumps):
            task.cancel()
        if self._log_pumps:
            await asyncio.gather(*self._log_pumps, return_exceptions=True)
        await self._api.aclose()

    async def __aenter__(self) -> "Sandbox":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
