"""Command handle and completion polling.

A :class:`Command` wraps one immutable snapshot. Operations that observe a
newer server state (``wait``, ``refresh``) return a new handle instead of
mutating the existing one.
"""

import asyncio
from typing import Any, Dict, Optional, Union

import structlog

from ..core.api_client import SandboxApiClient
from ..models.command import (
    CommandResponse,
    CommandSnapshot,
    FinishedCommand,
    PendingCommand,
    snapshot_from_response,
)
from ..models.errors import CommandTimeoutError, OperationCancelledError
from ..models.logs import OutputSelector
from .log_stream import LogStream

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL_MS = 1000


async def _pause(
    seconds: float, cancel_event: Optional[asyncio.Event], operation: str
) -> None:
    """Sleep between polls, waking early when ``cancel_event`` is set."""
    if cancel_event is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return
    raise OperationCancelledError(operation)


async def wait_for_completion(
    api: SandboxApiClient,
    snapshot: Union[PendingCommand, FinishedCommand],
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    timeout: Optional[float] = None,
    cancel_event: Optional[asyncio.Event] = None,
) -> FinishedCommand:
    """
    Poll a command until the server reports a terminal status.

    A finished snapshot is returned as is, without any request. Each poll is
    one GET of the command resource; polls are ``poll_interval_ms`` apart.

    Args:
        api: Client used for polling
        snapshot: Pending or finished command
        poll_interval_ms: Delay between polls
        timeout: Optional deadline in seconds; None waits indefinitely
        cancel_event: Optional event that aborts the wait when set

    Returns:
        Snapshot carrying the terminal status and exit code

    Raises:
        CommandTimeoutError: ``timeout`` elapsed before a terminal status
        OperationCancelledError: ``cancel_event`` was set
        TransportError: a poll request failed
    """
    if isinstance(snapshot, FinishedCommand):
        return snapshot

    operation = f"Waiting for command {snapshot.id}"
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout if timeout is not None else None
    interval = poll_interval_ms / 1000
    polls = 0
    current: CommandSnapshot = snapshot

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(operation)

        response = await api.get_command(snapshot.sandbox_id, snapshot.id)
        polls += 1
        current = snapshot_from_response(response, snapshot.sandbox_id)

        if isinstance(current, FinishedCommand):
            logger.info(
                "Command finished",
                command_id=current.id,
                sandbox_id=current.sandbox_id,
                status=current.status,
                exit_code=current.exit_code,
                polls=polls,
            )
            return current

        delay = interval
        if deadline is not None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise CommandTimeoutError(snapshot.id, timeout, current.status)
            delay = min(delay, remaining)

        logger.debug(
            "Command still running",
            command_id=current.id,
            status=current.status,
            polls=polls,
        )
        await _pause(delay, cancel_event, operation)


class Command:
    """Handle over one command snapshot."""

    def __init__(self, api: SandboxApiClient, snapshot: CommandSnapshot):
        self._api = api
        self._snapshot = snapshot

    @classmethod
    def from_response(
        cls, api: SandboxApiClient, response: CommandResponse, sandbox_id: str
    ) -> "Command":
        return cls(api, snapshot_from_response(response, sandbox_id))

    def __repr__(self) -> str:
        return (
            f"Command(id={self.id!r}, status={self.status!r}, "
            f"exit_code={self.exit_code!r})"
        )

    @property
    def id(self) -> str:
        return self._snapshot.id

    @property
    def sandbox_id(self) -> str:
        return self._snapshot.sandbox_id

    @property
    def status(self) -> str:
        return self._snapshot.status

    @property
    def snapshot(self) -> CommandSnapshot:
        return self._snapshot

    @property
    def data(self) -> Dict[str, Any]:
        """Snapshot fields as a plain dict."""
        return self._snapshot.model_dump(exclude={"kind"})

    @property
    def is_finished(self) -> bool:
        return isinstance(self._snapshot, FinishedCommand)

    @property
    def exit_code(self) -> Optional[int]:
        """Exit code; None while the command has not finished."""
        if isinstance(self._snapshot, FinishedCommand):
            return self._snapshot.exit_code
        return None

    def logs(self, follow: bool = True) -> LogStream:
        """Open a stream over the command's output records.

        With ``follow`` the server keeps the stream open until the command
        finishes; otherwise it returns the output written so far.
        """
        return self._api.stream_command_logs(self.sandbox_id, self.id, follow=follow)

    async def output(
        self, selector: Union[OutputSelector, str] = OutputSelector.BOTH
    ) -> str:
        """Collect the command output, blocking until the stream ends.

        Each matching record contributes its data followed by a newline, in
        the order the server sent them.
        """
        selector = OutputSelector(selector)
        parts = []
        async with self.logs(follow=True) as stream:
            async for record in stream:
                if selector.matches(record.type):
                    parts.append(record.data + "\n")
        return "".join(parts)

    async def stdout(self) -> str:
        return await self.output(OutputSelector.STDOUT)

    async def stderr(self) -> str:
        return await self.output(OutputSelector.STDERR)

    async def wait(
        self,
        poll_interval_ms: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> "Command":
        """Wait for a terminal status and return a handle over it.

        A non-zero exit code is not an error; inspect ``exit_code``.
        """
        interval = (
            poll_interval_ms
            if poll_interval_ms is not None
            else self._api.command_poll_interval_ms
        )
        finished = await wait_for_completion(
            self._api,
            self._snapshot,
            poll_interval_ms=interval,
            timeout=timeout,
            cancel_event=cancel_event,
        )
        return Command(self._api, finished)

    async def refresh(self) -> "Command":
        """Poll once and return a handle over the current state."""
        response = await self._api.get_command(self.sandbox_id, self.id)
        return Command.from_response(self._api, response, self.sandbox_id)

    async def kill(self) -> None:
        """Ask the server to terminate the command. Does not wait for it."""
        await self._api.terminate_command(self.sandbox_id, self.id)
