"""Unit tests for the command handle and completion polling."""

import asyncio

import pytest
from pydantic import ValidationError as PydanticValidationError

from buddy_sandbox.models import (
    CommandResponse,
    CommandTimeoutError,
    FinishedCommand,
    OperationCancelledError,
    OutputSelector,
    PendingCommand,
    TransportError,
    ValidationError,
)
from buddy_sandbox.models.command import snapshot_from_response
from buddy_sandbox.services.command import Command, wait_for_completion

from conftest import SANDBOX_ID, SANDBOX_PATH, ChunkedStream, command_path, jsonl, stream_response

CMD_PATH = command_path("cmd-1")
LOGS_PATH = f"{CMD_PATH}/logs"


def pending(**overrides) -> PendingCommand:
    fields = {"id": "cmd-1", "sandbox_id": SANDBOX_ID, "status": "INPROGRESS"}
    fields.update(overrides)
    return PendingCommand(**fields)


def polls(fake_api):
    return fake_api.calls("GET", CMD_PATH)


class TestSnapshots:
    """Tests for the pending/finished representation."""

    def test_finished_without_exit_code_defaults_to_zero(self):
        snapshot = snapshot_from_response(
            CommandResponse(id="cmd-1", status="SUCCESSFUL"), SANDBOX_ID
        )

        assert isinstance(snapshot, FinishedCommand)
        assert snapshot.exit_code == 0
        assert snapshot.succeeded is True

    @pytest.mark.asyncio
    async def test_pending_exit_code_is_unknown(self, api):
        snapshot = snapshot_from_response(
            CommandResponse(id="cmd-1", status="INPROGRESS"), SANDBOX_ID
        )

        assert isinstance(snapshot, PendingCommand)
        assert snapshot.exit_code is None
        assert Command(api, snapshot).exit_code is None
        assert Command(api, snapshot).is_finished is False

    def test_unknown_status_is_pending(self):
        snapshot = snapshot_from_response(
            CommandResponse(id="cmd-1", status="QUEUED"), SANDBOX_ID
        )

        assert isinstance(snapshot, PendingCommand)

    def test_failed_keeps_exit_code(self):
        snapshot = snapshot_from_response(
            CommandResponse(id="cmd-1", status="FAILED", exit_code=2), SANDBOX_ID
        )

        assert snapshot.exit_code == 2
        assert snapshot.succeeded is False

    def test_snapshots_are_immutable(self):
        with pytest.raises(PydanticValidationError):
            pending().status = "SUCCESSFUL"


class TestWaitForCompletion:
    """Tests for the polling state machine."""

    @pytest.mark.asyncio
    async def test_polls_until_terminal(self, api, fake_api):
        fake_api.add(
            "GET",
            CMD_PATH,
            (200, {"id": "cmd-1", "status": "INPROGRESS"}),
            (200, {"id": "cmd-1", "status": "INPROGRESS"}),
            (200, {"id": "cmd-1", "status": "SUCCESSFUL", "exit_code": 0}),
        )

        finished = await wait_for_completion(api, pending(), poll_interval_ms=1)

        assert len(polls(fake_api)) == 3
        assert finished.status == "SUCCESSFUL"
        assert finished.exit_code == 0

    @pytest.mark.asyncio
    async def test_finished_snapshot_needs_no_polls(self, api, fake_api):
        snapshot = FinishedCommand(id="cmd-1", sandbox_id=SANDBOX_ID, status="FAILED", exit_code=3)

        result = await wait_for_completion(api, snapshot)

        assert result == snapshot
        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_intermediate_statuses_are_not_terminal(self, api, fake_api):
        fake_api.add(
            "GET",
            CMD_PATH,
            (200, {"id": "cmd-1", "status": "QUEUED"}),
            (200, {"id": "cmd-1", "status": "FAILED", "exit_code": 1}),
        )

        finished = await wait_for_completion(api, pending(), poll_interval_ms=1)

        assert finished.exit_code == 1
        assert len(polls(fake_api)) == 2

    @pytest.mark.asyncio
    async def test_timeout(self, api, fake_api):
        fake_api.add("GET", CMD_PATH, (200, {"id": "cmd-1", "status": "INPROGRESS"}))

        with pytest.raises(CommandTimeoutError) as exc_info:
            await wait_for_completion(api, pending(), poll_interval_ms=5, timeout=0.05)

        assert exc_info.value.command_id == "cmd-1"
        assert exc_info.value.last_status == "INPROGRESS"

    @pytest.mark.asyncio
    async def test_cancel_before_first_poll(self, api, fake_api):
        event = asyncio.Event()
        event.set()

        with pytest.raises(OperationCancelledError):
            await wait_for_completion(api, pending(), cancel_event=event)

        assert fake_api.requests == []

    @pytest.mark.asyncio
    async def test_cancel_during_pause(self, api, fake_api):
        fake_api.add("GET", CMD_PATH, (200, {"id": "cmd-1", "status": "INPROGRESS"}))
        event = asyncio.Event()
        asyncio.get_running_loop().call_later(0.02, event.set)

        with pytest.raises(OperationCancelledError):
            await asyncio.wait_for(
                wait_for_completion(api, pending(), poll_interval_ms=10_000, cancel_event=event),
                timeout=5,
            )

        assert len(polls(fake_api)) == 1

    @pytest.mark.asyncio
    async def test_poll_failure_propagates(self, api, fake_api):
        fake_api.add("GET", CMD_PATH, (403, {"errors": [{"message": "Forbidden"}]}))

        with pytest.raises(TransportError) as exc_info:
            await wait_for_completion(api, pending(), poll_interval_ms=1)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_poll_response(self, api, fake_api):
        fake_api.add("GET", CMD_PATH, (200, {"status": "SUCCESSFUL"}))

        with pytest.raises(ValidationError) as exc_info:
            await wait_for_completion(api, pending(), poll_interval_ms=1)

        assert exc_info.value.status_code == 200


class TestCommandWait:
    """Tests for Command.wait and refresh."""

    @pytest.mark.asyncio
    async def test_wait_returns_new_handle(self, api, fake_api):
        fake_api.add("GET", CMD_PATH, (200, {"id": "cmd-1", "status": "SUCCESSFUL", "exit_code": 0}))
        command = Command(api, pending())

        finished = await command.wait()

        assert finished is not command
        assert finished.is_finished is True
        assert finished.exit_code == 0
        assert command.is_finished is False
        assert command.status == "INPROGRESS"

    @pytest.mark.asyncio
    async def test_double_wait_is_free(self, api, fake_api):
        fake_api.add("GET", CMD_PATH, (200, {"id": "cmd-1", "status": "SUCCESSFUL", "exit_code": 0}))

        first = await Command(api, pending()).wait()
        count = len(fake_api.requests)
        second = await first.wait()

        assert len(fake_api.requests) == count
        assert second.snapshot == first.snapshot
        assert second.data == first.data

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_data(self, api, fake_api):
        fake_api.add("GET", CMD_PATH, (200, {"id": "cmd-1", "status": "FAILED", "exit_code": 127}))

        finished = await Command(api, pending()).wait()

        assert finished.exit_code == 127
        assert finished.status == "FAILED"

    @pytest.mark.asyncio
    async def test_refresh(self, api, fake_api):
        fake_api.add("GET", CMD_PATH, (200, {"id": "cmd-1", "status": "INPROGRESS", "command": "sleep 5"}))
        command = Command(api, pending())

        refreshed = await command.refresh()

        assert refreshed is not command
        assert refreshed.data["command"] == "sleep 5"
        assert len(polls(fake_api)) == 1


class TestCommandOutput:
    """Tests for collecting output."""

    @pytest.fixture
    def interleaved(self, fake_api):
        body = jsonl(("STDOUT", "A"), ("STDERR", "B"), ("STDOUT", "C"))
        chunks = ChunkedStream([body])
        fake_api.add("GET", LOGS_PATH, stream_response(chunks))
        return chunks

    @pytest.mark.asyncio
    async def test_both_keeps_wire_order(self, api, fake_api, interleaved):
        output = await Command(api, pending()).output()

        assert output == "A\nB\nC\n"
        assert interleaved.closed is True
        assert fake_api.requests[0].url.params["follow"] == "true"

    @pytest.mark.asyncio
    async def test_stdout_selector(self, api, interleaved):
        assert await Command(api, pending()).output(OutputSelector.STDOUT) == "A\nC\n"

    @pytest.mark.asyncio
    async def test_stderr_selector(self, api, interleaved):
        assert await Command(api, pending()).stderr() == "B\n"

    @pytest.mark.asyncio
    async def test_selector_by_name(self, api, interleaved):
        assert await Command(api, pending()).output("STDOUT") == "A\nC\n"

    @pytest.mark.asyncio
    async def test_stdout_shorthand(self, api, interleaved):
        assert await Command(api, pending()).stdout() == "A\nC\n"

    @pytest.mark.asyncio
    async def test_empty_record_keeps_line(self, api, fake_api):
        body = jsonl(("STDOUT", ""), ("STDOUT", "x"))
        fake_api.add("GET", LOGS_PATH, stream_response(ChunkedStream([body])))

        assert await Command(api, pending()).output() == "\nx\n"


class TestKill:
    """Tests for termination."""

    @pytest.mark.asyncio
    async def test_kill_with_empty_body(self, api, fake_api):
        fake_api.add("POST", f"{CMD_PATH}/terminate", (204, None))

        await Command(api, pending()).kill()

        assert len(fake_api.requests) == 1
        assert polls(fake_api) == []

    @pytest.mark.asyncio
    async def test_rejected_kill_is_transport_error(self, api, fake_api):
        fake_api.add("POST", f"{CMD_PATH}/terminate", (409, {"errors": [{"message": "Command already finished"}]}))

        with pytest.raises(TransportError) as exc_info:
            await Command(api, pending()).kill()

        assert exc_info.value.status_code == 409
        assert "Command already finished" in str(exc_info.value)


class TestExitScenario:
    """Submitting ``exit 42`` end to end."""

    @pytest.mark.asyncio
    async def test_exit_42(self, api, fake_api):
        fake_api.add(
            "POST",
            f"{SANDBOX_PATH}/commands",
            (200, {"id": "cmd-1", "status": "INPROGRESS", "command": "exit 42"}),
        )
        fake_api.add(
            "GET",
            CMD_PATH,
            (200, {"id": "cmd-1", "status": "INPROGRESS"}),
            (200, {"id": "cmd-1", "status": "FAILED", "exit_code": 42}),
        )
        fake_api.add("GET", LOGS_PATH, stream_response(ChunkedStream([])))

        response = await api.execute_command(SANDBOX_ID, {"command": "exit 42"})
        command = Command.from_response(api, response, SANDBOX_ID)
        assert command.exit_code is None

        finished = await command.wait()

        assert finished.exit_code == 42
        assert finished.status == "FAILED"
        assert await finished.output() == ""
