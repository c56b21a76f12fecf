"""Command execution data models."""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CommandStatus(str, Enum):
    """Command lifecycle status reported by the API.

    The server may report other intermediate values; any status that is not
    terminal is treated as still running.
    """

    INPROGRESS = "INPROGRESS"
    SUCCESSFUL = "SUCCESSFUL"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({CommandStatus.SUCCESSFUL.value, CommandStatus.FAILED.value})


def is_terminal_status(status: Optional[str]) -> bool:
    """Return True when no further status transitions can occur."""
    return status in TERMINAL_STATUSES


class ExecuteCommandRequest(BaseModel):
    """Request body for submitting a command."""

    command: str = Field(..., min_length=1, description="Shell command to run")


class CommandResponse(BaseModel):
    """Command resource as returned by submit, poll and terminate endpoints."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, description="Server-assigned command id")
    status: str = Field(..., min_length=1, description="Lifecycle status")
    exit_code: Optional[int] = Field(default=None, description="Process exit code")
    command: Optional[str] = Field(default=None, description="Submitted command")


class PendingCommand(BaseModel):
    """Snapshot of a command that has not reached a terminal status."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pending"] = "pending"
    id: str
    sandbox_id: str
    status: str
    command: Optional[str] = None
    # Unknown until the command finishes; never coerced to 0.
    exit_code: Optional[int] = None


class FinishedCommand(BaseModel):
    """Snapshot of a command in a terminal status."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["finished"] = "finished"
    id: str
    sandbox_id: str
    status: str
    command: Optional[str] = None
    exit_code: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == CommandStatus.SUCCESSFUL.value and self.exit_code == 0


CommandSnapshot = Annotated[
    Union[PendingCommand, FinishedCommand], Field(discriminator="kind")
]


def snapshot_from_response(
    response: CommandResponse, sandbox_id: str
) -> Union[PendingCommand, FinishedCommand]:
    """Build the snapshot variant matching the reported status."""
    if is_terminal_status(response.status):
        return FinishedCommand(
            id=response.id,
            sandbox_id=sandbox_id,
            status=response.status,
            command=response.command,
            exit_code=response.exit_code if response.exit_code is not None else 0,
        )
    return PendingCommand(
        id=response.id,
        sandbox_id=sandbox_id,
        status=response.status,
        command=response.command,
        exit_code=response.exit_code,
    )
