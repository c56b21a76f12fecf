"""Command log data models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# Media types accepted for streamed command logs.
JSONL_MEDIA_TYPES = frozenset(
    {
        "application/jsonl",
        "application/x-ndjson",
        "application/x-jsonlines",
        "application/jsonlines",
    }
)

JSONL_ACCEPT_HEADER = "application/jsonl"


class LogStreamType(str, Enum):
    """Output stream a log record was written to."""

    STDOUT = "STDOUT"
    STDERR = "STDERR"


class OutputSelector(str, Enum):
    """Which streams to collect when reading command output."""

    STDOUT = "STDOUT"
    STDERR = "STDERR"
    BOTH = "BOTH"

    def matches(self, stream_type: LogStreamType) -> bool:
        return self is OutputSelector.BOTH or self.value == stream_type.value


class LogRecord(BaseModel):
    """One line of command output as sent by the server."""

    model_config = ConfigDict(frozen=True)

    type: LogStreamType = Field(..., description="STDOUT or STDERR")
    data: str = Field(..., description="Line text without the trailing newline")

    @property
    def stream(self) -> str:
        """Lower-case stream name, ``stdout`` or ``stderr``."""
        return self.type.value.lower()
