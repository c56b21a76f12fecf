"""Data models for the sandbox client."""

from .command import (
    CommandResponse,
    CommandSnapshot,
    CommandStatus,
    ExecuteCommandRequest,
    FinishedCommand,
    PendingCommand,
    TERMINAL_STATUSES,
    is_terminal_status,
    snapshot_from_response,
)
from .logs import (
    JSONL_ACCEPT_HEADER,
    JSONL_MEDIA_TYPES,
    LogRecord,
    LogStreamType,
    OutputSelector,
)
from .sandbox import (
    CreateSandboxRequest,
    SandboxData,
    SandboxListResponse,
    SandboxStatus,
    SandboxSummary,
    SetupStatus,
)
from .files import ContentItem, ContentListResponse, ContentType, FileInfo
from .errors import (
    CommandTimeoutError,
    ConfigurationError,
    ErrorDetail,
    ErrorResponse,
    ErrorType,
    MalformedLogLineError,
    OperationCancelledError,
    ProtocolMismatchError,
    SandboxCreationError,
    SandboxError,
    SandboxNotFoundError,
    SandboxNotReadyError,
    SandboxSDKError,
    TransportError,
    ValidationError,
)

__all__ = [
    # Command models
    "CommandResponse",
    "CommandSnapshot",
    "CommandStatus",
    "ExecuteCommandRequest",
    "FinishedCommand",
    "PendingCommand",
    "TERMINAL_STATUSES",
    "is_terminal_status",
    "snapshot_from_response",
    # Log models
    "JSONL_ACCEPT_HEADER",
    "JSONL_MEDIA_TYPES",
    "LogRecord",
    "LogStreamType",
    "OutputSelector",
    # Sandbox models
    "CreateSandboxRequest",
    "SandboxData",
    "SandboxListResponse",
    "SandboxStatus",
    "SandboxSummary",
    "SetupStatus",
    # File models
    "ContentItem",
    "ContentListResponse",
    "ContentType",
    "FileInfo",
    # Error models
    "CommandTimeoutError",
    "ConfigurationError",
    "ErrorDetail",
    "ErrorResponse",
    "ErrorType",
    "MalformedLogLineError",
    "OperationCancelledError",
    "ProtocolMismatchError",
    "SandboxCreationError",
    "SandboxError",
    "SandboxNotFoundError",
    "SandboxNotReadyError",
    "SandboxSDKError",
    "TransportError",
    "ValidationError",
]
