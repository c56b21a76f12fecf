"""Async client for the sandbox-management REST API."""

from .config import ConnectionConfig, Region, Settings, resolve_connection
from .core import HttpClient, RetryPolicy, SandboxApiClient
from .models import (
    CommandStatus,
    CommandTimeoutError,
    ConfigurationError,
    FileInfo,
    FinishedCommand,
    LogRecord,
    LogStreamType,
    MalformedLogLineError,
    OperationCancelledError,
    OutputSelector,
    PendingCommand,
    ProtocolMismatchError,
    SandboxCreationError,
    SandboxError,
    SandboxNotFoundError,
    SandboxNotReadyError,
    SandboxSDKError,
    TransportError,
    ValidationError,
)
from .services import Command, FileSystem, LogStream, Sandbox, wait_for_completion
from .utils import get_logger, setup_logging

__version__ = "0.1.0"

__all__ = [
    # Handles
    "Command",
    "FileSystem",
    "LogStream",
    "Sandbox",
    "wait_for_completion",
    # Clients and configuration
    "ConnectionConfig",
    "HttpClient",
    "Region",
    "RetryPolicy",
    "SandboxApiClient",
    "Settings",
    "resolve_connection",
    # Models
    "CommandStatus",
    "FileInfo",
    "FinishedCommand",
    "LogRecord",
    "LogStreamType",
    "OutputSelector",
    "PendingCommand",
    # Errors
    "CommandTimeoutError",
    "ConfigurationError",
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
    # Logging
    "get_logger",
    "setup_logging",
]
