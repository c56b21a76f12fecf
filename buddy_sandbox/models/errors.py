"""Error models and exception classes for the sandbox client."""

import time
from enum import Enum
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    """Error type enumeration."""

    TRANSPORT = "transport"
    PROTOCOL_MISMATCH = "protocol_mismatch"
    MALFORMED_LOG_LINE = "malformed_log_line"
    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    RESOURCE_NOT_FOUND = "resource_not_found"
    SANDBOX = "sandbox"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: Optional[str] = Field(None, description="Field name for validation errors")
    message: str = Field(..., description="Human-readable error message")
    code: Optional[str] = Field(None, description="Machine-readable error code")


class ErrorResponse(BaseModel):
    """Serializable view of a client-side error."""

    model_config = ConfigDict(use_enum_values=True)

    error: str = Field(..., description="Main error message")
    error_type: ErrorType = Field(..., description="Error category")
    status_code: Optional[int] = Field(None, description="HTTP status, if any")
    details: Optional[List[ErrorDetail]] = Field(
        None, description="Additional error details"
    )
    timestamp: float = Field(default_factory=time.time, description="Error timestamp")


def details_from_server_errors(errors: Any) -> List[ErrorDetail]:
    """Convert a server ``errors`` list into ErrorDetail entries.

    The API reports failures as ``{"errors": [{"message": ...}, ...]}``; entries
    that are not objects are stringified.
    """
    if not isinstance(errors, list):
        return []

    details = []
    for item in errors:
        if isinstance(item, dict):
            message = item.get("message")
            if message is None:
                continue
            code, field = item.get("code"), item.get("field")
            details.append(
                ErrorDetail(
                    message=str(message),
                    code=str(code) if code is not None else None,
                    field=str(field) if field is not None else None,
                )
            )
        elif item is not None:
            details.append(ErrorDetail(message=str(item)))
    return details


# Custom Exception Classes


class SandboxSDKError(Exception):
    """Base exception for the sandbox client."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.SANDBOX,
        status_code: Optional[int] = None,
        details: Optional[List[ErrorDetail]] = None,
    ):
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.details = details or []
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert exception to error response model."""
        return ErrorResponse(
            error=self.message,
            error_type=self.error_type,
            status_code=self.status_code,
            details=self.details if self.details else None,
        )


class TransportError(SandboxSDKError):
    """Non-2xx response or network-level failure.

    ``status_code`` is 0 when no HTTP response was received (timeout,
    connection reset, DNS failure).
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        details: Optional[List[ErrorDetail]] = None,
    ):
        full_message = f"HTTP {status_code}: {message}" if status_code else message
        server_messages = [d.message for d in details or [] if d.message]
        if server_messages:
            full_message += "\n" + "\n".join(server_messages)
        super().__init__(
            message=full_message,
            error_type=ErrorType.TRANSPORT,
            status_code=status_code,
            details=details,
        )
        self.reason = message

    @property
    def errors(self) -> List[ErrorDetail]:
        """Server-supplied machine-readable error list."""
        return self.details

    @property
    def retryable(self) -> bool:
        """Whether the transport may retry the failed request."""
        if not self.status_code:
            return True
        return self.status_code == 429 or self.status_code >= 500


class ProtocolMismatchError(SandboxSDKError):
    """Streaming response does not declare a line-delimited JSON content type."""

    def __init__(self, content_type: Optional[str]):
        self.content_type = content_type
        super().__init__(
            message=(
                "Expected a line-delimited JSON log stream, "
                f"got content type {content_type or '<missing>'!r}"
            ),
            error_type=ErrorType.PROTOCOL_MISMATCH,
        )


class MalformedLogLineError(SandboxSDKError):
    """A log stream line is not a valid log entry."""

    def __init__(self, raw_line: str, reason: str):
        self.raw_line = raw_line
        self.reason = reason
        super().__init__(
            message=f"Malformed log line ({reason}): {raw_line!r}",
            error_type=ErrorType.MALFORMED_LOG_LINE,
        )


class ValidationError(SandboxSDKError):
    """Request or response payload validation errors."""

    def __init__(self, message: str = "Validation failed", **kwargs):
        super().__init__(message=message, error_type=ErrorType.VALIDATION, **kwargs)

    @classmethod
    def from_pydantic(
        cls,
        operation: str,
        errors: Iterable[dict],
        status_code: Optional[int] = None,
    ) -> "ValidationError":
        """Build from ``pydantic.ValidationError.errors()`` output."""
        details = [
            ErrorDetail(
                field=".".join(str(part) for part in error.get("loc", ())) or None,
                message=error.get("msg", "invalid value"),
                code=error.get("type"),
            )
            for error in errors
        ]
        lines = [f"  {d.field or '<root>'}: {d.message}" for d in details]
        message = operation + (":\n" + "\n".join(lines) if lines else "")
        return cls(message, status_code=status_code, details=details)


class ConfigurationError(SandboxSDKError):
    """Missing or invalid client configuration."""

    def __init__(self, message: str):
        super().__init__(message=message, error_type=ErrorType.CONFIGURATION)


class SandboxError(SandboxSDKError):
    """Sandbox lifecycle errors."""


class SandboxNotFoundError(SandboxError):
    """No sandbox matches the requested identifier."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(
            message=f"Sandbox with identifier {identifier!r} not found",
            error_type=ErrorType.RESOURCE_NOT_FOUND,
            status_code=404,
        )


class SandboxNotReadyError(SandboxError):
    """Sandbox reached a failed state or did not become ready in time."""

    def __init__(self, sandbox_id: str, status: Optional[str]):
        self.sandbox_id = sandbox_id
        self.status = status
        super().__init__(message=f"Sandbox {sandbox_id} is not ready: {status}")


class SandboxCreationError(SandboxError):
    """Sandbox creation request was rejected."""

    def __init__(self, message: str, cause: TransportError):
        self.cause = cause
        super().__init__(
            message=f"{message}: {cause.message}",
            status_code=cause.status_code,
            details=cause.details,
        )


class CommandTimeoutError(SandboxSDKError):
    """A command did not reach a terminal status before the deadline."""

    def __init__(self, command_id: str, timeout: float, last_status: Optional[str]):
        self.command_id = command_id
        self.timeout = timeout
        self.last_status = last_status
        super().__init__(
            message=(
                f"Command {command_id} did not finish within {timeout:g}s "
                f"(last status: {last_status})"
            ),
            error_type=ErrorType.TIMEOUT,
        )


class OperationCancelledError(SandboxSDKError):
    """A polling wait was cancelled by the caller."""

    def __init__(self, operation: str):
        super().__init__(
            message=f"{operation} cancelled", error_type=ErrorType.CANCELLED
        )
