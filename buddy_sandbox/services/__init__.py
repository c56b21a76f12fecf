"""Handles over sandboxes, commands, log streams and sandbox files."""

from .log_stream import (
    JsonLinesBuffer,
    LogStream,
    check_content_type,
    decode_log_lines,
    parse_log_line,
)
from .command import Command, wait_for_completion
from .filesystem import FileSystem
from .sandbox import Sandbox

__all__ = [
    # Log streaming
    "JsonLinesBuffer",
    "LogStream",
    "check_content_type",
    "decode_log_lines",
    "parse_log_line",
    # Commands
    "Command",
    "wait_for_completion",
    # Sandboxes
    "FileSystem",
    "Sandbox",
]
