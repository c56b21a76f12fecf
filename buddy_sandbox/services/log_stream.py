"""Line-delimited JSON log stream decoding.

Turns a chunked HTTP response body into an ordered, forward-only sequence of
:class:`LogRecord` values. Chunks may split a JSON object or a multi-byte
UTF-8 character anywhere; lines are decoded once complete and at most one partial
line is held between reads.
"""

import json
from collections import deque
from typing import AsyncContextManager, AsyncIterator, Callable, Deque, List, Optional

import httpx
import structlog

from ..core.http_client import transport_error_from_httpx
from ..models.errors import MalformedLogLineError, ProtocolMismatchError
from ..models.logs import JSONL_MEDIA_TYPES, LogRecord, LogStreamType

logger = structlog.get_logger(__name__)

StreamOpener = Callable[[], AsyncContextManager[httpx.Response]]

_STREAM_TYPES = {member.value for member in LogStreamType}


def _decode_line(raw: bytes) -> str:
    # Undecodable bytes survive as surrogates; parse_log_line rejects them.
    return raw.decode("utf-8", errors="surrogateescape")


class JsonLinesBuffer:
    """Incremental splitter of UTF-8 bytes into complete text lines.

    Lines are split on the raw newline byte, which never occurs inside a
    multi-byte UTF-8 sequence, and each complete line is decoded on its own.
    """

    def __init__(self):
        self._pending = b""

    @property
    def pending(self) -> str:
        """Text received after the last newline."""
        return _decode_line(self._pending)

    def feed(self, chunk: bytes) -> List[str]:
        """Append a chunk and return the lines it completed."""
        self._pending += chunk
        if b"\n" not in chunk:
            return []
        *lines, self._pending = self._pending.split(b"\n")
        return [_decode_line(line) for line in lines if line.strip()]

    def flush(self) -> List[str]:
        """Return the unterminated last line, if any."""
        tail, self._pending = self._pending, b""
        return [_decode_line(tail)] if tail.strip() else []


def parse_log_line(line: str) -> LogRecord:
    """Parse one ``{"type": ..., "data": ...}`` line.

    Raises:
        MalformedLogLineError: invalid UTF-8, not JSON, not an object,
            unknown stream type, or missing ``data``
    """
    text = line.rstrip("\r")
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as e:
        readable = line.encode("utf-8", errors="surrogateescape").decode(
            "utf-8", errors="replace"
        )
        raise MalformedLogLineError(readable, "invalid UTF-8") from e

    try:
        payload = json.loads(text)
    except ValueError as e:
        raise MalformedLogLineError(line, f"invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedLogLineError(line, "expected a JSON object")

    stream_type = payload.get("type")
    if stream_type not in _STREAM_TYPES:
        raise MalformedLogLineError(line, f"unknown stream type {stream_type!r}")

    data = payload.get("data")
    if not isinstance(data, str):
        raise MalformedLogLineError(line, "missing or non-string data field")

    return LogRecord(type=LogStreamType(stream_type), data=data)


def check_content_type(response: httpx.Response) -> None:
    """Reject responses that do not declare a line-delimited JSON body.

    Raises:
        ProtocolMismatchError: the media type is not a JSONL type
    """
    content_type = response.headers.get("content-type")
    media_type = (content_type or "").split(";", 1)[0].strip().lower()
    if media_type not in JSONL_MEDIA_TYPES:
        raise ProtocolMismatchError(content_type)


def decode_log_lines(body: bytes) -> List[LogRecord]:
    """Decode a fully buffered JSONL body."""
    buffer = JsonLinesBuffer()
    lines = buffer.feed(body) + buffer.flush()
    return [parse_log_line(line) for line in lines]


class LogStream:
    """Pull-based async iterator over the records of one log response.

    The HTTP request is made on the first pull, not on construction. Any
    error closes the stream before it propagates; a closed stream yields
    nothing more. Use ``async with`` to release the connection when the
    consumer stops early.

    Usage:
        async with command.logs() as stream:
            async for record in stream:
                print(record.stream, record.data)
    """

    def __init__(self, opener: StreamOpener, command_id: Optional[str] = None):
        self._opener = opener
        self._command_id = command_id
        self._context: Optional[AsyncContextManager[httpx.Response]] = None
        self._chunks: Optional[AsyncIterator[bytes]] = None
        self._buffer = JsonLinesBuffer()
        self._lines: Deque[str] = deque()
        self._opened = False
        self._exhausted = False
        self._closed = False
        self.records_yielded = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def _open(self) -> None:
        self._opened = True
        context = self._opener()
        response = await context.__aenter__()
        self._context = context
        check_content_type(response)
        self._chunks = response.aiter_bytes()
        logger.debug(
            "Log stream opened",
            command_id=self._command_id,
            content_type=response.headers.get("content-type"),
        )

    async def _read_line(self) -> Optional[str]:
        while not self._lines:
            if self._exhausted:
                return None
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                self._lines.extend(self._buffer.flush())
                continue
            except httpx.HTTPError as e:
                raise transport_error_from_httpx(e) from e
            self._lines.extend(self._buffer.feed(chunk))
        return self._lines.popleft()

    async def next(self) -> Optional[LogRecord]:
        """Return the next record, or None once the stream has ended."""
        if self._closed:
            return None
        try:
            if not self._opened:
                await self._open()
            line = await self._read_line()
            record = parse_log_line(line) if line is not None else None
        except BaseException:
            await self.aclose()
            raise

        if record is None:
            await self.aclose()
            return None
        self.records_yielded += 1
        return record

    async def aclose(self) -> None:
        """Release the connection without draining the body. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._opened = True
        self._lines.clear()
        context, self._context = self._context, None
        if context is not None:
            await context.__aexit__(None, None, None)
            logger.debug(
                "Log stream closed",
                command_id=self._command_id,
                records=self.records_yielded,
                complete=self._exhausted,
            )

    def __aiter__(self) -> "LogStream":
        return self

    async def __anext__(self) -> LogRecord:
        record = await self.next()
        if record is None:
            raise StopAsyncIteration
        return record

    async def __aenter__(self) -> "LogStream":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
