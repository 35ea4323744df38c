"""HTTP/1.1 request serialization and response parsing."""

import asyncio
import re
from typing import Awaitable, List, Optional, TypeVar

from multidict import CIMultiDict

from .connector import Connection
from .errors import (
    MalformedResponseError,
    ReadError,
    ReadTimeout,
    WriteError,
    WriteTimeout,
)
from .models import (
    DEFAULT_READ_TIMEOUT,
    DEFAULT_USER_AGENT,
    DEFAULT_WRITE_TIMEOUT,
    HttpResponse,
    UrlTarget,
)

T = TypeVar("T")

STATUS_LINE_RE = re.compile(rb"^HTTP/(\d)\.(\d) (\d{3})(?: (.*))?$")
HEADER_NAME_RE = re.compile(rb"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
CHUNK_SIZE_RE = re.compile(rb"^[0-9A-Fa-f]+$")

MAX_HEADERS = 128
READ_CHUNK_SIZE = 64 * 1024


def _is_bodyless(status: int) -> bool:
    return 100 <= status < 200 or status in (204, 304)


class RequestCodec:
    """
    Builds GET requests and parses the responses off a stream.

    Writes are bounded by the write timeout as a whole. Reads are bounded
    per read call, so a server that keeps trickling data is not cut off
    while one that stalls is.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
    ):
        self.user_agent = user_agent
        self.write_timeout = write_timeout
        self.read_timeout = read_timeout

    def encode_request(self, target: UrlTarget) -> bytes:
        """Serialize a body-less GET request for the target."""
        lines = [
            f"GET {target.path} HTTP/1.1",
            f"Host: {target.host_header}",
            f"User-Agent: {self.user_agent}",
            "Accept: */*",
            "Connection: close",
            "",
            "",
        ]
        return "\r\n".join(lines).encode("latin-1")

    async def send_request(self, connection: Connection, payload: bytes) -> None:
        """
        Write the request and wait until it has been flushed.

        Raises:
            WriteTimeout: If the write does not complete within the write timeout
            WriteError: If the transport fails while writing
        """
        try:
            connection.writer.write(payload)
            await asyncio.wait_for(connection.writer.drain(), self.write_timeout)
        except asyncio.TimeoutError as e:
            raise WriteTimeout(
                f"Request not written within {self.write_timeout}s"
            ) from e
        except OSError as e:
            raise WriteError(f"Write failed: {e}") from e

    async def read_response(self, reader: asyncio.StreamReader) -> HttpResponse:
        """
        Read and parse one complete response.

        Raises:
            ReadTimeout: If any single read stalls past the read timeout
            ReadError: If the transport fails while reading
            MalformedResponseError: If the status line, headers or framing are invalid
        """
        while True:
            status_line = await self._read_line(reader, allow_eof=True)
            if status_line is None:
                raise MalformedResponseError("Empty response: connection closed before a status line")
            version, status, reason = self._parse_status_line(status_line)
            headers = await self._read_headers(reader)
            # Interim responses precede the real one
            if 100 <= status < 200 and status != 101:
                continue
            break

        if _is_bodyless(status):
            body = b""
        else:
            body = await self._read_body(reader, headers)

        return HttpResponse(
            status=status, reason=reason, version=version, headers=headers, body=body
        )

    def _parse_status_line(self, line: bytes):
        match = STATUS_LINE_RE.match(line)
        if not match:
            raise MalformedResponseError(f"Malformed status line: {line[:100]!r}")
        major, minor, code, reason = match.groups()
        return (
            f"{int(major)}.{int(minor)}",
            int(code),
            (reason or b"").decode("latin-1").strip(),
        )

    async def _read_headers(self, reader: asyncio.StreamReader) -> CIMultiDict:
        headers: CIMultiDict = CIMultiDict()
        while True:
            line = await self._read_line(reader)
            if not line:
                return headers
            if len(headers) >= MAX_HEADERS:
                raise MalformedResponseError(f"More than {MAX_HEADERS} response headers")
            name, sep, value = line.partition(b":")
            if not sep or not HEADER_NAME_RE.match(name):
                raise MalformedResponseError(f"Malformed header line: {line[:100]!r}")
            headers.add(name.decode("latin-1"), value.strip(b" \t").decode("latin-1"))

    async def _read_body(self, reader: asyncio.StreamReader, headers: CIMultiDict) -> bytes:
        codings = [c.lower() for c in split_header_values(headers, "Transfer-Encoding")]
        if codings:
            if codings[-1] == "chunked":
                return await self._read_chunked(reader)
            return await self._read_until_close(reader)

        lengths = {v.strip() for v in headers.getall("Content-Length", [])}
        if lengths:
            if len(lengths) > 1:
                raise MalformedResponseError(f"Conflicting Content-Length values: {sorted(lengths)}")
            value = lengths.pop()
            if not (value.isascii() and value.isdigit()):
                raise MalformedResponseError(f"Invalid Content-Length: {value!r}")
            return await self._read_exactly(reader, int(value))

        return await self._read_until_close(reader)

    async def _read_chunked(self, reader: asyncio.StreamReader) -> bytes:
        body = bytearray()
        while True:
            line = await self._read_line(reader)
            size_field = line.split(b";", 1)[0].strip()
            if not CHUNK_SIZE_RE.match(size_field):
                raise MalformedResponseError(f"Malformed chunk size line: {line[:100]!r}")
            size = int(size_field, 16)
            if size == 0:
                break
            body += await self._read_exactly(reader, size)
            if await self._read_line(reader) != b"":
                raise MalformedResponseError("Missing CRLF after chunk data")

        # Trailer section; tolerate peers that close instead of sending the final CRLF
        while True:
            line = await self._read_line(reader, allow_eof=True)
            if not line:
                return bytes(body)

    async def _read_exactly(self, reader: asyncio.StreamReader, length: int) -> bytes:
        data = bytearray()
        while len(data) < length:
            piece = await self._timed(reader.read(min(length - len(data), READ_CHUNK_SIZE)))
            if not piece:
                raise MalformedResponseError(
                    f"Connection closed after {len(data)} of {length} body bytes"
                )
            data += piece
        return bytes(data)

    async def _read_until_close(self, reader: asyncio.StreamReader) -> bytes:
        data = bytearray()
        while True:
            piece = await self._timed(reader.read(READ_CHUNK_SIZE))
            if not piece:
                return bytes(data)
            data += piece

    async def _read_line(
        self, reader: asyncio.StreamReader, allow_eof: bool = False
    ) -> Optional[bytes]:
        """Read one CRLF (or bare LF) terminated line without its terminator."""
        try:
            line = await self._timed(reader.readuntil(b"\n"))
        except asyncio.IncompleteReadError as e:
            if allow_eof and not e.partial:
                return None
            raise MalformedResponseError(
                "Connection closed in the middle of a line"
            ) from e
        except asyncio.LimitOverrunError as e:
            raise MalformedResponseError("Response line too long") from e
        line = line[:-1]
        if line.endswith(b"\r"):
            line = line[:-1]
        return line

    async def _timed(self, operation: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(operation, self.read_timeout)
        except asyncio.TimeoutError as e:
            raise ReadTimeout(f"No data received within {self.read_timeout}s") from e
        except OSError as e:
            raise ReadError(f"Read failed: {e}") from e


async def decode_response(data: bytes, codec: Optional[RequestCodec] = None) -> HttpResponse:
    """Parse a complete raw response held in memory."""
    reader = asyncio.StreamReader()
    reader.feed_data(data)
    reader.feed_eof()
    return await (codec or RequestCodec()).read_response(reader)


def split_header_values(headers: CIMultiDict, name: str) -> List[str]:
    """Return the comma separated values of every occurrence of a header."""
    return [
        part.strip()
        for value in headers.getall(name, [])
        for part in value.split(",")
        if part.strip()
    ]
