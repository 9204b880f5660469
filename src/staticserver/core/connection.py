"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket with the operations the request pipeline
needs: read the request head, expose the body as a stream, send bytes,
and close properly.

=============================================================================
TCP IS A BYTE STREAM, NOT A MESSAGE PROTOCOL!
=============================================================================

TCP does NOT preserve message boundaries. A single recv() may return half
the headers, or the headers plus the first part of the body:

    recv() → b"POST /form HTTP/1.1\\r\\nContent-Length: 8\\r\\n\\r\\nname"
    recv() → b"=abc"

So we buffer until the blank line (\\r\\n\\r\\n) that ends the head. Whatever
arrived after it is the beginning of the body, and BodyReader serves those
buffered bytes first before touching the socket again.

=============================================================================
TIMEOUTS
=============================================================================

The socket timeout applies to EVERY recv() and sendall(). A client that
stops reading our response, or never finishes sending its request, costs
at most `timeout` seconds of a worker thread per operation.

=============================================================================
"""

import io
import re
import logging
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..http.request import HTTPParseError, PayloadTooLarge


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, for logging and debugging."""
    NEW = "new"              # Just accepted, haven't read anything yet
    READING = "reading"      # Reading the request head
    PROCESSING = "processing"  # Head parsed, handler is executing
    CLOSING = "closing"      # Shutdown sequence in progress
    CLOSED = "closed"        # Socket released


class BodyReader(io.RawIOBase):
    """
    Readable stream over the request body.

    Serves the bytes already buffered by the connection first, then reads
    from the socket, and never returns more than `length` bytes in total.
    A client that disconnects early simply produces a shorter body.
    """

    def __init__(self, conn: "Connection", length: int):
        self._conn = conn
        self._remaining = length

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._remaining <= 0:
            return 0

        wanted = min(len(buffer), self._remaining)
        data = self._conn.take_buffered(wanted)
        if not data:
            data = self._conn.recv(wanted)
        if not data:
            self._remaining = 0  # peer closed mid-body
            return 0

        n = len(data)
        buffer[:n] = data
        self._remaining -= n
        return n


class ChunkedBodyReader(io.RawIOBase):
    """
    Readable stream over a chunked request body (Transfer-Encoding: chunked).

        5\\r\\nname=\\r\\n3\\r\\nabc\\r\\n0\\r\\n\\r\\n  →  b"name=abc"

    Chunk extensions and trailers are discarded. The decoded body may not
    grow past `limit` bytes.

    Raises (from read):
        PayloadTooLarge: If the decoded body would exceed `limit`.
        HTTPParseError: On a malformed chunk size or a truncated body.
    """

    CHUNK_SIZE_PATTERN = re.compile(rb"[0-9A-Fa-f]{1,16}")

    def __init__(self, conn: "Connection", limit: int):
        self._conn = conn
        self._limit = limit
        self._chunk_left = 0
        self._total = 0
        self._in_chunk = False
        self._done = False

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._done:
            return 0

        if self._chunk_left == 0:
            self._next_chunk()
            if self._done:
                return 0

        wanted = min(len(buffer), self._chunk_left)
        data = self._conn.take_buffered(wanted)
        if not data:
            data = self._conn.recv(wanted)
        if not data:
            raise HTTPParseError("Connection closed mid-body")

        n = len(data)
        buffer[:n] = data
        self._chunk_left -= n
        return n

    def _next_chunk(self):
        if self._in_chunk and self._conn.read_line():
            raise HTTPParseError("Missing CRLF after chunk data")

        size_field = self._conn.read_line().split(b";", 1)[0].strip()
        if not self.CHUNK_SIZE_PATTERN.fullmatch(size_field):
            raise HTTPParseError(f"Invalid chunk size: {size_field[:20]!r}")

        size = int(size_field, 16)
        if size == 0:
            while self._conn.read_line():
                pass  # trailer fields
            self._done = True
            return

        if self._total + size > self._limit:
            raise PayloadTooLarge(self._total + size, self._limit)

        self._total += size
        self._chunk_left = size
        self._in_chunk = True


@dataclass
class Connection:
    """
    Represents a client connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    Connection Responsibilities                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  1. HEAD READING                                                     │
    │     └── Buffer recv() chunks until \\r\\n\\r\\n                          │
    │     └── Enforce max_header_size                                     │
    │                                                                      │
    │  2. BODY STREAM                                                      │
    │     └── body_stream(n) → BodyReader over leftover buffer + socket   │
    │     └── chunked_body_stream(limit) → ChunkedBodyReader (decoded)    │
    │                                                                      │
    │  3. SENDING                                                          │
    │     └── send() = sendall() with the connection timeout              │
    │                                                                      │
    │  4. GRACEFUL CLOSE                                                   │
    │     └── shutdown(SHUT_WR), bounded drain, close                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    max_header_size: int = 64 * 1024
    max_line_size: int = 8192
    drain_timeout: float = 0.5
    drain_limit: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_head(self) -> Optional[bytes]:
        """
        Read the request head (request line + headers).

        Returns:
            Head bytes without the terminating blank line, or None if the
            client closed the connection before sending anything.

        Raises:
            TimeoutError: If the client stalls.
            HTTPParseError: 431 if the head exceeds max_header_size,
                            400 if the client hangs up mid-head.
        """
        self.state = ConnectionState.READING

        try:
            while b"\r\n\r\n" not in self._buffer:
                if len(self._buffer) > self.max_header_size:
                    raise HTTPParseError(
                        f"Request head too large: {len(self._buffer)} bytes",
                        status_code=431,
                    )

                chunk = self.recv(self.buffer_size)
                if not chunk:
                    if self._buffer:
                        raise HTTPParseError("Connection closed mid-request")
                    return None
                self._buffer += chunk
        except socket.timeout:
            raise TimeoutError("Request read timeout")

        header_end = self._buffer.find(b"\r\n\r\n")
        if header_end > self.max_header_size:
            raise HTTPParseError(
                f"Request head too large: {header_end} bytes",
                status_code=431,
            )

        head = self._buffer[:header_end]
        self._buffer = self._buffer[header_end + 4:]
        self.state = ConnectionState.PROCESSING
        return head

    def body_stream(self, length: int) -> io.BufferedReader:
        """Readable stream over the next `length` body bytes."""
        return io.BufferedReader(BodyReader(self, length), buffer_size=self.buffer_size)

    def chunked_body_stream(self, limit: int) -> io.BufferedReader:
        """Readable stream over a chunked body, decoded, at most `limit` bytes."""
        return io.BufferedReader(ChunkedBodyReader(self, limit), buffer_size=self.buffer_size)

    def read_line(self) -> bytes:
        """
        Read one CRLF-terminated line (without the CRLF).

        Raises:
            HTTPParseError: If the line exceeds max_line_size or the
                            client hangs up first.
        """
        while b"\r\n" not in self._buffer:
            if len(self._buffer) > self.max_line_size:
                raise HTTPParseError("Line too long in request body")
            chunk = self.recv(self.buffer_size)
            if not chunk:
                raise HTTPParseError("Connection closed mid-body")
            self._buffer += chunk

        line, _, self._buffer = self._buffer.partition(b"\r\n")
        return line

    def take_buffered(self, limit: int) -> bytes:
        """Pop up to `limit` bytes that were read past the head."""
        data, self._buffer = self._buffer[:limit], self._buffer[limit:]
        return data

    def recv(self, size: int) -> bytes:
        """
        Receive up to `size` bytes.

        Returns b"" when the peer closed or reset the connection.
        socket.timeout propagates.
        """
        try:
            return self.socket.recv(size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> None:
        """
        Send ALL of `data` (sendall) within the connection timeout.

        Raises:
            OSError: On disconnect or timeout (socket.timeout is an OSError).
        """
        self.socket.sendall(data)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self, drain: bool = True):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR): send FIN so the client sees end-of-response
        2. drain: read and discard what the client still sends
           (an unread request body would otherwise turn our close into RST),
           at most drain_limit bytes within drain_timeout seconds
        3. close(): release the file descriptor

        With drain=False only bytes that have already arrived are discarded;
        close() then never waits on the client.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Already disconnected

        self._drain(self.drain_timeout if drain else 0.0)

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def _drain(self, budget: float):
        deadline = time.monotonic() + budget
        drained = 0
        try:
            while drained < self.drain_limit:
                # A zero timeout makes recv() non-blocking.
                self.socket.settimeout(max(deadline - time.monotonic(), 0.0))
                chunk = self.socket.recv(4096)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # Timeout, nothing buffered, or reset; we're closing anyway

        if drained >= self.drain_limit:
            logger.debug(f"[{self.id}] Stopped draining after {drained} bytes")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - ensure connection is closed."""
        self.close()
        return False
