"""
=============================================================================
STREAMING HTTP RESPONSE
=============================================================================

The response side of one request: a writable channel that sends the
status line and headers on first use, then streams the body straight to
the socket.

=============================================================================
WHY STREAM?
=============================================================================

A buffered response needs the whole body in memory before the first byte
leaves:

    BUFFERED                             STREAMED
    ────────                             ────────
    read 50 MB file  → 50 MB RAM         read 64 KB  → compress → send
    gzip 50 MB       → +N MB RAM         read 64 KB  → compress → send
    send                                 ...
                                         memory stays ~constant

The response object is file-like (it has write() and flush()), so a
gzip.GzipFile can write compressed bytes DIRECTLY into it.

=============================================================================
FRAMING: HOW DOES THE CLIENT KNOW WHERE THE BODY ENDS?
=============================================================================

We don't know the compressed size up front, so Content-Length is out.

    HTTP/1.1 → Transfer-Encoding: chunked

        1A\r\n                 ← chunk size in hex
        <26 bytes>\r\n
        0\r\n\r\n              ← terminating chunk = end of body

    HTTP/1.0 → no framing; the body ends when we close the connection.

Every response carries Connection: close; one request per connection.

=============================================================================
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class HTTPResponse:
    """
    Writable response channel for a single request.

    =========================================================================
    LIFECYCLE
    =========================================================================

        set status / headers ──► write(...) ──► write(...) ──► close()
                                    │
                                    └── first write sends the head

    close() runs exactly once: it sends the terminating chunk (or the head,
    if nothing was written yet). Calling it again is a no-op. abort() ends
    the response WITHOUT the terminator, so a client can tell a truncated
    body from a complete one.

    =========================================================================
    USAGE
    =========================================================================

        response = HTTPResponse(conn.send, version=request.version)
        response.status = HTTPStatus.OK
        response.set_header("Content-Type", "text/html")

        with gzip.GzipFile(fileobj=response, mode="wb") as gz:
            gz.write(b"<h1>hi</h1>")

        response.close()

    =========================================================================
    """

    def __init__(
        self,
        send: Callable[[bytes], None],
        version: str = "HTTP/1.1",
        server_name: str = "StaticServer/1.0",
    ):
        """
        Args:
            send: Callable that writes ALL given bytes to the client
                  (e.g. Connection.send). Raises OSError on failure.
            version: Request's HTTP version; selects the body framing.
            server_name: Value for the Server header.
        """
        self._send = send
        self.version = version
        self.server_name = server_name

        self.status: HTTPStatus = HTTPStatus.OK
        self.headers: Dict[str, str] = {}

        self.headers_sent = False
        self.closed = False
        self.bytes_sent = 0
        self._chunked = False

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """
        Set a response header. Returns self for method chaining.

        Raises:
            RuntimeError: If the head has already been sent.
        """
        if self.headers_sent:
            raise RuntimeError("Headers already sent")
        self.headers[name] = value
        return self

    def set_content_type(self, content_type: str) -> "HTTPResponse":
        return self.set_header("Content-Type", content_type)

    # =========================================================================
    # FILE-LIKE INTERFACE (what gzip.GzipFile needs)
    # =========================================================================

    def write(self, data: bytes) -> int:
        """
        Send body bytes, sending the head first if needed.

        Returns:
            Number of body bytes accepted (len(data)).
        """
        if self.closed:
            raise ValueError("write to closed response")

        if not self.headers_sent:
            self._send_head()

        if not data:
            return 0

        data = bytes(data)  # GzipFile may hand us a memoryview
        if self._chunked:
            self._send(f"{len(data):X}\r\n".encode("ascii") + data + b"\r\n")
        else:
            self._send(data)

        self.bytes_sent += len(data)
        return len(data)

    def flush(self) -> None:
        """Nothing is buffered here; every write() goes to the socket."""

    # =========================================================================
    # COMPLETION
    # =========================================================================

    def send_body(self, body: bytes) -> None:
        """
        Send a small, fully known body with Content-Length, then close.

        Used for error responses, which are not streamed.
        """
        self.set_header("Content-Length", str(len(body)))
        self.write(body)
        self.close()

    def send_error(self, status: HTTPStatus, message: Optional[str] = None) -> None:
        """
        Send a generic plain-text error response.

        The body never contains paths or exception details, only the
        reason phrase (or the given short message).
        """
        self.status = status
        self.headers.clear()
        self.set_header("Content-Type", "text/plain; charset=utf-8")
        self.send_body((message or status.phrase).encode("utf-8"))

    def close(self) -> None:
        """
        Finish the response. Idempotent.

        Sends the head if nothing was written, then the terminating chunk
        for chunked bodies.
        """
        if self.closed:
            return

        try:
            if not self.headers_sent:
                if "Content-Length" not in self.headers:
                    self.headers["Content-Length"] = "0"
                self._send_head()
            if self._chunked:
                self._send(b"0\r\n\r\n")
        finally:
            self.closed = True

    def abort(self) -> None:
        """End the response without completing the body framing."""
        if not self.closed:
            logger.debug(f"Response aborted after {self.bytes_sent} body bytes")
        self.closed = True

    # =========================================================================
    # HEAD SERIALIZATION
    # =========================================================================

    def _send_head(self) -> None:
        """
        Serialize and send the status line and headers.

            HTTP/1.1 200 OK\\r\\n
            Content-Type: text/html\\r\\n
            Content-Encoding: gzip\\r\\n
            Transfer-Encoding: chunked\\r\\n    ← only if no Content-Length
            Connection: close\\r\\n
            Date: Mon, 19 Oct 2026 10:00:00 GMT\\r\\n
            Server: StaticServer/1.0\\r\\n
            \\r\\n
        """
        headers = dict(self.headers)

        if "Content-Length" not in headers and self.version == "HTTP/1.1":
            headers["Transfer-Encoding"] = "chunked"
            self._chunked = True

        headers["Connection"] = "close"
        headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        headers.setdefault("Server", self.server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in headers.items())
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

        self.headers_sent = True
        self._send(head)


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Mon, 19 Oct 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
