"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw request head (request line + headers) into an HTTPRequest.

=============================================================================
HEAD NOW, BODY LATER
=============================================================================

A static file server only needs the body of a POST, and only to write it
to the audit log. So we parse the HEAD eagerly and leave the BODY on the
socket as a readable stream:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  POST /form HTTP/1.1\r\n            ┐                               │
    │  Host: localhost:8080\r\n           │  head: parsed by              │
    │  Content-Type: text/plain; charset= │  RequestParser.parse()        │
    │  Content-Length: 8\r\n              │                               │
    │  \r\n                               ┘                               │
    │  name=abc                           ← body: HTTPRequest.body stream │
    └─────────────────────────────────────────────────────────────────────┘

GET requests never touch the body stream; a POST reads it once, bounded
by max_body_size.

=============================================================================
SECURITY CONSIDERATIONS
=============================================================================

1. SIZE LIMITS - the connection caps the head, read_text() caps the body.
2. PATH TRAVERSAL - NOT rejected here. A path like /../etc/passwd parses
   fine and is neutralized by the resource resolver, which answers with
   the 404 fallback page. Rejecting at parse time would give attackers a
   different status code to test against.

=============================================================================
"""

import io
import re
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, Optional
from urllib.parse import unquote, urlsplit


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the status code the server should answer with.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PayloadTooLarge(HTTPParseError):
    """Raised when a request body is bigger than the configured limit."""

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Request body too large: {size} bytes (limit {limit})",
            status_code=413,
        )
        self.size = size
        self.limit = limit


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         GET, POST, or any other method token.
        path:           Percent-decoded URL path, e.g. "/css/site.css".
        query:          Raw query string INCLUDING the leading "?",
                        or "" when there is none.
        target:         The request-target exactly as sent by the client.
        version:        "HTTP/1.0" or "HTTP/1.1".
        headers:        Header name (lowercase) → value.
        client_address: (ip, port) of the peer.
        body:           Readable byte stream with the request body.
    """

    method: str
    path: str
    query: str = ""
    target: str = "/"
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    client_address: tuple[str, int] = ("", 0)
    body: BinaryIO = field(default_factory=io.BytesIO, repr=False)

    @property
    def content_length(self) -> int:
        """Content-Length as an integer, 0 if missing or invalid."""
        try:
            return max(int(self.headers.get("content-length", 0)), 0)
        except ValueError:
            return 0

    @property
    def chunked(self) -> bool:
        """True when the body is sent with Transfer-Encoding: chunked."""
        codings = self.headers.get("transfer-encoding", "").lower().split(",")
        return codings[-1].strip() == "chunked"

    @property
    def content_encoding(self) -> str:
        """
        Character encoding declared for the body.

        Taken from the charset parameter of Content-Type:

            "application/x-www-form-urlencoded; charset=latin-1" → "latin-1"

        Defaults to utf-8 when no charset is declared.
        """
        content_type = self.headers.get("content-type", "")
        for param in content_type.split(";")[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"')
        return "utf-8"

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def remote_endpoint(self) -> str:
        """Client address as "ip:port"."""
        ip, port = self.client_address
        return f"{ip}:{port}"

    @property
    def url(self) -> str:
        """
        Full requested URL, e.g. "http://localhost:8080/page.html?x=1".

        Absolute-form targets (sent to proxies) are returned unchanged.
        """
        if not self.target.startswith("/"):
            return self.target
        return f"http://{self.host or 'localhost'}{self.target}"

    def read_text(self, max_size: Optional[int] = None) -> str:
        """
        Read the entire body and decode it with the declared encoding.

        Args:
            max_size: Refuse bodies larger than this many bytes.

        Raises:
            PayloadTooLarge: If Content-Length exceeds max_size (a chunked
                             body stream enforces its own limit).
            HTTPParseError: If a chunked body is malformed.
            UnicodeDecodeError: If the bytes are invalid in the encoding.
            LookupError: If the declared charset is unknown.
        """
        if max_size is not None and self.content_length > max_size:
            raise PayloadTooLarge(self.content_length, max_size)

        data = self.body.read()
        return data.decode(self.content_encoding)

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value (case-insensitive lookup)."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses a raw request head into an HTTPRequest.

        REQUEST_LINE_PATTERN: ^([A-Za-z]+) ([^ ]+) (HTTP/\\d\\.\\d)$

            ([A-Za-z]+)     - METHOD (any token; GET/POST get special logging)
            ([^ ]+)         - request-target (path + optional ?query)
            (HTTP/\\d\\.\\d)  - version

        HEADER_PATTERN: ^([^:]+):\\s*(.*)$
    """

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def parse(
        self,
        head: bytes,
        client_address: tuple[str, int] = ("", 0),
        body: Optional[BinaryIO] = None,
    ) -> HTTPRequest:
        """
        Parse the request head.

        Args:
            head: Request line and headers, with or without the trailing
                  blank line.
            client_address: Client's (ip, port) tuple.
            body: Stream positioned at the first body byte.

        Returns:
            Parsed HTTPRequest.

        Raises:
            HTTPParseError: If the head is malformed.
        """
        text = head.decode("iso-8859-1").rstrip("\r\n")
        lines = text.split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request")

        method, target, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        path, query = self._split_target(target)

        return HTTPRequest(
            method=method,
            path=path,
            query=query,
            target=target,
            version=version,
            headers=headers,
            client_address=client_address,
            body=body if body is not None else io.BytesIO(),
        )

    @staticmethod
    def _split_target(target: str) -> tuple[str, str]:
        """
        Split a request-target into (decoded path, "?query" or "").

        Origin-form targets are split by hand, so a leading "//" stays part
        of the path instead of being read as a network location:

            "//sub/page.html?x=1"  →  ("//sub/page.html", "?x=1")

        Absolute-form targets ("http://host/path") go through urlsplit.
        """
        if target.startswith("/"):
            raw_path, _, query = target.partition("#")[0].partition("?")
        else:
            parts = urlsplit(target)
            raw_path, query = parts.path, parts.query

        path = unquote(raw_path) or "/"
        return path, (f"?{query}" if query else "")

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        return method.upper(), target, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 §3.2.2).
        Obsolete line folding (continuation lines starting with
        whitespace) is appended to the previous header.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    head: bytes,
    client_address: tuple[str, int] = ("", 0),
    body: Optional[bytes] = None,
) -> HTTPRequest:
    """
    Convenience function: parse a head, with an optional in-memory body.

    Mostly useful in tests:

        request = parse_request(b"POST /form HTTP/1.1\\r\\n...", body=b"name=abc")
    """
    stream = io.BytesIO(body) if body is not None else None
    return RequestParser().parse(head, client_address, stream)
