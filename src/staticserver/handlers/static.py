"""
=============================================================================
STATIC REQUEST HANDLER
=============================================================================

Drives one request from resolution to the last compressed byte.

=============================================================================
FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  1. resolve path          → ResolvedResource (file or 404 fallback) │
    │  2. POST?  read body      → audit "POST data: <body>"               │
    │     GET with ?query       → audit "Query data: ?<query>"            │
    │  3. always                → audit "Request from <ip:port> for <url>"│
    │  4. open file             → Content-Type, Content-Encoding: gzip    │
    │  5. file ─► gzip ─► response (chunk by chunk, never whole file)     │
    │  6. close response        (exactly once, on every path)             │
    └─────────────────────────────────────────────────────────────────────┘

Compression is unconditional: Accept-Encoding is not consulted.

=============================================================================
WHAT CAN GO WRONG
=============================================================================

    Fault                              Client sees
    ─────                              ───────────
    body too large / bad encoding      normal response, no POST data line
    audit log unwritable               normal response
    file deleted after resolution      500 (generic body)
    fallback page missing              500 (generic body)
    socket dies mid-stream             truncated response (no final chunk)

Nothing here raises out of handle(); faults are logged with the request
they belong to.

=============================================================================
"""

import contextlib
import gzip
import logging
import shutil
from typing import BinaryIO, Optional

from ..audit import AuditLogger
from ..config import ServerConfig
from ..http.mime_types import get_content_type
from ..http.request import HTTPParseError, HTTPRequest
from ..http.response import HTTPResponse
from ..http.status_codes import HTTPStatus
from .resolver import ResolvedResource, ResourceResolver


logger = logging.getLogger(__name__)


class RequestHandler:
    """
    Serves files from one root, gzip-compressed, with an audit trail.

    Shared by all worker threads. Holds no per-request state.

        handler = RequestHandler.from_config(config)
        handler.handle(request, response)   # never raises
    """

    def __init__(
        self,
        resolver: ResourceResolver,
        audit: AuditLogger,
        max_body_size: int = 10 * 1024 * 1024,
        compression_level: int = 6,
        chunk_size: int = 64 * 1024,
    ):
        self.resolver = resolver
        self.audit = audit
        self.max_body_size = max_body_size
        self.compression_level = compression_level
        self.chunk_size = chunk_size

    @classmethod
    def from_config(
        cls,
        config: ServerConfig,
        audit: Optional[AuditLogger] = None,
    ) -> "RequestHandler":
        resolver = ResourceResolver(
            config.root_dir,
            index_file=config.index_file,
            error_file=config.error_file,
        )
        return cls(
            resolver=resolver,
            audit=audit or AuditLogger(config.log_dir),
            max_body_size=config.max_body_size,
            compression_level=config.compression_level,
            chunk_size=config.chunk_size,
        )

    def handle(self, request: HTTPRequest, response: HTTPResponse) -> None:
        """Handle one request. Always leaves `response` closed."""
        try:
            self._handle(request, response)
        except Exception as e:
            logger.exception(f"Error handling {request.method} {request.path}: {e}")
            self._fail(response)
        finally:
            try:
                response.close()
            except OSError as e:
                logger.debug(f"Could not finish response: {e}")

    def _handle(self, request: HTTPRequest, response: HTTPResponse) -> None:
        resource = self.resolver.resolve(request.path)
        response.status = resource.status
        logger.debug(f"{request.method} {request.path} → {describe(resource)}")

        if request.method == "POST":
            self._log_post_body(request)
        elif request.method == "GET" and request.query:
            self.audit.log(f"Query data: {request.query}")

        self.audit.log(f"Request from {request.remote_endpoint} for {request.url}")

        if not resource.exists:
            logger.error(
                f"Fallback page {resource.path.name} is missing; "
                f"answering {request.path} with 500"
            )
            self._fail(response)
            return

        try:
            source = open(resource.path, "rb")
        except OSError as e:
            # Deleted or made unreadable since resolve().
            logger.error(f"Cannot open {resource.path}: {e}")
            self._fail(response)
            return

        with source:
            response.set_header("Content-Type", get_content_type(resource.path))
            response.set_header("Content-Encoding", "gzip")
            self._stream(source, response)

    def _log_post_body(self, request: HTTPRequest) -> None:
        """
        Read the whole body as text and audit it.

        Client faults (oversized or malformed body, undecodable bytes,
        unknown charset, stalled upload) are reported and the POST data
        line is skipped.
        """
        try:
            body = request.read_text(self.max_body_size)
        except HTTPParseError as e:
            logger.warning(f"{request.remote_endpoint}: {e.message}; body not logged")
            return
        except (UnicodeDecodeError, LookupError) as e:
            logger.warning(
                f"{request.remote_endpoint}: cannot decode body as "
                f"{request.content_encoding!r} ({e}); body not logged"
            )
            return
        except OSError as e:
            logger.warning(f"{request.remote_endpoint}: body read failed ({e}); body not logged")
            return

        self.audit.log(f"POST data: {body}")

    def _stream(self, source: BinaryIO, response: HTTPResponse) -> None:
        """
        Copy `source` through gzip into the response.

        The compressor is closed (final block + CRC/size trailer) before
        the response is closed. If anything fails mid-copy the response is
        aborted first, so the trailer is never appended to a broken body.
        """
        gz = gzip.GzipFile(fileobj=response, mode="wb", compresslevel=self.compression_level)
        try:
            shutil.copyfileobj(source, gz, self.chunk_size)
        except BaseException:
            response.abort()
            with contextlib.suppress(ValueError):
                gz.close()  # writes into the aborted response are refused
            raise
        gz.close()

    def _fail(self, response: HTTPResponse) -> None:
        """Answer 500 if we still can, otherwise cut the response short."""
        if response.closed:
            return
        if response.headers_sent:
            response.abort()
            return
        try:
            response.send_error(HTTPStatus.INTERNAL_SERVER_ERROR)
        except OSError as e:
            logger.debug(f"Could not send 500: {e}")
            response.abort()


def describe(resource: ResolvedResource) -> str:
    """Short human-readable form of a resolution, for debug logs."""
    kind = "fallback" if resource.is_fallback else "file"
    return f"{int(resource.status)} {kind} {resource.path.name}"
