"""
=============================================================================
STATIC FILE SERVER
=============================================================================

The orchestrator that ties the components together.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     STATIC SERVER ARCHITECTURE                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │                        ┌─────────────────┐                          │
    │                        │  StaticServer   │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                   │
    │            ┌────────────────────┼────────────────────┐              │
    │            │                    │                    │              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌────────────────┐       │
    │    │ SocketServer │    │  ThreadPool  │    │ RequestHandler │       │
    │    │  (Accepting) │    │ (Concurrency)│    │ (Files + gzip) │       │
    │    └──────┬───────┘    └──────────────┘    └───────┬────────┘       │
    │           │                                        │                │
    │           ▼                                ┌───────┴────────┐       │
    │    ┌──────────────┐                        ▼                ▼       │
    │    │  Connection  │              ResourceResolver     AuditLogger   │
    │    └──────────────┘                                                 │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. ACCEPT          SocketServer accepts the TCP connection
    2. QUEUE           Connection is submitted to the ThreadPool
                       (queue full → 503 right away)
    3. READ + PARSE    Worker reads the head, RequestParser builds the
                       HTTPRequest; the body stays on the socket
    4. HANDLE          RequestHandler resolves, audits, streams gzip
    5. CLOSE           Response is finished and the connection closed

One request per connection. Every response carries Connection: close.

=============================================================================
"""

import logging
from typing import Optional, Tuple

from .audit import AuditLogger
from .config import ServerConfig
from .core import Connection, SocketServer, ThreadPool
from .handlers import RequestHandler
from .http import HTTPParseError, HTTPResponse, HTTPStatus, RequestParser


logger = logging.getLogger(__name__)

STARTUP_MESSAGE = "Listening on port {port}. Serving files from {root}"


class StaticServer:
    """
    Concurrent static file server.

        config = ServerConfig(root_dir="./public", port=8080)
        server = StaticServer(config)
        server.run()          # blocks until Ctrl+C / SIGTERM / shutdown()

    Embedding (tests):

        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready(5.0)
        host, port = server.bound_address
        ...
        server.shutdown()
        thread.join()
    """

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        audit: Optional[AuditLogger] = None,
    ):
        """
        Args:
            config: Server configuration. Validated here (fail fast).
            audit: Audit logger to use instead of one writing to
                   config.log_dir.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # CORE COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser()

        # ─────────────────────────────────────────────────────────────────
        # APPLICATION COMPONENTS
        # ─────────────────────────────────────────────────────────────────

        self.audit = audit or AuditLogger(self.config.log_dir)
        self.handler = RequestHandler.from_config(self.config, audit=self.audit)

        self._running = False

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def bound_address(self) -> Optional[Tuple[str, int]]:
        """(host, port) actually bound; None until listening."""
        return self._socket_server.bound_address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def run(self):
        """
        Start the server. BLOCKS until shutdown.

        Raises:
            OSError: If the port cannot be bound.
        """
        self._setup_logging()
        self._thread_pool.start()
        self._running = True

        try:
            self._socket_server.start(self._handle_connection, on_ready=self._announce)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Ask the accept loop to stop. Safe from any thread or a signal."""
        self._socket_server.shutdown()

    def _announce(self, address: Tuple[str, int]):
        print(STARTUP_MESSAGE.format(port=address[1], root=self.config.root_dir), flush=True)
        logger.info(
            f"Serving {self.config.root_path} on {address[0]}:{address[1]} "
            f"with {self.config.min_workers}-{self.config.max_workers} workers"
        )

    def _setup_logging(self):
        """Configure operational logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("staticserver").setLevel(level)

    def _shutdown(self):
        """
        Graceful shutdown.

        1. Accept loop has already stopped (no new connections)
        2. Let queued and in-flight requests finish, bounded by the timeout
        3. Stop the workers
        """
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout)
        logger.info("Server stopped")

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Queue a connection for a worker (called on the accept thread).

        A connection that waits in the queue longer than the timeout is
        answered with 503 instead of being served late.
        """
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            timeout=self.config.timeout,
            on_expire=self._reject,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Request queue full, rejecting {conn.client_ip}")
            self._reject(conn)

    def _reject(self, conn: Connection):
        """Answer 503 and close without waiting on the client (may run on the accept thread)."""
        try:
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
        finally:
            conn.close(drain=False)

    def _process_connection(self, conn: Connection):
        """
        Serve exactly one request on `conn` (runs in a worker thread).

        Errors before a response exists (timeouts, malformed heads) are
        answered here; everything after that is the handler's job.
        """
        with conn:
            try:
                head = conn.read_head()
                if head is None:
                    logger.debug(f"[{conn.id}] Client closed before sending a request")
                    return

                try:
                    request = self._parser.parse(head, conn.address)
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e.message}")
                    self._send_error(conn, HTTPStatus(e.status_code))
                    return

                if request.chunked:
                    request.body = conn.chunked_body_stream(self.config.max_body_size)
                else:
                    request.body = conn.body_stream(request.content_length)

                response = HTTPResponse(
                    conn.send,
                    version=request.version,
                    server_name=self.config.server_name,
                )
                self.handler.handle(request, response)

            except HTTPParseError as e:
                logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e.message}")
                self._send_error(conn, HTTPStatus(e.status_code))

            except TimeoutError:
                logger.info(f"[{conn.id}] Request read timeout from {conn.client_ip}")
                self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)

            except OSError as e:
                logger.debug(f"[{conn.id}] Connection error: {e}")

            except Exception as e:
                logger.exception(f"[{conn.id}] Unexpected error: {e}")

    def _send_error(self, conn: Connection, status: HTTPStatus):
        """Send a bare error response. Used before a request is parsed."""
        response = HTTPResponse(conn.send, server_name=self.config.server_name)
        try:
            response.send_error(status)
        except OSError as e:
            logger.debug(f"[{conn.id}] Could not send {int(status)}: {e}")


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Component wiring: config → sockets, workers, resolver, audit, handler
# 2. Request flow: Accept → Queue → Read head → Parse → Handle → Close
# 3. Overload: full queue or stale queued connection → 503
# 4. Lifecycle: startup line, signal-driven graceful shutdown
# =============================================================================
