"""
=============================================================================
STATICSERVER - Concurrent Static File Server with Gzip and Audit Logging
=============================================================================

Serves the files under one directory over HTTP/1.x using raw sockets and a
worker thread pool. Every file goes out gzip-compressed, every request
leaves a line in a daily audit log.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   1. RAW SOCKET PROGRAMMING                                         │
    │      - Accept loop with a 1s timeout for clean shutdown             │
    │      - Streaming request bodies straight off the socket             │
    │                                                                     │
    │   2. HTTP/1.x                                                       │
    │      - Request line + header parsing                                │
    │      - Chunked (1.1) or close-delimited (1.0) response bodies       │
    │      - One request per connection                                   │
    │                                                                     │
    │   3. CONCURRENCY                                                    │
    │      - Thread pool with min/max workers and a bounded queue         │
    │      - 503 when the queue is full                                   │
    │                                                                     │
    │   4. STATIC FILES                                                   │
    │      - index.html for "/", error_404.html for everything missing    │
    │      - Path traversal protection                                    │
    │      - Unconditional gzip, never buffering the whole file           │
    │                                                                     │
    │   5. AUDIT LOG                                                      │
    │      - logs/YYYY-MM-DD.log, "HH:MM:SS - message" lines              │
    │      - POST bodies, query strings, one summary line per request     │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    staticserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m staticserver)
    ├── server.py            # StaticServer orchestrator
    ├── config.py            # ServerConfig dataclass
    ├── audit.py             # Daily audit log
    ├── core/                # Low-level components
    │   ├── socket_server.py # TCP accept loop
    │   ├── connection.py    # Connection wrapper
    │   └── thread_pool.py   # Thread pool implementation
    ├── http/                # HTTP protocol components
    │   ├── request.py       # Request parsing
    │   ├── response.py      # Streaming response writer
    │   ├── status_codes.py  # HTTP status enum
    │   └── mime_types.py    # Content-Type by extension
    └── handlers/            # Request handling
        ├── resolver.py      # URL path → file
        └── static.py        # Audit + gzip streaming

=============================================================================
QUICK START
=============================================================================

    from staticserver import StaticServer, ServerConfig

    server = StaticServer(ServerConfig(root_dir="./public", port=8080))
    server.run()

Or from the command line:

    python -m staticserver --root ./public --port 8080

=============================================================================
"""

from .config import ConfigurationError, ServerConfig
from .server import StaticServer

__version__ = "1.0.0"

__all__ = [
    "StaticServer",
    "ServerConfig",
    "ConfigurationError",
    "__version__",
]
