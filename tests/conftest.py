"""
pytest configuration and fixtures.
"""

import dataclasses
import random
import socket
import threading
import time
from typing import Callable, Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from staticserver import ServerConfig, StaticServer


INDEX_BODY = b"<!DOCTYPE html><html><body><h1>hi</h1></body></html>\n"
ERROR_BODY = b"<!DOCTYPE html><html><body><h1>not found</h1></body></html>\n"
CSS_BODY = b"body { color: #333; }\n" * 50
# Incompressible binary content, several chunks long.
PNG_BODY = random.Random(1234).randbytes(200_000)


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request head with a query string."""
    return (
        b"GET /page.html?x=1&y=two HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request head (body sent separately)."""
    return (
        b"POST /form HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        b"Content-Length: 8\r\n"
        b"\r\n"
    )


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    """
    A small site to serve:

        tmp/
        ├── secret.txt          (outside the root, must never be served)
        └── site/
            ├── index.html
            ├── error_404.html
            ├── style.css
            └── img/logo.PNG
    """
    root = tmp_path / "site"
    (root / "img").mkdir(parents=True)
    (root / "index.html").write_bytes(INDEX_BODY)
    (root / "error_404.html").write_bytes(ERROR_BODY)
    (root / "style.css").write_bytes(CSS_BODY)
    (root / "img" / "logo.PNG").write_bytes(PNG_BODY)
    (tmp_path / "secret.txt").write_text("top secret")
    return root


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    return tmp_path / "logs"


@pytest.fixture
def config(site_root: Path, log_dir: Path) -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        root_dir=str(site_root),
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=8,
        timeout=5.0,
        log_dir=str(log_dir),
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class TestServer:
    """Test server helper that runs in a background thread."""

    def __init__(self, server: StaticServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def host(self) -> str:
        return self.server.bound_address[0]

    @property
    def port(self) -> int:
        return self.server.bound_address[1]

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(5.0):
            raise RuntimeError("Server failed to start")

        # Wait until the listening socket accepts
        for _ in range(50):  # 5 seconds max
            try:
                with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
                    s.connect((self.host, self.port))
                    return
            except ConnectionRefusedError:
                time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def start_server(config: ServerConfig) -> Generator[Callable[..., TestServer], None, None]:
    """
    Factory for running servers; keyword arguments replace config fields.

        server = start_server(timeout=0.5)

    Every server started through it is stopped at teardown.
    """
    started = []

    def start(**changes) -> TestServer:
        test_srv = TestServer(StaticServer(dataclasses.replace(config, **changes)))
        test_srv.start()
        started.append(test_srv)
        return test_srv

    yield start

    for test_srv in started:
        test_srv.stop()


@pytest.fixture
def test_server(start_server) -> TestServer:
    """A running server over site_root, audit logs in log_dir."""
    return start_server()
