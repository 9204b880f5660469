"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

One immutable configuration value, built once at startup and handed to
every component (acceptor, worker pool, resolver, handler, audit logger).

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m staticserver --root ./site --port 3000          │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── STATIC_ROOT=./site HTTP_PORT=3000 python -m staticserver  │
    │                                                                      │
    │   3. Legacy config files                                            │
    │      └── archivos_config.txt (root), puerto_config.txt (port)      │
    │                                                                      │
    │   4. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHY FROZEN?
=============================================================================

Worker threads read the configuration without any locking. A frozen
dataclass makes that safe: nobody can flip the root directory under a
request that is already being served. To "change" a value, build a new
config with dataclasses.replace().

=============================================================================
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional


ROOT_CONFIG_FILE = "archivos_config.txt"
PORT_CONFIG_FILE = "puerto_config.txt"


class ConfigurationError(ValueError):
    """
    Raised when the server cannot start with the given configuration.

    Examples: a port out of range, a missing root directory, or a root
    without the fallback error page.
    """


@dataclass(frozen=True)
class ServerConfig:
    """
    Configuration for the static file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    CONTENT
    - root_dir, index_file, error_file

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    REQUEST LIMITS
    - max_header_size, max_body_size

    THREADING SETTINGS
    - min_workers, max_workers, queue_size

    RESPONSE STREAMING
    - compression_level, chunk_size

    LOGGING
    - log_dir (audit trail), log_level (operational logs)

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    root_dir: str = "."
    """
    Directory that every served file is resolved from.
    Must contain error_file at its top level.
    """

    index_file: str = "index.html"
    """File served when the request path is empty ("/")."""

    error_file: str = "error_404.html"
    """Fallback page served with 404 when the target does not exist."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (the original deployment)
    - "0.0.0.0" - All network interfaces
    """

    port: int = 8080

    backlog: int = 128
    """Maximum number of connections queued by the kernel."""

    buffer_size: int = 8192
    """Size of each socket recv() in bytes."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds for every read and write on a client
    connection. Bounds slow or stalled clients.
    None = blocking (infinite wait, dangerous in production!)
    """

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_header_size: int = 64 * 1024  # 64 KB
    """Largest request head (request line + headers) we will buffer."""

    max_body_size: int = 10 * 1024 * 1024  # 10 MB
    """
    Largest POST body we read for the audit log.
    Bigger bodies are not read; the request is still served.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    queue_size: int = 100
    """
    Connections allowed to wait for a worker.
    When full, new connections get 503 instead of blocking the acceptor.
    """

    # ─────────────────────────────────────────────────────────────────────
    # RESPONSE STREAMING
    # ─────────────────────────────────────────────────────────────────────

    compression_level: int = 6
    """gzip level (1 = fastest, 9 = smallest)."""

    chunk_size: int = 64 * 1024
    """Bytes read from disk per step while streaming a file."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_dir: str = "logs"
    """
    Directory for the daily audit files (YYYY-MM-DD.log).
    Relative paths are relative to the process working directory.
    """

    log_level: str = "INFO"
    """Operational logging level (DEBUG, INFO, WARNING, ERROR)."""

    server_name: str = "StaticServer/1.0"

    @property
    def root_path(self) -> Path:
        """Canonical absolute path of the root directory."""
        return Path(self.root_dir).resolve()

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        STATIC_ROOT     Root directory (default: .)
        HTTP_HOST       Server host (default: 127.0.0.1)
        HTTP_PORT       Server port (default: 8080)
        HTTP_WORKERS    Max worker threads (default: 16)
        HTTP_TIMEOUT    Socket timeout in seconds (default: 30)
        HTTP_LOG_LEVEL  Logging level (default: INFO)
        AUDIT_LOG_DIR   Audit log directory (default: logs)

        =====================================================================

        Unset variables keep the dataclass defaults. Keyword overrides win
        over the environment.
        """
        values = env_overrides()
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_files(
        cls,
        directory: str = ".",
        root_file: str = ROOT_CONFIG_FILE,
        port_file: str = PORT_CONFIG_FILE,
        **overrides,
    ) -> "ServerConfig":
        """
        Create configuration from the two plain-text config files.

        Each file holds a single value (surrounding whitespace is ignored):

            archivos_config.txt  →  /var/www/site
            puerto_config.txt    →  8080

        Raises:
            ConfigurationError: If a file is missing or the port is not
                                an integer.
        """
        base = Path(directory)
        try:
            root_dir = (base / root_file).read_text(encoding="utf-8").strip()
            port_text = (base / port_file).read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        try:
            port = int(port_text)
        except ValueError:
            raise ConfigurationError(f"Invalid port in {port_file}: {port_text!r}")

        values = dict(root_dir=root_dir, port=port)
        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        """
        Validate configuration values.

        =====================================================================
        FAIL-FAST PRINCIPLE
        =====================================================================

        A missing root or fallback page is a deployment mistake. We refuse
        to start instead of serving empty 404 bodies for hours.

        =====================================================================
        """
        if not 0 <= self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ConfigurationError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigurationError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ConfigurationError("queue_size must be >= 1")

        if self.buffer_size < 1024:
            raise ConfigurationError("buffer_size must be >= 1024")

        if self.chunk_size < 1:
            raise ConfigurationError("chunk_size must be >= 1")

        if not 0 <= self.compression_level <= 9:
            raise ConfigurationError("compression_level must be 0-9")

        if self.max_body_size < 0:
            raise ConfigurationError("max_body_size must be >= 0")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be > 0")

        root = self.root_path
        if not root.is_dir():
            raise ConfigurationError(f"Root directory does not exist: {self.root_dir}")

        if not (root / self.error_file).is_file():
            raise ConfigurationError(
                f"Fallback page {self.error_file} is missing from {self.root_dir}"
            )


# Environment variable → (field, converter)
ENV_VARS = {
    "STATIC_ROOT": ("root_dir", str),
    "HTTP_HOST": ("host", str),
    "HTTP_PORT": ("port", int),
    "HTTP_WORKERS": ("max_workers", int),
    "HTTP_TIMEOUT": ("timeout", float),
    "HTTP_LOG_LEVEL": ("log_level", str),
    "AUDIT_LOG_DIR": ("log_dir", str),
}


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> dict:
    """
    Config fields set through the environment, converted to their types.

    Only variables that are actually set appear in the result, so it can be
    layered over any other source with dataclasses.replace().

    Raises:
        ConfigurationError: If a numeric variable does not parse.
    """
    environ = os.environ if environ is None else environ
    values = {}
    for var, (name, convert) in ENV_VARS.items():
        if var not in environ:
            continue
        try:
            values[name] = convert(environ[var])
        except ValueError:
            raise ConfigurationError(f"Invalid value for {var}: {environ[var]!r}")

    # A small HTTP_WORKERS lowers the minimum with it.
    if "max_workers" in values:
        values["min_workers"] = min(values["max_workers"], ServerConfig.min_workers)
    return values


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# 1. Frozen dataclass: safe to share across worker threads
# 2. Three sources: CLI (in __main__), environment, legacy text files
# 3. Validation at startup, including the fallback page
# =============================================================================
