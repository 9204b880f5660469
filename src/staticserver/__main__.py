"""
=============================================================================
STATIC SERVER CLI ENTRY POINT
=============================================================================

    # Serve the current directory on 127.0.0.1:8080
    python -m staticserver

    # Custom root and port
    python -m staticserver --root ./public --port 3000

    # Listen on all interfaces (for containers)
    python -m staticserver --host 0.0.0.0

    # Read archivos_config.txt / puerto_config.txt from /etc/site
    python -m staticserver --config-dir /etc/site

=============================================================================
CONFIGURATION PRECEDENCE
=============================================================================

    defaults  <  config files (--config-dir)  <  environment  <  CLI flags

Each layer only overrides what it actually sets.

=============================================================================
"""

import argparse
import dataclasses
import sys
from typing import List, Optional

from . import __version__
from .config import ConfigurationError, ServerConfig, env_overrides
from .server import StaticServer


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="staticserver",
        description="Concurrent static file server with gzip and a daily audit log",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m staticserver --root ./public           # Serve ./public on :8080
  python -m staticserver -r ./public -p 3000       # Custom port
  python -m staticserver --host 0.0.0.0            # Listen on all interfaces
  python -m staticserver --config-dir /etc/site    # Legacy config files
        """,
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--root", "-r",
        default=None,
        help="Directory to serve; must contain error_404.html (default: .)",
    )

    parser.add_argument(
        "--config-dir",
        default=None,
        help="Directory holding archivos_config.txt and puerto_config.txt",
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)",
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)",
    )

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Minimum worker threads; max will be 2x this (default: 4)",
    )

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--log-dir",
        default=None,
        help="Directory for the daily audit logs (default: logs)",
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Operational logging level (default: INFO)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"staticserver {__version__}",
    )

    return parser


def build_config(args: argparse.Namespace, environ=None) -> ServerConfig:
    """
    Layer the configuration sources into one ServerConfig.

    Raises:
        ConfigurationError: If a config file or environment value is bad.
    """
    if args.config_dir:
        config = ServerConfig.from_files(args.config_dir)
    else:
        config = ServerConfig()

    overrides = env_overrides(environ)

    cli = {
        "root_dir": args.root,
        "host": args.host,
        "port": args.port,
        "log_dir": args.log_dir,
        "log_level": args.log_level,
    }
    overrides.update({name: value for name, value in cli.items() if value is not None})

    if args.workers is not None:
        overrides["min_workers"] = args.workers
        overrides["max_workers"] = args.workers * 2

    return dataclasses.replace(config, **overrides)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
        server = StaticServer(config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
