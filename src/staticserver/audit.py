"""
=============================================================================
AUDIT LOG
=============================================================================

Appends one line per request event to a file named after the current date:

    logs/
    ├── 2026-10-18.log
    └── 2026-10-19.log
            14:02:11 - Query data: ?x=1
            14:02:11 - Request from 127.0.0.1:51544 for http://localhost:8080/page.html?x=1
            14:02:15 - POST data: name=abc
            14:02:15 - Request from 127.0.0.1:51546 for http://localhost:8080/form

This is NOT the operational log (that goes through the logging module to
stderr). The audit trail is a product of the server: who asked for what,
and what they posted.

=============================================================================
CONCURRENCY
=============================================================================

Many worker threads log at the same time. Every append goes through one
lock, and the file is opened, written, and closed inside it:

    worker A ──┐
    worker B ──┼──► [lock] open(append) → write line → close [unlock]
    worker C ──┘

So a line is never torn or interleaved with another, and no file handle
outlives a single append.

=============================================================================
FAILURE POLICY
=============================================================================

An audit failure (disk full, permissions) must never break the response.
log() reports the error through the logging module and returns False.

=============================================================================
"""

import logging
import os
import threading
from datetime import datetime
from typing import Callable


logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Thread-safe, append-only, date-partitioned request log.

        audit = AuditLogger("logs")
        audit.log("POST data: name=abc")
        # → logs/2026-10-19.log: "14:02:15 - POST data: name=abc"
    """

    def __init__(
        self,
        log_dir: str = "logs",
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            log_dir: Directory for the daily files; created on first use.
            clock: Source of timestamps (local time). Tests inject a fixed one.
        """
        self.log_dir = log_dir
        self.clock = clock
        self._lock = threading.Lock()

    def path_for(self, timestamp: datetime) -> str:
        """The file an entry with this timestamp belongs to."""
        return os.path.join(self.log_dir, f"{timestamp:%Y-%m-%d}.log")

    @staticmethod
    def format_line(timestamp: datetime, message: str) -> str:
        """
        "HH:MM:SS - message\\n", with CR/LF inside the message escaped so
        a multi-line POST body still occupies exactly one line.
        """
        message = message.replace("\r", "\\r").replace("\n", "\\n")
        return f"{timestamp:%H:%M:%S} - {message}\n"

    def log(self, message: str) -> bool:
        """
        Append one line for `message`.

        The timestamp is taken once, so the file name and the line's time
        always agree even around midnight.

        Returns:
            True if the line was written, False if writing failed.
        """
        timestamp = self.clock()
        line = self.format_line(timestamp, message)
        path = self.path_for(timestamp)

        with self._lock:
            try:
                os.makedirs(self.log_dir, exist_ok=True)
                with open(path, "a", encoding="utf-8", newline="") as f:
                    f.write(line)
            except OSError as e:
                logger.error(f"Audit log write to {path} failed: {e}")
                return False

        return True
