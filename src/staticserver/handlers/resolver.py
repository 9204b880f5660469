"""
=============================================================================
RESOURCE RESOLVER
=============================================================================

Maps a URL path to the file that should answer it.

    "/"                  → <root>/index.html          200
    "/css/site.css"      → <root>/css/site.css        200
    "/missing.txt"       → <root>/error_404.html      404
    "/../etc/passwd"     → <root>/error_404.html      404
    "//etc/passwd"       → <root>/error_404.html      404

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

Joining strings is not enough:

    root + "/" + "../../etc/passwd"  →  /etc/passwd   (SECURITY BREACH!)

We canonicalize instead:

    full_path = (root_dir / user_input).resolve()   # follows .. and symlinks
    full_path.relative_to(root_dir)                 # raises if outside root

Anything outside the root is treated exactly like a missing file: the
client gets the 404 fallback page. No 403, no 500, no path in the body.

=============================================================================
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedResource:
    """
    The file chosen for one request.

    Attributes:
        path: Absolute path inside the root (or the fallback page).
        exists: Whether a regular file was at `path` when resolved.
                False only when the fallback page itself is missing.
        status: 200 for the requested file, 404 for the fallback.
    """
    path: Path
    exists: bool
    status: HTTPStatus

    @property
    def is_fallback(self) -> bool:
        return self.status == HTTPStatus.NOT_FOUND


class ResourceResolver:
    """
    Resolves URL paths against a single root directory.

    Only checks for existence; never opens or reads the file.
    """

    def __init__(
        self,
        root_dir: Union[str, Path],
        index_file: str = "index.html",
        error_file: str = "error_404.html",
    ):
        self.root_dir = Path(root_dir).resolve()
        self.index_file = index_file
        self.error_file = error_file

    @property
    def fallback_path(self) -> Path:
        return self.root_dir / self.error_file

    def resolve(self, url_path: str) -> ResolvedResource:
        """
        Resolve a URL path (already percent-decoded, query removed).

        Steps:
        1. Strip ONE leading "/"; empty → index_file
        2. Canonicalize under the root; outside the root → fallback
        3. Regular file there → 200, otherwise → fallback with 404
        """
        relative = url_path[1:] if url_path.startswith("/") else url_path
        if not relative:
            relative = self.index_file

        candidate = self._contained(relative)
        if candidate is not None and _is_file(candidate):
            return ResolvedResource(candidate, True, HTTPStatus.OK)

        fallback = self.fallback_path
        return ResolvedResource(fallback, _is_file(fallback), HTTPStatus.NOT_FOUND)

    def _contained(self, relative: str) -> Optional[Path]:
        """Canonical path for `relative`, or None if it escapes the root."""
        try:
            candidate = (self.root_dir / relative).resolve()
            candidate.relative_to(self.root_dir)
        except ValueError:
            # Outside the root, or an embedded NUL byte.
            logger.warning(f"Rejected path outside root: {relative!r}")
            return None
        except (OSError, RuntimeError) as e:
            # Unresolvable (name too long, symlink loop).
            logger.debug(f"Cannot resolve {relative!r}: {e}")
            return None
        return candidate


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False
