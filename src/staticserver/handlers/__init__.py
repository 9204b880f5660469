"""
=============================================================================
HANDLERS MODULE
=============================================================================

What the server does with a parsed request.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                  REQUEST → HANDLER → RESPONSE                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │    Request             RequestHandler               Response        │
    │   ┌─────────┐       ┌──────────────────┐        ┌──────────────┐    │
    │   │ GET     │       │ ResourceResolver │        │ 200 / 404    │    │
    │   │ /a.css  │ ────▶ │ AuditLogger      │ ─────▶ │ gzip stream  │    │
    │   │ ?x=1    │       │ gzip streaming   │        │ (chunked)    │    │
    │   └─────────┘       └──────────────────┘        └──────────────┘    │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

1. ResourceResolver
   - URL path → file under the root, or the 404 fallback page
   - Path traversal protection

2. RequestHandler
   - Audit lines for POST bodies, GET queries and every request
   - Content-Type from the file extension
   - Unconditional gzip, streamed in chunks

=============================================================================
"""

from .resolver import ResolvedResource, ResourceResolver
from .static import RequestHandler

__all__ = [
    "ResolvedResource",
    "ResourceResolver",
    "RequestHandler",
]
