"""
=============================================================================
CONTENT TYPE DETECTION
=============================================================================

Maps file extensions to the Content-Type header sent with each file.

MIME types tell the browser how to interpret the response body:

    Wrong MIME type → Browser may refuse to execute/display

    - script.js with text/plain → Won't execute as JavaScript
    - image.png with text/html  → Won't display as image

The table is deliberately small: the server is meant for a handful of
asset kinds (pages, stylesheets, scripts, images). Anything else is sent
as application/octet-stream and left to the browser.

=============================================================================
"""

from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Union


# Extension (lowercase, with dot) → MIME type.
# MappingProxyType makes the table read-only, so worker threads can share
# it without locking.
MIME_TYPES: Mapping[str, str] = MappingProxyType({
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".gif": "image/gif",
})

# "I don't know what this is, treat as binary"
DEFAULT_MIME_TYPE = "application/octet-stream"


def get_content_type(path: Union[str, Path]) -> str:
    """
    Get the Content-Type for a file based on its extension.

    The lookup is case-insensitive on the extension.

    Examples:
        >>> get_content_type("style.css")
        'text/css'

        >>> get_content_type("/site/img/LOGO.PNG")
        'image/png'

        >>> get_content_type("archive.tar.gz")
        'application/octet-stream'
    """
    extension = Path(path).suffix.lower()  # .PNG → .png
    return MIME_TYPES.get(extension, DEFAULT_MIME_TYPE)
