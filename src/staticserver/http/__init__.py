"""
HTTP protocol components: request head parsing, the streaming response
channel, status codes, and content-type lookup.
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, PayloadTooLarge, parse_request
from .response import HTTPResponse, format_http_date
from .status_codes import HTTPStatus
from .mime_types import get_content_type, MIME_TYPES, DEFAULT_MIME_TYPE

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "PayloadTooLarge",
    "parse_request",

    # Response channel
    "HTTPResponse",
    "format_http_date",

    # Status codes
    "HTTPStatus",

    # Content types
    "get_content_type",
    "MIME_TYPES",
    "DEFAULT_MIME_TYPE",
]
