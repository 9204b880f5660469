"""
Unit tests for Content-Type detection and status codes.
"""

import pytest

from staticserver.http import HTTPStatus
from staticserver.http.mime_types import (
    DEFAULT_MIME_TYPE,
    MIME_TYPES,
    get_content_type,
)


class TestGetContentType:
    """Tests for extension → Content-Type mapping."""

    @pytest.mark.parametrize("name, expected", [
        ("index.html", "text/html"),
        ("style.css", "text/css"),
        ("app.js", "application/javascript"),
        ("logo.png", "image/png"),
        ("photo.jpg", "image/jpeg"),
        ("anim.gif", "image/gif"),
    ])
    def test_known_extensions(self, name: str, expected: str):
        assert get_content_type(name) == expected

    @pytest.mark.parametrize("name", ["INDEX.HTML", "Logo.Png", "photo.JPG"])
    def test_extension_is_case_insensitive(self, name: str):
        assert get_content_type(name) == get_content_type(name.lower())

    @pytest.mark.parametrize("name", ["notes.txt", "archive.tar.gz", "README", ".hidden"])
    def test_unknown_is_octet_stream(self, name: str):
        assert get_content_type(name) == DEFAULT_MIME_TYPE

    def test_only_last_extension_counts(self):
        assert get_content_type("/site/page.css.html") == "text/html"

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            MIME_TYPES[".txt"] = "text/plain"


class TestHTTPStatus:
    """Tests for the status enum."""

    def test_phrase(self):
        assert HTTPStatus.NOT_FOUND.phrase == "Not Found"
        assert HTTPStatus.SERVICE_UNAVAILABLE.phrase == "Service Unavailable"

    def test_categories(self):
        assert HTTPStatus.OK.is_success
        assert HTTPStatus.NOT_FOUND.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error
        assert HTTPStatus.REQUEST_TIMEOUT.is_error
        assert not HTTPStatus.OK.is_error
