"""
Unit tests for HTTP request parsing.
"""

import io

import pytest

from staticserver.http.request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    PayloadTooLarge,
    parse_request,
)


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request: bytes):
        """Test parsing a simple GET request."""
        parser = RequestParser()
        request = parser.parse(sample_get_request, ("127.0.0.1", 12345))

        assert request.method == "GET"
        assert request.path == "/page.html"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("127.0.0.1", 12345)

    def test_parse_headers(self, sample_get_request: bytes):
        """Header names are lowercased."""
        request = parse_request(sample_get_request)

        assert request.host == "localhost:8080"
        assert request.headers["user-agent"] == "pytest"
        assert request.get_header("Accept") == "text/html"

    def test_query_keeps_leading_question_mark(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)

        assert request.query == "?x=1&y=two"
        assert request.target == "/page.html?x=1&y=two"

    def test_no_query(self):
        request = parse_request(b"GET /a.css HTTP/1.1\r\n\r\n")
        assert request.query == ""

    def test_path_is_percent_decoded(self):
        request = parse_request(b"GET /my%20page.html HTTP/1.1\r\n\r\n")
        assert request.path == "/my page.html"

    def test_dot_segments_are_left_to_the_resolver(self):
        """Traversal attempts parse fine; containment happens later."""
        request = parse_request(b"GET /%2e%2e/secret.txt HTTP/1.1\r\n\r\n")
        assert request.path == "/../secret.txt"

    def test_double_slash_stays_in_path(self):
        """A leading "//" is part of the path, not a network location."""
        request = parse_request(b"GET //sub/page.html?x=1 HTTP/1.1\r\n\r\n")

        assert request.path == "//sub/page.html"
        assert request.query == "?x=1"

    def test_fragment_is_dropped(self):
        request = parse_request(b"GET /a.html?x=1#top HTTP/1.1\r\n\r\n")

        assert request.path == "/a.html"
        assert request.query == "?x=1"

    def test_method_is_uppercased(self):
        request = parse_request(b"get / HTTP/1.0\r\n\r\n")
        assert request.method == "GET"
        assert request.version == "HTTP/1.0"

    def test_any_method_token_is_accepted(self):
        request = parse_request(b"PROPFIND /x HTTP/1.1\r\n\r\n")
        assert request.method == "PROPFIND"

    def test_duplicate_headers_are_joined(self):
        request = parse_request(
            b"GET / HTTP/1.1\r\n"
            b"Accept: text/html\r\n"
            b"Accept: text/css\r\n"
            b"\r\n"
        )
        assert request.headers["accept"] == "text/html, text/css"

    def test_folded_header_continuation(self):
        request = parse_request(
            b"GET / HTTP/1.1\r\n"
            b"X-Long: first\r\n"
            b"\tsecond\r\n"
            b"\r\n"
        )
        assert request.headers["x-long"] == "first second"

    def test_invalid_request_line(self):
        """Test that invalid request line raises error."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"INVALID\r\n\r\n")
        assert exc_info.value.status_code == 400

    def test_empty_request(self):
        with pytest.raises(HTTPParseError):
            parse_request(b"")

    def test_unsupported_version(self):
        """Test that unsupported HTTP version raises 505."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/2.0\r\n\r\n")
        assert exc_info.value.status_code == 505


class TestHTTPRequest:
    """Tests for HTTPRequest properties."""

    def test_url_from_host_header(self, sample_get_request: bytes):
        request = parse_request(sample_get_request)
        assert request.url == "http://localhost:8080/page.html?x=1&y=two"

    def test_url_without_host_header(self):
        request = parse_request(b"GET /a HTTP/1.0\r\n\r\n")
        assert request.url == "http://localhost/a"

    def test_absolute_form_target(self):
        request = parse_request(b"GET http://example.com/a?b=1 HTTP/1.1\r\n\r\n")
        assert request.url == "http://example.com/a?b=1"
        assert request.path == "/a"
        assert request.query == "?b=1"

    def test_remote_endpoint(self):
        request = HTTPRequest(method="GET", path="/", client_address=("10.0.0.5", 40000))
        assert request.remote_endpoint == "10.0.0.5:40000"

    def test_content_length(self):
        request = HTTPRequest(method="POST", path="/", headers={"content-length": "12"})
        assert request.content_length == 12

    @pytest.mark.parametrize("value", ["", "abc", "-5"])
    def test_invalid_content_length_is_zero(self, value: str):
        request = HTTPRequest(method="POST", path="/", headers={"content-length": value})
        assert request.content_length == 0

    @pytest.mark.parametrize("value, expected", [
        ("chunked", True),
        ("Chunked", True),
        ("gzip, chunked", True),
        ("chunked, gzip", False),
        ("", False),
    ])
    def test_chunked(self, value: str, expected: bool):
        request = HTTPRequest(method="POST", path="/", headers={"transfer-encoding": value})
        assert request.chunked is expected

    def test_content_encoding_defaults_to_utf8(self):
        request = HTTPRequest(method="POST", path="/", headers={"content-type": "text/plain"})
        assert request.content_encoding == "utf-8"

    def test_content_encoding_from_charset(self):
        request = HTTPRequest(
            method="POST",
            path="/",
            headers={"content-type": 'text/plain; charset="ISO-8859-1"'},
        )
        assert request.content_encoding == "ISO-8859-1"


class TestReadText:
    """Tests for reading the body as text."""

    def test_read_utf8_body(self, sample_post_request: bytes):
        request = parse_request(sample_post_request, body=b"name=abc")
        assert request.read_text() == "name=abc"

    def test_read_with_declared_charset(self):
        body = "café".encode("latin-1")
        request = parse_request(
            b"POST / HTTP/1.1\r\n"
            b"Content-Type: text/plain; charset=latin-1\r\n"
            b"Content-Length: 4\r\n\r\n",
            body=body,
        )
        assert request.read_text() == "café"

    def test_undecodable_body(self):
        request = parse_request(
            b"POST / HTTP/1.1\r\nContent-Length: 2\r\n\r\n",
            body=b"\xff\xfe",
        )
        with pytest.raises(UnicodeDecodeError):
            request.read_text()

    def test_unknown_charset(self):
        request = parse_request(
            b"POST / HTTP/1.1\r\n"
            b"Content-Type: text/plain; charset=no-such-codec\r\n"
            b"Content-Length: 1\r\n\r\n",
            body=b"a",
        )
        with pytest.raises(LookupError):
            request.read_text()

    def test_body_over_limit(self):
        """The limit is checked before anything is read."""
        body = io.BytesIO(b"x" * 100)
        request = HTTPRequest(
            method="POST",
            path="/",
            headers={"content-length": "100"},
            body=body,
        )

        with pytest.raises(PayloadTooLarge) as exc_info:
            request.read_text(max_size=10)

        assert exc_info.value.status_code == 413
        assert body.tell() == 0

    def test_empty_body(self):
        request = parse_request(b"POST / HTTP/1.1\r\n\r\n")
        assert request.read_text() == ""
