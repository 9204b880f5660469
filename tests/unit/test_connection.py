"""
Unit tests for the connection wrapper, over a local socket pair.
"""

import socket
import threading
import time

import pytest

from staticserver.core.connection import Connection, ConnectionState
from staticserver.http.request import HTTPParseError, PayloadTooLarge


@pytest.fixture
def sockets():
    server_side, client_side = socket.socketpair()
    yield server_side, client_side
    client_side.close()
    server_side.close()


def make_connection(sock: socket.socket, **kwargs) -> Connection:
    kwargs.setdefault("timeout", 2.0)
    return Connection(socket=sock, address=("127.0.0.1", 5555), **kwargs)


class TestReadHead:
    """Tests for Connection.read_head()."""

    def test_reads_head(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        assert conn.read_head() == b"GET / HTTP/1.1\r\nHost: x"
        assert conn.state == ConnectionState.PROCESSING

    def test_head_split_across_packets(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side, buffer_size=4)
        client_side.sendall(b"GET /a HTTP/1.0\r")
        client_side.sendall(b"\n\r\n")

        assert conn.read_head() == b"GET /a HTTP/1.0"

    def test_client_closed_before_request(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.shutdown(socket.SHUT_WR)

        assert conn.read_head() is None

    def test_client_closed_mid_head(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.sendall(b"GET / HTTP/1.1\r\nHo")
        client_side.shutdown(socket.SHUT_WR)

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_head()
        assert exc_info.value.status_code == 400

    def test_head_too_large(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side, max_header_size=1024)
        client_side.sendall(b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 4096)

        with pytest.raises(HTTPParseError) as exc_info:
            conn.read_head()
        assert exc_info.value.status_code == 431

    def test_timeout(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side, timeout=0.2)
        client_side.sendall(b"GET / HTTP/1.1\r\n")

        with pytest.raises(TimeoutError):
            conn.read_head()


class TestBodyStream:
    """Tests for reading the body after the head."""

    def test_body_from_buffer_and_socket(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.sendall(b"POST / HTTP/1.1\r\nContent-Length: 10\r\n\r\nhello")

        conn.read_head()
        body = conn.body_stream(10)
        client_side.sendall(b"world")

        assert body.read() == b"helloworld"

    def test_body_stops_at_length(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.sendall(b"POST / HTTP/1.1\r\n\r\nabcdefgh")

        conn.read_head()
        assert conn.body_stream(3).read() == b"abc"

    def test_short_body_when_client_closes(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.sendall(b"POST / HTTP/1.1\r\n\r\nabc")
        client_side.shutdown(socket.SHUT_WR)

        conn.read_head()
        assert conn.body_stream(100).read() == b"abc"

    def test_zero_length_body(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        assert conn.body_stream(0).read() == b""


class TestChunkedBodyStream:
    """Tests for Connection.chunked_body_stream()."""

    def test_decodes_chunks(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side, buffer_size=4)
        client_side.sendall(
            b"POST / HTTP/1.1\r\nTransfer-Encoding: chunked\r\n\r\n"
            b"5\r\nname=\r\n"
            b"3;ext=1\r\nabc\r\n"
            b"0\r\nX-Trailer: yes\r\n\r\n"
        )

        conn.read_head()
        assert conn.chunked_body_stream(1024).read() == b"name=abc"

    def test_chunks_split_across_packets(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.sendall(b"POST / HTTP/1.1\r\n\r\na\r\n01234")

        def rest():
            time.sleep(0.1)
            client_side.sendall(b"56789\r\n0\r\n\r\n")

        sender = threading.Thread(target=rest)
        sender.start()
        conn.read_head()
        try:
            assert conn.chunked_body_stream(1024).read() == b"0123456789"
        finally:
            sender.join()

    def test_over_limit(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.sendall(b"POST / HTTP/1.1\r\n\r\n4\r\nabcd\r\n4\r\nefgh\r\n0\r\n\r\n")

        conn.read_head()
        with pytest.raises(PayloadTooLarge) as exc_info:
            conn.chunked_body_stream(6).read()
        assert exc_info.value.limit == 6

    @pytest.mark.parametrize("body", [
        b"zz\r\nabc\r\n0\r\n\r\n",
        b"-1\r\nabc\r\n0\r\n\r\n",
        b"3\r\nabcX\r\n0\r\n\r\n",
    ])
    def test_malformed(self, sockets, body: bytes):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.sendall(b"POST / HTTP/1.1\r\n\r\n" + body)

        conn.read_head()
        with pytest.raises(HTTPParseError):
            conn.chunked_body_stream(1024).read()

    def test_client_closes_mid_body(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side)
        client_side.sendall(b"POST / HTTP/1.1\r\n\r\n8\r\nabc")
        client_side.shutdown(socket.SHUT_WR)

        conn.read_head()
        with pytest.raises(HTTPParseError):
            conn.chunked_body_stream(1024).read()


class TestClose:
    """Tests for Connection.close()."""

    def test_close_sends_eof(self, sockets):
        server_side, client_side = sockets
        client_side.settimeout(2.0)
        conn = make_connection(server_side)

        with conn:
            conn.send(b"bye")

        assert conn.state == ConnectionState.CLOSED
        assert client_side.recv(10) == b"bye"
        assert client_side.recv(10) == b""

    def test_close_is_idempotent(self, sockets):
        server_side, _ = sockets
        conn = make_connection(server_side)
        conn.close()
        conn.close()
        assert conn.state == ConnectionState.CLOSED

    def test_drain_stops_at_deadline(self, sockets):
        """A client trickling bytes cannot keep close() waiting."""
        server_side, client_side = sockets
        conn = make_connection(server_side, drain_timeout=0.5)
        stop = threading.Event()

        def trickle():
            while not stop.is_set():
                try:
                    client_side.send(b"x")
                except OSError:
                    return
                time.sleep(0.1)

        sender = threading.Thread(target=trickle)
        sender.start()
        try:
            started = time.monotonic()
            conn.close()
            elapsed = time.monotonic() - started
        finally:
            stop.set()
            sender.join()

        assert conn.state == ConnectionState.CLOSED
        assert elapsed < 1.5

    def test_drain_stops_at_byte_limit(self, sockets):
        """A client streaming a large body is cut off after drain_limit bytes."""
        server_side, client_side = sockets
        conn = make_connection(server_side, drain_timeout=10.0, drain_limit=16 * 1024)
        stop = threading.Event()

        def flood():
            client_side.settimeout(0.2)
            while not stop.is_set():
                try:
                    client_side.send(b"x" * 4096)
                except socket.timeout:
                    continue
                except OSError:
                    return

        sender = threading.Thread(target=flood)
        sender.start()
        try:
            started = time.monotonic()
            conn.close()
            elapsed = time.monotonic() - started
        finally:
            stop.set()
            sender.join()

        assert elapsed < 5.0

    def test_close_without_drain_does_not_wait(self, sockets):
        server_side, client_side = sockets
        conn = make_connection(server_side, drain_timeout=5.0)
        client_side.sendall(b"GET / HTTP/1.1\r\n")

        started = time.monotonic()
        conn.close(drain=False)

        assert time.monotonic() - started < 1.0
        assert conn.state == ConnectionState.CLOSED
