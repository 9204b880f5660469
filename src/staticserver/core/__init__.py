"""
Core networking and concurrency: the connection acceptor, the per-client
connection wrapper, and the worker thread pool.
"""

from .connection import BodyReader, ChunkedBodyReader, Connection, ConnectionState
from .socket_server import SocketServer
from .thread_pool import ThreadPool

__all__ = [
    "BodyReader",
    "ChunkedBodyReader",
    "Connection",
    "ConnectionState",
    "SocketServer",
    "ThreadPool",
]
