"""
pytest configuration and fixtures.
"""

import socket
import time
from typing import Callable, Generator, List

import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from microhttp import Connection, Server


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP/1.0 GET request with a query and two headers."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.0\r\n"
        b"Host: localhost:3000\r\n"
        b"User-Agent: pytest\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """POST request carrying a body that must never be read."""
    body = b'{"name": "John"}'
    return (
        b"POST /api/users HTTP/1.0\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def server() -> Generator[Server, None, None]:
    """A server bound to an ephemeral local port."""
    srv = Server("127.0.0.1:0")
    yield srv
    srv.close()


@pytest.fixture
def socket_pair() -> Generator[tuple, None, None]:
    """A connected (server side, peer side) pair of sockets, no TCP involved."""
    server_side, peer = socket.socketpair()
    peer.settimeout(5.0)
    yield server_side, peer
    for sock in (server_side, peer):
        sock.close()


@pytest.fixture
def connect(server: Server) -> Generator[Callable[[], socket.socket], None, None]:
    """Factory opening TCP clients to the `server` fixture; closed on teardown."""
    clients: List[socket.socket] = []

    def _connect() -> socket.socket:
        client = socket.create_connection(server.address, timeout=5.0)
        clients.append(client)
        return client

    yield _connect

    for client in clients:
        client.close()


@pytest.fixture
def wait_for_client(server: Server) -> Callable[..., Connection]:
    """Poll server.next_client() until a connection shows up."""

    def _wait(timeout: float = 5.0) -> Connection:
        deadline = time.time() + timeout
        while time.time() < deadline:
            conn = server.next_client()
            if conn is not None:
                return conn
            time.sleep(0.01)
        raise RuntimeError("No client connected in time")

    return _wait


@pytest.fixture
def read_all() -> Callable[[socket.socket], bytes]:
    """Read from a socket until the peer closes."""

    def _read_all(sock: socket.socket) -> bytes:
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)

    return _read_all
