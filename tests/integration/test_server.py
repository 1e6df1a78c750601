"""
End-to-end tests: real TCP clients talking to a polled Server.
"""

import errno
import socket
import time

import pytest

from microhttp import (
    AcceptError,
    BindError,
    ConnectionState,
    EmptyRequestError,
    MalformedRequestError,
    Server,
    ServerConfig,
)


class TestServerBind:
    """Tests for Server construction."""

    def test_binds_ephemeral_port(self, server: Server):
        host, port = server.address

        assert host == "127.0.0.1"
        assert port > 0
        assert not server.closed

    def test_address_in_use(self, server: Server):
        host, port = server.address

        with pytest.raises(BindError) as exc_info:
            Server(f"{host}:{port}")

        assert isinstance(exc_info.value.__cause__, OSError)

    @pytest.mark.parametrize("address", [
        "not-an-address",
        "127.0.0.1",
        "127.0.0.1:99999",
        "127.0.0.1:port",
        ":3000",
        "::1:3000",
    ])
    def test_malformed_address(self, address: str):
        with pytest.raises(BindError) as exc_info:
            Server(address)

        assert exc_info.value.address == address

    def test_unresolvable_host(self):
        with pytest.raises(BindError):
            Server("host.invalid:0")

    def test_from_config(self):
        config = ServerConfig(address="127.0.0.1:0", backlog=4, buffer_size=512)

        with Server.from_config(config) as server:
            assert server.backlog == 4
            assert server.buffer_size == 512
            assert server.address[1] > 0

        assert server.closed


class TestNextClient:
    """Tests for the accept poll."""

    def test_returns_none_without_blocking(self, server: Server):
        """Test that an empty accept queue gives None immediately."""
        start = time.monotonic()

        assert server.next_client() is None
        assert time.monotonic() - start < 0.5

    def test_returns_connection(self, server: Server, connect, wait_for_client):
        client = connect()
        conn = wait_for_client()

        assert conn.state is ConnectionState.ACCEPTED
        assert conn.address[1] == client.getsockname()[1]
        assert conn.socket.gettimeout() is None  # blocking mode
        conn.close()

    def test_one_connection_per_client(self, server: Server, connect, wait_for_client):
        connect()
        connect()

        first = wait_for_client()
        second = wait_for_client()

        assert first.id != second.id
        assert server.next_client() is None
        first.close()
        second.close()

    def test_closed_server_raises_accept_error(self):
        server = Server("127.0.0.1:0")
        server.close()

        with pytest.raises(AcceptError):
            server.next_client()

    def test_accept_failure_raises_accept_error(self, server: Server, monkeypatch):
        """Test that accept() errors other than would-block are not swallowed."""
        monkeypatch.setattr(server, "_socket", ExhaustedListener())

        with pytest.raises(AcceptError) as exc_info:
            server.next_client()

        assert exc_info.value.__cause__.errno == errno.EMFILE

    def test_fileno(self, server: Server):
        assert server.fileno() >= 0


class TestRequestResponse:
    """The request/response scenarios over real sockets."""

    def test_respond_ok(self, connect, wait_for_client, read_all):
        client = connect()
        client.sendall(b"GET / HTTP/1.0\r\n\r\n")

        with wait_for_client() as conn:
            request = conn.request()
            assert request.path == "/"
            conn.respond_ok(b"hi")

        assert read_all(client) == b"HTTP/1.0 200 OK\r\nContent-Length: 2\r\n\r\nhi"

    def test_no_client(self, server: Server):
        assert server.next_client() is None

    def test_peer_closes_without_sending(self, connect, wait_for_client):
        client = connect()
        client.close()

        conn = wait_for_client()

        with pytest.raises(EmptyRequestError):
            conn.request()
        assert conn.closed

    def test_respond_with_custom_status(self, connect, wait_for_client, read_all):
        client = connect()
        client.sendall(b"GET /missing HTTP/1.0\r\n\r\n")

        conn = wait_for_client()
        conn.request()
        conn.respond("404 Not Found", b"", ["X-Test: 1"])

        assert read_all(client) == b"HTTP/1.0 404 Not Found\r\nX-Test: 1\r\n\r\n"

    def test_path_and_headers(self, connect, wait_for_client):
        client = connect()
        client.sendall(b"GET /a/b?x=1 HTTP/1.0\r\nHost: h\r\n\r\n")

        with wait_for_client() as conn:
            request = conn.request()

        assert request.path == "/a/b?x=1"
        assert request.headers == ["Host: h"]
        assert request.client_address == client.getsockname()[:2]

    def test_request_sent_in_pieces(self, connect, wait_for_client):
        client = connect()
        conn = wait_for_client()

        client.sendall(b"GET /pie")
        time.sleep(0.05)
        client.sendall(b"ces HTTP/1.0\r\nHo")
        time.sleep(0.05)
        client.sendall(b"st: h\r\n\r\n")

        with conn:
            request = conn.request()

        assert request.path == "/pieces"
        assert request.headers == ["Host: h"]

    def test_no_terminator_before_close(self, connect, wait_for_client):
        client = connect()
        client.sendall(b"GET / HTTP/1.0\r\nHost: h\r\n")
        client.shutdown(socket.SHUT_WR)

        with wait_for_client() as conn:
            with pytest.raises(MalformedRequestError):
                conn.request()

    def test_request_body_left_unread(self, connect, wait_for_client, read_all,
                                      sample_post_request: bytes):
        client = connect()
        client.sendall(sample_post_request)

        with wait_for_client() as conn:
            request = conn.request()
            conn.respond_ok(request.method.encode())

        assert read_all(client) == b"HTTP/1.0 200 OK\r\nContent-Length: 4\r\n\r\nPOST"

    def test_echo_loop(self, server: Server, connect, read_all):
        """Serve several clients from a caller-driven polling loop."""
        clients = [connect() for _ in range(3)]
        for i, client in enumerate(clients):
            client.sendall(f"GET /echo/{i} HTTP/1.0\r\n\r\n".encode())

        served = 0
        deadline = time.time() + 5.0
        while served < len(clients) and time.time() < deadline:
            conn = server.next_client()
            if conn is None:
                time.sleep(0.01)
                continue
            with conn:
                conn.respond_ok(conn.request().path.encode())
            served += 1

        responses = sorted(read_all(client) for client in clients)
        assert responses == [
            f"HTTP/1.0 200 OK\r\nContent-Length: 7\r\n\r\n/echo/{i}".encode()
            for i in range(3)
        ]


class ExhaustedListener:
    """Listening socket stand-in for a process out of file descriptors."""

    def accept(self):
        raise OSError(errno.EMFILE, "Too many open files")
