"""
=============================================================================
POLLING TCP SERVER
=============================================================================

Server owns the listening socket. It never blocks and never loops: each
call to next_client() either hands back one accepted Connection or says
"nobody is waiting" by returning None. Running the loop, and deciding
whether to sleep between polls, is up to the caller:

    server = Server("127.0.0.1:3000")
    while True:
        conn = server.next_client()
        if conn is None:
            time.sleep(0.05)
            continue
        with conn:
            request = conn.request()
            conn.respond_ok(request.path.encode())

=============================================================================
TWO SOCKET MODES
=============================================================================

                    ┌───────────────────────┐
                    │   Listening socket    │  NON-BLOCKING
                    │   (owned by Server)   │  accept() → BlockingIOError
                    └───────────┬───────────┘  when the queue is empty
                                │
                        next_client()
                                │
                                ▼
                    ┌───────────────────────┐
                    │   Accepted socket     │  BLOCKING
                    │ (owned by Connection) │  recv()/sendall() wait
                    └───────────────────────┘

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:  restart on the same port without waiting out TIME_WAIT.
               Still refuses to bind a port another socket is listening on.

TCP_NODELAY:   set on accepted sockets; the response goes out as soon as
               it is written instead of waiting on Nagle's algorithm.

SO_REUSEPORT is NOT set: two processes silently sharing one address would
hide the "already in use" BindError.

=============================================================================
"""

import socket
import logging
from typing import Optional, Tuple

from ..config import ServerConfig
from ..exceptions import AcceptError, BindError
from .connection import Connection


logger = logging.getLogger(__name__)


def parse_address(address: str) -> Tuple[str, int]:
    """
    Split "host:port" into its parts.

    IPv6 hosts are written in brackets: "[::1]:8080" → ("::1", 8080).

    Raises:
        ValueError: If the string is not host:port with a port in 0-65535.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError("expected host:port")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError("IPv6 hosts must be written in brackets")

    if not host:
        raise ValueError("empty host")

    if not port.isdigit():
        raise ValueError(f"invalid port {port!r}")
    port_number = int(port)
    if not 0 <= port_number < 65536:
        raise ValueError(f"port {port_number} out of range")

    return host, port_number


class Server:
    """
    Non-blocking listening socket that produces one-shot Connections.

    The socket is created, bound and put into listen mode by the
    constructor; there is no separate start() step. Use the server as a
    context manager (or call close()) to release it.

    Attributes:
        bind_address: The address string the server was created with.
        backlog: Listen queue length.
        buffer_size: recv() size handed to each Connection.
        max_request_size: Header block limit handed to each Connection.
    """

    def __init__(
        self,
        address: str,
        backlog: int = 128,
        buffer_size: int = 4096,
        max_request_size: int = 64 * 1024,
    ):
        """
        Bind and listen on `address`.

        Args:
            address: "host:port" to bind, e.g. "127.0.0.1:3000".

        Raises:
            BindError: If the address is malformed, already in use, or
                cannot be bound for any other reason.
        """
        self.bind_address = address
        self.backlog = backlog
        self.buffer_size = buffer_size
        self.max_request_size = max_request_size

        self._socket: Optional[socket.socket] = self._create_socket(address)

        logger.info(f"Server listening on {self.address[0]}:{self.address[1]}")

    @classmethod
    def from_config(cls, config: ServerConfig) -> "Server":
        """Create a server from a ServerConfig."""
        return cls(
            config.address,
            backlog=config.backlog,
            buffer_size=config.buffer_size,
            max_request_size=config.max_request_size,
        )

    def _create_socket(self, address: str) -> socket.socket:
        try:
            host, port = parse_address(address)
        except ValueError as e:
            raise BindError(address, str(e)) from e

        try:
            infos = socket.getaddrinfo(
                host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
            )
        except (socket.gaierror, UnicodeError) as e:
            raise BindError(address, str(e)) from e

        family, sock_type, proto, _, sockaddr = infos[0]
        sock = socket.socket(family, sock_type, proto)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            sock.listen(self.backlog)
            # accept() must report "nothing pending" instead of waiting.
            sock.setblocking(False)
        except OSError as e:
            sock.close()
            raise BindError(address, str(e)) from e

        return sock

    @property
    def address(self) -> Tuple[str, int]:
        """The (host, port) actually bound. Resolves port 0 to the real port."""
        if self._socket is None:
            raise ValueError("Server is closed")
        sockname = self._socket.getsockname()
        return sockname[0], sockname[1]

    @property
    def closed(self) -> bool:
        return self._socket is None

    def fileno(self) -> int:
        """File descriptor of the listening socket, for select()/selectors."""
        if self._socket is None:
            raise ValueError("Server is closed")
        return self._socket.fileno()

    def next_client(self) -> Optional[Connection]:
        """
        Accept one pending connection, without blocking.

        Returns:
            A Connection (its socket in blocking mode), or None if no
            client is waiting.

        Raises:
            AcceptError: accept() failed for any other reason, e.g. the
                process ran out of file descriptors, or the server is
                closed. It is not retried.
        """
        if self._socket is None:
            raise AcceptError("Server is closed")

        try:
            client_socket, client_address = self._socket.accept()
        except BlockingIOError:
            return None
        except OSError as e:
            raise AcceptError(f"Accept failed: {e}") from e

        try:
            client_socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            pass  # Not a TCP socket option on this platform

        conn = Connection(
            socket=client_socket,
            address=(client_address[0], client_address[1]),
            buffer_size=self.buffer_size,
            max_request_size=self.max_request_size,
        )

        logger.debug(f"[{conn.id}] Accepted connection from {conn.client_ip}:{conn.client_port}")
        return conn

    def close(self):
        """Close the listening socket. Safe to call more than once."""
        if self._socket is None:
            return
        self._socket.close()
        self._socket = None
        logger.info("Server stopped")

    def __enter__(self) -> "Server":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
