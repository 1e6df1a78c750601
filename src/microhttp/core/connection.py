"""
=============================================================================
ONE-SHOT CONNECTION
=============================================================================

A Connection wraps one accepted socket and services exactly one
request/response cycle on it, the HTTP/1.0 default. After the response is
written (or a write fails) the socket is closed.

=============================================================================
LIFECYCLE
=============================================================================

    ┌──────────┐ request() ┌─────────────────┐  parsed  ┌──────────────────┐
    │ ACCEPTED │──────────►│ REQUEST_PENDING │─────────►│ REQUEST_RECEIVED │
    └────┬─────┘           └───────┬─────────┘          └────────┬─────────┘
         │                         │ empty / I/O error           │ respond*()
         │                         ▼                             ▼
         │                    ┌────────┐     close()       ┌───────────┐
         └─── close() ───────►│ CLOSED │◄──────────────────│ RESPONDED │
                              └────────┘                   └───────────┘

    - request() may be called once, from ACCEPTED.
    - A malformed request still counts as received: the caller may answer
      it (e.g. "400 Bad Request") or just drop the connection.
    - respond*() is allowed only from REQUEST_RECEIVED, once: request()
      must have completed first, successfully or with MalformedRequestError.
    - Calls out of order raise ConnectionStateError.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

One recv() may return half a request line, or the whole header block plus
more. We keep appending to a buffer until the \\r\\n\\r\\n terminator shows
up or the peer closes. Bytes past the terminator (a body the peer sent
anyway) are never interpreted.

No timeout is set on the socket: a silent peer blocks request() until it
closes. Callers that need a deadline can settimeout() the socket before
calling request().

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Sequence, Tuple
import uuid

from ..exceptions import (
    ConnectionIOError,
    ConnectionStateError,
    EmptyRequestError,
    MalformedRequestError,
)
from ..http.request import HEADER_TERMINATOR, RawRequest, RequestParser
from ..http.response import RawResponse, ResponseWriter, ok


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, in the only order they can occur."""
    ACCEPTED = "accepted"                  # Socket accepted, nothing read yet
    REQUEST_PENDING = "request_pending"    # Reading the request
    REQUEST_RECEIVED = "request_received"  # Request read, waiting for a response
    RESPONDED = "responded"                # Response written
    CLOSED = "closed"                      # Socket released


@dataclass
class Connection:
    """
    An accepted client socket, good for one request and one response.

    Use it as a context manager so the socket is released on every path:

        conn = server.next_client()
        if conn is not None:
            with conn:
                request = conn.request()
                conn.respond_ok(request.path.encode())

    Attributes:
        socket: The accepted socket (switched to blocking mode).
        address: Peer (ip, port).
        id: Short identifier used in log records.
        state: Current ConnectionState.
        created_at: Accept timestamp.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.ACCEPTED
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 4096
    max_request_size: int = 64 * 1024

    _parser: RequestParser = field(init=False, repr=False)
    _writer: ResponseWriter = field(init=False, repr=False)

    def __post_init__(self):
        # The listening socket is non-blocking; per-connection I/O is not.
        self.socket.setblocking(True)
        self._parser = RequestParser(self.max_request_size)
        self._writer = ResponseWriter(self.socket, chunk_size=self.buffer_size)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def request(self) -> RawRequest:
        """
        Read and parse the request.

        Blocks until the header block terminator arrives or the peer closes.
        Request bodies are never read.

        Raises:
            EmptyRequestError: The peer closed without sending anything.
            MalformedRequestError: The request could not be parsed, or the
                peer closed before finishing the header block.
            ConnectionIOError: The read failed.
            ConnectionStateError: request() was already called, or the
                connection has already responded or closed.
        """
        self._require(ConnectionState.ACCEPTED, operation="request()")
        self.state = ConnectionState.REQUEST_PENDING

        try:
            data = self._read_head()
        except (EmptyRequestError, ConnectionIOError):
            self.close()
            raise
        except MalformedRequestError:
            self.state = ConnectionState.REQUEST_RECEIVED
            raise

        self.state = ConnectionState.REQUEST_RECEIVED
        request = self._parser.parse(data, self.address)
        logger.debug(f"[{self.id}] {request.request_line}")
        return request

    def _read_head(self) -> bytes:
        buffer = b""
        while HEADER_TERMINATOR not in buffer:
            chunk = self._recv()
            if not chunk:
                if not buffer:
                    raise EmptyRequestError("Peer closed the connection without sending a request")
                raise MalformedRequestError(
                    "Incomplete request: peer closed before the header terminator",
                    raw=buffer,
                )

            buffer += chunk

            if len(buffer) > self.max_request_size and HEADER_TERMINATOR not in buffer:
                raise MalformedRequestError(
                    f"Request header block too large: more than {self.max_request_size} bytes",
                    raw=buffer,
                )
        return buffer

    def _recv(self) -> bytes:
        """recv() once; a reset by the peer counts as the peer closing."""
        try:
            return self.socket.recv(self.buffer_size)
        except ConnectionResetError:
            return b""
        except OSError as e:
            raise ConnectionIOError(f"Read failed: {e}") from e

    # =========================================================================
    # WRITING
    # =========================================================================

    def respond_ok(self, body: bytes) -> int:
        """
        Send "200 OK" with a Content-Length header and `body`, then close.

        Returns:
            Number of bytes written.
        """
        return self._send(ok(body))

    def respond(self, status: str, body: bytes, headers: Sequence[str] = ()) -> int:
        """
        Send a response built exactly from the arguments, then close.

        No headers are added, Content-Length included:

            conn.respond("404 Not Found", b"", ["X-Test: 1"])
            # HTTP/1.0 404 Not Found\\r\\nX-Test: 1\\r\\n\\r\\n

        Args:
            status: Status text, e.g. "404 Not Found".
            body: Body bytes, may be empty.
            headers: Literal "Name: Value" strings, written in order.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionIOError: A write failed. The socket is closed anyway.
            ConnectionStateError: No request has been read yet, or the
                connection already responded or closed.
            ValueError: `status` or a header contains CR or LF.
        """
        return self._send(RawResponse(status=status, body=body, headers=list(headers)))

    def respond_ok_stream(self, data: BinaryIO, content_size: int) -> int:
        """
        Send "200 OK" with the body read from `data` in chunks, then close.

        Suited to file-backed bodies that should not be loaded into memory:

            size = os.path.getsize(path)
            with open(path, "rb") as f:
                conn.respond_ok_stream(f, size)

        Args:
            data: Binary file-like object, read until exhausted.
            content_size: Value for the Content-Length header.
        """
        return self.respond_stream("200 OK", data, [f"Content-Length: {content_size}"])

    def respond_stream(self, status: str, data: BinaryIO, headers: Sequence[str] = ()) -> int:
        """Like respond(), with the body read from `data` in chunks."""
        self._begin_response()
        try:
            written = self._writer.write_stream(status, data, headers)
            self.state = ConnectionState.RESPONDED
            logger.debug(f"[{self.id}] HTTP/1.0 {status} ({written} bytes)")
            return written
        finally:
            self.close()

    def _send(self, response: RawResponse) -> int:
        self._begin_response()
        try:
            written = self._writer.write(response)
            self.state = ConnectionState.RESPONDED
            logger.debug(f"[{self.id}] {response.status_line} ({written} bytes)")
            return written
        finally:
            self.close()

    def _begin_response(self) -> None:
        self._require(ConnectionState.REQUEST_RECEIVED, operation="respond()")

    def _require(self, *allowed: ConnectionState, operation: str) -> None:
        if self.state not in allowed:
            raise ConnectionStateError(
                f"[{self.id}] {operation} not allowed in state {self.state.value}"
            )

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection. Safe to call more than once.

        1. shutdown(SHUT_WR) sends FIN so the peer sees end-of-response.
        2. Whatever the peer already sent and we never read (a request
           body, say) is discarded without waiting for more, up to
           max_request_size bytes.
        3. close() releases the file descriptor.
        """
        if self.state is ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.setblocking(False)
            drained = 0
            while drained < self.max_request_size:
                chunk = self.socket.recv(self.buffer_size)
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # Nothing left to drain, or already disconnected

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {time.time() - self.created_at:.3f}s")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
