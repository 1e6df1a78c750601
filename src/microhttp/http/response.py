"""
=============================================================================
LITERAL RESPONSE WRITER
=============================================================================

Serializes HTTP/1.0 responses exactly as the caller describes them.

=============================================================================
WIRE FORMAT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  HTTP/1.0 404 Not Found\r\n      ← "HTTP/1.0 " + caller's status    │
    ├─────────────────────────────────────────────────────────────────────┤
    │  X-Test: 1\r\n                   ← caller's header strings,         │
    │  Content-Type: text/plain\r\n      verbatim and in the given order  │
    ├─────────────────────────────────────────────────────────────────────┤
    │  \r\n                            ← blank line                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │  <body bytes>                    ← raw body                         │
    └─────────────────────────────────────────────────────────────────────┘

Unlike a framework response, NOTHING is added implicitly: no Date, no
Server, not even Content-Length. The only exception is ok(), which builds
the one canned response this library offers:

    HTTP/1.0 200 OK\r\n
    Content-Length: <len(body)>\r\n
    \r\n
    <body>

=============================================================================
"""

from dataclasses import dataclass, field
from typing import BinaryIO, List, Sequence
import logging
import socket

from ..exceptions import ConnectionIOError


logger = logging.getLogger(__name__)


HTTP_VERSION = "HTTP/1.0"
CRLF = "\r\n"


def _check_line(kind: str, text: str) -> None:
    # Each status/header string must stay on exactly one wire line.
    if "\r" in text or "\n" in text:
        raise ValueError(f"{kind} must not contain CR or LF: {text!r}")


def format_head(status: str, headers: Sequence[str] = ()) -> bytes:
    """
    Build the status line, header lines and blank line of a response.

    Args:
        status:  Status text after the version, e.g. "404 Not Found".
        headers: Literal "Name: Value" strings, written in order.

    Raises:
        ValueError: If the status or a header contains CR or LF.
    """
    _check_line("Status", status)
    lines = [f"{HTTP_VERSION} {status}"]
    for header in headers:
        _check_line("Header", header)
        lines.append(header)
    lines.append("")
    return (CRLF.join(lines) + CRLF).encode("utf-8")


@dataclass
class RawResponse:
    """
    A response to be written to the peer.

    Attributes:
        status:  Status text without the version ("200 OK").
        body:    Body bytes, may be empty.
        headers: Literal header strings, order significant.
    """

    status: str = "200 OK"
    body: bytes = b""
    headers: List[str] = field(default_factory=list)

    @property
    def status_line(self) -> str:
        """The status line without its CRLF: "HTTP/1.0 200 OK"."""
        return f"{HTTP_VERSION} {self.status}"

    def head(self) -> bytes:
        """Status line, headers and blank line, as bytes."""
        return format_head(self.status, self.headers)

    def to_bytes(self) -> bytes:
        """The complete response as it goes on the wire."""
        return self.head() + bytes(self.body)


def ok(body: bytes = b"") -> RawResponse:
    """A "200 OK" response with a Content-Length computed from `body`."""
    return RawResponse(
        status="200 OK",
        body=body,
        headers=[f"Content-Length: {len(body)}"],
    )


class ResponseWriter:
    """
    Writes responses to a connected socket.

    Every write uses sendall(), so a call either puts all its bytes on the
    socket or raises. Nothing is retried.

    Usage:
        writer = ResponseWriter(sock)
        sent = writer.write(ok(b"hi"))
    """

    def __init__(self, sock: socket.socket, chunk_size: int = 4096):
        """
        Args:
            sock:       Connected, blocking socket.
            chunk_size: Read size used when streaming a body from a file.
        """
        self.sock = sock
        self.chunk_size = chunk_size

    def write(self, response: RawResponse) -> int:
        """
        Write a complete response.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionIOError: If the socket write fails.
        """
        data = response.to_bytes()
        self._send(data)
        return len(data)

    def write_stream(
        self,
        status: str,
        data: BinaryIO,
        headers: Sequence[str] = (),
    ) -> int:
        """
        Write the response head, then copy `data` to the socket in chunks.

        `data` is any object with a binary read(size) method (an open file,
        io.BytesIO, ...). It is read until it returns b"".

        Returns:
            Number of bytes written, head included.

        Raises:
            ConnectionIOError: If a socket write fails. Errors raised by
                `data.read()` propagate unchanged.
        """
        head = format_head(status, headers)
        self._send(head)
        written = len(head)

        while True:
            chunk = data.read(self.chunk_size)
            if not chunk:
                break
            self._send(chunk)
            written += len(chunk)

        return written

    def _send(self, data: bytes) -> None:
        try:
            self.sock.sendall(data)
        except OSError as e:
            raise ConnectionIOError(f"Write failed: {e}") from e
        logger.debug(f"Wrote {len(data)} bytes")
