"""
=============================================================================
MICROHTTP - A Tiny, Synchronous HTTP/1.0 Server Core
=============================================================================

For small processes that answer a handful of simple API requests and do
not want a web framework. microhttp accepts a connection, reads one
request, writes one response and closes. No threads, no event loop, no
routing, no keep-alive.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    microhttp/
    ├── __init__.py          # This file - package exports
    ├── config.py            # ServerConfig dataclass
    ├── exceptions.py        # Error hierarchy
    ├── core/
    │   ├── server.py        # Server: non-blocking accept polling
    │   └── connection.py    # Connection: one-shot request/response
    └── http/
        ├── request.py       # RawRequest + RequestParser
        └── response.py      # RawResponse + ResponseWriter

=============================================================================
QUICK START
=============================================================================

    import time
    from microhttp import Server, EmptyRequestError, MalformedRequestError

    server = Server("127.0.0.1:3000")

    while True:
        conn = server.next_client()
        if conn is None:
            time.sleep(0.5)
            continue

        with conn:
            try:
                request = conn.request()
            except EmptyRequestError:
                continue
            except MalformedRequestError:
                conn.respond("400 Bad Request", b"", [])
                continue

            if request.path == "/hello":
                conn.respond_ok(b"Hello!")
            else:
                conn.respond("404 Not Found", b"", ["X-Path: " + request.path])

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .core import Connection, ConnectionState, Server
from .http import RawRequest, RawResponse, RequestParser, ResponseWriter
from .exceptions import (
    AcceptError,
    BindError,
    ConnectionIOError,
    ConnectionStateError,
    EmptyRequestError,
    MalformedRequestError,
    MicroHTTPError,
    RequestError,
)

__all__ = [
    "Server",
    "ServerConfig",
    "Connection",
    "ConnectionState",
    "RawRequest",
    "RawResponse",
    "RequestParser",
    "ResponseWriter",
    "MicroHTTPError",
    "BindError",
    "AcceptError",
    "RequestError",
    "EmptyRequestError",
    "MalformedRequestError",
    "ConnectionIOError",
    "ConnectionStateError",
    "__version__",
]
