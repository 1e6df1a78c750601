"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The socket-level half of microhttp:

    Server      Owns the non-blocking listening socket; next_client()
                polls it and returns a Connection or None.

    Connection  Owns one accepted, blocking socket; request() reads the
                request, respond*() writes the response and closes.

=============================================================================
"""

from .server import Server, parse_address
from .connection import Connection, ConnectionState

__all__ = [
    "Server",           # Listening socket + accept polling
    "parse_address",    # "host:port" → (host, port)
    "Connection",       # One accepted socket, one request/response
    "ConnectionState",  # Enum for the connection lifecycle
]
