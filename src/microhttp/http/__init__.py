"""
=============================================================================
HTTP/1.0 MESSAGE HANDLING
=============================================================================

Pure byte-level helpers, no sockets involved except in ResponseWriter:

    REQUEST:                          RESPONSE:
    ─────────                         ──────────
    GET /path HTTP/1.0\r\n            HTTP/1.0 200 OK\r\n
    Header: Value\r\n                 Header: Value\r\n
    \r\n                              \r\n
                                      [body]

=============================================================================
"""

from .request import HEADER_TERMINATOR, RawRequest, RequestParser, parse_request
from .response import RawResponse, ResponseWriter, format_head, ok

__all__ = [
    # Request parsing
    "HEADER_TERMINATOR",
    "RawRequest",
    "RequestParser",
    "parse_request",

    # Response writing
    "RawResponse",
    "ResponseWriter",
    "format_head",
    "ok",
]
