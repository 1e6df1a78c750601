"""
=============================================================================
MICROHTTP ERRORS
=============================================================================

Every failure in microhttp is raised to the caller. Nothing is retried,
logged-and-dropped, or turned into an automatic error response: deciding
what to do (log it, answer 400, move on to the next client) is the job of
the embedding application.

    ┌──────────────────────────┬──────────────────────────────────────────┐
    │  Exception               │  Raised by                               │
    ├──────────────────────────┼──────────────────────────────────────────┤
    │  BindError               │  Server() - address unusable             │
    │  AcceptError             │  Server.next_client() - accept() failed  │
    │  EmptyRequestError       │  Connection.request() - peer sent nothing│
    │  MalformedRequestError   │  Connection.request() - unparseable text │
    │  ConnectionIOError       │  request()/respond*() - socket failure   │
    │  ConnectionStateError    │  Connection - call out of lifecycle order│
    └──────────────────────────┴──────────────────────────────────────────┘

Socket-level failures keep the original OSError as __cause__:

    try:
        server = Server("127.0.0.1:80")
    except BindError as e:
        print(e.__cause__.errno)

=============================================================================
"""


class MicroHTTPError(Exception):
    """Base class for all microhttp errors."""


class BindError(MicroHTTPError):
    """The listening socket could not be created or bound."""

    def __init__(self, address: str, reason: str):
        super().__init__(f"Cannot bind to {address!r}: {reason}")
        self.address = address
        self.reason = reason


class AcceptError(MicroHTTPError):
    """accept() failed for a reason other than "no pending connection"."""


class ConnectionIOError(MicroHTTPError):
    """
    A read or write on an accepted socket failed.

    The connection is dead once this is raised; its socket has already
    been closed.
    """


class ConnectionStateError(MicroHTTPError):
    """An operation was attempted in the wrong connection lifecycle state."""


class RequestError(MicroHTTPError):
    """Base class for problems with the request the peer sent."""


class EmptyRequestError(RequestError):
    """The peer closed the connection without sending a single byte."""


class MalformedRequestError(RequestError):
    """
    The request text could not be parsed.

    Attributes:
        raw: The bytes received before the error was detected.
    """

    def __init__(self, message: str, raw: bytes = b""):
        super().__init__(message)
        self.raw = raw
