"""
=============================================================================
RAW REQUEST PARSER
=============================================================================

Turns the header block of an HTTP/1.0 request into a RawRequest.

The parser is deliberately minimal: it splits the request line into its
three tokens and checks that every header line looks like "Name: Value".
It does NOT decode the path, split the query string, normalize header
names or read a body. Those are the embedding application's business.

=============================================================================
WHAT THE PARSER SEES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /a/b?x=1 HTTP/1.0\r\n       ← request line                     │
    │  ─┬─ ────┬─── ───┬────                                              │
    │   │      │       │                                                   │
    │ method  path   version           path keeps its query, untouched    │
    ├─────────────────────────────────────────────────────────────────────┤
    │  Host: h\r\n                     ← header lines, kept verbatim and   │
    │  Accept: */*\r\n                   in arrival order (duplicates too) │
    ├─────────────────────────────────────────────────────────────────────┤
    │  \r\n                            ← terminator, end of what we read   │
    ├─────────────────────────────────────────────────────────────────────┤
    │  (body)                          ← never read, even with             │
    │                                    Content-Length present            │
    └─────────────────────────────────────────────────────────────────────┘

A request is either parsed completely or rejected with
MalformedRequestError. There is no partially-filled RawRequest.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import re

from ..exceptions import MalformedRequestError


HEADER_TERMINATOR = b"\r\n\r\n"


@dataclass
class RawRequest:
    """
    A request as received from the peer.

    Attributes:
        method:         Method token, e.g. "GET".
        path:           Request target exactly as sent, including any
                        query string: "/a/b?x=1".
        version:        Protocol version token, e.g. "HTTP/1.0".
        headers:        Header lines as received, in order, without the
                        trailing CRLF: ["Host: h", "Accept: */*"].
        client_address: (ip, port) of the peer.
        raw:            The header block bytes, terminator included.
    """

    method: str
    path: str
    version: str = "HTTP/1.0"
    headers: List[str] = field(default_factory=list)
    client_address: Tuple[str, int] = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    @property
    def header_fields(self) -> List[Tuple[str, str]]:
        """
        Header lines split into (name, value) pairs.

        Order and duplicates are preserved; names keep their original case
        and values are stripped of surrounding whitespace.
        """
        fields = []
        for line in self.headers:
            name, _, value = line.partition(":")
            fields.append((name, value.strip()))
        return fields

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Return the value of the first header called `name`.

        Header names are case-insensitive, so "host" finds "Host: h".
        """
        wanted = name.lower()
        for header_name, value in self.header_fields:
            if header_name.lower() == wanted:
                return value
        return default

    def get_all_headers(self, name: str) -> List[str]:
        """Return the values of every header called `name`, in order."""
        wanted = name.lower()
        return [value for header_name, value in self.header_fields
                if header_name.lower() == wanted]

    @property
    def request_line(self) -> str:
        """The request line as it appeared on the wire, without CRLF."""
        return f"{self.method} {self.path} {self.version}"


class RequestParser:
    """
    Parses a complete request header block into a RawRequest.

    ==========================================================================
    REGEX PATTERNS
    ==========================================================================

    REQUEST_LINE_PATTERN: (TOKEN) (\\S+) (HTTP/\\d+\\.\\d+)    [fullmatch]

        TOKEN       - Method: RFC 7230 token characters
        ` `         - Single space
        (\\S+)       - Request target, anything but whitespace
        ` `         - Single space
        HTTP/x.y    - Version

        The version must look like HTTP/<digits>.<digits>. This is
        stricter than splitting the line into three tokens: "GET / FTP/1.0"
        or "GET / 1.0" raise MalformedRequestError. Any such version is
        accepted, not just HTTP/1.0.

    HEADER_PATTERN: (TOKEN):[ \\t]*(.*?)[ \\t]*               [fullmatch]

        A header name is a non-empty token followed directly by a colon.
        "Host: h", "Accept:*/*" and "X-Empty:" are valid.
        "Host h", ": h" and "Bad Name: h" are not.

    ==========================================================================
    """

    TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"

    # Used with fullmatch() so a stray "\n" cannot hide behind "$".
    REQUEST_LINE_PATTERN = re.compile(rf"({TOKEN}) (\S+) (HTTP/\d+\.\d+)")
    HEADER_PATTERN = re.compile(rf"({TOKEN}):[ \t]*(.*?)[ \t]*")

    def __init__(self, max_request_size: int = 64 * 1024):
        """
        Args:
            max_request_size: Largest accepted header block in bytes,
                              terminator included.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
    ) -> RawRequest:
        """
        Parse a header block.

        `data` must contain the \\r\\n\\r\\n terminator. Bytes after it are
        ignored, since request bodies are never consumed.

        Raises:
            MalformedRequestError: If the block is oversized, incomplete,
                not UTF-8, or the request line / a header line is invalid.
        """
        header_end = data.find(HEADER_TERMINATOR)
        if header_end == -1:
            raise MalformedRequestError(
                "Incomplete request: no header terminator", raw=data
            )

        raw = data[:header_end + len(HEADER_TERMINATOR)]
        if len(raw) > self.max_request_size:
            raise MalformedRequestError(
                f"Request header block too large: {len(raw)} bytes", raw=raw
            )

        try:
            header_section = data[:header_end].decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRequestError(f"Failed to decode request: {e}", raw=raw) from e

        lines = header_section.split("\r\n")
        method, path, version = self._parse_request_line(lines[0], raw)
        headers = self._parse_headers(lines[1:], raw)

        return RawRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            client_address=client_address,
            raw=raw,
        )

    def _parse_request_line(self, line: str, raw: bytes) -> Tuple[str, str, str]:
        match = self.REQUEST_LINE_PATTERN.fullmatch(line)
        if not match:
            raise MalformedRequestError(f"Invalid request line: {line!r}", raw=raw)
        return match.group(1), match.group(2), match.group(3)

    def _parse_headers(self, lines: List[str], raw: bytes) -> List[str]:
        """Validate header lines and return them unchanged, in order."""
        for line in lines:
            if not self.HEADER_PATTERN.fullmatch(line):
                raise MalformedRequestError(f"Invalid header line: {line!r}", raw=raw)
        return list(lines)


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_request_size: int = 64 * 1024,
) -> RawRequest:
    """Parse a header block with a default RequestParser."""
    return RequestParser(max_request_size).parse(data, client_address)
