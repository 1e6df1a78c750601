"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

The only thing microhttp truly needs is a bind address. ServerConfig
bundles it with a few tuning knobs so an embedding process can keep them
in one place, fill them from the environment and validate them at
startup.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Values passed in code                                          │
    │      └── ServerConfig(address="0.0.0.0:8000")                       │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── MICROHTTP_ADDRESS=0.0.0.0:8000 → ServerConfig.from_env()   │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
import logging
from dataclasses import dataclass


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class ServerConfig:
    """
    Configuration for a microhttp Server.

    Usage:
        config = ServerConfig.from_env()
        config.validate()
        config.configure_logging()
        server = Server.from_config(config)
    """

    address: str = "127.0.0.1:3000"
    """
    "host:port" to bind. IPv6 hosts go in brackets: "[::1]:3000".
    Port 0 lets the OS pick a free port (see Server.address).
    """

    backlog: int = 128
    """Maximum number of connections queued before accept."""

    buffer_size: int = 4096
    """recv() size, and chunk size when streaming a response body."""

    max_request_size: int = 64 * 1024
    """Largest accepted request header block, in bytes."""

    log_level: str = "WARNING"
    """Level for the "microhttp" logger (DEBUG shows per-connection events)."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        MICROHTTP_ADDRESS           Bind address (default: 127.0.0.1:3000)
        MICROHTTP_BACKLOG           Listen backlog (default: 128)
        MICROHTTP_BUFFER_SIZE       recv/stream chunk size (default: 4096)
        MICROHTTP_MAX_REQUEST_SIZE  Header block limit (default: 65536)
        MICROHTTP_LOG_LEVEL         Logging level (default: WARNING)
        """
        return cls(
            address=os.getenv("MICROHTTP_ADDRESS", "127.0.0.1:3000"),
            backlog=int(os.getenv("MICROHTTP_BACKLOG", "128")),
            buffer_size=int(os.getenv("MICROHTTP_BUFFER_SIZE", "4096")),
            max_request_size=int(os.getenv("MICROHTTP_MAX_REQUEST_SIZE", str(64 * 1024))),
            log_level=os.getenv("MICROHTTP_LOG_LEVEL", "WARNING"),
        )

    def validate(self) -> None:
        """
        Validate configuration values, failing fast with ValueError.

        The address itself is only checked for shape here; whether it can
        actually be bound is reported by Server as BindError.
        """
        # core.server imports this module
        from .core.server import parse_address

        try:
            parse_address(self.address)
        except ValueError as e:
            raise ValueError(f"Invalid address {self.address!r}: {e}") from e

        if self.backlog < 0:
            raise ValueError("backlog must be >= 0")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.max_request_size < len(b"GET / HTTP/1.0\r\n\r\n"):
            raise ValueError("max_request_size is too small to hold any request")

        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level!r}")

    def configure_logging(self) -> None:
        """
        Configure logging for a process that embeds microhttp.

        Installs a root handler (if none exists yet) and sets the level of
        the "microhttp" logger.
        """
        level = getattr(logging, self.log_level.upper(), logging.WARNING)

        logging.basicConfig(
            level=level,
            format=LOG_FORMAT,
            datefmt=LOG_DATE_FORMAT,
        )

        logging.getLogger("microhttp").setLevel(level)
