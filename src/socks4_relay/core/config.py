"""Server configuration.

All tunables of the relay live in one immutable dataclass. The values are
fixed at construction; the server never mutates them.

Example:
    config = ServerConfig(dial_timeout=5.0, allow_loopback=True)
    server = SocksServer(config)
"""

from dataclasses import dataclass
from typing import Final

# Defaults
DEFAULT_DIAL_TIMEOUT: Final = 10.0  # Seconds
DEFAULT_ACCEPT_RETRY_DELAY: Final = 0.05  # Seconds
DEFAULT_EXPECTED_CONCURRENCY: Final = 64
DEFAULT_HANDSHAKE_TIMEOUT: Final = 30.0  # Seconds
DEFAULT_BUFFER_SIZE: Final = 16 * 1024  # Bytes
DEFAULT_MAX_ACCEPT_FAILURES: Final = 10
DEFAULT_MAX_ACCEPT_BACKOFF: Final = 1.0  # Seconds
DEFAULT_POLL_INTERVAL: Final = 0.5  # Seconds


@dataclass(frozen=True)
class ServerConfig:
    """Relay server settings.

    Attributes:
        dial_timeout: Bound on the outbound connect, in seconds
        accept_retry_delay: Pause after a transient accept error, in seconds
        expected_concurrency: Sizing hint for the tunnel registry
        handshake_timeout: Bound on reading the request, ``None`` to wait forever
        buffer_size: Copy buffer size for each relay direction
        allow_empty_sessions: Treat a direction that moved no bytes as a normal result
        allow_loopback: Permit tunnels to loopback destinations
        max_accept_failures: Consecutive unclassified accept errors before giving up
        max_accept_backoff: Upper bound of the backoff between those retries
        poll_interval: How often a blocked accept wakes up to check for shutdown
    """

    dial_timeout: float = DEFAULT_DIAL_TIMEOUT
    accept_retry_delay: float = DEFAULT_ACCEPT_RETRY_DELAY
    expected_concurrency: int = DEFAULT_EXPECTED_CONCURRENCY
    handshake_timeout: float | None = DEFAULT_HANDSHAKE_TIMEOUT
    buffer_size: int = DEFAULT_BUFFER_SIZE
    allow_empty_sessions: bool = True
    allow_loopback: bool = False
    max_accept_failures: int = DEFAULT_MAX_ACCEPT_FAILURES
    max_accept_backoff: float = DEFAULT_MAX_ACCEPT_BACKOFF
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        if self.dial_timeout <= 0:
            raise ValueError("dial_timeout must be positive")
        if self.accept_retry_delay < 0:
            raise ValueError("accept_retry_delay must not be negative")
        if self.expected_concurrency < 0:
            raise ValueError("expected_concurrency must not be negative")
        if self.handshake_timeout is not None and self.handshake_timeout <= 0:
            raise ValueError("handshake_timeout must be positive or None")
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        if self.max_accept_failures < 1:
            raise ValueError("max_accept_failures must be at least 1")
        if self.max_accept_backoff < 0:
            raise ValueError("max_accept_backoff must not be negative")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
