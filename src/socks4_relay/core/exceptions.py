"""Custom exceptions for the relay server.

This module defines the exceptions used throughout the relay implementation.
They are grouped by the stage that raises them:
- Handshake failures (truncated, unsupported or refused requests, dial errors)
- Relay failures (anomalous copy results)
- Server lifecycle failures (binding, accepting, use after close)

Handshake and relay errors never leave the thread that raised them; they are
logged and turn into a closed connection. Server errors are raised to the
caller of ``serve``/``listen_and_serve``.

Example:
    try:
        server.listen_and_serve("0.0.0.0:1080")
    except ListenerClosedError:
        logger.info("Server shut down")
"""


class ProxyError(Exception):
    """Base exception for relay errors."""


class HandshakeError(ProxyError):
    """Raised when a client request cannot be turned into a tunnel."""


class TruncatedRequestError(HandshakeError):
    """Raised when the peer sends fewer bytes than the request needs."""

    def __init__(self, expected: int, received: bytes) -> None:
        super().__init__(f"expected {expected} bytes, got {len(received)}")
        self.expected = expected
        self.received = received


class UnsupportedVersionError(HandshakeError):
    """Raised when the version byte is not 4."""

    def __init__(self, version: int) -> None:
        super().__init__(f"unsupported SOCKS version {version}")
        self.version = version


class UnsupportedCommandError(HandshakeError):
    """Raised when the command is not CONNECT."""

    def __init__(self, command: int) -> None:
        super().__init__(f"unsupported SOCKS command {command}")
        self.command = command


class LoopbackRejectedError(HandshakeError):
    """Raised when the destination is a loopback address."""

    def __init__(self, address: str) -> None:
        super().__init__(f"loopback destination {address} not allowed")
        self.address = address


class DialFailedError(HandshakeError):
    """Raised when the outbound connection cannot be established."""


class RelayError(ProxyError):
    """Base exception for relay copy failures."""


class EmptyCopyError(RelayError):
    """Raised when a relay direction ended cleanly without moving a byte."""


class ServerError(ProxyError):
    """Base exception for server lifecycle errors."""


class AlreadyClosedError(ServerError):
    """Raised when serving is attempted on a closed server."""


class ListenerClosedError(ServerError):
    """Raised by the accept loop once the server has been closed."""


class BindError(ServerError):
    """Raised when the listen address is malformed or cannot be bound."""


class AcceptError(ServerError):
    """Raised when accept keeps failing with unclassified errors."""
