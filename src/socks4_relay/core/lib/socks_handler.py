"""SOCKS4 handshake handler for the relay server.

This module negotiates the single supported request, SOCKS4 CONNECT to a
literal IPv4 address:
- Reads the version byte; anything but 4 is dropped without a reply
- Reads and validates the 7-byte CONNECT request
- Rejects non-CONNECT commands and loopback destinations with reply 91
- Dials the destination with the configured timeout
- Registers the tunnel, writes reply 90 and starts the duplex relay

On success the inbound socket belongs to the relay. On failure the caller
closes it.

Example:
    handler = SocksHandler(conn, addr, server)
    if not handler.handle():
        close_quietly(conn)
"""

import contextlib
import socket
from typing import TYPE_CHECKING

from loguru import logger

from socks4_relay.core.exceptions import (
    DialFailedError,
    HandshakeError,
    TruncatedRequestError,
    UnsupportedVersionError,
)
from socks4_relay.core.lib.protocol import (
    REQUEST_BODY_SIZE,
    SOCKS_VERSION,
    ConnectRequest,
    granted_reply,
    parse_request,
    rejected_reply,
)
from socks4_relay.core.lib.relay import DuplexRelay
from socks4_relay.core.utils.utils import close_quietly

if TYPE_CHECKING:
    from socks4_relay.core.lib.proxy_server import SocksServer


class SocksHandler:
    """Handle one freshly accepted SOCKS4 connection."""

    def __init__(self, request: socket.socket, client_address: tuple, server: "SocksServer") -> None:
        self.request = request
        self.client_address = client_address
        self.server = server
        self.relay: DuplexRelay | None = None

    def _recv_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes or raise ``TruncatedRequestError``."""
        data = bytearray()
        try:
            while len(data) < size:
                chunk = self.request.recv(size - len(data))
                if not chunk:
                    break
                data += chunk
        except OSError as exc:
            raise TruncatedRequestError(size, bytes(data)) from exc

        if len(data) < size:
            raise TruncatedRequestError(size, bytes(data))
        return bytes(data)

    def _send_rejection(self, body: bytes) -> None:
        with contextlib.suppress(OSError):
            self.request.sendall(rejected_reply(body))

    def _read_request(self) -> ConnectRequest:
        """Read and validate everything up to the destination address."""
        self.request.settimeout(self.server.config.handshake_timeout)

        version = self._recv_exact(1)[0]
        if version != SOCKS_VERSION:
            raise UnsupportedVersionError(version)

        # From here on every failure is answered with a rejection
        body = b""
        try:
            body = self._recv_exact(REQUEST_BODY_SIZE)
            return parse_request(body, allow_loopback=self.server.config.allow_loopback)
        except TruncatedRequestError as exc:
            self._send_rejection(exc.received)
            raise
        except HandshakeError:
            self._send_rejection(body)
            raise

    def _dial(self, request: ConnectRequest) -> socket.socket:
        """Open the outbound connection."""
        try:
            remote = socket.create_connection(request.destination, timeout=self.server.config.dial_timeout)
        except OSError as exc:
            raise DialFailedError(f"could not connect to {request.address}:{request.port}: {exc}") from exc
        remote.settimeout(None)
        return remote

    def negotiate(self) -> DuplexRelay:
        """Run the handshake and start relaying.

        Returns:
            DuplexRelay: The running relay that now owns both sockets

        Raises:
            HandshakeError: If the request was refused or the destination unreachable
        """
        request = self._read_request()
        self.request.settimeout(None)

        remote = self._dial(request)
        registry = self.server.registry
        if not registry.register(self.request, remote):
            close_quietly(remote)
            raise HandshakeError("server is shutting down")

        try:
            self.request.sendall(granted_reply(request))
        except OSError as exc:
            registry.unregister(self.request)
            close_quietly(remote)
            raise HandshakeError(f"could not send reply: {exc}") from exc

        self.server.stats.tunnel_opened()
        relay = DuplexRelay(
            self.request,
            remote,
            registry=registry,
            stats=self.server.stats,
            buffer_size=self.server.config.buffer_size,
            allow_empty=self.server.config.allow_empty_sessions,
            on_finish=self.server.tunnel_finished,
        )
        try:
            relay.start()
        except RuntimeError as exc:
            registry.unregister(self.request)
            close_quietly(remote)
            self.server.stats.tunnel_closed()
            raise HandshakeError(f"could not start relay: {exc}") from exc
        logger.info(f"Tunnel {self.client_address[0]}:{self.client_address[1]} -> {request.address}:{request.port}")
        return relay

    def handle(self) -> bool:
        """Negotiate the connection.

        Returns:
            bool: True if the connection was handed to a relay, False if the
            caller must close it
        """
        try:
            self.relay = self.negotiate()
            return True
        except HandshakeError as exc:
            logger.debug(f"Handshake with {self.client_address[0]} failed: {exc}")
        except OSError as exc:
            logger.debug(f"Socket error during handshake with {self.client_address[0]}: {exc}")
        except Exception:
            logger.exception(f"Error handling SOCKS connection from {self.client_address[0]}")
        return False
