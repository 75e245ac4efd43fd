"""SOCKS4 relay server lifecycle.

This module implements the threaded relay server:
- Binding and owning the listening socket
- The accept loop, with retry on transient errors and bounded backoff on others
- One handshake thread per accepted connection
- Coordinated, idempotent shutdown of the listener and every live tunnel

Example:
    server = SocksServer(ServerConfig(dial_timeout=5.0))
    threading.Thread(target=server.listen_and_serve, args=("0.0.0.0:1080",)).start()
    ...
    server.close()
"""

import errno
import signal
import socket
import threading
import time
from typing import Final, NoReturn

from loguru import logger

from socks4_relay.core.config import ServerConfig
from socks4_relay.core.exceptions import (
    AcceptError,
    AlreadyClosedError,
    BindError,
    ListenerClosedError,
)
from socks4_relay.core.lib.proxy_stats import ProxyStats
from socks4_relay.core.lib.registry import ConnectionRegistry, ShutdownLatch
from socks4_relay.core.lib.relay import DuplexRelay
from socks4_relay.core.lib.socks_handler import SocksHandler
from socks4_relay.core.utils.prompt import create_proxy_ui
from socks4_relay.core.utils.utils import close_quietly, parse_address

# Constants
REQUEST_QUEUE_SIZE: Final = 100
UI_JOIN_TIMEOUT: Final = 1.0  # Seconds

# Accept errors that clear up on their own (descriptor or buffer exhaustion,
# a client that gave up mid-accept, interrupted calls)
TRANSIENT_ACCEPT_ERRNOS: Final = frozenset(
    {
        errno.EMFILE,
        errno.ENFILE,
        errno.ENOBUFS,
        errno.ENOMEM,
        errno.ECONNABORTED,
        errno.EAGAIN,
        errno.EINTR,
    }
)


class SocksServer:
    """SOCKS4 CONNECT relay server.

    The server moves through *constructed -> serving -> closed*. Closing is
    terminal: ``serve`` and ``listen_and_serve`` refuse to run afterwards.
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        self.config = config or ServerConfig()
        self.registry = ConnectionRegistry(self.config.expected_concurrency)
        self.stats = ProxyStats()
        self._latch = ShutdownLatch()
        self._listener: socket.socket | None = None
        self._listener_lock = threading.Lock()

    def __enter__(self) -> "SocksServer":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def closed(self) -> bool:
        """Return True once ``close`` has run. Never blocks."""
        return self._latch.is_set()

    @property
    def address(self) -> tuple[str, int] | None:
        """Address of the listener while serving, None otherwise."""
        with self._listener_lock:
            listener = self._listener
        if listener is None:
            return None
        try:
            return listener.getsockname()[:2]
        except OSError:
            return None

    def _bind(self, host: str, port: int) -> socket.socket:
        """Create a listening socket with address reuse enabled."""
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(REQUEST_QUEUE_SIZE)
        except OSError:
            sock.close()
            raise
        return sock

    def listen_and_serve(self, address: str) -> NoReturn:
        """Bind ``address`` (``host:port``) and serve on it.

        Raises:
            AlreadyClosedError: If the server was closed before
            BindError: If the address is malformed or cannot be bound
            ListenerClosedError: When the server is closed while serving
            AcceptError: If accepting keeps failing
        """
        if self.closed():
            raise AlreadyClosedError("socks server is closed")

        try:
            host, port = parse_address(address)
        except ValueError as exc:
            raise BindError(str(exc)) from exc

        try:
            listener = self._bind(host, port)
        except OSError as exc:
            raise BindError(f"could not bind {address}: {exc}") from exc

        try:
            self.serve(listener)
        except AlreadyClosedError:
            close_quietly(listener)
            raise

    def serve(self, listener: socket.socket) -> NoReturn:
        """Accept connections on ``listener`` until the server is closed.

        The server takes ownership of the listener and closes it on shutdown.

        Raises:
            AlreadyClosedError: If the server was closed before
            ListenerClosedError: When the server is closed while serving
            AcceptError: After too many consecutive unclassified accept errors
        """
        with self._listener_lock:
            if self.closed():
                raise AlreadyClosedError("socks server is closed")
            self._listener = listener

        # Wake up periodically so a closed listener is noticed on every platform
        listener.settimeout(self.config.poll_interval)
        logger.info(f"SOCKS4 relay listening on {self.address}")

        failures = 0
        while True:
            try:
                conn, client_address = listener.accept()
            except TimeoutError:
                if self.closed():
                    raise ListenerClosedError("closed listener") from None
                continue
            except OSError as exc:
                if self.closed():
                    raise ListenerClosedError("closed listener") from exc
                if exc.errno in TRANSIENT_ACCEPT_ERRNOS:
                    logger.warning(f"Accept error: {exc}; retrying in {self.config.accept_retry_delay}s")
                    time.sleep(self.config.accept_retry_delay)
                    continue

                failures += 1
                if failures >= self.config.max_accept_failures:
                    logger.error(f"Accept failed {failures} times in a row, giving up")
                    raise AcceptError(f"accept failed {failures} times: {exc}") from exc
                delay = min(self.config.max_accept_backoff, self.config.accept_retry_delay * 2**failures)
                logger.error(f"Accept error ({failures}/{self.config.max_accept_failures}): {exc}")
                time.sleep(delay)
                continue

            failures = 0
            if self.closed():
                close_quietly(conn)
                raise ListenerClosedError("closed listener")

            conn.settimeout(None)
            self._spawn(conn, client_address)

    def _spawn(self, conn: socket.socket, client_address: tuple) -> None:
        self.stats.connection_started()
        thread = threading.Thread(
            target=self._handle,
            args=(conn, client_address),
            name=f"socks4-handshake-{client_address[0]}:{client_address[1]}",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError as exc:
            # Out of threads: drop this client and back off like a transient accept error
            logger.warning(f"Could not start handshake thread: {exc}; retrying in {self.config.accept_retry_delay}s")
            close_quietly(conn)
            self.stats.connection_ended()
            time.sleep(self.config.accept_retry_delay)

    def _handle(self, conn: socket.socket, client_address: tuple) -> None:
        handler = SocksHandler(conn, client_address, self)
        if not handler.handle():
            close_quietly(conn)
            self.stats.connection_ended()

    def tunnel_finished(self, relay: DuplexRelay) -> None:
        """Relay completion hook; both sockets are already closed."""
        self.stats.tunnel_closed()
        self.stats.connection_ended()

    def _shutdown(self) -> None:
        with self._listener_lock:
            listener = self._listener
        if listener is not None:
            close_quietly(listener)

        count = self.registry.close_all()
        logger.info(f"SOCKS4 relay closed ({count} active tunnels terminated)")

    def close(self) -> None:
        """Close the listener and every live tunnel.

        Safe to call any number of times, from any thread, before or after
        serving started. Only the first call does any work; concurrent callers
        return once it has finished.
        """
        self._latch.trigger(self._shutdown)


def run_server(host: str, port: int, config: ServerConfig | None = None, *, ui: bool = False) -> None:
    """Run a relay server in the foreground until interrupted.

    Args:
        host: Host address to bind to
        port: Port number to listen on
        config: Server settings, defaults when omitted
        ui: Show the live status panel
    """
    server = SocksServer(config)
    ui_thread = None

    # Let SIGTERM unwind the accept loop the same way Ctrl+C does
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, signal.default_int_handler)

    try:
        if ui:
            ui_thread = create_proxy_ui(server, host, port)
            ui_thread.start()
        server.listen_and_serve(f"{host}:{port}")
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    except ListenerClosedError:
        logger.info("Listener closed")
    finally:
        server.close()
        # The panel stops by itself once the server reports closed
        if ui_thread is not None:
            ui_thread.join(timeout=UI_JOIN_TIMEOUT)
