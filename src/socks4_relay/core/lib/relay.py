"""Bi-directional byte forwarding between two connected sockets.

A ``DuplexRelay`` runs one thread per direction. Each thread copies until its
source reaches end-of-stream or a socket error occurs; whichever finishes first
tears the tunnel down: it removes the pair from the registry and closes both
sockets, which in turn unblocks the other direction. Teardown runs exactly once.

Example:
    relay = DuplexRelay(client, remote, registry=registry)
    relay.start()
"""

import socket
import threading
from collections.abc import Callable

from loguru import logger

from socks4_relay.core.config import DEFAULT_BUFFER_SIZE
from socks4_relay.core.exceptions import EmptyCopyError
from socks4_relay.core.lib.proxy_stats import ProxyStats
from socks4_relay.core.lib.registry import ConnectionRegistry
from socks4_relay.core.utils.utils import close_quietly


def copy_stream(
    src: socket.socket,
    dst: socket.socket,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    *,
    allow_empty: bool = True,
    on_chunk: Callable[[int], None] | None = None,
) -> int:
    """Copy from ``src`` to ``dst`` until end-of-stream.

    Args:
        src: Socket to read from
        dst: Socket to write to
        buffer_size: Size of the read buffer
        allow_empty: If False, a clean end-of-stream before any data raises
        on_chunk: Called with the size of every forwarded chunk

    Returns:
        int: Number of bytes copied

    Raises:
        EmptyCopyError: If nothing was copied and ``allow_empty`` is False
        OSError: On any socket error
    """
    buf = bytearray(buffer_size)
    view = memoryview(buf)
    total = 0
    while True:
        n = src.recv_into(buf)
        if not n:
            break
        dst.sendall(view[:n])
        total += n
        if on_chunk is not None:
            on_chunk(n)

    if total == 0 and not allow_empty:
        raise EmptyCopyError("relay direction closed without copying any data")
    return total


class DuplexRelay:
    """Relay bytes between a client and a remote socket until either side stops."""

    def __init__(
        self,
        client: socket.socket,
        remote: socket.socket,
        *,
        registry: ConnectionRegistry | None = None,
        stats: ProxyStats | None = None,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        allow_empty: bool = True,
        on_finish: Callable[["DuplexRelay"], None] | None = None,
    ) -> None:
        self.client = client
        self.remote = remote
        self.registry = registry
        self.stats = stats
        self.buffer_size = buffer_size
        self.allow_empty = allow_empty
        self.on_finish = on_finish
        self.bytes_sent = 0
        self.bytes_received = 0
        self.errors: list[Exception] = []
        self._teardown_lock = threading.Lock()
        self._closing = False
        self._finished = threading.Event()

    def start(self) -> None:
        """Start both copy directions on daemon threads.

        Raises:
            RuntimeError: If a thread cannot be started before any teardown.
                The caller then still owns both sockets.
        """
        threads = [
            threading.Thread(target=self._pump, args=(self.client, self.remote, "upstream"), daemon=True),
            threading.Thread(target=self._pump, args=(self.remote, self.client, "downstream"), daemon=True),
        ]
        try:
            for thread in threads:
                thread.start()
        except RuntimeError:
            with self._teardown_lock:
                # A direction that already started may have torn the tunnel down
                if self._closing:
                    return
                self._closing = True
            raise

    @property
    def finished(self) -> bool:
        """True once teardown has completed."""
        return self._finished.is_set()

    def _count(self, direction: str) -> Callable[[int], None]:
        def on_chunk(n: int) -> None:
            if direction == "upstream":
                self.bytes_sent += n
                if self.stats is not None:
                    self.stats.update_bytes(n, 0)
            else:
                self.bytes_received += n
                if self.stats is not None:
                    self.stats.update_bytes(0, n)

        return on_chunk

    def _pump(self, src: socket.socket, dst: socket.socket, direction: str) -> None:
        try:
            copy_stream(
                src,
                dst,
                self.buffer_size,
                allow_empty=self.allow_empty,
                on_chunk=self._count(direction),
            )
        # The other direction closing the sockets ends this one too; only the
        # direction that finished first reports.
        except EmptyCopyError as exc:
            if not self._closing:
                self.errors.append(exc)
                logger.warning(f"Empty {direction} relay: {exc}")
        except OSError as exc:
            if not self._closing:
                self.errors.append(exc)
                logger.debug(f"{direction.capitalize()} relay error: {exc}")
        finally:
            self._teardown()

    def _teardown(self) -> None:
        with self._teardown_lock:
            if self._closing:
                return
            self._closing = True

        if self.registry is not None:
            self.registry.unregister(self.client)
        close_quietly(self.client)
        close_quietly(self.remote)
        logger.debug(f"Tunnel closed: {self.bytes_sent} bytes up, {self.bytes_received} bytes down")

        if self.on_finish is not None:
            self.on_finish(self)
        self._finished.set()
