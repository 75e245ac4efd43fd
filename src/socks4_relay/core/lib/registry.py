"""Tunnel bookkeeping shared by the accept loop, the relays and shutdown.

This module provides the two pieces of state that several threads touch:
- ``ConnectionRegistry``: the table of live tunnels (inbound -> outbound socket)
- ``ShutdownLatch``: the one-shot flag that marks a server as closed

The registry exists only so that a shutdown can reach every in-flight tunnel.
Once it has been closed it refuses new entries, so a handshake that finishes
its dial after shutdown started closes its own sockets instead of leaking them.
"""

import socket
import threading
from collections.abc import Callable

from loguru import logger

from socks4_relay.core.utils.utils import close_quietly


class ConnectionRegistry:
    """Thread-safe map of inbound sockets to their outbound peers."""

    def __init__(self, expected_size: int = 0) -> None:
        self.expected_size = expected_size
        self._tunnels: dict[socket.socket, socket.socket] = {}
        self._lock = threading.Lock()
        self._closed = False

    def register(self, inbound: socket.socket, outbound: socket.socket) -> bool:
        """Record a tunnel.

        Returns:
            bool: False if the registry was already closed and nothing was recorded
        """
        with self._lock:
            if self._closed:
                return False
            self._tunnels[inbound] = outbound
            size = len(self._tunnels)
        if self.expected_size and size > self.expected_size:
            logger.debug(f"Active tunnels ({size}) above expected concurrency ({self.expected_size})")
        return True

    def unregister(self, inbound: socket.socket) -> socket.socket | None:
        """Forget a tunnel. Unknown keys are ignored."""
        with self._lock:
            return self._tunnels.pop(inbound, None)

    def close_all(self) -> int:
        """Close both sockets of every tunnel and stop accepting new ones.

        Returns:
            int: Number of tunnels that were closed
        """
        with self._lock:
            self._closed = True
            tunnels = list(self._tunnels.items())
            self._tunnels.clear()

        for inbound, outbound in tunnels:
            close_quietly(inbound)
            close_quietly(outbound)
        return len(tunnels)

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._tunnels)

    def __contains__(self, inbound: object) -> bool:
        with self._lock:
            return inbound in self._tunnels


class ShutdownLatch:
    """One-shot flag whose trigger body runs at most once."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()

    def trigger(self, body: Callable[[], None] | None = None) -> bool:
        """Set the flag and run ``body`` if this is the first trigger.

        Concurrent callers block until the first body has finished, so every
        caller returns only after shutdown is complete.

        Returns:
            bool: True for the call that actually fired the latch
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            if body is not None:
                body()
            return True

    def is_set(self) -> bool:
        return self._event.is_set()
