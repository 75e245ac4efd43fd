"""Statistics tracking for the relay server.

Tracks, per server instance:
- Active and total client connections
- Active and total tunnels
- Bytes relayed in each direction
- Recent bandwidth samples

All counters are guarded by one lock so relay threads can update them
concurrently.

Example:
    stats = ProxyStats()
    stats.tunnel_opened()
    stats.update_bytes(sent=1024, received=2048)
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Final

BANDWIDTH_WINDOW: Final = 5  # Seconds


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of the counters."""

    active_connections: int
    total_connections: int
    active_tunnels: int
    total_tunnels: int
    total_bytes_sent: int
    total_bytes_received: int
    uptime: float


class ProxyStats:
    """Thread-safe statistics tracker for the relay server.

    ``sent`` counts bytes forwarded from clients to destinations, ``received``
    counts bytes forwarded from destinations back to clients.
    """

    def __init__(self) -> None:
        self.active_connections = 0
        self.total_connections = 0
        self.active_tunnels = 0
        self.total_tunnels = 0
        self.total_bytes_sent = 0
        self.total_bytes_received = 0
        self.bandwidth_history: deque[tuple[int, float]] = deque(maxlen=600)
        self.start_time = datetime.now(tz=UTC)
        self._lock = threading.Lock()

    def update_bytes(self, sent: int, received: int) -> None:
        """Update byte transfer statistics.

        Args:
            sent: Number of bytes sent towards destinations
            received: Number of bytes sent back to clients
        """
        with self._lock:
            self.total_bytes_sent += sent
            self.total_bytes_received += received
            self.bandwidth_history.append((sent + received, time.time()))

    def get_bandwidth(self) -> float:
        """Calculate current bandwidth usage in bytes per second.

        Returns:
            float: Average bandwidth over the last few seconds in bytes/second
        """
        with self._lock:
            cutoff = time.time() - BANDWIDTH_WINDOW
            total_bytes = sum(bytes_ for bytes_, ts in self.bandwidth_history if ts > cutoff)
            return total_bytes / BANDWIDTH_WINDOW

    def connection_started(self) -> None:
        with self._lock:
            self.active_connections += 1
            self.total_connections += 1

    def connection_ended(self) -> None:
        with self._lock:
            self.active_connections -= 1

    def tunnel_opened(self) -> None:
        with self._lock:
            self.active_tunnels += 1
            self.total_tunnels += 1

    def tunnel_closed(self) -> None:
        with self._lock:
            self.active_tunnels -= 1

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                active_connections=self.active_connections,
                total_connections=self.total_connections,
                active_tunnels=self.active_tunnels,
                total_tunnels=self.total_tunnels,
                total_bytes_sent=self.total_bytes_sent,
                total_bytes_received=self.total_bytes_received,
                uptime=(datetime.now(tz=UTC) - self.start_time).total_seconds(),
            )
