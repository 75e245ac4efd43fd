"""Live status panel for the relay server."""

import threading
import time
from typing import TYPE_CHECKING, Final

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner
from rich.table import Table
from rich.text import Text

from socks4_relay.core.utils.utils import format_bytes

if TYPE_CHECKING:
    from socks4_relay.core.lib.proxy_server import SocksServer

console = Console()

BANDWIDTH_THRESHOLD: Final = 100  # Bytes


class ProxyUI:
    """Rich panel showing tunnel and bandwidth counters of one server."""

    def __init__(self, server: "SocksServer", server_ip: str, port: int = 1080) -> None:
        """Initialize the status panel.

        Args:
            server: Server whose statistics are displayed
            server_ip: Address the server listens on
            port: Port the server listens on
        """
        self.server = server
        self.server_ip = server_ip
        self.port = port
        self.running = True
        self._last_bandwidth = 0.0
        self._start_time = time.monotonic()
        self._refresh_rate = 0.5
        self._spinner = Spinner("dots", text="")

    def _generate_table(self) -> Table:
        """Generate statistics table."""
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Property", style="cyan", no_wrap=True)
        table.add_column("Value", style="green", no_wrap=True)

        stats = self.server.stats
        bandwidth = stats.get_bandwidth()
        # Ignore jitter
        if abs(bandwidth - self._last_bandwidth) > BANDWIDTH_THRESHOLD:
            self._last_bandwidth = bandwidth

        snapshot = stats.snapshot()
        elapsed = time.monotonic() - self._start_time
        spinner_text = self._spinner.render(elapsed)

        table.add_row("Bandwidth", f"{spinner_text} {format_bytes(self._last_bandwidth)}/s")
        table.add_row("Active Tunnels", str(snapshot.active_tunnels))
        table.add_row("Total Tunnels", str(snapshot.total_tunnels))
        table.add_row("Pending Handshakes", str(snapshot.active_connections - snapshot.active_tunnels))
        table.add_row("Client -> Destination", format_bytes(snapshot.total_bytes_sent))
        table.add_row("Destination -> Client", format_bytes(snapshot.total_bytes_received))
        table.add_row("Uptime", f"{snapshot.uptime:.0f}s")
        return table

    def _generate_display(self) -> Panel:
        """Generate the main display panel."""
        title = Text(f"SOCKS4 Relay: {self.server_ip}:{self.port}", style="bold cyan")
        return Panel(
            self._generate_table(),
            title=title,
            subtitle="Press Ctrl+C to exit",
            border_style="blue",
            padding=(1, 2),
        )

    def run(self) -> None:
        """Refresh the panel until stopped or the server closes."""
        with Live(
            self._generate_display(),
            console=console,
            refresh_per_second=4,
            transient=False,
            auto_refresh=False,
        ) as live:
            while self.running and not self.server.closed():
                live.update(self._generate_display(), refresh=True)
                time.sleep(self._refresh_rate)


def create_proxy_ui(server: "SocksServer", host: str, port: int) -> threading.Thread:
    """Create and return UI thread."""
    ui = ProxyUI(server, host, port)
    return threading.Thread(target=ui.run, name="socks4-ui", daemon=True)
