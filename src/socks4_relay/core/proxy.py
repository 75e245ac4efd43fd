"""Public entry point for the relay server.

This module exposes the pieces a caller needs to embed the relay and hides
the internal layout of ``core.lib``.

Example:
    from socks4_relay.core.proxy import ServerConfig, SocksServer

    server = SocksServer(ServerConfig(dial_timeout=5.0))
    threading.Thread(target=server.listen_and_serve, args=("0.0.0.0:1080",), daemon=True).start()
    ...
    server.close()
"""

from .config import ServerConfig
from .lib import SocksServer, run_server

__all__ = ["run_server", "ServerConfig", "SocksServer"]
