"""Core relay library components."""

from .proxy_server import SocksServer, run_server
from .proxy_stats import ProxyStats
from .registry import ConnectionRegistry, ShutdownLatch
from .relay import DuplexRelay, copy_stream
from .socks_handler import SocksHandler

__all__ = [
    "ConnectionRegistry",
    "copy_stream",
    "DuplexRelay",
    "ProxyStats",
    "run_server",
    "ShutdownLatch",
    "SocksHandler",
    "SocksServer",
]
