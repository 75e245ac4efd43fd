"""Terminal status display."""

from socks4_relay.core.utils.prompt.proxy_ui import ProxyUI, console, create_proxy_ui

__all__ = ["console", "create_proxy_ui", "ProxyUI"]
