"""Core relay server implementation.

This package contains the components of the SOCKS4 relay:
- The CONNECT handshake and its wire format
- The duplex byte relay
- The tunnel registry and shutdown latch
- The threaded server and its lifecycle
- Configuration, statistics and exceptions

It holds everything needed to embed the relay in another program, while the
command-line tooling lives in ``socks4_relay.cmd``.
"""
