"""Allow running the relay with ``python -m socks4_relay``."""

from socks4_relay.cmd.cli import app

app(prog_name="socks4-relay")
