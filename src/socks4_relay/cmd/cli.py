"""Command-line interface for the SOCKS4 relay server.

This module provides the main command-line interface, handling:
- Command-line argument parsing
- Logging setup
- Server configuration and startup
- Error reporting

The CLI is built using Typer.

Example:
    # Run from command line:
    $ socks4-relay serve --host 0.0.0.0 --port 1080 --dial-timeout 5
"""

import typer
from loguru import logger
from rich.console import Console

from socks4_relay import __version__
from socks4_relay.core.config import (
    DEFAULT_ACCEPT_RETRY_DELAY,
    DEFAULT_DIAL_TIMEOUT,
    DEFAULT_HANDSHAKE_TIMEOUT,
    ServerConfig,
)
from socks4_relay.core.exceptions import ProxyError
from socks4_relay.core.proxy import run_server
from socks4_relay.core.utils.log_config import LOG_DIR, configure_logging

console = Console()
app = typer.Typer(help="SOCKS4 CONNECT relay server")


@app.command(name="version")
def show_version() -> None:
    """Show version information."""
    console.print(f"[cyan]SOCKS4 Relay v{__version__}[/cyan]")


@app.command(name="serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Address to listen on"),
    port: int = typer.Option(1080, "--port", "-p", help="Port to listen on"),
    dial_timeout: float = typer.Option(
        DEFAULT_DIAL_TIMEOUT, "--dial-timeout", help="Seconds to wait for the destination to accept"
    ),
    accept_retry_delay: float = typer.Option(
        DEFAULT_ACCEPT_RETRY_DELAY, "--accept-retry-delay", help="Seconds to pause after a transient accept error"
    ),
    handshake_timeout: float = typer.Option(
        DEFAULT_HANDSHAKE_TIMEOUT, "--handshake-timeout", help="Seconds to wait for the request, 0 to wait forever"
    ),
    allow_loopback: bool = typer.Option(
        default=False, help="Allow tunnels to loopback destinations"
    ),
    strict_empty: bool = typer.Option(
        default=False, help="Report relay directions that closed without sending data"
    ),
    ui: bool = typer.Option(default=False, help="Show the live status panel"),
    debug: bool = typer.Option(default=False, help="Enable debug logging"),
    log_file: bool = typer.Option(default=True, help=f"Also log to {LOG_DIR}"),
) -> None:
    """Start the SOCKS4 relay server."""
    configure_logging(debug=debug, log_dir=LOG_DIR if log_file else None)

    try:
        config = ServerConfig(
            dial_timeout=dial_timeout,
            accept_retry_delay=accept_retry_delay,
            handshake_timeout=handshake_timeout or None,
            allow_loopback=allow_loopback,
            allow_empty_sessions=not strict_empty,
        )
    except ValueError as e:
        console.print(f"[red]Invalid option: {e}")
        raise typer.Exit(2) from e

    logger.info(f"Starting SOCKS4 relay on {host}:{port}")
    try:
        run_server(host, port, config, ui=ui)
    except ProxyError as e:
        logger.error(f"Relay stopped: {e}")
        console.print(f"[red]Error: {e}")
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
