"""Utility functions and helpers."""

from socks4_relay.core.utils.utils import close_quietly, format_bytes, parse_address

__all__ = ["close_quietly", "format_bytes", "parse_address"]
