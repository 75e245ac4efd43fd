"""SOCKS4 CONNECT wire format.

Request (8 bytes)::

    +----+----+----+----+----+----+----+----+
    | VN | CD | DSTPORT |      DSTIP        |
    +----+----+----+----+----+----+----+----+

Reply (8 bytes)::

    +----+----+----+----+----+----+----+----+
    | 0  | CD | DSTPORT |      DSTIP        |
    +----+----+----+----+----+----+----+----+

Reference: https://www.openssh.com/txt/socks4.protocol
"""

import ipaddress
import struct
from dataclasses import dataclass
from typing import Final

from socks4_relay.core.exceptions import (
    LoopbackRejectedError,
    TruncatedRequestError,
    UnsupportedCommandError,
)

# SOCKS protocol constants
SOCKS_VERSION: Final = 4
CONNECT_CMD: Final = 1
REQUEST_BODY_SIZE: Final = 7  # Everything after the version byte
REPLY_SIZE: Final = 8

# Reply codes
RESP_GRANTED: Final = 90
RESP_REJECTED: Final = 91
RESP_CONNECT_FAILED: Final = 92
RESP_IDENTITY_MISMATCH: Final = 93

_BODY = struct.Struct("!BH4s")
_REPLY = struct.Struct("!BB6s")


@dataclass(frozen=True)
class ConnectRequest:
    """Parsed CONNECT request.

    Attributes:
        command: Command code, always ``CONNECT_CMD`` once parsed
        port: Destination port
        address: Destination IPv4 address
        raw: The 7 request bytes that followed the version byte
    """

    command: int
    port: int
    address: ipaddress.IPv4Address
    raw: bytes

    @property
    def destination(self) -> tuple[str, int]:
        return str(self.address), self.port


def parse_request(body: bytes, *, allow_loopback: bool = False) -> ConnectRequest:
    """Parse and validate the bytes that follow the version byte.

    Args:
        body: The 7 bytes ``[command, port_hi, port_lo, ip0..ip3]``
        allow_loopback: Accept 127.0.0.0/8 destinations

    Returns:
        ConnectRequest: The validated request

    Raises:
        TruncatedRequestError: If fewer than 7 bytes were supplied
        UnsupportedCommandError: If the command is not CONNECT
        LoopbackRejectedError: If the destination is loopback and not allowed
    """
    if len(body) < REQUEST_BODY_SIZE:
        raise TruncatedRequestError(REQUEST_BODY_SIZE, body)

    command, port, packed_ip = _BODY.unpack(body[:REQUEST_BODY_SIZE])
    if command != CONNECT_CMD:
        raise UnsupportedCommandError(command)

    address = ipaddress.IPv4Address(packed_ip)
    if address.is_loopback and not allow_loopback:
        raise LoopbackRejectedError(str(address))

    return ConnectRequest(command=command, port=port, address=address, raw=bytes(body[:REQUEST_BODY_SIZE]))


def build_reply(code: int, body: bytes = b"") -> bytes:
    """Build an 8-byte reply echoing the port and address of the request.

    ``body`` is the request after the version byte; its first byte (the command)
    is skipped and the next six are echoed. Missing bytes are zero-filled.
    """
    echoed = bytes(body[1:REQUEST_BODY_SIZE]).ljust(REQUEST_BODY_SIZE - 1, b"\x00")
    return _REPLY.pack(0, code, echoed)


def granted_reply(request: ConnectRequest) -> bytes:
    return build_reply(RESP_GRANTED, request.raw)


def rejected_reply(body: bytes = b"") -> bytes:
    return build_reply(RESP_REJECTED, body)
