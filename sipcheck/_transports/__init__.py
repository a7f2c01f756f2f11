"""
SIP transport layer.

This package provides the single-use client connections used by the check:
- UDP: Connectionless datagram socket bound to a local address
- TCP: Connection-oriented byte stream
- TLS: TLS over TCP, with optional certificate verification
"""

from __future__ import annotations

from typing import Dict, Type

from .._types import (
    AddressResolutionError,
    ConnectTimeout,
    RequestConfig,
    RequestTimeout,
    ResponseTimeout,
    TransportError,
    TransportKind,
)
from ._base import BaseConnection, detect_local_ip
from ._tcp import TCPConnection
from ._tls import TLSConnection
from ._udp import UDPConnection

CONNECTIONS: Dict[TransportKind, Type[BaseConnection]] = {
    TransportKind.UDP: UDPConnection,
    TransportKind.TCP: TCPConnection,
    TransportKind.TLS: TLSConnection,
}


def open_connection(config: RequestConfig, local_ip: str) -> BaseConnection:
    """
    Create the connection for ``config.transport`` and connect it.

    Raises:
        ConnectTimeout: If connecting takes longer than ``config.timeout``
        TransportError: On socket, resolution or handshake failure
    """
    connection = CONNECTIONS[config.transport](config, local_ip)
    connection.connect()
    return connection


__all__ = [
    # Connections
    "BaseConnection",
    "UDPConnection",
    "TCPConnection",
    "TLSConnection",
    "open_connection",
    "detect_local_ip",
    # Exceptions
    "TransportError",
    "AddressResolutionError",
    "ConnectTimeout",
    "RequestTimeout",
    "ResponseTimeout",
]
