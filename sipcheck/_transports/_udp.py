"""
UDP connection for the SIP health check.

The datagram socket is bound to the configured local address and port, then
associated with the server so that only its datagrams are received.
"""

from __future__ import annotations

import socket

from .._types import TransportError, TransportKind
from ._base import BaseConnection, address_family


class UDPConnection(BaseConnection):
    """Connected datagram socket. There is no handshake and no end of stream."""

    kind = TransportKind.UDP
    stream = False

    def _open(self, deadline: float) -> None:
        family = address_family(self.local_ip)
        infos = socket.getaddrinfo(
            self.config.server_address,
            self.config.server_port,
            family=family,
            type=socket.SOCK_DGRAM,
        )
        sockaddr = infos[0][4]

        self._socket = socket.socket(family, socket.SOCK_DGRAM)
        self._socket.settimeout(self._remaining(deadline))

        # Port 0 lets the OS pick an ephemeral port
        self._socket.bind((self.local_ip, self.config.local_port))
        self._socket.connect(sockaddr)

    def _write(self, data: bytes) -> None:
        sent = self._socket.send(data)
        if sent != len(data):
            raise TransportError(
                f"Couldn't send the request via UDP (sent {sent} of {len(data)} bytes)"
            )
