"""
TCP connection for the SIP health check.

The stream socket is sourced from the local IP on an ephemeral port.
"""

from __future__ import annotations

import socket

from .._types import TransportKind
from ._base import BaseConnection


class TCPConnection(BaseConnection):
    """Byte-stream connection to the server."""

    kind = TransportKind.TCP

    def _open(self, deadline: float) -> None:
        self._socket = socket.create_connection(
            (self.config.server_address, self.config.server_port),
            timeout=self._remaining(deadline),
            source_address=(self.local_ip, 0),
        )
