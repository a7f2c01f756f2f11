"""
TLS connection for the SIP health check (SIP over TLS).

Built on the TCP connection: the handshake runs over the connected stream
within the same deadline as the TCP connect.
"""

from __future__ import annotations

import os
import ssl

from .._types import TransportKind
from .._utils import logger
from ._tcp import TCPConnection


class TLSConnection(TCPConnection):
    """TLS over a TCP byte-stream connection."""

    kind = TransportKind.TLS

    def _create_ssl_context(self) -> ssl.SSLContext:
        """
        Create the client SSL context.

        With ``verify_tls`` the peer certificate chain must validate against
        the configured CA path (a directory of PEM files or a single bundle).
        Without it verification is disabled entirely.
        """
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)

        # Servers are usually addressed by IP, only the chain is checked
        context.check_hostname = False
        if not self.config.verify_tls:
            context.verify_mode = ssl.CERT_NONE
        else:
            context.verify_mode = ssl.CERT_REQUIRED
            ca_path = self.config.ca_path
            if ca_path:
                if os.path.isdir(ca_path):
                    context.load_verify_locations(capath=ca_path)
                else:
                    context.load_verify_locations(cafile=ca_path)

        context.minimum_version = ssl.TLSVersion.TLSv1_2
        return context

    def _open(self, deadline: float) -> None:
        super()._open(deadline)
        context = self._create_ssl_context()

        raw_socket = self._socket
        raw_socket.settimeout(self._remaining(deadline))
        try:
            self._socket = context.wrap_socket(
                raw_socket,
                server_hostname=self.config.server_address,
            )
        except OSError:
            raw_socket.close()
            raise

        logger.debug(f"TLS handshake done ({self._socket.version()}, {self._socket.cipher()[0]})")
