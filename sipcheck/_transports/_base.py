"""
Base connection abstraction for the SIP health check.

A connection is opened once, used for a single request/response exchange and
closed. Every blocking call is bounded by a wall-clock deadline taken from
the configured timeout.
"""

from __future__ import annotations

import abc
import socket
import time
from typing import Optional, Tuple

from .._types import (
    AddressResolutionError,
    ConnectTimeout,
    RequestConfig,
    RequestTimeout,
    ResponseTimeout,
    TransportError,
    TransportKind,
)
from .._utils import logger

BUFFER_SIZE = 65535  # Max SIP message size


def _describe(error: BaseException) -> str:
    return f"{error.__class__.__name__}: {error}"


def address_family(ip: str) -> socket.AddressFamily:
    """Pick the socket family matching a literal local IP."""
    return socket.AF_INET6 if ":" in ip else socket.AF_INET


def detect_local_ip(server_address: str, server_port: int) -> str:
    """
    Find the local IP the OS would use to reach the server.

    A UDP socket is "connected" to the server (no packet is sent) and its
    bound address is read back.

    Raises:
        AddressResolutionError: If the server address cannot be resolved
        TransportError: If the local address cannot be determined
    """
    try:
        infos = socket.getaddrinfo(server_address, server_port, type=socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as e:
        raise AddressResolutionError(
            f"Couldn't get the server address '{server_address}' ({_describe(e)})"
        ) from e

    family, _, _, _, sockaddr = infos[0]
    try:
        with socket.socket(family, socket.SOCK_DGRAM) as probe:
            probe.connect(sockaddr)
            local_ip = probe.getsockname()[0]
    except OSError as e:
        raise TransportError(f"Couldn't get local IP ({_describe(e)})") from e

    logger.debug(f"Detected local IP {local_ip} for {server_address}:{server_port}")
    return local_ip


class BaseConnection(abc.ABC):
    """
    Abstract base class for a single-use SIP client connection.

    Subclasses implement ``_open`` for their transport; line framing and
    timeout handling are shared.
    """

    kind: TransportKind
    # Stream transports report end of stream on an empty read
    stream = True

    def __init__(self, config: RequestConfig, local_ip: str) -> None:
        self.config = config
        self.local_ip = local_ip
        self._socket: Optional[socket.socket] = None
        self._buffer = bytearray()
        self._eof = False
        self._closed = False

    @property
    def label(self) -> str:
        return self.kind.label

    @abc.abstractmethod
    def _open(self, deadline: float) -> None:
        """Create ``self._socket`` and connect it before ``deadline``."""
        ...

    def connect(self) -> None:
        """
        Connect to the configured server within the timeout.

        Raises:
            ConnectTimeout: If the deadline elapses first
            AddressResolutionError: If the server address cannot be resolved
            TransportError: On any other socket or handshake failure
        """
        deadline = time.monotonic() + self.config.timeout
        target = f"{self.config.server_address}:{self.config.server_port}"
        logger.debug(f"Connecting to {target} via {self.label} from {self.local_ip}")
        try:
            self._open(deadline)
        except (socket.gaierror, UnicodeError) as e:
            self.close()
            raise AddressResolutionError(
                f"Couldn't get the server address '{self.config.server_address}' ({_describe(e)})"
            ) from e
        except socket.timeout as e:
            self.close()
            raise ConnectTimeout(
                f"Timeout when connecting the server via {self.label} ({_describe(e)})"
            ) from e
        except OSError as e:
            self.close()
            raise TransportError(
                f"Couldn't create the {self.label} socket ({_describe(e)})"
            ) from e
        logger.debug(f"Connected to {target} via {self.label}")

    def _remaining(self, deadline: float) -> float:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("timed out")
        return remaining

    def _write(self, data: bytes) -> None:
        self._socket.sendall(data)

    def send(self, data: bytes) -> None:
        """
        Send the whole message within the timeout.

        Raises:
            RequestTimeout: If the deadline elapses first
            TransportError: On send failure
        """
        if self._socket is None or self._closed:
            raise TransportError(f"The {self.label} connection is not open")
        try:
            self._socket.settimeout(self.config.timeout)
            self._write(data)
        except socket.timeout as e:
            raise RequestTimeout(
                f"Timeout sending the request via {self.label} ({_describe(e)})"
            ) from e
        except OSError as e:
            raise TransportError(
                f"Couldn't send the request via {self.label} ({_describe(e)})"
            ) from e
        logger.debug(f"Sent {len(data)} bytes via {self.label}")

    def _receive_chunk(self) -> bytes:
        return self._socket.recv(BUFFER_SIZE)

    def read_line(self, deadline: float) -> Optional[bytes]:
        """
        Read one line, terminator included.

        All reads of one exchange share ``deadline`` (a ``time.monotonic``
        value). Returns None at end of stream; a trailing unterminated
        fragment is returned as a last line first.

        Raises:
            ResponseTimeout: If the deadline elapses first
            TransportError: On receive failure
        """
        if self._socket is None or self._closed:
            raise TransportError(f"The {self.label} connection is not open")

        while True:
            newline = self._buffer.find(b"\n")
            if newline != -1:
                line = bytes(self._buffer[: newline + 1])
                del self._buffer[: newline + 1]
                return line
            if self._eof:
                if self._buffer:
                    line = bytes(self._buffer)
                    self._buffer.clear()
                    return line
                return None

            try:
                self._socket.settimeout(self._remaining(deadline))
                chunk = self._receive_chunk()
            except socket.timeout as e:
                raise ResponseTimeout(
                    f"Timeout receiving the response via {self.label} ({_describe(e)})"
                ) from e
            except OSError as e:
                raise TransportError(
                    f"Couldn't receive the response via {self.label} ({_describe(e)})"
                ) from e

            if chunk:
                self._buffer.extend(chunk)
            elif self.stream:
                self._eof = True

    def close(self) -> None:
        """Close the socket and release resources."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        self._closed = True

    def __enter__(self) -> BaseConnection:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def local_address(self) -> Optional[Tuple[str, int]]:
        """Address the socket is bound to, once connected."""
        if self._socket is None:
            return None
        host, port = self._socket.getsockname()[:2]
        return host, port

    def __repr__(self) -> str:
        status = "closed" if self._closed else "open"
        return (
            f"<{self.__class__.__name__}({self.config.server_address}:"
            f"{self.config.server_port}, {status})>"
        )
