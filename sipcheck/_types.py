"""
Type definitions for the SIP health check.

This module centralizes the configuration record, the enums shared by the
transport and exchange layers, and the exception hierarchy.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Sequence, Union

from ._utils import DEFAULT_CA_PATH, DEFAULT_PORT, DEFAULT_TIMEOUT

_EXPECTED_CODE_RE = re.compile(r"^[1-6][0-9]{2}$")
_EXPECTED_LIST_RE = re.compile(r"^([1-6][0-9]{2},?)+$")


# =============================================================================
# Enums
# =============================================================================


class TransportKind(str, Enum):
    """Transport used to reach the server."""

    UDP = "udp"
    TCP = "tcp"
    TLS = "tls"

    @property
    def label(self) -> str:
        """Uppercase name, as used in Via headers and messages."""
        return self.value.upper()


class RequestMethod(str, Enum):
    """Request methods the health check can send."""

    OPTIONS = "OPTIONS"
    INVITE = "INVITE"


class Severity(IntEnum):
    """Check outcome. Values are the Nagios plugin exit codes."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


class ErrorKind(Enum):
    """Why an exchange failed."""

    CONNECT_TIMEOUT = "connect-timeout"
    REQUEST_TIMEOUT = "request-timeout"
    RESPONSE_TIMEOUT = "response-timeout"
    TRANSPORT = "transport"
    ADDRESS_RESOLUTION = "address-resolution"
    WRONG_RESPONSE = "wrong-response"
    # Reserved: a status mismatch is reported as a WARNING verdict instead
    NON_EXPECTED_STATUS_CODE = "non-expected-status-code"


ExpectedCode = Optional[str]


# =============================================================================
# Exceptions
# =============================================================================


class ConfigError(ValueError):
    """Raised when the check configuration is invalid."""

    pass


class SipCheckError(Exception):
    """Base exception for exchange failures. Carries an ErrorKind."""

    kind = ErrorKind.TRANSPORT


class TransportError(SipCheckError):
    """Socket creation, handshake or I/O failure."""

    kind = ErrorKind.TRANSPORT


class AddressResolutionError(TransportError):
    """Raised when the server address cannot be resolved."""

    kind = ErrorKind.ADDRESS_RESOLUTION


class ConnectTimeout(TransportError):
    """Raised when connecting (or the TLS handshake) exceeds the timeout."""

    kind = ErrorKind.CONNECT_TIMEOUT


class RequestTimeout(TransportError):
    """Raised when sending the request exceeds the timeout."""

    kind = ErrorKind.REQUEST_TIMEOUT


class ResponseTimeout(TransportError):
    """Raised when the response is not complete before the deadline."""

    kind = ErrorKind.RESPONSE_TIMEOUT


class WrongResponse(SipCheckError):
    """Raised when the server sent something that is not a SIP response."""

    kind = ErrorKind.WRONG_RESPONSE


# =============================================================================
# Configuration
# =============================================================================


def parse_expected_codes(text: Optional[str]) -> tuple[ExpectedCode, ...]:
    """
    Parse a comma-delimited list of expected status codes.

    An empty or missing value means any status code is accepted.

    Examples:
        "200"     -> ("200",)
        "100,200" -> ("100", "200")
        ""        -> ()
    """
    if not text:
        return ()
    if not _EXPECTED_LIST_RE.match(text):
        raise ConfigError("expected status code (-c) must be [123456]XX")
    return tuple(code for code in text.split(",") if code)


@dataclass(frozen=True)
class RequestConfig:
    """Validated, immutable configuration for one exchange."""

    server_address: str
    request_uri: str
    from_uri: str
    server_port: int = DEFAULT_PORT
    transport: TransportKind = TransportKind.UDP
    local_ip: Optional[str] = None
    local_port: int = 0
    method: RequestMethod = RequestMethod.OPTIONS
    expected_status_codes: tuple[ExpectedCode, ...] = ()
    timeout: float = DEFAULT_TIMEOUT
    verify_tls: bool = False
    ca_path: Optional[str] = DEFAULT_CA_PATH
    debug: bool = False

    def __post_init__(self) -> None:
        if not self.server_address:
            raise ConfigError("server address (-s) is required")

        try:
            transport = TransportKind(str(getattr(self.transport, "value", self.transport)).lower())
        except ValueError as e:
            raise ConfigError("transport protocol (-t) must be 'tls', 'udp', or 'tcp'") from e
        object.__setattr__(self, "transport", transport)

        try:
            method = RequestMethod(str(getattr(self.method, "value", self.method)).upper())
        except ValueError as e:
            raise ConfigError("request_method (-m) must be OPTIONS or INVITE") from e
        object.__setattr__(self, "method", method)

        if not 0 < self.server_port < 65536:
            raise ConfigError(f"server port must be between 1 and 65535, got {self.server_port}")
        if not 0 <= self.local_port < 65536:
            raise ConfigError(f"local port must be between 0 and 65535, got {self.local_port}")

        if self.timeout is None or not math.isfinite(self.timeout):
            raise ConfigError("timeout (-T) must be a finite number of seconds")
        if self.timeout <= 0:
            raise ConfigError("timeout (-T) must be greater than 0")

        codes = tuple(self.expected_status_codes)
        for code in codes:
            if code is not None and not _EXPECTED_CODE_RE.match(code):
                raise ConfigError("expected status code (-c) must be [123456]XX")
        object.__setattr__(self, "expected_status_codes", codes)

        if not self.request_uri:
            raise ConfigError("request URI (-r) must not be empty")
        if not self.from_uri:
            raise ConfigError("from URI (-f) must not be empty")
        if not self.request_uri.isascii():
            raise ConfigError("request URI (-r) must only contain ASCII characters")
        if not self.from_uri.isascii():
            raise ConfigError("from URI (-f) must only contain ASCII characters")

    @property
    def expected_count(self) -> int:
        """Number of responses to collect: one per expected code, at least one."""
        return len(self.expected_status_codes) or 1

    @classmethod
    def from_options(
        cls,
        server_address: str,
        *,
        server_port: int = DEFAULT_PORT,
        request_uri: Optional[str] = None,
        from_uri: Optional[str] = None,
        expected_status_codes: Union[str, Sequence[ExpectedCode], None] = None,
        **kwargs,
    ) -> RequestConfig:
        """
        Build a config applying the plugin defaults.

        The request URI defaults to ``sip:ping@<server>:<port>`` and the From
        URI to ``sip:nagios@<server>``. Expected codes may be given as the
        comma-delimited command line form.
        """
        if not server_address:
            raise ConfigError("server address (-s) is required")
        if isinstance(expected_status_codes, str) or expected_status_codes is None:
            expected_status_codes = parse_expected_codes(expected_status_codes)
        return cls(
            server_address=server_address,
            server_port=server_port,
            request_uri=request_uri or f"sip:ping@{server_address}:{server_port}",
            from_uri=from_uri or f"sip:nagios@{server_address}",
            expected_status_codes=tuple(expected_status_codes),
            **kwargs,
        )


__all__ = [
    # Enums
    "TransportKind",
    "RequestMethod",
    "Severity",
    "ErrorKind",
    "ExpectedCode",
    # Exceptions
    "ConfigError",
    "SipCheckError",
    "TransportError",
    "AddressResolutionError",
    "ConnectTimeout",
    "RequestTimeout",
    "ResponseTimeout",
    "WrongResponse",
    # Configuration
    "RequestConfig",
    "parse_expected_codes",
]
