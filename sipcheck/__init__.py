"""sipcheck - SIP health check (Nagios plugin) over UDP, TCP and TLS."""

from __future__ import annotations

# Exchange engine
from ._exchange import (
    CheckResult,
    CollectorState,
    Exchange,
    ResponseCollector,
    Verdict,
    classify,
)

# Identifiers
from ._identifiers import IdentifierGenerator, Identifiers

# Messages
from ._sip import ResponseRecord, SIPHeaders, StatusLine, build_request, parse_status_line

# Transport layer
from ._transports import (
    BaseConnection,
    TCPConnection,
    TLSConnection,
    UDPConnection,
    detect_local_ip,
    open_connection,
)

# Types
from ._types import (
    AddressResolutionError,
    ConfigError,
    ConnectTimeout,
    ErrorKind,
    RequestConfig,
    RequestMethod,
    RequestTimeout,
    ResponseTimeout,
    Severity,
    SipCheckError,
    TransportError,
    TransportKind,
    WrongResponse,
    parse_expected_codes,
)

# Utilities
from ._utils import BRANCH, EOL, VERSION, console, logger, setup_logging

__version__ = "0.1.0"

__all__ = [
    # Exchange - Main API
    "Exchange",
    "CheckResult",
    "Verdict",
    "ResponseCollector",
    "CollectorState",
    "classify",
    # Configuration
    "RequestConfig",
    "TransportKind",
    "RequestMethod",
    "Severity",
    "ErrorKind",
    "parse_expected_codes",
    # Messages
    "build_request",
    "parse_status_line",
    "StatusLine",
    "ResponseRecord",
    "SIPHeaders",
    "Identifiers",
    "IdentifierGenerator",
    # Transport
    "BaseConnection",
    "UDPConnection",
    "TCPConnection",
    "TLSConnection",
    "open_connection",
    "detect_local_ip",
    # Exceptions
    "ConfigError",
    "SipCheckError",
    "TransportError",
    "AddressResolutionError",
    "ConnectTimeout",
    "RequestTimeout",
    "ResponseTimeout",
    "WrongResponse",
    # Utilities
    "console",
    "logger",
    "setup_logging",
    "EOL",
    "VERSION",
    "BRANCH",
    # Metadata
    "__version__",
]
