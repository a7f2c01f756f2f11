"""Command-line entry point: run the SIP check the way Nagios expects.

Prints one ``STATE:message`` line per checked response on stdout and exits
with the plugin code of the worst state (OK 0, WARNING 1, CRITICAL 2,
UNKNOWN 3 for invalid arguments).
"""

from __future__ import annotations

import argparse
import logging
from typing import NoReturn, Optional, Sequence

from rich.console import Console

from ._exchange import CheckResult, Exchange
from ._types import ConfigError, RequestConfig, Severity, parse_expected_codes
from ._utils import DEFAULT_CA_PATH, DEFAULT_PORT, DEFAULT_TIMEOUT, logger, setup_logging

# Plain stdout console for the plugin output
OUTPUT = Console(highlight=False, soft_wrap=True, emoji=False)

HOMEPAGE = "https://github.com/ibc/nagios-sip-plugin"


class UsageError(Exception):
    pass


class _PluginArgumentParser(argparse.ArgumentParser):
    """Argument errors are UNKNOWN (exit 3), not argparse's exit 2."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(message)


def _build_parser() -> argparse.ArgumentParser:
    parser = _PluginArgumentParser(
        prog="sipcheck",
        description="Check a SIP server by sending an OPTIONS or INVITE request",
        epilog=f"Homepage: {HOMEPAGE}",
    )
    parser.add_argument("-t", dest="transport", default="udp", help="Protocol to use: tls, tcp or udp (default 'udp')")
    parser.add_argument("-s", dest="server_address", help="IP or domain of the server (required)")
    parser.add_argument("-p", dest="server_port", type=int, default=DEFAULT_PORT, help="Port of the server (default 5060)")
    parser.add_argument(
        "-lp",
        dest="local_port",
        type=int,
        default=0,
        help="Local port from which UDP requests are sent (default random)",
    )
    parser.add_argument("-r", dest="request_uri", help="Request URI (default 'sip:ping@SERVER:PORT')")
    parser.add_argument("-f", dest="from_uri", help="From URI (default 'sip:nagios@SERVER')")
    parser.add_argument(
        "-c",
        dest="expected_codes",
        default="",
        help="Expected status code(s), comma delimited (i.e. '100,200'). Any code is valid when empty",
    )
    parser.add_argument("-T", dest="timeout", type=float, default=DEFAULT_TIMEOUT, help="Timeout in seconds (default 2)")
    parser.add_argument(
        "-vt",
        dest="verify_tls",
        action="store_true",
        help="Verify the server's TLS certificate when using TLS",
    )
    parser.add_argument(
        "-ca",
        dest="ca_path",
        default=DEFAULT_CA_PATH,
        help="Directory (or bundle) with PEM certificates for TLS verification (default '/etc/ssl/certs/')",
    )
    parser.add_argument("-m", dest="method", default="OPTIONS", help="Request method: INVITE or OPTIONS (default OPTIONS)")
    parser.add_argument("-D", dest="debug", action="store_true", help="Print the full response")
    parser.add_argument("--verbose", action="store_true", help="Log transport details on stderr")
    return parser


def build_config(args: argparse.Namespace) -> RequestConfig:
    """Turn parsed arguments into a validated config."""
    return RequestConfig.from_options(
        args.server_address,
        server_port=args.server_port,
        request_uri=args.request_uri,
        from_uri=args.from_uri,
        expected_status_codes=parse_expected_codes(args.expected_codes),
        transport=args.transport,
        local_port=args.local_port,
        method=args.method,
        timeout=args.timeout,
        verify_tls=args.verify_tls,
        ca_path=args.ca_path,
        debug=args.debug,
    )


def _report(severity: Severity, text: str) -> None:
    OUTPUT.print(f"{severity.name}:{text}", markup=False)


def render(result: CheckResult) -> int:
    """Print the result and return the exit code."""
    if result.debug_lines:
        OUTPUT.print("-- Debug Information: ", markup=False)
        for line in result.debug_lines:
            OUTPUT.print(line, markup=False)

    for severity, text in result.messages:
        _report(severity, text)
    return int(result.severity)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
        config = build_config(args)
    except (UsageError, ConfigError) as e:
        _report(Severity.UNKNOWN, str(e))
        OUTPUT.print("\nGet help by running:    sipcheck -h", markup=False)
        return int(Severity.UNKNOWN)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)
    logger.debug(f"Checking {config.server_address}:{config.server_port} via {config.transport.label}")

    return render(Exchange(config).run())


__all__ = ["main", "build_config", "render"]
