"""Utilities and constants for the SIP health check."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# Logs go to stderr, stdout is reserved for the plugin status lines
console = Console(stderr=True)

# Get logger for the package
logger = logging.getLogger("sipcheck")

EOL = "\r\n"
SCHEME = "SIP"
VERSION = "2.0"
PROTOCOL = f"{SCHEME}/{VERSION}"
BRANCH = "z9hG4bK"
MAX_FORWARDS = 5

DEFAULT_PORT = 5060
DEFAULT_TIMEOUT = 2.0
DEFAULT_CA_PATH = "/etc/ssl/certs/"


def setup_logging(level: int | str = logging.WARNING) -> None:
    """Configure logging with RichHandler on the stderr console."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
