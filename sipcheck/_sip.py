from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, MutableMapping, Optional, Tuple

from ._identifiers import IdentifierGenerator, Identifiers
from ._types import RequestConfig
from ._utils import EOL, MAX_FORWARDS, PROTOCOL

CRLF = EOL
_HEADER_FOLD_RE = re.compile(r"^[ \t]")
_STATUS_CODE_FIRST_DIGITS = "123456"


def _normalize(name: str) -> str:
    return name.lower()


class SIPHeaders(MutableMapping[str, str]):
    """Case-insensitive headers preserving insertion order and the casing last written."""

    __slots__ = ("_store", "_order")

    def __init__(
        self,
        headers: Optional[Iterable[Tuple[str, str]] | Dict[str, str]] = None,
    ) -> None:
        self._store: Dict[str, Tuple[str, str]] = {}
        self._order: List[str] = []
        if headers:
            self.update(headers)

    def __getitem__(self, key: str) -> str:
        norm = _normalize(key)
        if norm not in self._store:
            raise KeyError(key)
        return self._store[norm][1]

    def __setitem__(self, key: str, value: str) -> None:
        norm = _normalize(key)
        if norm not in self._store:
            self._order.append(norm)
        self._store[norm] = (key, value)

    def __delitem__(self, key: str) -> None:
        norm = _normalize(key)
        if norm not in self._store:
            raise KeyError(key)
        del self._store[norm]
        self._order.remove(norm)

    def __iter__(self) -> Iterator[str]:
        for norm in self._order:
            yield self._store[norm][0]

    def __len__(self) -> int:
        return len(self._order)

    def to_lines(self) -> List[str]:
        return [f"{self._store[norm][0]}: {self._store[norm][1]}" for norm in self._order]


# =============================================================================
# Requests
# =============================================================================


def build_request(
    config: RequestConfig,
    identifiers: Optional[Identifiers] = None,
    local_ip: Optional[str] = None,
) -> bytes:
    """
    Render the OPTIONS or INVITE request described by ``config``.

    Fresh identifiers are drawn when none are given. ``local_ip`` overrides
    ``config.local_ip`` and is required by one of the two, since it appears
    in the Via and Call-ID headers.
    """
    ids = identifiers or IdentifierGenerator().draw()
    host = local_ip or config.local_ip
    if not host:
        raise ValueError("a local IP is required to build the Via header")

    method = config.method.value
    sent_by = f"{host}:{config.local_port}" if config.local_port != 0 else host

    headers = SIPHeaders()
    headers["Via"] = f"{PROTOCOL}/{config.transport.label} {sent_by};rport;branch={ids.branch}"
    headers["Max-Forwards"] = str(MAX_FORWARDS)
    headers["To"] = f"<{config.request_uri}>"
    headers["From"] = f"<{config.from_uri}>;tag={ids.tag}"
    headers["Call-ID"] = f"{ids.call_id}@{host}"
    headers["CSeq"] = f"{ids.cseq} {method}"
    headers["Content-Length"] = "0"

    header_lines = CRLF.join(headers.to_lines())
    message = f"{method} {config.request_uri} {PROTOCOL}{CRLF}{header_lines}{CRLF}{CRLF}"
    return message.encode("ascii")


# =============================================================================
# Responses
# =============================================================================


@dataclass(frozen=True, slots=True)
class StatusLine:
    version: str
    status_code: str
    reason: str

    def __str__(self) -> str:
        return f"{self.version} {self.status_code} {self.reason}"


def parse_status_line(line: str) -> Optional[StatusLine]:
    """
    Tokenize a response status line, or return None if ``line`` is not one.

    Accepts ``SIP/2.0 <code> <reason>`` where the version is matched
    case-insensitively, the code is three digits starting with 1-6 and the
    reason is free text, possibly empty.
    """
    text = line.rstrip("\r\n")
    version, sep, rest = text.partition(" ")
    if not sep or version.upper() != PROTOCOL:
        return None
    code, sep, reason = rest.partition(" ")
    if not sep or len(code) != 3:
        return None
    if not (code.isascii() and code.isdigit()) or code[0] not in _STATUS_CODE_FIRST_DIGITS:
        return None
    return StatusLine(version=version, status_code=code, reason=reason)


@dataclass(slots=True)
class ResponseRecord:
    """One response: its status line and the header lines that followed it."""

    status_line: StatusLine
    lines: List[str] = field(default_factory=list)
    complete: bool = False

    @property
    def status_code(self) -> str:
        return self.status_line.status_code

    @property
    def headers(self) -> SIPHeaders:
        header_lines: List[str] = []
        for line in self.lines:
            line = line.rstrip("\r\n")
            if not line:
                continue
            if header_lines and _HEADER_FOLD_RE.match(line):
                header_lines[-1] += f" {line.strip()}"
            else:
                header_lines.append(line)

        headers = SIPHeaders()
        for line in header_lines:
            if ":" not in line:
                continue
            name, value = line.split(":", 1)
            headers[name.strip()] = value.strip()
        return headers


__all__ = [
    "CRLF",
    "SIPHeaders",
    "StatusLine",
    "ResponseRecord",
    "build_request",
    "parse_status_line",
]
