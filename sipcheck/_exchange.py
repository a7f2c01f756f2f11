"""
Request/response exchange for the SIP health check.

One exchange sends a single OPTIONS or INVITE request and collects the
responses until as many blank-line terminators have been seen as responses
are expected:

  AWAITING_LINE → (line) → AWAITING_LINE | COMPLETE

The observed status codes are then paired positionally with the expected
ones. Transport and protocol failures make the result CRITICAL, a status
code mismatch only makes it WARNING.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import List, Optional, Sequence

from ._identifiers import IdentifierGenerator, Identifiers
from ._sip import ResponseRecord, build_request, parse_status_line
from ._transports import BaseConnection, detect_local_ip, open_connection
from ._types import (
    ErrorKind,
    ExpectedCode,
    RequestConfig,
    Severity,
    SipCheckError,
    TransportError,
    WrongResponse,
)
from ._utils import EOL, logger


class CollectorState(Enum):
    AWAITING_LINE = auto()
    COMPLETE = auto()


class ResponseCollector:
    """
    Accumulates response lines and splits them into ResponseRecords.

    A line equal to a bare CRLF ends the current response. Collection is
    complete once ``expected_count`` responses have ended. Content-Length is
    not inspected, so responses carrying a body are not supported.
    """

    def __init__(self, expected_count: int = 1) -> None:
        if expected_count < 1:
            raise ValueError("at least one response must be expected")
        self.expected_count = expected_count
        self.state = CollectorState.AWAITING_LINE
        self.lines: List[str] = []
        self.status_codes: List[str] = []
        self.records: List[ResponseRecord] = []
        self.completed = 0
        self._current: Optional[ResponseRecord] = None

    @property
    def is_complete(self) -> bool:
        return self.state is CollectorState.COMPLETE

    def feed(self, line: str) -> CollectorState:
        """Consume one line (terminator included) and return the new state."""
        if self.is_complete:
            raise RuntimeError("response collection is already complete")

        self.lines.append(line)

        if line == EOL:
            self.completed += 1
            if self._current is not None:
                self._current.complete = True
                self._current = None
            if self.completed == self.expected_count:
                self.state = CollectorState.COMPLETE
            return self.state

        status_line = parse_status_line(line)
        if status_line is not None:
            self.status_codes.append(status_line.status_code)
            self._current = ResponseRecord(status_line=status_line)
            self.records.append(self._current)
        elif self._current is not None:
            self._current.lines.append(line)
        return self.state

    @property
    def first_line(self) -> Optional[str]:
        return self.lines[0] if self.lines else None

    def validate(self) -> None:
        """
        Check that the stream started with a status line.

        Raises:
            WrongResponse: If the first captured line is not a status line
        """
        first = self.first_line
        if first is not None and parse_status_line(first) is None:
            cleaned = first.replace("\r", "").replace("\n", "")
            raise WrongResponse(f'Wrong response first line received: "{cleaned}"')

    @property
    def display_lines(self) -> List[str]:
        return [line.rstrip("\r\n") for line in self.lines]


@dataclass(frozen=True, slots=True)
class Verdict:
    """Classification of one expected/observed status code pair."""

    expected: ExpectedCode
    observed: Optional[str]
    severity: Severity
    message: str


def classify(
    expected: Sequence[ExpectedCode],
    observed: Sequence[str],
) -> List[Verdict]:
    """
    Pair expected and observed status codes by position.

    An empty expectation is a single wildcard slot. A wildcard (None) or an
    equal code is OK, a different or missing code is a WARNING. Every pair is
    reported.
    """
    slots: List[ExpectedCode] = list(expected) or [None]
    verdicts: List[Verdict] = []
    for index, wanted in enumerate(slots):
        actual = observed[index] if index < len(observed) else None
        if actual is None:
            message = (
                f"Received no response but {wanted} was required"
                if wanted is not None
                else f"Received no response at position {index + 1}"
            )
            verdicts.append(Verdict(wanted, None, Severity.WARNING, message))
        elif wanted is None or wanted == actual:
            verdicts.append(Verdict(wanted, actual, Severity.OK, f"status code = {actual}"))
        else:
            verdicts.append(
                Verdict(
                    wanted,
                    actual,
                    Severity.WARNING,
                    f"Received a {actual} but {wanted} was required",
                )
            )
    return verdicts


@dataclass
class CheckResult:
    """Outcome of one exchange, ready to be reported by the caller."""

    severity: Severity
    verdicts: List[Verdict] = field(default_factory=list)
    records: List[ResponseRecord] = field(default_factory=list)
    debug_lines: List[str] = field(default_factory=list)
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.severity is Severity.OK

    @property
    def status_codes(self) -> List[Optional[str]]:
        return [verdict.observed for verdict in self.verdicts]

    @property
    def messages(self) -> List[tuple[Severity, str]]:
        """One (severity, text) line per verdict, or the error."""
        if self.error is not None:
            return [(self.severity, self.error)]
        return [(verdict.severity, verdict.message) for verdict in self.verdicts]

    @classmethod
    def failure(cls, error: SipCheckError, debug_lines: Optional[List[str]] = None) -> CheckResult:
        return cls(
            severity=Severity.CRITICAL,
            debug_lines=debug_lines or [],
            error_kind=error.kind,
            error=str(error),
        )


class Exchange:
    """
    Runs one health-check exchange for a RequestConfig.

    Usage:
        result = Exchange(config).run()
        for severity, text in result.messages:
            print(f"{severity.name}:{text}")
    """

    def __init__(
        self,
        config: RequestConfig,
        identifiers: Optional[Identifiers] = None,
        generator: Optional[IdentifierGenerator] = None,
    ) -> None:
        self.config = config
        self.identifiers = identifiers
        self.generator = generator or IdentifierGenerator()

    def run(self) -> CheckResult:
        """Perform the exchange. Failures are returned, not raised."""
        collector: Optional[ResponseCollector] = None
        try:
            local_ip = self.config.local_ip or detect_local_ip(
                self.config.server_address, self.config.server_port
            )
            # Fresh branch, tag and Call-ID on every run unless fixed by the caller
            identifiers = self.identifiers or self.generator.draw()
            request = build_request(self.config, identifiers, local_ip)
            with open_connection(self.config, local_ip) as connection:
                connection.send(request)
                collector = ResponseCollector(self.config.expected_count)
                self.receive(connection, collector)
        except SipCheckError as e:
            logger.debug(f"Exchange failed ({e.kind.value}): {e}")
            debug_lines = collector.display_lines if collector and self.config.debug else None
            return CheckResult.failure(e, debug_lines)

        verdicts = classify(self.config.expected_status_codes, collector.status_codes)
        result = CheckResult(
            severity=max((verdict.severity for verdict in verdicts), default=Severity.OK),
            verdicts=verdicts,
            records=collector.records,
            debug_lines=collector.display_lines if self.config.debug else [],
        )
        logger.debug(f"Exchange finished: {result.severity.name} {result.status_codes}")
        return result

    def receive(self, connection: BaseConnection, collector: ResponseCollector) -> None:
        """
        Read lines into ``collector`` until it is complete.

        All reads share one deadline of ``config.timeout`` seconds.

        Raises:
            ResponseTimeout: If the responses are not complete in time
            WrongResponse: If the stream does not start with a status line
            TransportError: On receive failure or early end of stream
        """
        deadline = time.monotonic() + self.config.timeout
        while not collector.is_complete:
            raw = connection.read_line(deadline)
            if raw is None:
                collector.validate()
                raise TransportError(
                    f"Connection closed by the server via {connection.label} after "
                    f"{collector.completed} of {collector.expected_count} responses"
                )
            collector.feed(raw.decode("utf-8", errors="replace"))
        collector.validate()

        for record in collector.records:
            server = record.headers.get("Server") or record.headers.get("User-Agent")
            logger.debug(f"Received {record.status_line}" + (f" from {server}" if server else ""))
