"""Random protocol tokens for SIP requests (branch, tag, Call-ID, CSeq)."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional

from ._utils import BRANCH

# Lowercase alphanumerics without the easily confused i, l and o
ALPHABET = "abcdefghjkmnpqrstuvwxyz0123456789"

TAG_LENGTH = 8
BRANCH_LENGTH = 8
CALL_ID_LENGTH = 10
MAX_CSEQ = 999


@dataclass(frozen=True, slots=True)
class Identifiers:
    """The per-request tokens rendered into a message."""

    branch: str
    tag: str
    call_id: str
    cseq: int


class IdentifierGenerator:
    """
    Generates protocol uniqueness tokens.

    These are not security tokens, so a seedable ``random.Random`` is used.
    Pass a seeded instance to get reproducible output in tests.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._rng = rng or random.Random()

    def random_token(self, length: int) -> str:
        return "".join(self._rng.choice(ALPHABET) for _ in range(length))

    def branch(self) -> str:
        return BRANCH + self.random_token(BRANCH_LENGTH)

    def tag(self) -> str:
        return self.random_token(TAG_LENGTH)

    def call_id(self) -> str:
        return self.random_token(CALL_ID_LENGTH)

    def sequence_number(self) -> int:
        return self._rng.randrange(MAX_CSEQ)

    def draw(self) -> Identifiers:
        """Draw a fresh set of identifiers for one request."""
        return Identifiers(
            branch=self.branch(),
            tag=self.tag(),
            call_id=self.call_id(),
            cseq=self.sequence_number(),
        )


__all__ = ["ALPHABET", "Identifiers", "IdentifierGenerator"]
