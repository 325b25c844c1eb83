from __future__ import annotations

from enum import Enum


class VerifyOutcome(str, Enum):
    MATCH = "match"
    MISMATCH = "mismatch"


def verify(entered: str, system: str) -> VerifyOutcome:
    """Exact, case-sensitive comparison. No trimming or fuzzy matching.

    Two empty strings match: an empty submission against an empty system
    serial is the same declared identity.
    """
    return VerifyOutcome.MATCH if entered == system else VerifyOutcome.MISMATCH
