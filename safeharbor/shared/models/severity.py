"""Canonical severity scale shared by detection and escalation.

One enum replaces the mixed lowercase/uppercase severity strings used by
older detectors. Values are uppercase because they are persisted as the
crisis event flag level.
"""
from enum import Enum
from typing import Iterable


class Severity(Enum):
    """Crisis severity with a total order.

    CRITICAL > HIGH > MEDIUM > LOW > NONE. Aggregation always takes the
    maximum so a later step can never lower an earlier verdict.
    """
    NONE = "NONE"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Parse a severity name in any casing ("critical", "HIGH")."""
        return cls(str(value).strip().upper())

    @classmethod
    def highest(cls, levels: Iterable["Severity"]) -> "Severity":
        """Return the most severe level, NONE for an empty iterable."""
        result = cls.NONE
        for level in levels:
            if level > result:
                result = level
        return result


_RANKS = {
    Severity.NONE: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}
