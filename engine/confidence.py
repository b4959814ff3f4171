"""
Confidence Levels: Shared grading of estimate quality.

Every analyzer turns its input quality signals (sample density, internal
consistency, R², physiological plausibility) into one of four ordered
levels. Scores start at 100 and lose points for each degradation, so the
same inputs always produce the same grade.
"""

from enum import Enum


class ConfidenceLevel(Enum):
    """Ordered confidence grades, best first."""
    VERY_HIGH = "VERY_HIGH"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)

    def downgrade(self, steps: int = 1) -> 'ConfidenceLevel':
        """Move down the scale by the given number of steps (stops at LOW)."""
        return _ORDER[min(self.rank + max(steps, 0), len(_ORDER) - 1)]

    def cap(self, ceiling: 'ConfidenceLevel') -> 'ConfidenceLevel':
        """Limit this level to at most the ceiling."""
        return self if self.rank >= ceiling.rank else ceiling


_ORDER = [
    ConfidenceLevel.VERY_HIGH,
    ConfidenceLevel.HIGH,
    ConfidenceLevel.MEDIUM,
    ConfidenceLevel.LOW,
]


def score_to_confidence(score: float) -> ConfidenceLevel:
    """
    Map a 0-100 quality score to a confidence level.

    Thresholds:
        >= 85: VERY_HIGH
        >= 70: HIGH
        >= 55: MEDIUM
        otherwise LOW
    """
    if score >= 85:
        return ConfidenceLevel.VERY_HIGH
    elif score >= 70:
        return ConfidenceLevel.HIGH
    elif score >= 55:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW
