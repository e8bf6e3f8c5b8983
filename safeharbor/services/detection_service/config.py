"""Detection pipeline configuration and risk tunables.

The numeric constants below reproduce the behavior observed in the
production detector. They are exposed as a frozen dataclass so a
different risk tolerance can be injected without touching the stages.
"""
import os
from dataclasses import dataclass
from typing import FrozenSet

from safeharbor.shared.models import Severity


@dataclass(frozen=True)
class RiskTunables:
    """Score thresholds and confidence increments for stages 1-3."""

    # Risk score (0-100+) to level mapping
    CRITICAL_SCORE: int = 90
    HIGH_SCORE: int = 70
    MEDIUM_SCORE: int = 50

    # Stage 2: mood
    EXTREMELY_LOW_MOOD_MAX: int = 2
    LOW_MOOD_MAX: int = 4
    EXTREMELY_LOW_MOOD_CONFIDENCE: float = 0.2
    LOW_MOOD_CONFIDENCE: float = 0.1
    MOOD_SCORE_CEILING: int = 3         # moods at or below add score
    MOOD_SCORE_BASE: int = 4            # (base - mood) * weight
    MOOD_SCORE_WEIGHT: int = 5

    # Stage 2: sustained trend
    TREND_RECENT_WINDOW: int = 3
    TREND_MEAN_WINDOW: int = 7
    TREND_LOW_MOOD_MAX: float = 3.0
    TREND_CONFIDENCE: float = 0.15

    # Stage 2: conversation themes
    NEGATIVE_THEME_MIN_MESSAGES: int = 3
    NEGATIVE_THEME_CONFIDENCE: float = 0.1
    NEGATIVE_THEME_SCORE_PER_MESSAGE: int = 3

    # Stage 2: prior crises and time of day
    PRIOR_CRISIS_CONFIDENCE_EACH: float = 0.05
    PRIOR_CRISIS_SCORE_EACH: int = 10
    LATE_NIGHT_START_HOUR: int = 2
    LATE_NIGHT_END_HOUR: int = 5
    LATE_NIGHT_CONFIDENCE: float = 0.05

    # Stage 3: history
    HISTORY_WINDOW_DAYS: int = 30
    FREQUENT_CRISIS_MIN_INCIDENTS: int = 2
    FREQUENT_CRISIS_CONFIDENCE: float = 0.2
    ESCALATING_PATTERN_CONFIDENCE: float = 0.15
    RECURRING_PATTERN_CONFIDENCE: float = 0.1


NEGATIVE_THEME_LEXICON: FrozenSet[str] = frozenset({
    "depressed",
    "hopeless",
    "suicidal",
    "harm",
})


@dataclass(frozen=True)
class DetectionConfig:
    """Service-level detection behavior."""

    # Lowest overall level that opens a crisis event
    action_threshold: Severity = Severity.LOW

    # Source tag recorded on events created by the HTTP endpoint
    default_source: str = "API_DETECTION"

    @classmethod
    def from_env(cls) -> "DetectionConfig":
        """Create config from environment variables.

        Environment variables:
            CRISIS_ACTION_THRESHOLD: Severity name (default LOW)
        """
        threshold = Severity.parse(os.getenv("CRISIS_ACTION_THRESHOLD", "LOW"))
        if threshold == Severity.NONE:
            raise ValueError("CRISIS_ACTION_THRESHOLD must be LOW or higher")
        return cls(action_threshold=threshold)
