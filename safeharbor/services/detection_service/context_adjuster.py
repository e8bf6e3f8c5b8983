"""Stage 2: contextual risk adjustment.

Takes the stage-1 result as given and layers session context on top:
mood, mood trend, recent conversation themes, prior crises and time of
day. Each rule is independent and can only raise the level or the
confidence established by stage 1.
"""
import logging
from dataclasses import replace
from statistics import mean
from typing import List, Optional

from safeharbor.shared.models import Severity
from .config import NEGATIVE_THEME_LEXICON, RiskTunables
from .models import CrisisContext, StageResult, clamp_confidence, merge_unique
from .signal_extractor import score_to_level

logger = logging.getLogger(__name__)


def parse_hour(time_of_day: Optional[str]) -> Optional[int]:
    """Hour from an "HH:MM" or "HH:MM:SS" string, None if unparseable."""
    if not isinstance(time_of_day, str) or not time_of_day:
        return None
    head = time_of_day.strip().split(":", 1)[0]
    if not head.isdigit():
        return None
    hour = int(head)
    return hour if 0 <= hour <= 23 else None


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ContextualRiskAdjuster:
    """Raises stage-1 severity and confidence using session context."""

    def __init__(self, tunables: Optional[RiskTunables] = None):
        self.tunables = tunables or RiskTunables()

    def adjust(self, keyword_result: StageResult, context: Optional[CrisisContext]) -> StageResult:
        """Apply the context rules to a stage-1 result.

        Args:
            keyword_result: Output of SignalExtractor.extract
            context: Session context; None leaves the result unchanged

        Returns:
            New StageResult, never less severe than ``keyword_result``
        """
        if context is None:
            return keyword_result

        t = self.tunables
        level = keyword_result.level
        confidence = keyword_result.confidence
        risk_score = keyword_result.risk_score
        factors: List[str] = []

        mood = context.current_mood
        if not _is_number(mood) or not 1 <= mood <= 10:
            mood = None

        if mood is not None:
            if mood <= t.EXTREMELY_LOW_MOOD_MAX:
                factors.append("extremely_low_mood")
                confidence += t.EXTREMELY_LOW_MOOD_CONFIDENCE
                level = max(level, Severity.LOW)
            elif mood <= t.LOW_MOOD_MAX:
                factors.append("low_mood")
                confidence += t.LOW_MOOD_CONFIDENCE
            if mood <= t.MOOD_SCORE_CEILING:
                risk_score += (t.MOOD_SCORE_BASE - mood) * t.MOOD_SCORE_WEIGHT

        if self._has_sustained_low_trend(context.recent_moods):
            factors.append("sustained_low_mood_trend")
            confidence += t.TREND_CONFIDENCE
            level = max(level, Severity.MEDIUM)

        negative_messages = self._count_negative_messages(context.conversation_history)
        risk_score += negative_messages * t.NEGATIVE_THEME_SCORE_PER_MESSAGE
        if negative_messages >= t.NEGATIVE_THEME_MIN_MESSAGES:
            factors.append("recurring_negative_themes")
            confidence += t.NEGATIVE_THEME_CONFIDENCE

        prior = context.previous_crisis_event_count
        if prior > 0:
            factors.append("previous_crisis_history")
            confidence += prior * t.PRIOR_CRISIS_CONFIDENCE_EACH
            risk_score += prior * t.PRIOR_CRISIS_SCORE_EACH

        hour = parse_hour(context.time_of_day)
        if hour is not None and t.LATE_NIGHT_START_HOUR <= hour <= t.LATE_NIGHT_END_HOUR:
            factors.append("late_night_crisis")
            confidence += t.LATE_NIGHT_CONFIDENCE

        # Context may push the score into a higher band; never a lower one
        level = max(level, score_to_level(risk_score, t, fallback=Severity.NONE))

        result = replace(
            keyword_result,
            level=level,
            confidence=clamp_confidence(confidence),
            risk_score=risk_score,
            risk_factors=merge_unique(keyword_result.risk_factors, factors),
        )

        if result.level > keyword_result.level:
            logger.warning(
                "CONTEXT_STAGE_ESCALATED",
                extra={
                    "from_level": keyword_result.level.value,
                    "to_level": result.level.value,
                    "risk_score": risk_score,
                    "risk_factors": factors,
                }
            )
        return result

    def _has_sustained_low_trend(self, moods) -> bool:
        t = self.tunables
        valid = [m for m in moods or () if _is_number(m)]
        if len(valid) < t.TREND_RECENT_WINDOW:
            return False
        recent = valid[-t.TREND_RECENT_WINDOW:]
        window = valid[-t.TREND_MEAN_WINDOW:]
        return (
            all(m <= t.TREND_LOW_MOOD_MAX for m in recent)
            and mean(window) <= t.TREND_LOW_MOOD_MAX
        )

    @staticmethod
    def _count_negative_messages(history) -> int:
        count = 0
        for message in history or ():
            lowered = message.lower() if isinstance(message, str) else ""
            if any(term in lowered for term in NEGATIVE_THEME_LEXICON):
                count += 1
        return count
