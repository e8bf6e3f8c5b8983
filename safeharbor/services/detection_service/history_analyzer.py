"""Stage 3: historical crisis pattern analysis."""
import logging
from dataclasses import replace
from datetime import timedelta
from typing import List, Optional

from safeharbor.shared.models import Severity
from safeharbor.shared.utils import ensure_utc
from .config import RiskTunables
from .models import CrisisHistory, CrisisIncident, StageResult, clamp_confidence, merge_unique

logger = logging.getLogger(__name__)


class HistoricalPatternAnalyzer:
    """Raises the stage-2 result using the user's recent crisis history."""

    def __init__(self, tunables: Optional[RiskTunables] = None):
        self.tunables = tunables or RiskTunables()

    def analyze(self, context_result: StageResult, history: Optional[CrisisHistory]) -> StageResult:
        """Apply the history rules to a stage-2 result.

        Rules:
            - two or more incidents in the window: frequent_recent_crises,
              level raised to at least HIGH
            - every recent incident after the earliest is HIGH or CRITICAL:
              escalating_crisis_pattern, level raised to at least HIGH
            - "recurring" in history.patterns: recurring_crisis_pattern
        """
        if history is None:
            return context_result

        t = self.tunables
        level = context_result.level
        confidence = context_result.confidence
        factors: List[str] = []

        recent = self._recent_incidents(history)

        if len(recent) >= t.FREQUENT_CRISIS_MIN_INCIDENTS:
            factors.append("frequent_recent_crises")
            confidence += t.FREQUENT_CRISIS_CONFIDENCE
            level = max(level, Severity.HIGH)

        if len(recent) >= 2 and all(i.level >= Severity.HIGH for i in recent[1:]):
            factors.append("escalating_crisis_pattern")
            confidence += t.ESCALATING_PATTERN_CONFIDENCE
            level = max(level, Severity.HIGH)

        if "recurring" in history.patterns:
            factors.append("recurring_crisis_pattern")
            confidence += t.RECURRING_PATTERN_CONFIDENCE

        factors.extend(sorted(history.risk_factors))

        result = replace(
            context_result,
            level=level,
            confidence=clamp_confidence(confidence),
            risk_factors=merge_unique(context_result.risk_factors, factors),
        )

        if result.level > context_result.level:
            logger.warning(
                "HISTORY_STAGE_ESCALATED",
                extra={
                    "from_level": context_result.level.value,
                    "to_level": result.level.value,
                    "recent_incidents": len(recent),
                }
            )
        return result

    def _recent_incidents(self, history: CrisisHistory) -> List[CrisisIncident]:
        """Incidents inside the window, oldest first.

        Without an explicit ``assessed_at`` the newest incident is the
        reference point, so no wall-clock read happens here.
        """
        incidents = sorted(
            history.previous_incidents, key=lambda i: ensure_utc(i.timestamp)
        )
        if not incidents:
            return []

        reference = ensure_utc(history.assessed_at or incidents[-1].timestamp)
        window_start = reference - timedelta(days=self.tunables.HISTORY_WINDOW_DAYS)
        return [
            i for i in incidents
            if window_start <= ensure_utc(i.timestamp) <= reference
        ]
