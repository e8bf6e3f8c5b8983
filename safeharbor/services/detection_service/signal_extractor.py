"""Stage 1: keyword signal extraction against the indicator catalog.

Lexical matching only: the message is lower-cased and every indicator
whose keyword occurs as a substring contributes its threshold. The
highest threshold becomes the base risk score.
"""
import logging
from typing import List, Optional

from safeharbor.shared.models import Severity
from .catalog import DEFAULT_CATALOG, IndicatorCatalog, IndicatorDefinition
from .config import RiskTunables
from .models import StageResult, clamp_confidence, merge_unique

logger = logging.getLogger(__name__)


def score_to_level(
    risk_score: int,
    tunables: RiskTunables,
    fallback: Severity = Severity.NONE,
) -> Severity:
    """Map a risk score onto a severity band.

    Scores below the MEDIUM band fall back to ``fallback`` when positive,
    which lets stage 1 keep the matched indicator's own severity.
    """
    if risk_score >= tunables.CRITICAL_SCORE:
        return Severity.CRITICAL
    if risk_score >= tunables.HIGH_SCORE:
        return Severity.HIGH
    if risk_score >= tunables.MEDIUM_SCORE:
        return Severity.MEDIUM
    if risk_score > 0:
        return fallback
    return Severity.NONE


class SignalExtractor:
    """Matches raw text against the indicator catalog."""

    def __init__(
        self,
        catalog: Optional[IndicatorCatalog] = None,
        tunables: Optional[RiskTunables] = None,
    ):
        self.catalog = catalog or DEFAULT_CATALOG
        self.tunables = tunables or RiskTunables()

        logger.info(
            "SIGNAL_EXTRACTOR_INITIALIZED",
            extra={
                "catalog_version": self.catalog.version,
                "indicator_count": len(self.catalog),
                "keyword_count": self.catalog.keyword_count(),
            }
        )

    def extract(self, message: Optional[str]) -> StageResult:
        """Scan one message.

        Args:
            message: Raw user text; None or empty yields a NONE result

        Returns:
            StageResult with base level, confidence and matched keywords
        """
        lowered = message.lower() if isinstance(message, str) else ""
        if not lowered.strip():
            return StageResult()

        matched: List[IndicatorDefinition] = []
        keywords: tuple = ()
        for indicator in self.catalog:
            hits = indicator.matched_keywords(lowered)
            if hits:
                matched.append(indicator)
                keywords = merge_unique(keywords, hits)

        if not matched:
            return StageResult()

        risk_score = max(indicator.threshold for indicator in matched)
        fallback = Severity.highest(indicator.severity for indicator in matched)
        level = score_to_level(risk_score, self.tunables, fallback=fallback)

        actions: tuple = ()
        categories: tuple = ()
        for indicator in matched:
            actions = merge_unique(
                actions,
                (indicator.response.immediate_action,) + indicator.response.follow_up,
            )
            categories = merge_unique(categories, (indicator.category.value,))

        result = StageResult(
            level=level,
            confidence=clamp_confidence(risk_score / 100),
            risk_score=risk_score,
            indicators=keywords,
            matched_categories=categories,
            recommended_actions=actions,
        )

        logger.info(
            "KEYWORD_STAGE_MATCHED",
            extra={
                "level": level.value,
                "risk_score": risk_score,
                "indicator_count": len(matched),
                "categories": list(categories),
            }
        )
        return result
