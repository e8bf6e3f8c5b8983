"""Crisis detection pipeline: keyword → context → history → aggregate.

Each stage receives the previous stage's result explicitly; no stage
re-scans the message. The pipeline holds only read-only configuration,
so one instance can serve concurrent requests.
"""
import logging
import time
from typing import Optional

from safeharbor.shared.models import Severity
from .aggregator import AssessmentAggregator
from .catalog import DEFAULT_CATALOG, IndicatorCatalog
from .config import RiskTunables
from .context_adjuster import ContextualRiskAdjuster
from .history_analyzer import HistoricalPatternAnalyzer
from .models import CrisisAssessment, CrisisContext, CrisisHistory, DetectionOutcome
from .signal_extractor import SignalExtractor

logger = logging.getLogger(__name__)


class CrisisDetectionPipeline:
    """Runs the three detection stages and the aggregator.

    Deterministic: the same context and history always produce the same
    outcome, so callers may retry freely.
    """

    def __init__(
        self,
        catalog: Optional[IndicatorCatalog] = None,
        tunables: Optional[RiskTunables] = None,
    ):
        self.catalog = catalog or DEFAULT_CATALOG
        self.tunables = tunables or RiskTunables()

        self.extractor = SignalExtractor(self.catalog, self.tunables)
        self.adjuster = ContextualRiskAdjuster(self.tunables)
        self.analyzer = HistoricalPatternAnalyzer(self.tunables)
        self.aggregator = AssessmentAggregator(catalog_version=self.catalog.version)

    def run(
        self,
        context: CrisisContext,
        history: Optional[CrisisHistory] = None,
    ) -> DetectionOutcome:
        """Run every stage and keep the intermediate results.

        Args:
            context: Message plus session context
            history: Longitudinal crisis history, optional

        Returns:
            DetectionOutcome with the three stage results and the assessment
        """
        start_time = time.perf_counter()

        keyword_stage = self.extractor.extract(context.message)
        context_stage = self.adjuster.adjust(keyword_stage, context)
        history_stage = self.analyzer.analyze(context_stage, history)
        assessment = self.aggregator.aggregate(keyword_stage, context_stage, history_stage)

        latency_ms = (time.perf_counter() - start_time) * 1000
        log = logger.critical if assessment.overall_level == Severity.CRITICAL else logger.info
        log(
            "CRISIS_ASSESSMENT_COMPLETED",
            extra={
                "overall_level": assessment.overall_level.value,
                "confidence": round(assessment.confidence, 3),
                "risk_score": assessment.risk_score,
                "requires_immediate_action": assessment.requires_immediate_action,
                "catalog_version": self.catalog.version,
                "latency_ms": latency_ms,
            }
        )

        return DetectionOutcome(
            keyword_stage=keyword_stage,
            context_stage=context_stage,
            history_stage=history_stage,
            assessment=assessment,
        )

    def assess(
        self,
        context: CrisisContext,
        history: Optional[CrisisHistory] = None,
    ) -> CrisisAssessment:
        """Convenience wrapper returning only the final assessment."""
        return self.run(context, history).assessment

    def assess_text(self, message: str, user_id: str = "anonymous") -> CrisisAssessment:
        """Assess a bare message with no context or history."""
        return self.assess(CrisisContext(user_id=user_id, message=message))
