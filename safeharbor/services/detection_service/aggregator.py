"""Merges the three stage results into the final CrisisAssessment."""
from statistics import mean
from typing import Dict, Tuple

from safeharbor.shared.models import Severity
from .models import (
    CrisisAssessment,
    InterventionStrategy,
    StageResult,
    clamp_confidence,
)

ESCALATION_PATHS: Dict[Severity, Tuple[str, ...]] = {
    Severity.CRITICAL: ("emergency_services", "crisis_team", "family_notification"),
    Severity.HIGH: ("crisis_hotline", "therapist", "emergency_contacts"),
    Severity.MEDIUM: ("therapist", "support_groups", "self_help"),
    Severity.LOW: (),
    Severity.NONE: (),
}

INTERVENTION_STRATEGIES: Dict[Severity, InterventionStrategy] = {
    Severity.CRITICAL: InterventionStrategy.IMMEDIATE_INTERVENTION,
    Severity.HIGH: InterventionStrategy.URGENT_SUPPORT,
    Severity.MEDIUM: InterventionStrategy.THERAPEUTIC_SUPPORT,
}

MONITORED_LEVELS = frozenset({Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL})


class AssessmentAggregator:
    """Combines keyword, context and history stage results."""

    def __init__(self, catalog_version: str = ""):
        self.catalog_version = catalog_version

    def aggregate(
        self,
        keyword_stage: StageResult,
        context_stage: StageResult,
        history_stage: StageResult,
    ) -> CrisisAssessment:
        stages = (keyword_stage, context_stage, history_stage)
        overall = Severity.highest(stage.level for stage in stages)

        return CrisisAssessment(
            overall_level=overall,
            confidence=clamp_confidence(mean(stage.confidence for stage in stages)),
            requires_immediate_action=overall == Severity.CRITICAL,
            escalation_path=ESCALATION_PATHS[overall],
            intervention_strategy=INTERVENTION_STRATEGIES.get(
                overall, InterventionStrategy.PREVENTIVE_MONITORING
            ),
            monitoring_required=overall in MONITORED_LEVELS,
            risk_score=max(stage.risk_score for stage in stages),
            indicators=history_stage.indicators,
            matched_categories=history_stage.matched_categories,
            risk_factors=history_stage.risk_factors,
            recommended_actions=history_stage.recommended_actions,
            catalog_version=self.catalog_version,
        )
