"""Detection pipeline data structures.

Every structure here is immutable: each stage returns a new StageResult
derived from the previous one, so a result can be shared between
threads and re-read later for explainability.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from safeharbor.shared.models import Severity


def clamp_confidence(value: float) -> float:
    """Clamp a confidence value into [0.0, 1.0]."""
    return max(0.0, min(1.0, value))


def merge_unique(existing: Tuple[str, ...], additions) -> Tuple[str, ...]:
    """Append items not already present, keeping first-seen order."""
    merged = list(existing)
    for item in additions:
        if item not in merged:
            merged.append(item)
    return tuple(merged)


@dataclass(frozen=True)
class CrisisContext:
    """Session context assembled by the caller for one message.

    Optional fields may be missing; stages skip rules whose inputs are
    absent instead of failing.
    """
    user_id: str
    message: str = ""
    current_mood: Optional[int] = None          # 1-10
    recent_moods: Tuple[int, ...] = ()          # most recent last
    conversation_history: Tuple[str, ...] = ()
    previous_crisis_event_count: int = 0
    time_of_day: Optional[str] = None           # "HH:MM" or "HH:MM:SS"
    location: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "recent_moods", tuple(self.recent_moods or ()))
        object.__setattr__(
            self, "conversation_history", tuple(self.conversation_history or ())
        )
        count = self.previous_crisis_event_count
        if not isinstance(count, int) or isinstance(count, bool):
            count = 0
        object.__setattr__(self, "previous_crisis_event_count", max(0, count))


@dataclass(frozen=True)
class CrisisIncident:
    """One past crisis event as seen by the historical stage."""
    timestamp: datetime
    level: Severity
    resolution: Optional[str] = None


@dataclass(frozen=True)
class CrisisHistory:
    """Longitudinal crisis history for a user.

    ``assessed_at`` is the reference time for the recent-incident window.
    It is passed in rather than read from the clock so detection stays a
    pure function of its inputs.
    """
    previous_incidents: Tuple[CrisisIncident, ...] = ()
    patterns: FrozenSet[str] = frozenset()
    risk_factors: FrozenSet[str] = frozenset()
    assessed_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "previous_incidents", tuple(self.previous_incidents or ()))
        object.__setattr__(self, "patterns", frozenset(self.patterns or ()))
        object.__setattr__(self, "risk_factors", frozenset(self.risk_factors or ()))


@dataclass(frozen=True)
class StageResult:
    """Output of one pipeline stage."""
    level: Severity = Severity.NONE
    confidence: float = 0.0
    risk_score: int = 0
    indicators: Tuple[str, ...] = ()            # matched keywords
    matched_categories: Tuple[str, ...] = ()
    risk_factors: Tuple[str, ...] = ()
    recommended_actions: Tuple[str, ...] = ()

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "confidence": round(self.confidence, 3),
            "risk_score": self.risk_score,
            "indicators": list(self.indicators),
            "matched_categories": list(self.matched_categories),
            "risk_factors": list(self.risk_factors),
            "recommended_actions": list(self.recommended_actions),
        }


class InterventionStrategy(Enum):
    """Named response posture for a severity level."""
    IMMEDIATE_INTERVENTION = "immediate_intervention"
    URGENT_SUPPORT = "urgent_support"
    THERAPEUTIC_SUPPORT = "therapeutic_support"
    PREVENTIVE_MONITORING = "preventive_monitoring"


@dataclass(frozen=True)
class CrisisAssessment:
    """Final verdict of the detection pipeline."""
    overall_level: Severity
    confidence: float
    requires_immediate_action: bool
    escalation_path: Tuple[str, ...]
    intervention_strategy: InterventionStrategy
    monitoring_required: bool
    risk_score: int = 0
    indicators: Tuple[str, ...] = ()
    matched_categories: Tuple[str, ...] = ()
    risk_factors: Tuple[str, ...] = ()
    recommended_actions: Tuple[str, ...] = ()
    catalog_version: str = ""

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be 0.0-1.0, got {self.confidence}")

    @property
    def detected(self) -> bool:
        return self.overall_level != Severity.NONE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "overall_level": self.overall_level.value,
            "detected": self.detected,
            "confidence": round(self.confidence, 3),
            "requires_immediate_action": self.requires_immediate_action,
            "escalation_path": list(self.escalation_path),
            "intervention_strategy": self.intervention_strategy.value,
            "monitoring_required": self.monitoring_required,
            "risk_score": self.risk_score,
            "indicators": list(self.indicators),
            "matched_categories": list(self.matched_categories),
            "risk_factors": list(self.risk_factors),
            "recommended_actions": list(self.recommended_actions),
            "catalog_version": self.catalog_version,
        }


@dataclass(frozen=True)
class DetectionOutcome:
    """All three stage results plus the aggregated assessment."""
    keyword_stage: StageResult
    context_stage: StageResult
    history_stage: StageResult
    assessment: CrisisAssessment

    @property
    def stages(self) -> List[StageResult]:
        return [self.keyword_stage, self.context_stage, self.history_stage]
