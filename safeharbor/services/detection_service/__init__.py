"""Detection Service: multi-stage crisis assessment.

Stages run in order and each only ever raises the level it receives:
1. signal_extractor.py - keyword indicators from the message
2. context_adjuster.py - mood, trend, themes, prior crises, time of day
3. history_analyzer.py - recent incidents and recurring patterns
4. aggregator.py - final level, confidence and escalation path

Endpoints:
- POST /crisis/detect - Assess a message, open a crisis event if needed
- POST /crisis/intervene - Intervention guidance for a known level
- GET /crisis/resources - Crisis hotlines and websites
"""

from .catalog import DEFAULT_CATALOG, IndicatorCatalog, IndicatorDefinition, IndicatorCategory
from .config import DetectionConfig, RiskTunables
from .models import (
    CrisisAssessment,
    CrisisContext,
    CrisisHistory,
    CrisisIncident,
    DetectionOutcome,
    InterventionStrategy,
    StageResult,
)
from .pipeline import CrisisDetectionPipeline

__all__ = [
    "DEFAULT_CATALOG",
    "IndicatorCatalog",
    "IndicatorDefinition",
    "IndicatorCategory",
    "DetectionConfig",
    "RiskTunables",
    "CrisisAssessment",
    "CrisisContext",
    "CrisisHistory",
    "CrisisIncident",
    "DetectionOutcome",
    "InterventionStrategy",
    "StageResult",
    "CrisisDetectionPipeline",
]
