"""User-facing safety messages built from an assessment.

Tone and call-to-action scale with severity: CRITICAL tells the user to
contact emergency services now, HIGH asks for serious attention, and
everything below uses supportive language. The resource list always
follows the message.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from safeharbor.shared.models import Severity
from .directory import get_crisis_resources

logger = logging.getLogger(__name__)


CRITICAL_MESSAGE = (
    "I'm really concerned about your safety right now. Please contact "
    "emergency services immediately or call or text 988 to reach the "
    "Suicide & Crisis Lifeline. If you can, stay with someone you trust "
    "until help arrives. You don't have to go through this alone."
)

HIGH_MESSAGE = (
    "What you're going through sounds serious, and it deserves attention "
    "right away. Please reach out to a crisis line or a mental health "
    "professional today. Talking to someone can help you get through this."
)

SUPPORTIVE_MESSAGE = (
    "Thank you for sharing how you're feeling. It's okay to not be okay, "
    "and support is available whenever you want it. Reaching out to "
    "someone you trust or a counselor can make a real difference."
)

IMMEDIATE_ACTIONS: Dict[Severity, str] = {
    Severity.CRITICAL: "Contact emergency services now",
    Severity.HIGH: "Reach out to a crisis hotline or mental health professional today",
    Severity.MEDIUM: "Schedule time with a therapist or support group",
    Severity.LOW: "Use self-care strategies and check in with someone you trust",
    Severity.NONE: "Keep using your usual support strategies",
}


def _opening_for(level: Severity) -> str:
    if level == Severity.CRITICAL:
        return CRITICAL_MESSAGE
    if level == Severity.HIGH:
        return HIGH_MESSAGE
    return SUPPORTIVE_MESSAGE


def render_resources(location: Optional[str] = None) -> str:
    resources = get_crisis_resources(location)
    lines = ["Crisis resources:"]
    lines.extend(f"- {r.render()}" for r in resources["hotlines"])
    lines.append("Online support:")
    lines.extend(f"- {r.render()}" for r in resources["websites"])
    return "\n".join(lines)


def generate_crisis_response(assessment, location: Optional[str] = None) -> str:
    """Compose the safety message for a CrisisAssessment.

    Args:
        assessment: CrisisAssessment (only ``overall_level`` is read)
        location: Region code used to pick a regional hotline

    Returns:
        Message text followed by the resource list
    """
    return f"{_opening_for(assessment.overall_level)}\n\n{render_resources(location)}"


@dataclass(frozen=True)
class InterventionResponse:
    """Intervention guidance for a known crisis level."""
    level: Severity
    message: str
    immediate_action: str
    contact_emergency: bool
    triggers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "message": self.message,
            "immediate_action": self.immediate_action,
            "contact_emergency": self.contact_emergency,
            "triggers": list(self.triggers),
        }


def compose_intervention(
    level: Severity,
    triggers: Optional[List[str]] = None,
    location: Optional[str] = None,
) -> InterventionResponse:
    """Intervention response for a crisis level reported by a caller."""
    response = InterventionResponse(
        level=level,
        message=f"{_opening_for(level)}\n\n{render_resources(location)}",
        immediate_action=IMMEDIATE_ACTIONS[level],
        contact_emergency=level == Severity.CRITICAL,
        triggers=list(triggers or []),
    )

    logger.info(
        "INTERVENTION_COMPOSED",
        extra={
            "level": level.value,
            "trigger_count": len(response.triggers),
            "contact_emergency": response.contact_emergency,
        }
    )
    return response
