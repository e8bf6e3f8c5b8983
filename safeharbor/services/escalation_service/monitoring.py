"""Crisis monitoring statistics for the admin dashboard."""
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, List

from safeharbor.shared.models import Severity
from .events import CrisisEvent, EscalationStatus

TREND_WINDOW_HOURS = 3
TREND_RISE_FACTOR = 1.2
TREND_FALL_FACTOR = 0.8

REPORTED_LEVELS = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)


def _hour_bucket(timestamp: datetime) -> datetime:
    return timestamp.replace(minute=0, second=0, microsecond=0)


def calculate_trend(events: Iterable[CrisisEvent]) -> str:
    """Compare the last three active hours against the three before them.

    Hours with no events are skipped, so "last three" means the three most
    recent hours that had any. Returns increasing, decreasing or stable.
    """
    hourly = Counter(_hour_bucket(event.detected_at) for event in events)
    if len(hourly) < 2:
        return "stable"

    hours = sorted(hourly)
    recent = hours[-TREND_WINDOW_HOURS:]
    earlier = hours[-2 * TREND_WINDOW_HOURS:-TREND_WINDOW_HOURS]

    recent_avg = sum(hourly[h] for h in recent) / len(recent)
    earlier_avg = sum(hourly[h] for h in earlier) / len(earlier) if earlier else 0.0

    if recent_avg > earlier_avg * TREND_RISE_FACTOR:
        return "increasing"
    if recent_avg < earlier_avg * TREND_FALL_FACTOR:
        return "decreasing"
    return "stable"


def summarize_events(events: List[CrisisEvent]) -> Dict[str, Any]:
    """Counts by level and status, active crises and the hourly trend."""
    by_level = Counter(event.flag_level for event in events)
    by_status = Counter(event.escalation_status for event in events)

    return {
        "total": len(events),
        "by_level": {level.value: by_level.get(level, 0) for level in REPORTED_LEVELS},
        "by_status": {status.value: by_status.get(status, 0) for status in EscalationStatus},
        "active_crises": sum(1 for event in events if event.is_active),
        "recent_trend": calculate_trend(events),
    }
