"""Tests for crisis monitoring statistics."""
from datetime import datetime, timedelta, timezone

from safeharbor.shared.models import Severity
from safeharbor.services.escalation_service.events import (
    CrisisEvent,
    EscalationStatus,
    EventSource,
)
from safeharbor.services.escalation_service.monitoring import (
    calculate_trend,
    summarize_events,
)

BASE = datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc)


def event_at(hour, level=Severity.MEDIUM, status=EscalationStatus.PENDING, n=0):
    return CrisisEvent(
        id=f"crisis_{hour}_{n}",
        user_id="user_1",
        source=EventSource.API_DETECTION,
        detected_at=BASE + timedelta(hours=hour, minutes=n),
        flag_level=level,
        escalation_status=status,
    )


def burst(counts):
    """One event list with counts[i] events in hour i."""
    return [event_at(hour, n=n) for hour, count in enumerate(counts) for n in range(count)]


class TestCalculateTrend:
    def test_too_few_events_is_stable(self):
        assert calculate_trend([]) == "stable"
        assert calculate_trend([event_at(1)]) == "stable"

    def test_single_hour_is_stable(self):
        assert calculate_trend(burst([5])) == "stable"

    def test_increasing(self):
        assert calculate_trend(burst([1, 1, 1, 4, 4, 4])) == "increasing"

    def test_decreasing(self):
        assert calculate_trend(burst([4, 4, 4, 1, 1, 1])) == "decreasing"

    def test_flat_is_stable(self):
        assert calculate_trend(burst([2, 2, 2, 2, 2, 2])) == "stable"

    def test_hours_span_midnight(self):
        late = [event_at(22), event_at(23)]
        early = [event_at(24 + h, n=n) for h in range(2) for n in range(4)]
        assert calculate_trend(late + early) == "increasing"


class TestSummarizeEvents:
    def test_counts(self):
        events = [
            event_at(1, Severity.CRITICAL, EscalationStatus.PENDING),
            event_at(2, Severity.HIGH, EscalationStatus.ESCALATED),
            event_at(3, Severity.HIGH, EscalationStatus.DISMISSED),
            event_at(4, Severity.LOW, EscalationStatus.RESOLVED),
        ]
        stats = summarize_events(events)

        assert stats["total"] == 4
        assert stats["by_level"] == {"CRITICAL": 1, "HIGH": 2, "MEDIUM": 0, "LOW": 1}
        assert stats["by_status"] == {
            "PENDING": 1, "ESCALATED": 1, "RESOLVED": 1, "DISMISSED": 1,
        }
        assert stats["active_crises"] == 2

    def test_empty(self):
        stats = summarize_events([])
        assert stats["total"] == 0
        assert stats["recent_trend"] == "stable"
