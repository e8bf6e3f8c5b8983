"""Tests for the crisis event stores."""
import json
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from safeharbor.shared.database import ConcurrencyError, DuplicateError
from safeharbor.shared.models import Severity
from safeharbor.services.escalation_service.event_store import (
    InMemoryCrisisEventStore,
    PostgresCrisisEventStore,
)
from safeharbor.services.escalation_service.events import (
    CrisisEvent,
    CrisisNotes,
    EscalationStatus,
    EventSource,
)

BASE = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_event(event_id="crisis_1", minutes=0, level=Severity.HIGH, detection_id=None, user_id="user_1"):
    return CrisisEvent(
        id=event_id,
        user_id=user_id,
        source=EventSource.API_DETECTION,
        detected_at=BASE + timedelta(minutes=minutes),
        flag_level=level,
        notes=CrisisNotes(matched_categories=("distress",)),
        detection_id=detection_id,
    )


@pytest.fixture
def store():
    return InMemoryCrisisEventStore()


class TestInMemoryCrisisEventStore:
    def test_insert_and_get(self, store):
        event = make_event()
        store.insert(event)
        assert store.get("crisis_1") == event

    def test_get_missing(self, store):
        assert store.get("nope") is None

    def test_duplicate_id_rejected(self, store):
        store.insert(make_event())
        with pytest.raises(DuplicateError):
            store.insert(make_event())

    def test_duplicate_detection_id_rejected(self, store):
        store.insert(make_event("crisis_1", detection_id="det_1"))
        with pytest.raises(DuplicateError):
            store.insert(make_event("crisis_2", detection_id="det_1"))

    def test_find_by_detection_id(self, store):
        event = make_event(detection_id="det_1")
        store.insert(event)

        assert store.find_by_detection_id("det_1") == event
        assert store.find_by_detection_id("det_2") is None

    def test_list_newest_first_with_filters(self, store):
        store.insert(make_event("crisis_1", minutes=0, level=Severity.HIGH))
        store.insert(make_event("crisis_2", minutes=10, level=Severity.CRITICAL))
        store.insert(make_event("crisis_3", minutes=20, level=Severity.HIGH))

        assert [e.id for e in store.list()] == ["crisis_3", "crisis_2", "crisis_1"]
        assert [e.id for e in store.list(severity=Severity.HIGH)] == ["crisis_3", "crisis_1"]
        assert [e.id for e in store.list(limit=1)] == ["crisis_3"]
        assert [e.id for e in store.list(since=BASE + timedelta(minutes=5))] == [
            "crisis_3", "crisis_2",
        ]

    def test_list_by_user(self, store):
        store.insert(make_event("crisis_1", minutes=0))
        store.insert(make_event("crisis_2", minutes=10, user_id="user_2"))
        store.insert(make_event("crisis_3", minutes=20))

        assert [e.id for e in store.list(user_id="user_1")] == ["crisis_3", "crisis_1"]
        assert [e.id for e in store.list(user_id="user_2")] == ["crisis_2"]
        assert store.list(user_id="user_9") == []

    def test_list_by_status(self, store):
        event = store.insert(make_event())
        store.compare_and_swap(
            event.with_transition(EscalationStatus.ESCALATED, "admin_1", BASE), 1
        )

        assert store.list(status=EscalationStatus.PENDING) == []
        assert len(store.list(status=EscalationStatus.ESCALATED)) == 1

    def test_compare_and_swap(self, store):
        event = store.insert(make_event())
        updated = event.with_transition(EscalationStatus.ESCALATED, "admin_1", BASE)

        store.compare_and_swap(updated, expected_version=1)

        assert store.get("crisis_1").version == 2

    def test_compare_and_swap_stale_version(self, store):
        event = store.insert(make_event())
        store.compare_and_swap(
            event.with_transition(EscalationStatus.ESCALATED, "admin_1", BASE), 1
        )

        with pytest.raises(ConcurrencyError) as exc_info:
            store.compare_and_swap(
                event.with_transition(EscalationStatus.DISMISSED, "admin_2", BASE), 1
            )

        assert exc_info.value.actual_version == 2
        assert store.get("crisis_1").escalation_status == EscalationStatus.ESCALATED

    def test_compare_and_swap_missing_event(self, store):
        with pytest.raises(ConcurrencyError):
            store.compare_and_swap(make_event(), 1)

    def test_health_check(self, store):
        assert store.health_check()["healthy"] is True


class TestPostgresCrisisEventStore:
    """Row mapping and SQL shape, with a mocked connection."""

    @pytest.fixture
    def cursor(self):
        return MagicMock()

    @pytest.fixture
    def pg_store(self, cursor):
        conn = MagicMock()
        conn.cursor.return_value.__enter__.return_value = cursor
        manager = MagicMock()
        manager.get_connection.return_value.__enter__.return_value = conn
        return PostgresCrisisEventStore(manager)

    def _row(self, event):
        return (
            event.id,
            event.user_id,
            event.source.value,
            event.detected_at,
            event.flag_level.value,
            event.escalation_status.value,
            event.notes.to_dict(),
            [entry.to_dict() for entry in event.status_history],
            event.version,
            event.detection_id,
        )

    def test_row_round_trip(self, pg_store, cursor):
        event = make_event(detection_id="det_1").with_transition(
            EscalationStatus.ESCALATED, "admin_1", BASE, "called"
        )
        cursor.fetchone.return_value = self._row(event)

        assert pg_store.get(event.id) == event

    def test_text_json_columns_are_decoded(self, pg_store, cursor):
        event = make_event()
        row = list(self._row(event))
        row[6] = json.dumps(row[6])
        row[7] = json.dumps(row[7])
        cursor.fetchone.return_value = tuple(row)

        assert pg_store.get(event.id) == event

    def test_insert_serializes_notes_and_history(self, pg_store, cursor):
        pg_store.insert(make_event(detection_id="det_1"))

        query, params = cursor.execute.call_args.args
        assert query.startswith("INSERT INTO crisis_events")
        assert json.loads(params[6]) == {
            "matched_categories": ["distress"],
            "recommended_actions": [],
            "free_text": None,
        }
        assert json.loads(params[7]) == []
        assert params[9] == "det_1"

    def test_list_builds_filters(self, pg_store, cursor):
        cursor.fetchall.return_value = []

        pg_store.list(status=EscalationStatus.PENDING, severity=Severity.HIGH, limit=5)

        query, params = cursor.execute.call_args.args
        assert "escalation_status = %s" in query
        assert "flag_level = %s" in query
        assert "ORDER BY detected_at DESC" in query
        assert params == ["PENDING", "HIGH", 5]

    def test_list_filters_by_user(self, pg_store, cursor):
        cursor.fetchall.return_value = []
        since = BASE - timedelta(hours=24)

        pg_store.list(severity=Severity.CRITICAL, user_id="user_1", since=since)

        query, params = cursor.execute.call_args.args
        assert "user_id = %s" in query
        assert params == ["CRITICAL", "user_1", since]

    def test_compare_and_swap_conflict(self, pg_store, cursor):
        cursor.rowcount = 0
        event = make_event().with_transition(EscalationStatus.ESCALATED, "admin_1", BASE)

        with pytest.raises(ConcurrencyError):
            pg_store.compare_and_swap(event, 1)

        query, params = cursor.execute.call_args.args
        assert query.endswith("WHERE id = %s AND version = %s")
        assert params[-2:] == ["crisis_1", 1]
