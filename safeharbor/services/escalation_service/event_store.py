"""Crisis event storage with optimistic concurrency.

Both stores expose the same compare-and-swap primitive: an update is
applied only if the stored version still equals the version the caller
read. Of two concurrent transitions, exactly one wins.
"""
import json
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from safeharbor.shared.database import (
    BaseRepository,
    ConcurrencyError,
    ConnectionManager,
    DuplicateError,
    translate_errors,
)
from safeharbor.shared.models import Severity
from .events import CrisisEvent, CrisisNotes, EscalationStatus, EventSource, StatusTransition

logger = logging.getLogger(__name__)


class CrisisEventStore(ABC):
    """Persistence boundary for crisis events. Events are never deleted."""

    @abstractmethod
    def insert(self, event: CrisisEvent) -> CrisisEvent:
        """Store a new event.

        Raises:
            DuplicateError: If the id or detection_id already exists
        """

    @abstractmethod
    def get(self, event_id: str) -> Optional[CrisisEvent]:
        """Fetch one event, None if absent."""

    @abstractmethod
    def find_by_detection_id(self, detection_id: str) -> Optional[CrisisEvent]:
        """Fetch the event created for a detection, None if absent."""

    @abstractmethod
    def list(
        self,
        status: Optional[EscalationStatus] = None,
        severity: Optional[Severity] = None,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[CrisisEvent]:
        """Events matching the filters, newest first."""

    @abstractmethod
    def compare_and_swap(self, event: CrisisEvent, expected_version: int) -> CrisisEvent:
        """Replace the stored event if its version equals ``expected_version``.

        Raises:
            ConcurrencyError: If the stored version differs
        """

    def health_check(self) -> Dict[str, Any]:
        return {"status": "ok", "healthy": True}


class InMemoryCrisisEventStore(CrisisEventStore):
    """Process-local store for development and tests.

    A single lock serializes every write, which makes compare-and-swap
    atomic per event.
    """

    def __init__(self):
        self._events: Dict[str, CrisisEvent] = {}
        self._by_detection: Dict[str, str] = {}
        self._lock = threading.Lock()

        logger.info("CRISIS_EVENT_STORE_INITIALIZED", extra={"backend": "memory"})

    def insert(self, event: CrisisEvent) -> CrisisEvent:
        with self._lock:
            if event.id in self._events:
                raise DuplicateError(f"Crisis event {event.id} already exists")
            if event.detection_id and event.detection_id in self._by_detection:
                raise DuplicateError(
                    f"Detection {event.detection_id} already has a crisis event"
                )
            self._events[event.id] = event
            if event.detection_id:
                self._by_detection[event.detection_id] = event.id
        return event

    def get(self, event_id: str) -> Optional[CrisisEvent]:
        with self._lock:
            return self._events.get(event_id)

    def find_by_detection_id(self, detection_id: str) -> Optional[CrisisEvent]:
        with self._lock:
            event_id = self._by_detection.get(detection_id)
            return self._events.get(event_id) if event_id else None

    def list(
        self,
        status: Optional[EscalationStatus] = None,
        severity: Optional[Severity] = None,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[CrisisEvent]:
        with self._lock:
            events = list(self._events.values())

        if status is not None:
            events = [e for e in events if e.escalation_status == status]
        if severity is not None:
            events = [e for e in events if e.flag_level == severity]
        if user_id is not None:
            events = [e for e in events if e.user_id == user_id]
        if since is not None:
            events = [e for e in events if e.detected_at >= since]

        events.sort(key=lambda e: e.detected_at, reverse=True)
        return events[:limit] if limit is not None else events

    def compare_and_swap(self, event: CrisisEvent, expected_version: int) -> CrisisEvent:
        with self._lock:
            current = self._events.get(event.id)
            if current is None or current.version != expected_version:
                raise ConcurrencyError(
                    event.id,
                    expected_version,
                    current.version if current is not None else None,
                )
            self._events[event.id] = event
        return event


CRISIS_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS crisis_events (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    source TEXT NOT NULL,
    detected_at TIMESTAMPTZ NOT NULL,
    flag_level TEXT NOT NULL,
    escalation_status TEXT NOT NULL DEFAULT 'PENDING',
    notes JSONB NOT NULL,
    status_history JSONB NOT NULL DEFAULT '[]',
    version INTEGER NOT NULL DEFAULT 1,
    detection_id TEXT UNIQUE
);
CREATE INDEX IF NOT EXISTS crisis_events_status_idx
    ON crisis_events (escalation_status, detected_at DESC);
CREATE INDEX IF NOT EXISTS crisis_events_user_idx
    ON crisis_events (user_id, detected_at DESC);
"""

_COLUMNS = (
    "id", "user_id", "source", "detected_at", "flag_level",
    "escalation_status", "notes", "status_history", "version", "detection_id",
)


def _load_json(value: Any) -> Any:
    # JSONB comes back already decoded; TEXT columns come back as str
    return json.loads(value) if isinstance(value, str) else value


class PostgresCrisisEventStore(BaseRepository[CrisisEvent], CrisisEventStore):
    """PostgreSQL-backed store.

    Status history is kept as a JSONB array on the event row and is only
    ever rewritten together with a version bump in a single UPDATE.
    """

    def __init__(self, connection_manager: ConnectionManager):
        super().__init__(connection_manager, "crisis_events")

    def ensure_schema(self) -> None:
        with translate_errors("ensure_schema", self.table_name):
            with self.connection_manager.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(CRISIS_EVENTS_DDL)
                conn.commit()

        logger.info("CRISIS_EVENT_SCHEMA_ENSURED", extra={"table_name": self.table_name})

    def _row_to_entity(self, row: tuple) -> CrisisEvent:
        data = dict(zip(_COLUMNS, row))
        history = _load_json(data["status_history"]) or []
        return CrisisEvent(
            id=data["id"],
            user_id=data["user_id"],
            source=EventSource(data["source"]),
            detected_at=data["detected_at"],
            flag_level=Severity(data["flag_level"]),
            escalation_status=EscalationStatus(data["escalation_status"]),
            notes=CrisisNotes.from_dict(_load_json(data["notes"])),
            status_history=tuple(StatusTransition.from_dict(entry) for entry in history),
            version=data["version"],
            detection_id=data["detection_id"],
        )

    def _entity_to_params(self, entity: CrisisEvent) -> Dict[str, Any]:
        return {
            "id": entity.id,
            "user_id": entity.user_id,
            "source": entity.source.value,
            "detected_at": entity.detected_at,
            "flag_level": entity.flag_level.value,
            "escalation_status": entity.escalation_status.value,
            "notes": json.dumps(entity.notes.to_dict()),
            "status_history": json.dumps([e.to_dict() for e in entity.status_history]),
            "version": entity.version,
            "detection_id": entity.detection_id,
        }

    def _select(self) -> str:
        return f"SELECT {', '.join(_COLUMNS)} FROM {self.table_name}"

    def get(self, event_id: str) -> Optional[CrisisEvent]:
        return self._fetch_one(f"{self._select()} WHERE id = %s", (event_id,))

    def find_by_detection_id(self, detection_id: str) -> Optional[CrisisEvent]:
        return self._fetch_one(f"{self._select()} WHERE detection_id = %s", (detection_id,))

    def list(
        self,
        status: Optional[EscalationStatus] = None,
        severity: Optional[Severity] = None,
        user_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[CrisisEvent]:
        query = f"{self._select()} WHERE 1=1"
        params: List[Any] = []

        if status is not None:
            query += " AND escalation_status = %s"
            params.append(status.value)
        if severity is not None:
            query += " AND flag_level = %s"
            params.append(severity.value)
        if user_id is not None:
            query += " AND user_id = %s"
            params.append(user_id)
        if since is not None:
            query += " AND detected_at >= %s"
            params.append(since)

        query += " ORDER BY detected_at DESC"
        if limit is not None:
            query += " LIMIT %s"
            params.append(limit)

        return self._fetch_all(query, params)

    def compare_and_swap(self, event: CrisisEvent, expected_version: int) -> CrisisEvent:
        return self.update_if_version(event, expected_version)

    def health_check(self) -> Dict[str, Any]:
        return self.connection_manager.health_check()
