"""Crisis event record and its escalation state graph.

A CrisisEvent is frozen. A transition produces a new event whose status
history is the old tuple plus exactly one entry, so prior entries cannot
be modified or dropped by any code path.
"""
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from safeharbor.shared.models import Severity
from safeharbor.shared.utils import ensure_utc, parse_timestamp

MAX_FREE_TEXT_LENGTH = 5000


class EscalationStatus(Enum):
    """Lifecycle states of a crisis event."""
    PENDING = "PENDING"
    ESCALATED = "ESCALATED"
    RESOLVED = "RESOLVED"
    DISMISSED = "DISMISSED"


class EventSource(Enum):
    """Where a crisis event originated."""
    API_DETECTION = "API_DETECTION"
    CONVERSATION = "CONVERSATION"
    MANUAL_REPORT = "MANUAL_REPORT"


# RESOLVED and DISMISSED are terminal; reopening them is not supported.
ALLOWED_TRANSITIONS: Dict[EscalationStatus, FrozenSet[EscalationStatus]] = {
    EscalationStatus.PENDING: frozenset({EscalationStatus.ESCALATED, EscalationStatus.DISMISSED}),
    EscalationStatus.ESCALATED: frozenset({EscalationStatus.RESOLVED, EscalationStatus.PENDING}),
    EscalationStatus.RESOLVED: frozenset(),
    EscalationStatus.DISMISSED: frozenset(),
}

ACTIVE_STATUSES = frozenset({EscalationStatus.PENDING, EscalationStatus.ESCALATED})


def can_transition(current: EscalationStatus, target: EscalationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def new_event_id() -> str:
    return f"crisis_{uuid.uuid4().hex[:12]}"


def _string_tuple(values, field_name: str) -> Tuple[str, ...]:
    if isinstance(values, str):
        raise ValueError(f"{field_name} must be a list of strings")
    items = tuple(values or ())
    for item in items:
        if not isinstance(item, str):
            raise ValueError(f"{field_name} must contain only strings, got {type(item).__name__}")
    return items


def _append_note(existing: Optional[str], note: str) -> str:
    """Earlier text first; the combined text is capped at the free-text limit."""
    combined = f"{existing}\n{note}" if existing else note
    return combined[:MAX_FREE_TEXT_LENGTH]


@dataclass(frozen=True)
class CrisisNotes:
    """Structured notes attached to a crisis event.

    Schema-checked on construction so the audit trail stays analyzable;
    unknown keys are rejected by ``from_dict``.
    """
    matched_categories: Tuple[str, ...] = ()
    recommended_actions: Tuple[str, ...] = ()
    free_text: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(
            self, "matched_categories",
            _string_tuple(self.matched_categories, "matched_categories"),
        )
        object.__setattr__(
            self, "recommended_actions",
            _string_tuple(self.recommended_actions, "recommended_actions"),
        )
        if self.free_text is not None:
            if not isinstance(self.free_text, str):
                raise ValueError("free_text must be a string")
            if len(self.free_text) > MAX_FREE_TEXT_LENGTH:
                raise ValueError(f"free_text exceeds {MAX_FREE_TEXT_LENGTH} characters")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matched_categories": list(self.matched_categories),
            "recommended_actions": list(self.recommended_actions),
            "free_text": self.free_text,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CrisisNotes":
        if not data:
            return cls()
        unknown = set(data) - {"matched_categories", "recommended_actions", "free_text"}
        if unknown:
            raise ValueError(f"Unknown note fields: {sorted(unknown)}")
        return cls(
            matched_categories=data.get("matched_categories") or (),
            recommended_actions=data.get("recommended_actions") or (),
            free_text=data.get("free_text"),
        )


@dataclass(frozen=True)
class StatusTransition:
    """One immutable entry of an event's status history."""
    from_status: EscalationStatus
    to_status: EscalationStatus
    actor_id: str
    timestamp: datetime
    notes: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "timestamp", ensure_utc(self.timestamp))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_status.value,
            "to": self.to_status.value,
            "actor": self.actor_id,
            "timestamp": self.timestamp.isoformat(),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StatusTransition":
        return cls(
            from_status=EscalationStatus(data["from"]),
            to_status=EscalationStatus(data["to"]),
            actor_id=data["actor"],
            timestamp=parse_timestamp(data["timestamp"]),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class CrisisEvent:
    """Persisted record of an action-worthy assessment.

    ``flag_level`` is fixed at creation. Only ``escalation_status``,
    ``notes``, ``status_history`` and ``version`` change, and only
    through ``with_transition``.
    """
    id: str
    user_id: str
    source: EventSource
    detected_at: datetime
    flag_level: Severity
    escalation_status: EscalationStatus = EscalationStatus.PENDING
    notes: CrisisNotes = field(default_factory=CrisisNotes)
    status_history: Tuple[StatusTransition, ...] = ()
    version: int = 1
    detection_id: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "status_history", tuple(self.status_history))
        object.__setattr__(self, "detected_at", ensure_utc(self.detected_at))

    @property
    def is_active(self) -> bool:
        return self.escalation_status in ACTIVE_STATUSES

    def with_transition(
        self,
        to_status: EscalationStatus,
        actor_id: str,
        timestamp: datetime,
        notes: Optional[str] = None,
    ) -> "CrisisEvent":
        """Return the event after one transition; the graph is checked by the workflow."""
        entry = StatusTransition(
            from_status=self.escalation_status,
            to_status=to_status,
            actor_id=actor_id,
            timestamp=timestamp,
            notes=notes,
        )
        new_notes = self.notes
        if notes is not None:
            new_notes = replace(self.notes, free_text=_append_note(self.notes.free_text, notes))
        return replace(
            self,
            escalation_status=to_status,
            notes=new_notes,
            status_history=self.status_history + (entry,),
            version=self.version + 1,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "source": self.source.value,
            "detected_at": self.detected_at.isoformat(),
            "flag_level": self.flag_level.value,
            "escalation_status": self.escalation_status.value,
            "notes": self.notes.to_dict(),
            "status_history": [entry.to_dict() for entry in self.status_history],
            "version": self.version,
            "detection_id": self.detection_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CrisisEvent":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            source=EventSource(data["source"]),
            detected_at=parse_timestamp(data["detected_at"]),
            flag_level=Severity.parse(data["flag_level"]),
            escalation_status=EscalationStatus(data["escalation_status"]),
            notes=CrisisNotes.from_dict(data.get("notes")),
            status_history=tuple(
                StatusTransition.from_dict(entry) for entry in data.get("status_history", [])
            ),
            version=int(data.get("version", 1)),
            detection_id=data.get("detection_id"),
        )
