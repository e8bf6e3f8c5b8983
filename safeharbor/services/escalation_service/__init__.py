"""Escalation Service: crisis event lifecycle and admin workflow.

Turns action-worthy assessments into persisted crisis events and moves
them through PENDING -> ESCALATED -> RESOLVED (or DISMISSED) under
optimistic concurrency. Events that cannot be stored raise a fail-safe
Kinesis alert instead of disappearing.

Endpoints:
- GET /crisis/events - List events
- GET /crisis/events/<id> - Event with status history
- POST /crisis/events - Manual crisis report
- POST /crisis/events/<id>/transition - Change status
- GET /crisis/monitor - Dashboard statistics
"""

from .events import (
    CrisisEvent,
    CrisisNotes,
    EscalationStatus,
    EventSource,
    StatusTransition,
    ALLOWED_TRANSITIONS,
    can_transition,
)
from .errors import (
    EscalationError,
    EventNotFoundError,
    InvalidTransitionError,
    TransitionConflictError,
    EventPersistenceError,
)
from .event_store import CrisisEventStore, InMemoryCrisisEventStore, PostgresCrisisEventStore
from .alert_publisher import FailSafeAlertPublisher
from .config import EscalationConfig
from .workflow import EscalationWorkflow, get_workflow

__all__ = [
    "CrisisEvent",
    "CrisisNotes",
    "EscalationStatus",
    "EventSource",
    "StatusTransition",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "EscalationError",
    "EventNotFoundError",
    "InvalidTransitionError",
    "TransitionConflictError",
    "EventPersistenceError",
    "CrisisEventStore",
    "InMemoryCrisisEventStore",
    "PostgresCrisisEventStore",
    "FailSafeAlertPublisher",
    "EscalationConfig",
    "EscalationWorkflow",
    "get_workflow",
]
