"""Typed errors returned by the escalation workflow.

Invalid transitions, concurrency conflicts and persistence failures are
distinct classes so the admin API can map each to its own response.
"""
from typing import Optional

from .events import CrisisEvent, EscalationStatus


class EscalationError(Exception):
    """Base class for escalation workflow errors."""
    pass


class EventNotFoundError(EscalationError):
    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Crisis event not found: {event_id}")


class InvalidTransitionError(EscalationError):
    """Requested status change is not an edge of the state graph."""

    def __init__(self, event_id: str, current: EscalationStatus, target: EscalationStatus):
        self.event_id = event_id
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition {event_id} from {current.value} to {target.value}"
        )


class TransitionConflictError(EscalationError):
    """Another transition already changed the event."""

    def __init__(self, event_id: str, expected_version: int, actual_version: Optional[int] = None):
        self.event_id = event_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Crisis event {event_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class EventPersistenceError(EscalationError):
    """The event store could not durably record the change.

    For new events ``alerted`` says whether the fail-safe alert went out.
    """

    def __init__(self, message: str, event: Optional[CrisisEvent] = None, alerted: bool = False):
        self.event = event
        self.alerted = alerted
        super().__init__(message)
