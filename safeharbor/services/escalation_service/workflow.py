"""Escalation workflow: crisis event creation and status transitions.

Creation turns an action-worthy assessment into a PENDING event. Storage
failures are retried; if the event still cannot be stored a fail-safe
alert goes out and the caller gets EventPersistenceError, never a silent
success.

Transitions follow the state graph in ``events.ALLOWED_TRANSITIONS`` and
are applied with a version compare-and-swap, so of two concurrent
requests against the same version exactly one succeeds.
"""
import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from safeharbor.services.audit_service import AuditAction, AuditLogger
from safeharbor.services.detection_service.models import CrisisAssessment
from safeharbor.shared.database import (
    ConcurrencyError,
    DuplicateError,
    RepositoryError,
    TransientRepositoryError,
)
from safeharbor.shared.models import Severity
from safeharbor.shared.utils import hash_pii, utcnow
from .alert_publisher import FailSafeAlertPublisher
from .config import EscalationConfig
from .errors import (
    EventNotFoundError,
    EventPersistenceError,
    InvalidTransitionError,
    TransitionConflictError,
)
from .event_store import CrisisEventStore, InMemoryCrisisEventStore
from .events import (
    CrisisEvent,
    CrisisNotes,
    EscalationStatus,
    EventSource,
    can_transition,
    new_event_id,
)
from .monitoring import summarize_events

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"
DEFAULT_MONITOR_WINDOW = timedelta(hours=24)


def _user_id_hash(user_id: str) -> Optional[str]:
    """Salted user hash for post-commit log lines, None if no salt is configured."""
    try:
        return hash_pii(user_id)
    except RuntimeError:
        return None


class EscalationWorkflow:
    """Owns every write to crisis events.

    Args:
        store: Event persistence backend
        audit_logger: Receives one entry per created, transitioned,
            rejected or conflicting request
        alert_publisher: Fail-safe channel for events the store refused
        config: Retry and alert settings
        action_threshold: Lowest assessment level that opens an event
        sleep: Backoff sleep, injectable for tests
    """

    def __init__(
        self,
        store: Optional[CrisisEventStore] = None,
        audit_logger: Optional[AuditLogger] = None,
        alert_publisher: Optional[FailSafeAlertPublisher] = None,
        config: Optional[EscalationConfig] = None,
        action_threshold: Severity = Severity.LOW,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if action_threshold == Severity.NONE:
            raise ValueError("action_threshold must be LOW or higher")

        self.config = config or EscalationConfig()
        self.store = store or InMemoryCrisisEventStore()
        self.audit_logger = audit_logger or AuditLogger()
        self.alert_publisher = alert_publisher or FailSafeAlertPublisher(
            stream_name=self.config.alert_stream_name,
            enabled=self.config.alerts_enabled,
            region=self.config.region,
        )
        self.action_threshold = action_threshold
        self._sleep = sleep

        logger.info(
            "ESCALATION_WORKFLOW_INITIALIZED",
            extra={
                "store": type(self.store).__name__,
                "action_threshold": action_threshold.value,
                "max_persist_attempts": self.config.max_persist_attempts,
            }
        )

    def create_event(
        self,
        user_id: str,
        assessment: CrisisAssessment,
        source: EventSource = EventSource.API_DETECTION,
        detection_id: Optional[str] = None,
        detected_at: Optional[datetime] = None,
    ) -> Optional[CrisisEvent]:
        """Open a crisis event for an assessment at or above the threshold.

        Args:
            user_id: User the assessment concerns
            assessment: Final detection assessment
            source: Where the detection came from
            detection_id: Idempotency key; a repeat returns the stored event
            detected_at: Detection time (defaults to now)

        Returns:
            The stored PENDING event, or None below the action threshold

        Raises:
            EventPersistenceError: The event could not be stored; the
                fail-safe alert has been attempted
        """
        if assessment.overall_level < self.action_threshold:
            logger.info(
                "CRISIS_EVENT_NOT_REQUIRED",
                extra={
                    "overall_level": assessment.overall_level.value,
                    "action_threshold": self.action_threshold.value,
                }
            )
            return None

        event = CrisisEvent(
            id=new_event_id(),
            user_id=user_id,
            source=source,
            detected_at=detected_at or utcnow(),
            flag_level=assessment.overall_level,
            notes=CrisisNotes(
                matched_categories=assessment.matched_categories,
                recommended_actions=assessment.recommended_actions,
            ),
            detection_id=detection_id,
        )

        stored = self._persist_new(event)
        if stored.id != event.id:
            logger.info(
                "CRISIS_EVENT_ALREADY_EXISTS",
                extra={"event_id": stored.id, "detection_id": detection_id}
            )
            return stored

        self.audit_logger.log(
            AuditAction.CRISIS_EVENT_CREATED,
            stored.id,
            SYSTEM_ACTOR,
            {
                "flag_level": stored.flag_level.value,
                "source": stored.source.value,
                "matched_categories": list(stored.notes.matched_categories),
                "detection_id": detection_id,
            },
        )
        self._log_created(stored)
        return stored

    def report_manual(
        self,
        user_id: str,
        reason: str,
        description: Optional[str] = None,
        severity: Severity = Severity.MEDIUM,
        reported_by: Optional[str] = None,
    ) -> CrisisEvent:
        """File a crisis report by hand.

        Manual reports skip the action threshold: a person asked for help.

        Raises:
            ValueError: If severity is NONE or the text is too long
            EventPersistenceError: The report could not be stored
        """
        if severity == Severity.NONE:
            raise ValueError("Manual reports need a severity of LOW or higher")

        free_text = f"{reason}: {description}" if description else reason
        event = CrisisEvent(
            id=new_event_id(),
            user_id=user_id,
            source=EventSource.MANUAL_REPORT,
            detected_at=utcnow(),
            flag_level=severity,
            notes=CrisisNotes(free_text=free_text),
        )

        stored = self._persist_new(event)
        actor_id = reported_by or user_id
        self.audit_logger.log(
            AuditAction.MANUAL_REPORT_FILED,
            stored.id,
            actor_id,
            {"flag_level": stored.flag_level.value, "self_reported": reported_by is None},
        )
        self._log_created(stored)
        return stored

    def _persist_new(self, event: CrisisEvent) -> CrisisEvent:
        """Insert with retry; raise after the fail-safe alert if it never lands."""
        last_error: Optional[Exception] = None
        attempts = self.config.max_persist_attempts

        for attempt in range(1, attempts + 1):
            try:
                return self.store.insert(event)
            except DuplicateError as e:
                # Same detection, or an earlier attempt committed before its error surfaced
                existing = self._find_existing(event)
                if existing is not None:
                    return existing
                last_error = e
                break
            except TransientRepositoryError as e:
                last_error = e
                logger.warning(
                    "CRISIS_EVENT_PERSIST_RETRY",
                    extra={
                        "event_id": event.id,
                        "attempt": attempt,
                        "max_attempts": attempts,
                        "error": str(e),
                    }
                )
                if attempt < attempts:
                    self._sleep(self.config.retry_delay(attempt))
            except RepositoryError as e:
                last_error = e
                break

        return self._fail_safe(event, last_error)

    def _find_existing(self, event: CrisisEvent) -> Optional[CrisisEvent]:
        try:
            if event.detection_id:
                existing = self.store.find_by_detection_id(event.detection_id)
                if existing is not None:
                    return existing
            return self.store.get(event.id)
        except RepositoryError as e:
            logger.error(
                "CRISIS_EVENT_LOOKUP_FAILED",
                extra={"event_id": event.id, "detection_id": event.detection_id, "error": str(e)}
            )
            return None

    def _fail_safe(self, event: CrisisEvent, error: Optional[Exception]) -> CrisisEvent:
        reason = str(error) if error else "unknown storage failure"
        alerted = self.alert_publisher.publish_unpersisted(event, reason)

        self.audit_logger.log(
            AuditAction.FAILSAFE_ALERT_RAISED,
            event.id,
            SYSTEM_ACTOR,
            {"flag_level": event.flag_level.value, "reason": reason, "alerted": alerted},
        )
        logger.critical(
            "CRISIS_EVENT_PERSIST_FAILED",
            extra={
                "event_id": event.id,
                "flag_level": event.flag_level.value,
                "alerted": alerted,
                "error": reason,
                "error_type": type(error).__name__ if error else None,
            }
        )
        raise EventPersistenceError(
            f"Crisis event {event.id} could not be stored: {reason}",
            event=event,
            alerted=alerted,
        ) from error

    def _log_created(self, event: CrisisEvent) -> None:
        log = logger.critical if event.flag_level == Severity.CRITICAL else logger.info
        log(
            "CRISIS_EVENT_CREATED",
            extra={
                "event_id": event.id,
                "user_id_hash": _user_id_hash(event.user_id),
                "flag_level": event.flag_level.value,
                "source": event.source.value,
            }
        )

    def transition(
        self,
        event_id: str,
        target_status: EscalationStatus,
        actor_id: str,
        notes: Optional[str] = None,
        expected_version: Optional[int] = None,
        timestamp: Optional[datetime] = None,
    ) -> CrisisEvent:
        """Move an event along one edge of the state graph.

        Args:
            event_id: Event to change
            target_status: Requested status
            actor_id: Admin performing the change
            notes: Free text recorded in the history entry
            expected_version: Version the caller last saw; a mismatch
                is a conflict even before the write
            timestamp: Transition time (defaults to now)

        Returns:
            The updated event

        Raises:
            EventNotFoundError: No such event
            TransitionConflictError: The event changed since it was read
            InvalidTransitionError: Not an edge of the graph
            EventPersistenceError: The store did not accept the change
        """
        current = self.get_event(event_id)

        if expected_version is not None and current.version != expected_version:
            self._record_conflict(current, target_status, actor_id, expected_version, current.version)
            raise TransitionConflictError(event_id, expected_version, current.version)

        if not can_transition(current.escalation_status, target_status):
            self.audit_logger.log(
                AuditAction.TRANSITION_REJECTED,
                event_id,
                actor_id,
                {
                    "from_status": current.escalation_status.value,
                    "to_status": target_status.value,
                },
            )
            logger.warning(
                "CRISIS_TRANSITION_REJECTED",
                extra={
                    "event_id": event_id,
                    "from_status": current.escalation_status.value,
                    "to_status": target_status.value,
                    "actor_id": actor_id,
                }
            )
            raise InvalidTransitionError(event_id, current.escalation_status, target_status)

        updated = current.with_transition(
            target_status, actor_id, timestamp or utcnow(), notes
        )

        try:
            self.store.compare_and_swap(updated, current.version)
        except ConcurrencyError as e:
            self._record_conflict(current, target_status, actor_id, current.version, e.actual_version)
            raise TransitionConflictError(event_id, current.version, e.actual_version) from e
        except RepositoryError as e:
            logger.error(
                "CRISIS_TRANSITION_PERSIST_FAILED",
                extra={
                    "event_id": event_id,
                    "to_status": target_status.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            raise EventPersistenceError(
                f"Transition of {event_id} to {target_status.value} was not stored: {e}"
            ) from e

        self.audit_logger.log(
            AuditAction.STATUS_TRANSITIONED,
            event_id,
            actor_id,
            {
                "from_status": current.escalation_status.value,
                "to_status": target_status.value,
                "version": updated.version,
            },
        )

        if target_status == EscalationStatus.ESCALATED and updated.flag_level == Severity.CRITICAL:
            logger.critical(
                "CRITICAL_CRISIS_ESCALATED",
                extra={
                    "event_id": event_id,
                    "user_id_hash": _user_id_hash(updated.user_id),
                    "actor_id": actor_id,
                    "action": "NOTIFY_CRISIS_TEAM",
                }
            )
        else:
            logger.info(
                "CRISIS_STATUS_TRANSITIONED",
                extra={
                    "event_id": event_id,
                    "from_status": current.escalation_status.value,
                    "to_status": target_status.value,
                    "actor_id": actor_id,
                    "seconds_since_detection": (
                        updated.status_history[-1].timestamp - updated.detected_at
                    ).total_seconds(),
                }
            )
        return updated

    def _record_conflict(
        self,
        current: CrisisEvent,
        target_status: EscalationStatus,
        actor_id: str,
        expected_version: int,
        actual_version: Optional[int],
    ) -> None:
        self.audit_logger.log(
            AuditAction.TRANSITION_CONFLICT,
            current.id,
            actor_id,
            {
                "to_status": target_status.value,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        logger.warning(
            "CRISIS_TRANSITION_CONFLICT",
            extra={
                "event_id": current.id,
                "to_status": target_status.value,
                "expected_version": expected_version,
                "actual_version": actual_version,
                "actor_id": actor_id,
            }
        )

    def get_event(self, event_id: str) -> CrisisEvent:
        """Fetch an event.

        Raises:
            EventNotFoundError: No such event
            EventPersistenceError: The store could not be read
        """
        try:
            event = self.store.get(event_id)
        except RepositoryError as e:
            raise EventPersistenceError(f"Could not read crisis event {event_id}: {e}") from e

        if event is None:
            logger.warning("CRISIS_EVENT_NOT_FOUND", extra={"event_id": event_id})
            raise EventNotFoundError(event_id)
        return event

    def list_events(
        self,
        status: Optional[EscalationStatus] = None,
        severity: Optional[Severity] = None,
        limit: int = 50,
        user_id: Optional[str] = None,
    ) -> List[CrisisEvent]:
        """Events newest first, optionally filtered."""
        try:
            return self.store.list(
                status=status, severity=severity, user_id=user_id, limit=limit
            )
        except RepositoryError as e:
            raise EventPersistenceError(f"Could not list crisis events: {e}") from e

    def monitor(
        self,
        since: Optional[datetime] = None,
        include_resolved: bool = False,
        now: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Dashboard statistics over events detected since ``since``.

        Args:
            since: Window start (defaults to 24 hours before ``now``)
            include_resolved: Whether RESOLVED events are counted
            now: Reference time (defaults to now)
            user_id: Restrict to one user's events
        """
        now = now or utcnow()
        since = since or now - DEFAULT_MONITOR_WINDOW

        try:
            events = self.store.list(since=since, user_id=user_id)
        except RepositoryError as e:
            raise EventPersistenceError(f"Could not read crisis events: {e}") from e

        if not include_resolved:
            events = [e for e in events if e.escalation_status != EscalationStatus.RESOLVED]

        return {
            "events": events,
            "stats": summarize_events(events),
            "since": since,
            "generated_at": now,
        }

    def health_check(self) -> Dict[str, Any]:
        return self.store.health_check()


_workflow: Optional[EscalationWorkflow] = None


def build_store(config: EscalationConfig) -> CrisisEventStore:
    """Event store for the configured backend."""
    if config.event_store == "postgres":
        from safeharbor.shared.database import get_connection_manager
        from .event_store import PostgresCrisisEventStore

        store = PostgresCrisisEventStore(get_connection_manager())
        store.ensure_schema()
        return store
    return InMemoryCrisisEventStore()


def get_workflow() -> EscalationWorkflow:
    """Get or create the process-wide workflow from environment config."""
    global _workflow
    if _workflow is None:
        from safeharbor.services.detection_service.config import DetectionConfig

        config = EscalationConfig.from_env()
        _workflow = EscalationWorkflow(
            store=build_store(config),
            config=config,
            action_threshold=DetectionConfig.from_env().action_threshold,
        )
    return _workflow


def reset_workflow() -> None:
    """Drop the process-wide workflow (tests and reconfiguration)."""
    global _workflow
    _workflow = None
