"""Hash-chained audit trail for crisis workflow actions.

Every created event, every accepted transition and every rejected or
conflicting transition request produces one entry. Entries are chained by
SHA-256 so tampering with any past entry breaks verification.
"""
import hashlib
import json
import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from safeharbor.shared.utils import utcnow

logger = logging.getLogger(__name__)

GENESIS_HASH = "genesis"


class AuditAction(Enum):
    """Workflow actions that are always audited."""
    CRISIS_EVENT_CREATED = "crisis_event_created"
    MANUAL_REPORT_FILED = "manual_report_filed"
    STATUS_TRANSITIONED = "status_transitioned"
    TRANSITION_REJECTED = "transition_rejected"
    TRANSITION_CONFLICT = "transition_conflict"
    FAILSAFE_ALERT_RAISED = "failsafe_alert_raised"


@dataclass(frozen=True)
class AuditEntry:
    """Immutable audit entry linked to its predecessor by hash."""
    entry_id: str
    timestamp: datetime
    action: AuditAction
    event_id: str
    actor_id: str
    details: Dict[str, Any] = field(default_factory=dict)
    previous_hash: str = ""
    entry_hash: str = ""

    def compute_hash(self) -> str:
        """SHA-256 over every field except ``entry_hash`` itself."""
        content = {
            "entry_id": self.entry_id,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action.value,
            "event_id": self.event_id,
            "actor_id": self.actor_id,
            "details": self.details,
            "previous_hash": self.previous_hash,
        }
        content_str = json.dumps(content, sort_keys=True, default=str)
        return hashlib.sha256(content_str.encode()).hexdigest()


class AuditLogger:
    """Append-only, hash-chained audit log.

    Entries are held in process; durable audit storage is owned by the
    platform's compliance layer, which consumes ``entries()``.
    """

    def __init__(self):
        self._entries: List[AuditEntry] = []
        self._last_hash = GENESIS_HASH
        self._lock = threading.Lock()

        logger.info("AUDIT_LOGGER_INITIALIZED")

    def log(
        self,
        action: AuditAction,
        event_id: str,
        actor_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEntry:
        """Append one entry.

        Args:
            action: What happened
            event_id: Crisis event the action concerns
            actor_id: Admin, service or "system" that acted
            details: Extra structured context (no raw message text)

        Returns:
            The stored, hashed AuditEntry
        """
        with self._lock:
            entry = AuditEntry(
                entry_id=f"audit_{uuid.uuid4().hex[:16]}",
                timestamp=utcnow(),
                action=action,
                event_id=event_id,
                actor_id=actor_id,
                details=dict(details or {}),
                previous_hash=self._last_hash,
            )
            entry = replace(entry, entry_hash=entry.compute_hash())
            self._entries.append(entry)
            self._last_hash = entry.entry_hash

        logger.info(
            "AUDIT_ENTRY_CREATED",
            extra={
                "entry_id": entry.entry_id,
                "action": action.value,
                "event_id": event_id,
                "entry_hash": entry.entry_hash[:16],
            }
        )
        return entry

    def entries(self) -> List[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def query(
        self,
        event_id: Optional[str] = None,
        action: Optional[AuditAction] = None,
    ) -> List[AuditEntry]:
        """Entries filtered by event and/or action, oldest first."""
        results = self.entries()
        if event_id:
            results = [e for e in results if e.event_id == event_id]
        if action:
            results = [e for e in results if e.action == action]
        return results

    def verify_chain(self) -> bool:
        """Recompute every hash; False if any entry was altered."""
        expected_prev = GENESIS_HASH
        for entry in self.entries():
            if entry.previous_hash != expected_prev:
                logger.critical(
                    "AUDIT_CHAIN_VERIFICATION_FAILED",
                    extra={"entry_id": entry.entry_id}
                )
                return False
            if entry.compute_hash() != entry.entry_hash:
                logger.critical(
                    "AUDIT_ENTRY_HASH_MISMATCH",
                    extra={"entry_id": entry.entry_id}
                )
                return False
            expected_prev = entry.entry_hash
        return True
