"""Escalation Service HTTP handler - admin crisis workflow endpoints.

Every status change goes through EscalationWorkflow; this module only
translates between JSON and the workflow's typed errors.
"""
import logging
import os
from datetime import timedelta

from flask import Flask, jsonify, request
from pydantic import ValidationError

from safeharbor.shared.models import Severity
from safeharbor.shared.utils import configure_pii_salt, hash_pii, utcnow
from .errors import (
    EventNotFoundError,
    EventPersistenceError,
    InvalidTransitionError,
    TransitionConflictError,
)
from .events import EscalationStatus
from .schemas import ManualReportRequest, TransitionRequest
from .workflow import get_workflow

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 200
MAX_MONITOR_HOURS = 24 * 30

# Initialize Flask app
app = Flask(__name__)

# Configure PII salt
pii_salt = os.getenv("PII_HASH_SALT", "default_dev_salt_change_in_production_32chars")
configure_pii_salt(pii_salt)


def _validation_error(e: ValidationError):
    return jsonify({
        "error": "Invalid input",
        "details": e.errors(include_url=False, include_context=False),
    }), 400


@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "escalation-service",
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check: the event store must answer."""
    store_health = get_workflow().health_check()
    if not store_health.get("healthy"):
        return jsonify({"status": "not_ready", "store": store_health}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/crisis/events", methods=["GET"])
def list_events():
    """List crisis events, newest first.

    Query Parameters:
        status: PENDING, ESCALATED, RESOLVED or DISMISSED
        severity: LOW, MEDIUM, HIGH or CRITICAL
        user_id: Only this user's events
        limit: Maximum events returned (default 50)
    """
    try:
        status = request.args.get("status")
        severity = request.args.get("severity")
        status = EscalationStatus(status.upper()) if status else None
        severity = Severity.parse(severity) if severity else None
        limit = min(int(request.args.get("limit", 50)), MAX_LIST_LIMIT)
        if limit < 1:
            raise ValueError("limit must be positive")
    except ValueError as e:
        return jsonify({"error": f"Invalid query parameter: {e}"}), 400

    user_id = request.args.get("user_id") or None
    try:
        events = get_workflow().list_events(
            status=status, severity=severity, limit=limit, user_id=user_id
        )
    except EventPersistenceError as e:
        logger.error("CRISIS_EVENTS_LIST_FAILED", extra={"error": str(e)})
        return jsonify({"error": "Crisis events unavailable"}), 503

    return jsonify({
        "events": [event.to_dict() for event in events],
        "count": len(events),
    }), 200


@app.route("/crisis/events/<event_id>", methods=["GET"])
def get_event(event_id: str):
    """Get one crisis event with its full status history."""
    try:
        event = get_workflow().get_event(event_id)
    except EventNotFoundError:
        return jsonify({"error": "Crisis event not found"}), 404
    except EventPersistenceError as e:
        logger.error("CRISIS_EVENT_READ_FAILED", extra={"event_id": event_id, "error": str(e)})
        return jsonify({"error": "Crisis events unavailable"}), 503

    return jsonify({"event": event.to_dict()}), 200


@app.route("/crisis/events", methods=["POST"])
def create_manual_report():
    """File a manual crisis report.

    Request Body:
        {
            "user_id": "user_123",
            "reason": "Worried about a friend",
            "description": "Optional detail",
            "severity": "MEDIUM"
        }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Request body required"}), 400

    try:
        body = ManualReportRequest.model_validate(data)
    except ValidationError as e:
        return _validation_error(e)

    logger.info(
        "CRISIS_MANUAL_REPORT_RECEIVED",
        extra={
            "user_id_hash": hash_pii(body.user_id),
            "severity": body.severity.value,
        }
    )

    try:
        event = get_workflow().report_manual(
            user_id=body.user_id,
            reason=body.reason,
            description=body.description,
            severity=body.severity,
            reported_by=body.reported_by,
        )
    except EventPersistenceError as e:
        return jsonify({
            "error": "Crisis report could not be stored",
            "alerted": e.alerted,
        }), 503

    return jsonify({
        "message": "Crisis report submitted successfully",
        "event_id": event.id,
        "event": event.to_dict(),
    }), 201


@app.route("/crisis/events/<event_id>/transition", methods=["POST"])
def transition_event(event_id: str):
    """Change the escalation status of a crisis event.

    Request Body:
        {
            "target_status": "ESCALATED",
            "actor_id": "admin_1",
            "notes": "Called the user",
            "expected_version": 1
        }

    Response codes:
        200 updated, 404 unknown event, 409 concurrent change,
        422 not an allowed transition, 503 not stored
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Request body required"}), 400

    try:
        body = TransitionRequest.model_validate(data)
    except ValidationError as e:
        return _validation_error(e)

    try:
        event = get_workflow().transition(
            event_id=event_id,
            target_status=body.target_status,
            actor_id=body.actor_id,
            notes=body.notes,
            expected_version=body.expected_version,
        )
    except EventNotFoundError:
        return jsonify({"error": "Crisis event not found"}), 404
    except TransitionConflictError as e:
        return jsonify({
            "error": "Crisis event was changed by another request",
            "expected_version": e.expected_version,
            "actual_version": e.actual_version,
        }), 409
    except InvalidTransitionError as e:
        return jsonify({
            "error": str(e),
            "current_status": e.current.value,
            "target_status": e.target.value,
        }), 422
    except EventPersistenceError as e:
        logger.error(
            "CRISIS_TRANSITION_HTTP_FAILED",
            extra={"event_id": event_id, "error": str(e)}
        )
        return jsonify({"error": "Transition could not be stored"}), 503

    return jsonify({"event": event.to_dict()}), 200


@app.route("/crisis/monitor", methods=["GET"])
def monitor():
    """Crisis statistics over a recent window.

    Query Parameters:
        hours: Window length in hours (default 24, max 720)
        include_resolved: "true" to count RESOLVED events
        user_id: Only this user's events
    """
    try:
        hours = int(request.args.get("hours", 24))
        if not 1 <= hours <= MAX_MONITOR_HOURS:
            raise ValueError(f"hours must be between 1 and {MAX_MONITOR_HOURS}")
    except ValueError as e:
        return jsonify({"error": f"Invalid query parameter: {e}"}), 400

    include_resolved = request.args.get("include_resolved", "false").lower() == "true"
    user_id = request.args.get("user_id") or None
    now = utcnow()

    try:
        result = get_workflow().monitor(
            since=now - timedelta(hours=hours),
            include_resolved=include_resolved,
            now=now,
            user_id=user_id,
        )
    except EventPersistenceError as e:
        logger.error("CRISIS_MONITOR_FAILED", extra={"error": str(e)})
        return jsonify({"error": "Crisis events unavailable"}), 503

    return jsonify({
        "events": [event.to_dict() for event in result["events"]],
        "stats": result["stats"],
        "hours": hours,
        "user_id": user_id,
        "since": result["since"].isoformat(),
        "generated_at": result["generated_at"].isoformat(),
    }), 200


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8081"))
    app.run(host="0.0.0.0", port=port, debug=False)
