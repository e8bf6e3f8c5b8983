"""Detection Service HTTP handler - crisis assessment endpoints.

Every user message can be posted to /crisis/detect. The response always
carries a safety message with crisis resources; when the assessment is
action-worthy a crisis event is opened through the escalation workflow.
"""
import logging
import os

from flask import Flask, jsonify, request
from pydantic import ValidationError

from safeharbor.services.escalation_service.errors import EventPersistenceError
from safeharbor.services.escalation_service.events import EventSource
from safeharbor.services.escalation_service.workflow import get_workflow
from safeharbor.services.resource_service import (
    compose_intervention,
    generate_crisis_response,
    get_crisis_resources,
)
from safeharbor.shared.utils import configure_pii_salt, hash_pii, utcnow
from .config import DetectionConfig
from .pipeline import CrisisDetectionPipeline
from .schemas import DetectRequest, InterventionRequest

logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# Configure PII salt from environment
pii_salt = os.getenv("PII_HASH_SALT", "default_dev_salt_change_in_production_32chars")
configure_pii_salt(pii_salt)

config = DetectionConfig.from_env()
pipeline = CrisisDetectionPipeline()


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
        "service": "detection-service",
        "catalog_version": pipeline.catalog.version,
    }), 200


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check - verifies the pipeline and catalog are loaded."""
    if pipeline is None or len(pipeline.catalog) == 0:
        return jsonify({"status": "not_ready", "reason": "catalog_not_loaded"}), 503
    return jsonify({"status": "ready"}), 200


@app.route("/crisis/detect", methods=["POST"])
def detect():
    """Assess a message and open a crisis event when warranted.

    Request Body:
        {
            "user_id": "user_123",
            "message": "Message text",
            "context": {"current_mood": 2, "time_of_day": "03:00", ...},
            "history": {"previous_incidents": [...], ...},
            "source": "API_DETECTION" | "CONVERSATION",
            "detection_id": "idempotency key" (optional)
        }

    Response:
        {
            "assessment": {...},
            "stages": [{...}, {...}, {...}],
            "safety_message": "...",
            "event": {...} | null
        }

    A 503 still carries the assessment and safety message; only the
    event could not be stored.
    """
    data = request.get_json(silent=True)
    if not data:
        logger.warning("DETECT_REQUEST_INVALID", extra={"reason": "empty_body"})
        return jsonify({"error": "Request body required"}), 400

    try:
        body = DetectRequest.model_validate(data)
    except ValidationError as e:
        logger.warning("DETECT_REQUEST_INVALID", extra={"reason": "schema", "errors": e.error_count()})
        return _validation_error(e)

    context = body.to_context()
    history = body.history.to_history(default_assessed_at=utcnow()) if body.history else None

    logger.info(
        "DETECT_REQUESTED",
        extra={
            "user_id_hash": hash_pii(body.user_id),
            "message_length": len(body.message),
            "has_context": body.context is not None,
            "has_history": history is not None,
        }
    )

    outcome = pipeline.run(context, history)
    assessment = outcome.assessment
    payload = {
        "assessment": assessment.to_dict(),
        "stages": [stage.to_dict() for stage in outcome.stages],
        "safety_message": generate_crisis_response(assessment, context.location),
        "event": None,
    }

    if not body.create_event:
        return jsonify(payload), 200

    source = EventSource(body.source or config.default_source)
    try:
        event = get_workflow().create_event(
            user_id=body.user_id,
            assessment=assessment,
            source=source,
            detection_id=body.detection_id,
        )
    except EventPersistenceError as e:
        logger.critical(
            "DETECT_EVENT_NOT_STORED",
            extra={
                "user_id_hash": hash_pii(body.user_id),
                "overall_level": assessment.overall_level.value,
                "alerted": e.alerted,
            }
        )
        payload["error"] = "Crisis event could not be stored"
        payload["alerted"] = e.alerted
        return jsonify(payload), 503

    payload["event"] = event.to_dict() if event else None
    return jsonify(payload), 200


@app.route("/crisis/intervene", methods=["POST"])
def intervene():
    """Intervention guidance for a crisis level the caller already knows.

    Request Body:
        {
            "crisis_level": "HIGH",
            "triggers": ["hopeless"],
            "location": "US"
        }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({"error": "Request body required"}), 400

    try:
        body = InterventionRequest.model_validate(data)
    except ValidationError as e:
        return _validation_error(e)

    response = compose_intervention(body.crisis_level, body.triggers, body.location)
    return jsonify({"intervention": response.to_dict()}), 200


@app.route("/crisis/resources", methods=["GET"])
def resources():
    """Crisis hotlines and websites, regional hotline first when known."""
    location = request.args.get("location")
    directory = get_crisis_resources(location)
    return jsonify({
        "hotlines": [r.to_dict() for r in directory["hotlines"]],
        "websites": [r.to_dict() for r in directory["websites"]],
        "location": location,
    }), 200


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8080"))
    app.run(host="0.0.0.0", port=port, debug=False)
