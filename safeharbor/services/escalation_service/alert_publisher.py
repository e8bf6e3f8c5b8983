"""Fail-safe alerting for crisis events that could not be stored.

When the event store rejects a new event after every retry, the event is
pushed to a Kinesis stream that on-call staff consume directly. If Kinesis
is unreachable too, the full payload is logged at CRITICAL level so log
alerting still pages someone. A detected crisis is never silently lost.
"""
import json
import logging
import os
from typing import Any, Dict, Optional

from safeharbor.shared.utils import hash_text_for_audit, utcnow
from .events import CrisisEvent

logger = logging.getLogger(__name__)


def build_alert_payload(event: CrisisEvent, reason: str) -> Dict[str, Any]:
    """Kinesis record body for an unpersisted event.

    The raw user id is included: on-call staff must be able to reach the
    person, and no stored event exists to look it up from.
    """
    return {
        "event_type": "crisis.event.unpersisted",
        "timestamp": utcnow().isoformat(),
        "source": "escalation-service",
        "reason": reason,
        "data": {
            "event_id": event.id,
            "user_id": event.user_id,
            "flag_level": event.flag_level.value,
            "event_source": event.source.value,
            "detected_at": event.detected_at.isoformat(),
            "detection_id": event.detection_id,
            "matched_categories": list(event.notes.matched_categories),
            "recommended_actions": list(event.notes.recommended_actions),
        },
    }


class FailSafeAlertPublisher:
    """Publishes unpersisted crisis events to Kinesis.

    Failure Handling:
        - Publishing never raises; the caller still reports the
          persistence failure to its own caller
        - Every failure path ends in a CRITICAL log carrying the payload
    """

    def __init__(
        self,
        stream_name: str = "safeharbor-crisis-alerts",
        enabled: bool = True,
        region: Optional[str] = None,
    ):
        """Initialize publisher.

        Args:
            stream_name: Kinesis stream name
            enabled: Whether publishing is enabled (disable for local dev)
            region: AWS region (defaults to AWS_REGION env var)
        """
        self.stream_name = stream_name
        self.enabled = enabled
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self._kinesis_client = None

        logger.info(
            "FAILSAFE_PUBLISHER_INITIALIZED",
            extra={
                "stream_name": stream_name,
                "enabled": enabled,
                "region": self.region,
            }
        )

    @property
    def kinesis_client(self):
        """Lazy initialization of Kinesis client."""
        if self._kinesis_client is None and self.enabled:
            try:
                import boto3
                self._kinesis_client = boto3.client(
                    "kinesis",
                    region_name=self.region,
                )
            except Exception as e:
                logger.error(
                    "KINESIS_CLIENT_INIT_FAILED",
                    extra={"error": str(e)}
                )
        return self._kinesis_client

    def publish_unpersisted(self, event: CrisisEvent, reason: str) -> bool:
        """Raise an out-of-band alert for an event the store did not accept.

        Args:
            event: The event that failed to persist
            reason: Short description of the storage failure

        Returns:
            True if the record reached Kinesis, False if only the
            fallback log was written
        """
        payload = build_alert_payload(event, reason)
        # Same user -> same shard, without the raw id as the key
        partition_key = hash_text_for_audit(event.user_id)

        if not self.enabled:
            logger.critical(
                "CRISIS_ALERT_FALLBACK_LOG",
                extra={
                    "event_id": event.id,
                    "payload": json.dumps(payload),
                    "reason": "publishing_disabled",
                    "action": "MANUAL_PROCESSING_REQUIRED",
                }
            )
            return False

        try:
            if self.kinesis_client is None:
                logger.critical(
                    "CRISIS_ALERT_FALLBACK_LOG",
                    extra={
                        "event_id": event.id,
                        "payload": json.dumps(payload),
                        "reason": "kinesis_client_unavailable",
                        "action": "MANUAL_PROCESSING_REQUIRED",
                    }
                )
                return False

            response = self.kinesis_client.put_record(
                StreamName=self.stream_name,
                Data=json.dumps(payload),
                PartitionKey=partition_key,
            )

            logger.critical(
                "CRISIS_ALERT_PUBLISHED",
                extra={
                    "event_id": event.id,
                    "flag_level": event.flag_level.value,
                    "partition_key": partition_key,
                    "shard_id": response.get("ShardId"),
                    "sequence_number": response.get("SequenceNumber"),
                }
            )
            return True

        except Exception as e:
            # Last line of defence: the payload goes to the log stream
            logger.critical(
                "CRISIS_ALERT_PUBLISH_FAILED",
                extra={
                    "event_id": event.id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "action": "MANUAL_PROCESSING_REQUIRED",
                    "payload": json.dumps(payload),
                }
            )
            return False
