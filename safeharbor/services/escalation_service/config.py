"""Escalation Service configuration."""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class EscalationConfig:
    """Persistence retry and fail-safe alert settings."""

    # Attempts at storing a new event before it is treated as lost
    max_persist_attempts: int = 3

    # Exponential backoff between attempts, capped
    retry_base_delay_seconds: float = 0.2
    retry_max_delay_seconds: float = 2.0

    # Kinesis stream that receives alerts for events that could not be stored
    alert_stream_name: str = "safeharbor-crisis-alerts"
    alerts_enabled: bool = True
    region: Optional[str] = None

    # Backend: "memory" or "postgres"
    event_store: str = "memory"

    def __post_init__(self):
        if self.max_persist_attempts < 1:
            raise ValueError("max_persist_attempts must be at least 1")
        if self.event_store not in ("memory", "postgres"):
            raise ValueError(f"Unknown event store backend: {self.event_store}")

    def retry_delay(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        delay = self.retry_base_delay_seconds * (2 ** (attempt - 1))
        return min(delay, self.retry_max_delay_seconds)

    @classmethod
    def from_env(cls) -> "EscalationConfig":
        """Create config from environment variables.

        Environment variables:
            CRISIS_PERSIST_ATTEMPTS: Store attempts (default 3)
            CRISIS_ALERT_STREAM: Kinesis stream name
            CRISIS_ALERTS_ENABLED: "false" disables publishing (local dev)
            CRISIS_EVENT_STORE: memory or postgres (default memory)
            AWS_REGION: Region for the Kinesis client
        """
        return cls(
            max_persist_attempts=int(os.getenv("CRISIS_PERSIST_ATTEMPTS", "3")),
            alert_stream_name=os.getenv("CRISIS_ALERT_STREAM", "safeharbor-crisis-alerts"),
            alerts_enabled=os.getenv("CRISIS_ALERTS_ENABLED", "true").lower() != "false",
            region=os.getenv("AWS_REGION"),
            event_store=os.getenv("CRISIS_EVENT_STORE", "memory").lower(),
        )
