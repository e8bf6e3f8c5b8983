"""Request models for the detection HTTP API.

Only structural problems are rejected here. Out-of-range moods and odd
time strings are passed through; the detection stages treat them as
missing.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from safeharbor.shared.models import Severity
from .models import CrisisContext, CrisisHistory, CrisisIncident

MAX_MESSAGE_LENGTH = 10000


class ContextPayload(BaseModel):
    """Optional session context sent alongside a message."""
    current_mood: Optional[int] = None
    recent_moods: List[int] = Field(default_factory=list)
    conversation_history: List[str] = Field(default_factory=list)
    previous_crisis_event_count: int = 0
    time_of_day: Optional[str] = None
    location: Optional[str] = None


class IncidentPayload(BaseModel):
    timestamp: datetime
    level: Severity
    resolution: Optional[str] = None

    @field_validator("level", mode="before")
    @classmethod
    def parse_level(cls, value):
        return Severity.parse(value) if isinstance(value, str) else value


class HistoryPayload(BaseModel):
    """Crisis history supplied by the caller."""
    previous_incidents: List[IncidentPayload] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    assessed_at: Optional[datetime] = None

    def to_history(self, default_assessed_at: datetime) -> CrisisHistory:
        return CrisisHistory(
            previous_incidents=tuple(
                CrisisIncident(
                    timestamp=incident.timestamp,
                    level=incident.level,
                    resolution=incident.resolution,
                )
                for incident in self.previous_incidents
            ),
            patterns=frozenset(self.patterns),
            risk_factors=frozenset(self.risk_factors),
            assessed_at=self.assessed_at or default_assessed_at,
        )


class DetectRequest(BaseModel):
    """Body of POST /crisis/detect."""
    model_config = ConfigDict(extra="ignore")

    user_id: str = Field(min_length=1)
    message: str = Field(default="", max_length=MAX_MESSAGE_LENGTH)
    context: Optional[ContextPayload] = None
    history: Optional[HistoryPayload] = None
    source: Optional[str] = None
    detection_id: Optional[str] = None
    create_event: bool = True

    @field_validator("source")
    @classmethod
    def known_source(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.upper()
        if value not in ("API_DETECTION", "CONVERSATION"):
            raise ValueError("source must be API_DETECTION or CONVERSATION")
        return value

    def to_context(self) -> CrisisContext:
        ctx = self.context or ContextPayload()
        return CrisisContext(
            user_id=self.user_id,
            message=self.message,
            current_mood=ctx.current_mood,
            recent_moods=tuple(ctx.recent_moods),
            conversation_history=tuple(ctx.conversation_history),
            previous_crisis_event_count=ctx.previous_crisis_event_count,
            time_of_day=ctx.time_of_day,
            location=ctx.location,
        )


class InterventionRequest(BaseModel):
    """Body of POST /crisis/intervene."""
    crisis_level: Severity
    triggers: List[str] = Field(default_factory=list)
    location: Optional[str] = None

    @field_validator("crisis_level", mode="before")
    @classmethod
    def parse_level(cls, value):
        return Severity.parse(value) if isinstance(value, str) else value

    @field_validator("crisis_level")
    @classmethod
    def reject_none(cls, value: Severity) -> Severity:
        if value == Severity.NONE:
            raise ValueError("crisis_level must be LOW or higher")
        return value
