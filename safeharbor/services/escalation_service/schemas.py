"""Request models for the escalation admin API."""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from safeharbor.shared.models import Severity
from .events import MAX_FREE_TEXT_LENGTH, EscalationStatus


class TransitionRequest(BaseModel):
    """Body of POST /crisis/events/<id>/transition."""
    model_config = ConfigDict(extra="forbid")

    target_status: EscalationStatus
    actor_id: str = Field(min_length=1)
    notes: Optional[str] = Field(default=None, max_length=MAX_FREE_TEXT_LENGTH)
    expected_version: Optional[int] = Field(default=None, ge=1)

    @field_validator("target_status", mode="before")
    @classmethod
    def upper_status(cls, value):
        return value.upper() if isinstance(value, str) else value


class ManualReportRequest(BaseModel):
    """Body of POST /crisis/events."""
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(min_length=1)
    reason: str = Field(min_length=1, max_length=500)
    description: Optional[str] = Field(default=None, max_length=4000)
    severity: Severity = Severity.MEDIUM
    reported_by: Optional[str] = None

    @field_validator("severity", mode="before")
    @classmethod
    def parse_severity(cls, value):
        return Severity.parse(value) if isinstance(value, str) else value

    @field_validator("severity")
    @classmethod
    def reject_none(cls, value: Severity) -> Severity:
        if value == Severity.NONE:
            raise ValueError("severity must be LOW or higher")
        return value
