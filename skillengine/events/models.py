"""
Canonical event records.

Events are frozen pydantic models: created once by the event factory, fed once
into the engine, never mutated. The `type` field discriminates the union so
event logs can be serialized and validated on import.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

EVENT_SCHEMA_VERSION = "1.0.0"


class BaseEvent(BaseModel):
    """Fields shared by every event."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    learner_id: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    timestamp: int = Field(ge=0, description="Milliseconds since epoch, from the injected clock")


class PracticeEvent(BaseEvent):
    """A learner answered one practice item."""

    type: Literal["practice"] = "practice"
    skill_id: str
    item_id: str
    correct: bool
    latency_ms: int = Field(ge=0)
    confidence: Optional[int] = Field(default=None, ge=1, le=5)
    error_category: Optional[str] = None


class DiagnosticSkillResult(BaseModel):
    """Per-skill outcome carried by a diagnostic event."""

    model_config = ConfigDict(frozen=True)

    skill_id: str
    score: float = Field(ge=0.0, le=1.0)
    items_attempted: int = 0
    items_correct: int = 0


class DiagnosticEvent(BaseEvent):
    """Diagnostic pass results used to seed mastery priors."""

    type: Literal["diagnostic"] = "diagnostic"
    skills_assessed: tuple[str, ...] = ()
    results: tuple[DiagnosticSkillResult, ...] = ()


class TransferTestEvent(BaseEvent):
    """A learner attempted a near or far transfer test."""

    type: Literal["transfer_test"] = "transfer_test"
    test_id: str = Field(min_length=1)
    skill_id: str
    transfer_type: Literal["near", "far"]
    score: float = Field(ge=0.0, le=1.0)
    passed: bool


class SessionStartEvent(BaseEvent):
    type: Literal["session_start"] = "session_start"
    config: dict[str, Any] = Field(default_factory=dict)


class SessionEndEvent(BaseEvent):
    type: Literal["session_end"] = "session_end"
    summary: dict[str, Any] = Field(default_factory=dict)


Event = Annotated[
    Union[PracticeEvent, DiagnosticEvent, TransferTestEvent, SessionStartEvent, SessionEndEvent],
    Field(discriminator="type"),
]
