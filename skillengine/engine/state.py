"""
Versioned state envelope for export_state() / import_state().

Wire format (JSON, keys sorted):
    {"format": "skillengine.state", "version": "1.0.0", "exported_at": <ms>,
     "learner_models": [...], "memory_states": [...],
     "transfer_results": [...], "event_log": [...]}

memory_states and transfer_results default to empty lists, so blobs written
before they existed still import.

Probabilities are JSON floats written with Python's shortest round-trip
repr, so a decoded value compares equal to the value that was encoded.
"""
from __future__ import annotations

import json
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from skillengine.events.models import Event
from skillengine.learner.models import LearnerModel, SkillProbability
from skillengine.memory.fsrs_scheduler import MemoryState, ReviewState
from skillengine.transfer.transfer_gate import TransferTestResult

STATE_FORMAT = "skillengine.state"
STATE_SCHEMA_VERSION = "1.0.0"
SUPPORTED_STATE_VERSIONS = frozenset({STATE_SCHEMA_VERSION})


class MalformedStateError(ValueError):
    """Raised when an exported state string cannot be imported."""

    error_type = "MALFORMED_STATE"


def _unique(values: list[str], what: str) -> None:
    if len(values) != len(set(values)):
        raise ValueError(f"duplicate {what}")


class SkillProbabilityState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    skill_id: str
    p_mastery: float = Field(ge=0.0, le=1.0)
    p_slip: float = Field(ge=0.0, le=1.0)
    p_guess: float = Field(ge=0.0, le=1.0)
    p_learn: float = Field(ge=0.0, le=1.0)
    last_updated: int = 0


class LearnerModelState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    learner_id: str = Field(min_length=1)
    skill_probabilities: list[SkillProbabilityState]
    total_events: int = Field(ge=0)
    created_at: int = 0
    last_updated: int = 0

    @field_validator("skill_probabilities")
    @classmethod
    def unique_skills(cls, value: list[SkillProbabilityState]) -> list[SkillProbabilityState]:
        _unique([p.skill_id for p in value], "skill_id in skill_probabilities")
        return value

    def to_model(self) -> LearnerModel:
        return LearnerModel(
            learner_id=self.learner_id,
            skill_probabilities={
                p.skill_id: SkillProbability(**p.model_dump()) for p in self.skill_probabilities
            },
            total_events=self.total_events,
            created_at=self.created_at,
            last_updated=self.last_updated,
        )


class MemoryStateRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    skill_id: str
    stability: float = Field(gt=0.0)
    difficulty: float = Field(ge=0.0, le=1.0)
    last_review: int
    next_review: int
    success_count: int = Field(default=0, ge=0)
    failure_count: int = Field(default=0, ge=0)
    state: ReviewState = ReviewState.NEW

    def to_state(self) -> MemoryState:
        return MemoryState(**self.model_dump())


class LearnerMemoryState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    learner_id: str = Field(min_length=1)
    states: list[MemoryStateRecord]

    @field_validator("states")
    @classmethod
    def unique_skills(cls, value: list[MemoryStateRecord]) -> list[MemoryStateRecord]:
        _unique([s.skill_id for s in value], "skill_id in memory states")
        return value


class TransferResultRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    test_id: str
    skill_id: str
    passed: bool
    score: float = Field(ge=0.0, le=1.0)
    timestamp: int

    def to_result(self) -> TransferTestResult:
        return TransferTestResult(**self.model_dump())


class LearnerTransferResults(BaseModel):
    model_config = ConfigDict(extra="forbid")

    learner_id: str = Field(min_length=1)
    results: list[TransferResultRecord]


class EngineStateEnvelope(BaseModel):
    model_config = ConfigDict(extra="forbid")

    format: Literal["skillengine.state"]
    version: str
    exported_at: int = 0
    learner_models: list[LearnerModelState]
    memory_states: list[LearnerMemoryState] = Field(default_factory=list)
    transfer_results: list[LearnerTransferResults] = Field(default_factory=list)
    event_log: list[Event] = Field(default_factory=list)

    @field_validator("version")
    @classmethod
    def supported_version(cls, value: str) -> str:
        if value not in SUPPORTED_STATE_VERSIONS:
            raise ValueError(f"unsupported state version {value!r}")
        return value

    @field_validator("learner_models")
    @classmethod
    def unique_learners(cls, value: list[LearnerModelState]) -> list[LearnerModelState]:
        _unique([m.learner_id for m in value], "learner_id in learner_models")
        return value

    @field_validator("memory_states")
    @classmethod
    def unique_memory_learners(cls, value: list[LearnerMemoryState]) -> list[LearnerMemoryState]:
        _unique([m.learner_id for m in value], "learner_id in memory_states")
        return value

    @field_validator("transfer_results")
    @classmethod
    def unique_transfer_learners(cls, value: list[LearnerTransferResults]) -> list[LearnerTransferResults]:
        _unique([t.learner_id for t in value], "learner_id in transfer_results")
        return value


def encode_state(
    learner_models: dict[str, LearnerModel],
    event_log: list[Any],
    exported_at: int,
    memory_states: Optional[Mapping[str, Mapping[str, MemoryState]]] = None,
    transfer_results: Optional[Mapping[str, list[TransferTestResult]]] = None,
) -> str:
    memory_states = memory_states or {}
    transfer_results = transfer_results or {}
    payload = {
        "format": STATE_FORMAT,
        "version": STATE_SCHEMA_VERSION,
        "exported_at": exported_at,
        "learner_models": [learner_models[lid].to_dict() for lid in sorted(learner_models)],
        "memory_states": [
            {
                "learner_id": lid,
                "states": [memory_states[lid][sid].to_dict() for sid in sorted(memory_states[lid])],
            }
            for lid in sorted(memory_states)
        ],
        "transfer_results": [
            {"learner_id": lid, "results": [r.to_dict() for r in transfer_results[lid]]}
            for lid in sorted(transfer_results)
        ],
        "event_log": [event.model_dump(mode="json") for event in event_log],
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def decode_state(text: str) -> EngineStateEnvelope:
    """
    Parse and validate an exported state string.

    Raises:
        MalformedStateError: on invalid JSON, wrong shape, or unsupported version
    """
    if not isinstance(text, str):
        raise MalformedStateError(f"State must be a string, got {type(text).__name__}")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedStateError(f"State is not valid JSON: {e}") from e

    try:
        return EngineStateEnvelope.model_validate(data)
    except ValidationError as e:
        raise MalformedStateError(f"State does not match schema: {e}") from e
