"""
Session configuration and engine query results.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Optional


class ActionType(str, Enum):
    """Kinds of recommendation returned by get_next_action()."""

    PRACTICE = "practice"
    REVIEW = "review"  # spaced retrieval of a due skill
    TRANSFER_TEST = "transfer_test"
    REST = "rest"  # unmastered skills remain but none is reachable
    COMPLETE = "complete"  # every skill mastered


@dataclass(frozen=True)
class SessionConfig:
    """Pure session configuration supplied by the orchestration layer."""

    max_duration_minutes: int = 30
    target_items: int = 20
    mastery_threshold: float = 0.85
    enforce_spaced_retrieval: bool = True
    require_transfer_tests: bool = True

    @classmethod
    def from_settings(cls, settings: Any = None) -> SessionConfig:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(
            target_items=settings.target_items,
            mastery_threshold=settings.mastery_threshold,
            enforce_spaced_retrieval=settings.enforce_spaced_retrieval,
            require_transfer_tests=settings.require_transfer_tests,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SessionAction:
    """A sequencing decision."""

    type: ActionType
    skill_id: Optional[str] = None
    reason: str = ""
    priority: float = 0.0
    p_mastery: Optional[float] = None
    item_id: Optional[str] = None  # transfer test id

    @property
    def is_complete(self) -> bool:
        return self.type == ActionType.COMPLETE

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "skill_id": self.skill_id,
            "reason": self.reason,
            "priority": self.priority,
            "p_mastery": self.p_mastery,
            "item_id": self.item_id,
        }


@dataclass
class LearnerProgress:
    """Aggregate progress for one learner."""

    learner_id: str
    total_skills: int
    mastered_skills: int
    learning_skills: int
    not_started_skills: int
    average_mastery: float
    total_events: int
