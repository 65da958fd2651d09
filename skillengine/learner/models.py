"""
Learner model records.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class SkillProbability:
    """BKT state for one learner/skill pair."""

    skill_id: str
    p_mastery: float
    p_slip: float
    p_guess: float
    p_learn: float
    last_updated: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class LearnerModel:
    """Per-learner mastery state, owned by a single MasteryEngine."""

    learner_id: str
    skill_probabilities: dict[str, SkillProbability] = field(default_factory=dict)
    total_events: int = 0
    created_at: int = 0
    last_updated: int = 0

    def p_mastery(self, skill_id: str, default: float = 0.0) -> float:
        prob = self.skill_probabilities.get(skill_id)
        return prob.p_mastery if prob is not None else default

    def to_dict(self) -> dict[str, Any]:
        """Plain dict with skills sorted by id for stable serialization."""
        return {
            "learner_id": self.learner_id,
            "skill_probabilities": [
                self.skill_probabilities[skill_id].to_dict()
                for skill_id in sorted(self.skill_probabilities)
            ],
            "total_events": self.total_events,
            "created_at": self.created_at,
            "last_updated": self.last_updated,
        }
