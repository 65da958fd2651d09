"""
Bayesian Knowledge Tracing learner model.

Four parameters per skill:
- p_init: Prior probability of mastery
- p_learn: Probability of transitioning from unknown to known per opportunity
- p_slip: Probability of an incorrect response when the skill is known
- p_guess: Probability of a correct response when the skill is unknown

Updates are pure float arithmetic over the prior state and the event, so the
same event history always yields bit-identical probabilities.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from loguru import logger

from skillengine.events.models import PracticeEvent
from skillengine.graph.skill_graph import SkillGraph
from skillengine.learner.models import LearnerModel, SkillProbability

# Guards P(observation) against division by zero
EPSILON = 1e-10


class InvalidParametersError(ValueError):
    """Raised when BKT parameters are outside their valid ranges."""
    pass


@dataclass(frozen=True)
class BKTParams:
    """BKT parameters (research-based defaults)."""

    p_init: float = 0.3
    p_learn: float = 0.1
    p_slip: float = 0.1
    p_guess: float = 0.2

    def validate(self) -> None:
        """
        Check parameter ranges.

        p_slip and p_guess are strictly inside (0, 1) and must sum below 1,
        otherwise the model is degenerate and P(correct) can reach zero.
        """
        if not 0 <= self.p_init <= 1:
            raise InvalidParametersError(f"BKT p_init must be between 0 and 1, got {self.p_init}")
        if not 0 <= self.p_learn <= 1:
            raise InvalidParametersError(f"BKT p_learn must be between 0 and 1, got {self.p_learn}")
        if not 0 < self.p_slip < 1:
            raise InvalidParametersError(
                f"BKT p_slip must be strictly between 0 and 1, got {self.p_slip}"
            )
        if not 0 < self.p_guess < 1:
            raise InvalidParametersError(
                f"BKT p_guess must be strictly between 0 and 1, got {self.p_guess}"
            )
        if self.p_slip + self.p_guess >= 1:
            raise InvalidParametersError(
                f"BKT p_slip + p_guess must be less than 1, got {self.p_slip + self.p_guess}"
            )

    @classmethod
    def from_settings(cls, settings: Any = None) -> BKTParams:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_bkt_config())


@dataclass
class MasteryUpdate:
    """Result of applying one practice event."""

    skill_id: str
    old_mastery: float
    new_mastery: float
    correct: bool


class BKTEngine:
    """
    Create and update LearnerModels with BKT.

    Formula (per observation):
    - posterior = P(obs | mastered) * prior / P(obs)
    - final = posterior + (1 - posterior) * p_learn, clamped to [0, 1]
    """

    def __init__(self, params: BKTParams | None = None):
        self.params = params or BKTParams()
        self.params.validate()

    def new_skill_probability(self, skill_id: str, timestamp: int, p_mastery: float | None = None) -> SkillProbability:
        return SkillProbability(
            skill_id=skill_id,
            p_mastery=self.params.p_init if p_mastery is None else p_mastery,
            p_slip=self.params.p_slip,
            p_guess=self.params.p_guess,
            p_learn=self.params.p_learn,
            last_updated=timestamp,
        )

    def create_model(self, learner_id: str, graph: SkillGraph, timestamp: int = 0) -> LearnerModel:
        """Cold-start model: every graph skill at the p_init prior."""
        return LearnerModel(
            learner_id=learner_id,
            skill_probabilities={
                skill_id: self.new_skill_probability(skill_id, timestamp)
                for skill_id in graph.skills
            },
            total_events=0,
            created_at=timestamp,
            last_updated=timestamp,
        )

    def update_model(self, model: LearnerModel, event: PracticeEvent) -> MasteryUpdate:
        """
        Apply one practice event to the model in place.

        Args:
            model: Learner model for event.learner_id
            event: Practice event

        Returns:
            MasteryUpdate with the before/after probability
        """
        prob = model.skill_probabilities.get(event.skill_id)
        if prob is None:
            prob = self.new_skill_probability(event.skill_id, event.timestamp)
            model.skill_probabilities[event.skill_id] = prob

        old_mastery = prob.p_mastery
        new_mastery = self.bayesian_update(
            prior_mastery=old_mastery,
            is_correct=event.correct,
            p_slip=prob.p_slip,
            p_guess=prob.p_guess,
            p_learn=prob.p_learn,
        )

        prob.p_mastery = new_mastery
        prob.last_updated = event.timestamp
        model.total_events += 1
        model.last_updated = event.timestamp

        logger.debug(
            f"{model.learner_id}/{event.skill_id}: {old_mastery:.4f} -> {new_mastery:.4f} "
            f"({'correct' if event.correct else 'incorrect'})"
        )
        return MasteryUpdate(
            skill_id=event.skill_id,
            old_mastery=old_mastery,
            new_mastery=new_mastery,
            correct=event.correct,
        )

    @staticmethod
    def bayesian_update(
        prior_mastery: float,
        is_correct: bool,
        p_slip: float,
        p_guess: float,
        p_learn: float,
    ) -> float:
        """
        BKT posterior followed by the learning transition.

        P(mastery | correct) = (1 - slip) * prior / P(correct)
        P(mastery | incorrect) = slip * prior / P(incorrect)
        """
        if is_correct:
            p_obs = max(EPSILON, (1 - p_slip) * prior_mastery + p_guess * (1 - prior_mastery))
            posterior = ((1 - p_slip) * prior_mastery) / p_obs
        else:
            p_obs = max(EPSILON, p_slip * prior_mastery + (1 - p_guess) * (1 - prior_mastery))
            posterior = (p_slip * prior_mastery) / p_obs

        final = posterior + (1 - posterior) * p_learn
        return max(0.0, min(1.0, final))

    def initialize_from_diagnostic(
        self,
        model: LearnerModel,
        estimates: Mapping[str, float],
        timestamp: int,
    ) -> None:
        """Overwrite p_mastery with diagnostic estimates (clamped to [0, 1])."""
        for skill_id in sorted(estimates):
            score = max(0.0, min(1.0, estimates[skill_id]))
            prob = model.skill_probabilities.get(skill_id)
            if prob is None:
                model.skill_probabilities[skill_id] = self.new_skill_probability(skill_id, timestamp, score)
            else:
                prob.p_mastery = score
                prob.last_updated = timestamp
        model.last_updated = timestamp

    def get_unmastered_skills(self, model: LearnerModel, threshold: float) -> list[str]:
        """Skills below threshold, sorted."""
        return sorted(
            skill_id
            for skill_id, prob in model.skill_probabilities.items()
            if prob.p_mastery < threshold
        )
