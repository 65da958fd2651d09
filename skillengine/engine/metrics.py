"""
Learner metrics.

Read-only snapshot of one learner: mastery and retention per skill, upcoming
reviews, and a rough estimate of the practice still needed.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from skillengine.memory.fsrs_scheduler import MS_PER_DAY

if TYPE_CHECKING:
    from skillengine.engine.mastery_engine import MasteryEngine


@dataclass
class ReviewForecast:
    skill_id: str
    due_at: int
    overdue_days: float  # negative when not yet due


@dataclass
class LearnerMetrics:
    """Per-learner mastery and retention snapshot."""

    learner_id: str
    computed_at: int
    mastery_by_skill: dict[str, float] = field(default_factory=dict)
    retention_by_skill: dict[str, float] = field(default_factory=dict)
    next_reviews: list[ReviewForecast] = field(default_factory=list)
    average_mastery: float = 0.0
    average_retention: float = 0.0
    skills_mastered: int = 0
    skills_due: int = 0
    total_practice_events: int = 0
    estimated_events_to_full_mastery: Optional[int] = 0


def events_to_mastery(p_learn: float, mastery_threshold: float) -> Optional[int]:
    """
    Correct answers needed to cross the threshold from zero on the learn
    transition alone: ceil(log(1 - threshold) / log(1 - p_learn)).

    None when the threshold is unreachable (p_learn of 0, or threshold of 1).
    """
    if mastery_threshold <= 0:
        return 0
    if p_learn <= 0 or mastery_threshold >= 1:
        return None
    if p_learn >= 1:
        return 1
    return math.ceil(math.log(1 - mastery_threshold) / math.log(1 - p_learn))


def get_learner_metrics(
    engine: MasteryEngine,
    learner_id: str,
    at_time: Optional[int] = None,
    mastery_threshold: float = 0.85,
) -> LearnerMetrics:
    """
    Compute metrics for one learner.

    Args:
        engine: Engine holding the learner's state
        learner_id: Learner to summarize
        at_time: Evaluation time in ms; defaults to the engine clock
        mastery_threshold: pMastery counted as mastered

    Returns:
        LearnerMetrics. An unknown learner yields an empty snapshot.
    """
    if at_time is None:
        at_time = engine.context.clock()

    metrics = LearnerMetrics(learner_id=learner_id, computed_at=at_time)
    model = engine.get_learner_model(learner_id)
    if model is None:
        return metrics

    metrics.mastery_by_skill = {
        skill_id: model.p_mastery(skill_id) for skill_id in sorted(model.skill_probabilities)
    }

    states = engine.get_memory_states(learner_id)
    for state in states:
        metrics.retention_by_skill[state.skill_id] = engine.scheduler.get_retention(state, at_time)
    metrics.next_reviews = sorted(
        (
            ReviewForecast(
                skill_id=state.skill_id,
                due_at=state.next_review,
                overdue_days=(at_time - state.next_review) / MS_PER_DAY,
            )
            for state in states
        ),
        key=lambda r: (-r.overdue_days, r.skill_id),
    )

    masteries = list(metrics.mastery_by_skill.values())
    retentions = list(metrics.retention_by_skill.values())
    metrics.average_mastery = sum(masteries) / len(masteries) if masteries else 0.0
    metrics.average_retention = sum(retentions) / len(retentions) if retentions else 0.0
    metrics.skills_mastered = sum(1 for p in masteries if p >= mastery_threshold)
    metrics.skills_due = sum(1 for r in metrics.next_reviews if r.overdue_days >= 0)
    metrics.total_practice_events = model.total_events

    unmastered = len(masteries) - metrics.skills_mastered
    if unmastered:
        per_skill = events_to_mastery(engine.learner_engine.params.p_learn, mastery_threshold)
        metrics.estimated_events_to_full_mastery = None if per_skill is None else unmastered * per_skill
    return metrics
