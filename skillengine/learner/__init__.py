"""
Learner modeling (Bayesian Knowledge Tracing).
"""
from skillengine.learner.bkt_engine import (
    BKTEngine,
    BKTParams,
    InvalidParametersError,
    MasteryUpdate,
)
from skillengine.learner.models import LearnerModel, SkillProbability

__all__ = [
    "BKTEngine",
    "BKTParams",
    "InvalidParametersError",
    "MasteryUpdate",
    "LearnerModel",
    "SkillProbability",
]
