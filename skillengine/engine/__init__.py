"""
Deterministic mastery engine.

Components:
- MasteryEngine: event processing, sequencing, export/import
- SessionConfig / SessionAction: sequencing inputs and outputs
- get_learner_metrics: mastery, retention and review forecast per learner
- MalformedStateError: raised by import_state on a bad blob
"""
from skillengine.engine.mastery_engine import MasteryEngine, create_deterministic_engine
from skillengine.engine.metrics import LearnerMetrics, ReviewForecast, get_learner_metrics
from skillengine.engine.models import ActionType, LearnerProgress, SessionAction, SessionConfig
from skillengine.engine.state import (
    STATE_SCHEMA_VERSION,
    MalformedStateError,
)

__all__ = [
    "MasteryEngine",
    "create_deterministic_engine",
    "ActionType",
    "LearnerProgress",
    "SessionAction",
    "SessionConfig",
    "LearnerMetrics",
    "ReviewForecast",
    "get_learner_metrics",
    "MalformedStateError",
    "STATE_SCHEMA_VERSION",
]
