"""
Skill Mastery Engine.

A skill DAG, a cold-start diagnostic assessor, and a deterministic,
event-sourced learner mastery tracker.

Components:
- graph: SkillGraph, JSON loader
- diagnostic: DiagnosticEngine (item selection, result analysis)
- learner: BKT learner model
- memory: FSRS spaced retrieval scheduling
- transfer: near/far transfer test gate
- engine: MasteryEngine (event processing, next action, export/import)
- events: immutable events and the injected-clock event factory
- persistence: state stores for exported engine state (imported separately)
"""
from skillengine.diagnostic import (
    DiagnosticConfig,
    DiagnosticEngine,
    DiagnosticResponse,
    DiagnosticSummary,
    ItemSkillMapping,
)
from skillengine.engine import (
    ActionType,
    LearnerProgress,
    MalformedStateError,
    MasteryEngine,
    SessionAction,
    SessionConfig,
    create_deterministic_engine,
    get_learner_metrics,
)
from skillengine.events import (
    EventFactoryContext,
    PracticeEvent,
    create_deterministic_id_generator,
    create_event_factory_context,
    create_fixed_clock,
    create_practice_event,
)
from skillengine.graph import (
    GraphErrorType,
    Skill,
    SkillGraph,
    SkillGraphLoadError,
    export_skill_graph,
    load_skill_graph,
    parse_skill_graph,
)
from skillengine.learner import BKTParams, LearnerModel, SkillProbability
from skillengine.memory import FSRSParams, MemoryState
from skillengine.transfer import TransferGateConfig, TransferTest, TransferType

__version__ = "1.0.0"

__all__ = [
    # Graph
    "Skill",
    "SkillGraph",
    "GraphErrorType",
    "SkillGraphLoadError",
    "load_skill_graph",
    "parse_skill_graph",
    "export_skill_graph",
    # Diagnostic
    "DiagnosticEngine",
    "DiagnosticConfig",
    "DiagnosticResponse",
    "DiagnosticSummary",
    "ItemSkillMapping",
    # Learner
    "BKTParams",
    "LearnerModel",
    "SkillProbability",
    # Engine
    "MasteryEngine",
    "create_deterministic_engine",
    "SessionConfig",
    "SessionAction",
    "ActionType",
    "LearnerProgress",
    "MalformedStateError",
    "get_learner_metrics",
    # Memory and transfer
    "FSRSParams",
    "MemoryState",
    "TransferGateConfig",
    "TransferTest",
    "TransferType",
    # Events
    "EventFactoryContext",
    "PracticeEvent",
    "create_event_factory_context",
    "create_deterministic_id_generator",
    "create_fixed_clock",
    "create_practice_event",
]
