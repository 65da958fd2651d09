"""
Event records and the deterministic event factory.
"""
from skillengine.events.factory import (
    ClockFn,
    EventFactoryContext,
    IdGeneratorFn,
    create_deterministic_id_generator,
    create_diagnostic_event,
    create_event_factory_context,
    create_fixed_clock,
    create_practice_event,
    create_session_end_event,
    create_session_start_event,
    create_transfer_test_event,
    default_clock,
    default_id_generator,
    validate_event,
)
from skillengine.events.models import (
    EVENT_SCHEMA_VERSION,
    BaseEvent,
    DiagnosticEvent,
    DiagnosticSkillResult,
    Event,
    PracticeEvent,
    SessionEndEvent,
    SessionStartEvent,
    TransferTestEvent,
)

__all__ = [
    # Models
    "EVENT_SCHEMA_VERSION",
    "BaseEvent",
    "Event",
    "PracticeEvent",
    "DiagnosticEvent",
    "DiagnosticSkillResult",
    "SessionStartEvent",
    "SessionEndEvent",
    "TransferTestEvent",
    # Factory
    "ClockFn",
    "IdGeneratorFn",
    "EventFactoryContext",
    "create_event_factory_context",
    "create_deterministic_id_generator",
    "create_fixed_clock",
    "default_clock",
    "default_id_generator",
    "validate_event",
    "create_practice_event",
    "create_diagnostic_event",
    "create_session_start_event",
    "create_session_end_event",
    "create_transfer_test_event",
]
