"""
Unit tests for event records and the event factory.
"""

import pytest
from pydantic import TypeAdapter, ValidationError

from skillengine.engine import SessionConfig
from skillengine.events import (
    DiagnosticEvent,
    DiagnosticSkillResult,
    Event,
    PracticeEvent,
    TransferTestEvent,
    create_deterministic_id_generator,
    create_diagnostic_event,
    create_event_factory_context,
    create_fixed_clock,
    create_practice_event,
    create_session_end_event,
    create_session_start_event,
    create_transfer_test_event,
    default_clock,
    validate_event,
)


class TestClockAndIds:
    """Tests for injected time and identity sources."""

    def test_deterministic_ids(self):
        next_id = create_deterministic_id_generator()

        assert [next_id(), next_id(), next_id()] == ["evt-0001", "evt-0002", "evt-0003"]

    def test_id_prefix(self):
        assert create_deterministic_id_generator("sess")() == "sess-0001"

    def test_generators_are_independent(self):
        first = create_deterministic_id_generator()
        second = create_deterministic_id_generator()
        first()

        assert second() == "evt-0001"

    def test_fixed_clock(self):
        clock = create_fixed_clock()

        assert [clock(), clock()] == [0, 0]

    def test_stepping_clock(self):
        clock = create_fixed_clock(start=100, step=10)

        assert [clock(), clock(), clock()] == [100, 110, 120]

    def test_default_context_uses_wall_clock(self):
        ctx = create_event_factory_context()

        assert ctx.clock is default_clock
        assert isinstance(ctx.id_generator(), str)


class TestPracticeEvent:
    """Tests for create_practice_event()."""

    def test_fields_from_context(self, factory_context):
        event = create_practice_event(
            factory_context, "learner-1", "session-1", "basic", "item-1", True, 1500
        )

        assert event.id == "evt-0001"
        assert event.timestamp == 1_000
        assert event.type == "practice"
        assert event.correct is True
        assert event.confidence is None

    def test_consecutive_events_advance(self, factory_context):
        first = create_practice_event(factory_context, "l", "s", "basic", "i", True, 10)
        second = create_practice_event(factory_context, "l", "s", "basic", "i", False, 10)

        assert (first.id, first.timestamp) == ("evt-0001", 1_000)
        assert (second.id, second.timestamp) == ("evt-0002", 2_000)

    def test_events_are_frozen(self, factory_context):
        event = create_practice_event(factory_context, "l", "s", "basic", "i", True, 10)

        with pytest.raises(ValidationError):
            event.correct = False

    def test_rejects_empty_learner_id(self, factory_context):
        with pytest.raises(ValidationError):
            create_practice_event(factory_context, "", "s", "basic", "i", True, 10)

    def test_rejects_confidence_out_of_range(self, factory_context):
        with pytest.raises(ValidationError):
            create_practice_event(factory_context, "l", "s", "basic", "i", True, 10, confidence=6)


class TestValidateEvent:
    """Tests for validate_event() checks against a skill graph."""

    def test_known_skill_is_valid(self, factory_context, basic_graph):
        event = create_practice_event(factory_context, "l", "s", "basic", "i", True, 10)

        assert validate_event(event, basic_graph) == (True, [])

    def test_unknown_practice_skill(self, factory_context, basic_graph):
        event = create_practice_event(factory_context, "l", "s", "ghost", "i", True, 10)

        valid, errors = validate_event(event, basic_graph)

        assert not valid
        assert errors == ["Unknown skill_id 'ghost'"]

    def test_without_graph_skips_skill_check(self, factory_context):
        event = create_practice_event(factory_context, "l", "s", "ghost", "i", True, 10)

        assert validate_event(event) == (True, [])

    def test_unknown_transfer_skill(self, factory_context, basic_graph):
        event = create_transfer_test_event(
            factory_context, "l", "s", "t1", "ghost", "near", score=0.9, passed=True
        )

        assert validate_event(event, basic_graph)[0] is False

    def test_inconsistent_diagnostic_results(self, factory_context, basic_graph):
        event = create_diagnostic_event(
            factory_context,
            "l",
            "s",
            ["basic"],
            [
                {"skill_id": "basic", "score": 0.5, "items_attempted": 1, "items_correct": 2},
                {"skill_id": "basic", "score": 0.6},
                {"skill_id": "intermediate", "score": 0.4},
            ],
        )

        valid, errors = validate_event(event, basic_graph)

        assert not valid
        assert errors == [
            "Result for 'basic' has more items correct than attempted",
            "Duplicate diagnostic result for 'basic'",
            "Result for 'intermediate' is not in skills_assessed",
        ]


class TestOtherEvents:
    """Tests for diagnostic and session events."""

    def test_diagnostic_event_accepts_dicts(self, factory_context):
        event = create_diagnostic_event(
            factory_context,
            "learner-1",
            "session-1",
            ["basic"],
            [{"skill_id": "basic", "score": 0.8, "items_attempted": 2, "items_correct": 2}],
        )

        assert isinstance(event, DiagnosticEvent)
        assert event.skills_assessed == ("basic",)
        assert event.results[0] == DiagnosticSkillResult(
            skill_id="basic", score=0.8, items_attempted=2, items_correct=2
        )

    def test_session_start_carries_config(self, factory_context):
        event = create_session_start_event(
            factory_context, "learner-1", "session-1", SessionConfig(target_items=5)
        )

        assert event.type == "session_start"
        assert event.config["target_items"] == 5
        assert event.config["mastery_threshold"] == 0.85

    def test_session_end_copies_summary(self, factory_context):
        summary = {"items": 3}
        event = create_session_end_event(factory_context, "learner-1", "session-1", summary)
        summary["items"] = 99

        assert event.summary == {"items": 3}

    def test_discriminated_union_round_trip(self, factory_context):
        event = create_practice_event(factory_context, "l", "s", "basic", "i", True, 10)

        decoded = TypeAdapter(Event).validate_json(event.model_dump_json())

        assert isinstance(decoded, PracticeEvent)
        assert decoded == event

    def test_transfer_test_event(self, factory_context):
        event = create_transfer_test_event(
            factory_context, "learner-1", "session-1", "t-near", "basic", "near", score=0.8, passed=True
        )

        decoded = TypeAdapter(Event).validate_json(event.model_dump_json())

        assert isinstance(decoded, TransferTestEvent)
        assert decoded.transfer_type == "near"
        assert decoded.timestamp == 1000

    def test_transfer_test_event_rejects_unknown_type(self, factory_context):
        with pytest.raises(ValidationError):
            create_transfer_test_event(
                factory_context, "learner-1", "session-1", "t1", "basic", "sideways", score=0.8, passed=True
            )
