"""
Integration tests for MasteryEngine.

Tests:
- Next-action sequencing (prerequisite order, completion, unreachable skills)
- Determinism: identical event streams yield identical state
- Export/import round trip and all-or-nothing import
- Replay and diagnostic seeding
- Spaced retrieval reviews and transfer tests in sequencing
- Learner metrics
"""

import json

import pytest

from skillengine.engine import (
    ActionType,
    MalformedStateError,
    MasteryEngine,
    SessionConfig,
    create_deterministic_engine,
    get_learner_metrics,
)
from skillengine.engine.metrics import events_to_mastery
from skillengine.events import (
    create_deterministic_id_generator,
    create_diagnostic_event,
    create_event_factory_context,
    create_fixed_clock,
    create_practice_event,
    create_session_end_event,
    create_session_start_event,
)
from skillengine.graph import Skill, SkillGraph
from skillengine.learner import BKTEngine
from skillengine.memory import MS_PER_DAY, ReviewState
from skillengine.transfer import TransferGate, TransferType


@pytest.fixture
def engine(basic_graph):
    return create_deterministic_engine(basic_graph)


@pytest.fixture
def config():
    return SessionConfig()


def _practice_stream(ctx, answers, skill_id="basic", learner_id="learner-1"):
    return [
        create_practice_event(ctx, learner_id, "session-1", skill_id, f"item-{i}", correct, 1000)
        for i, correct in enumerate(answers)
    ]


class TestNextAction:
    """Tests for get_next_action()."""

    def test_fresh_learner_starts_with_root_skill(self, engine, config):
        action = engine.get_next_action("learner-1", config)

        assert action.type == ActionType.PRACTICE
        assert action.skill_id == "basic"
        assert action.p_mastery == 0.3
        # 40 + (one transitive dependent + 1)
        assert action.priority == 42

    def test_lazily_creates_model(self, engine, config):
        assert engine.get_learner_model("learner-1") is None

        engine.get_next_action("learner-1", config)

        assert engine.get_learner_model("learner-1") is not None

    def test_advances_after_mastery(self, engine, config, factory_context):
        for event in _practice_stream(factory_context, [True, True]):
            engine.process_event(event)

        action = engine.get_next_action("learner-1", config)

        assert action.skill_id == "intermediate"

    def test_complete_when_all_mastered(self, engine, config):
        engine.seed_from_diagnostic("learner-1", {"basic": 0.9, "intermediate": 0.9})

        action = engine.get_next_action("learner-1", config)

        assert action.type == ActionType.COMPLETE
        assert action.is_complete
        assert action.skill_id is None

    def test_rest_when_nothing_reachable(self, config):
        """Skills stuck on a cycle are unmastered but never eligible."""
        graph = SkillGraph([
            Skill(id="a", name="A", prerequisites=["b"]),
            Skill(id="b", name="B", prerequisites=["a"]),
        ])
        engine = create_deterministic_engine(graph)

        action = engine.get_next_action("learner-1", config)

        assert action.type == ActionType.REST

    def test_transitive_prerequisites_gate_practice(self, config):
        """A mastered direct prerequisite is not enough if a deeper one is unmastered."""
        graph = SkillGraph([
            Skill(id="a", name="A"),
            Skill(id="b", name="B", prerequisites=["a"]),
            Skill(id="c", name="C", prerequisites=["b"]),
        ])
        engine = create_deterministic_engine(graph)
        engine.seed_from_diagnostic("learner-1", {"b": 0.9})

        action = engine.get_next_action("learner-1", config)

        assert action.skill_id == "a"

    def test_threshold_from_config(self, engine):
        engine.seed_from_diagnostic("learner-1", {"basic": 0.6})

        action = engine.get_next_action("learner-1", SessionConfig(mastery_threshold=0.5))

        assert action.skill_id == "intermediate"


class TestDeterminism:
    """Identical inputs must produce identical state."""

    def _run(self, graph):
        ctx = create_event_factory_context(
            clock=create_fixed_clock(start=1_000, step=500),
            id_generator=create_deterministic_id_generator(),
        )
        engine = create_deterministic_engine(graph)
        for event in _practice_stream(ctx, [True, False, True, True]):
            engine.process_event(event)
        for event in _practice_stream(ctx, [False, True], skill_id="intermediate"):
            engine.process_event(event)
        return engine

    def test_same_stream_same_export(self, basic_graph):
        first = self._run(basic_graph)
        second = self._run(basic_graph)

        assert first.export_state() == second.export_state()
        assert first.get_learner_model("learner-1") == second.get_learner_model("learner-1")

    def test_probabilities_follow_bkt_exactly(self, engine, factory_context):
        answers = [True, False, True]
        expected = 0.3
        for correct in answers:
            expected = BKTEngine.bayesian_update(expected, correct, 0.1, 0.2, 0.1)

        for event in _practice_stream(factory_context, answers):
            engine.process_event(event)

        model = engine.get_learner_model("learner-1")
        assert model.p_mastery("basic") == expected
        assert model.total_events == 3


class TestEventProcessing:
    """Tests for process_event() dispatch."""

    def test_practice_returns_update(self, engine, factory_context):
        event = _practice_stream(factory_context, [True])[0]

        update = engine.process_event(event)

        assert update.skill_id == "basic"
        assert update.old_mastery == 0.3
        assert update.new_mastery > 0.3

    def test_session_events_logged_only(self, engine, factory_context, config):
        start = create_session_start_event(factory_context, "learner-1", "session-1", config)
        end = create_session_end_event(factory_context, "learner-1", "session-1", {"items": 0})

        assert engine.process_event(start) is None
        assert engine.process_event(end) is None
        assert engine.get_learner_model("learner-1") is None
        assert [e.type for e in engine.get_event_log()] == ["session_start", "session_end"]

    def test_diagnostic_event_seeds_priors(self, engine, factory_context):
        event = create_diagnostic_event(
            factory_context,
            "learner-1",
            "session-1",
            ["basic"],
            [{"skill_id": "basic", "score": 0.9}],
        )

        engine.process_event(event)

        model = engine.get_learner_model("learner-1")
        assert model.p_mastery("basic") == 0.9
        assert model.p_mastery("intermediate") == 0.3
        assert model.total_events == 0

    def test_replay_reproduces_state(self, engine, factory_context, basic_graph):
        for event in _practice_stream(factory_context, [True, False, True]):
            engine.process_event(event)

        replayed = create_deterministic_engine(basic_graph)
        replayed.replay_events(engine.get_event_log())

        assert replayed.export_state() == engine.export_state()

    def test_replay_clears_existing_state(self, engine, factory_context):
        engine.process_event(_practice_stream(factory_context, [True], learner_id="old")[0])

        engine.replay_events(_practice_stream(factory_context, [True], learner_id="new"))

        assert engine.learner_ids() == ["new"]
        assert len(engine.get_event_log()) == 1

    def test_remove_learner(self, engine, config):
        engine.get_or_create_learner_model("learner-1")

        assert engine.remove_learner("learner-1") is True
        assert engine.remove_learner("learner-1") is False


class TestExportImport:
    """Tests for export_state() / import_state()."""

    def test_round_trip(self, engine, factory_context, basic_graph):
        for event in _practice_stream(factory_context, [True, False, True]):
            engine.process_event(event)
        engine.get_or_create_learner_model("learner-2")
        blob = engine.export_state()

        restored = create_deterministic_engine(basic_graph)
        restored.import_state(blob)

        assert restored.learner_ids() == ["learner-1", "learner-2"]
        assert restored.get_learner_model("learner-1") == engine.get_learner_model("learner-1")
        assert restored.export_state() == blob

    def test_export_is_versioned(self, engine):
        data = json.loads(engine.export_state())

        assert data["format"] == "skillengine.state"
        assert data["version"] == "1.0.0"

    @pytest.mark.parametrize("blob", ["", "{", "[]", '{"format": "skillengine.state"}'])
    def test_malformed_import_leaves_state_untouched(self, engine, factory_context, blob):
        engine.process_event(_practice_stream(factory_context, [True])[0])
        before = engine.export_state()

        with pytest.raises(MalformedStateError):
            engine.import_state(blob)

        assert engine.export_state() == before

    def test_partially_valid_import_is_rejected(self, engine, factory_context):
        """One bad learner record rejects the whole blob."""
        engine.process_event(_practice_stream(factory_context, [True])[0])
        engine.get_or_create_learner_model("learner-2")
        before = engine.export_state()

        data = json.loads(before)
        data["learner_models"][1]["total_events"] = -1

        with pytest.raises(MalformedStateError):
            engine.import_state(json.dumps(data))

        assert engine.export_state() == before

    def test_import_replaces_existing_learners(self, engine, basic_graph):
        other = create_deterministic_engine(basic_graph)
        other.get_or_create_learner_model("someone-else")

        engine.get_or_create_learner_model("learner-1")
        engine.import_state(other.export_state())

        assert engine.learner_ids() == ["someone-else"]


class TestPlanningAndProgress:
    """Tests for plan_session() and get_learner_progress()."""

    def test_plan_lists_eligible_skills(self, diamond_graph, config):
        engine = MasteryEngine(diamond_graph)
        engine.seed_from_diagnostic("learner-1", {"a": 0.9})

        plan = engine.plan_session("learner-1", config)

        assert [a.skill_id for a in plan] == ["b", "c"]

    def test_plan_capped_at_target_items(self, diamond_graph):
        engine = MasteryEngine(diamond_graph)
        engine.seed_from_diagnostic("learner-1", {"a": 0.9})

        plan = engine.plan_session("learner-1", SessionConfig(target_items=1))

        assert [a.skill_id for a in plan] == ["b"]

    def test_plan_when_complete(self, engine, config):
        engine.seed_from_diagnostic("learner-1", {"basic": 1.0, "intermediate": 1.0})

        plan = engine.plan_session("learner-1", config)

        assert len(plan) == 1
        assert plan[0].type == ActionType.COMPLETE

    def test_progress_unknown_learner(self, engine):
        progress = engine.get_learner_progress("nobody")

        assert progress.total_skills == 2
        assert progress.not_started_skills == 2
        assert progress.average_mastery == 0.0

    def test_progress_counts(self, engine):
        engine.seed_from_diagnostic("learner-1", {"basic": 0.9, "intermediate": 0.1})

        progress = engine.get_learner_progress("learner-1")

        assert progress.mastered_skills == 1
        assert progress.learning_skills == 0
        assert progress.not_started_skills == 1
        assert progress.average_mastery == pytest.approx(0.5)


THREE_DAYS_MS = 3 * MS_PER_DAY


class TestSpacedRetrieval:
    """Tests for FSRS memory state and the enforce_spaced_retrieval flag."""

    def _practice_basic(self, engine, ctx):
        for event in _practice_stream(ctx, [True, True]):
            engine.process_event(event)
        return engine.get_learner_model("learner-1").last_updated

    def test_practice_creates_memory_state(self, engine, factory_context):
        self._practice_basic(engine, factory_context)

        (state,) = engine.get_memory_states("learner-1")

        assert state.skill_id == "basic"
        assert state.state == ReviewState.REVIEW
        assert state.success_count == 2
        assert state.last_review == 2000
        assert state.next_review > 2000

    def test_failed_practice_counts_lapse(self, engine, factory_context):
        engine.process_event(_practice_stream(factory_context, [False])[0])

        (state,) = engine.get_memory_states("learner-1")

        assert state.state == ReviewState.LEARNING
        assert state.failure_count == 1

    def test_due_review_comes_first(self, engine, factory_context):
        last = self._practice_basic(engine, factory_context)

        action = engine.get_next_action("learner-1", SessionConfig(), at_time=last + THREE_DAYS_MS)

        assert action.type == ActionType.REVIEW
        assert action.skill_id == "basic"
        assert 50 < action.priority < 100

    def test_flag_off_skips_reviews(self, engine, factory_context):
        last = self._practice_basic(engine, factory_context)
        config = SessionConfig(enforce_spaced_retrieval=False)

        action = engine.get_next_action("learner-1", config, at_time=last + THREE_DAYS_MS)

        assert action.type == ActionType.PRACTICE
        assert action.skill_id == "intermediate"

    def test_nothing_due_before_interval(self, engine, factory_context, config):
        self._practice_basic(engine, factory_context)

        action = engine.get_next_action("learner-1", config)

        assert action.type == ActionType.PRACTICE
        assert action.skill_id == "intermediate"

    def test_plan_puts_reviews_first(self, engine, factory_context, config):
        last = self._practice_basic(engine, factory_context)

        plan = engine.plan_session("learner-1", config, at_time=last + THREE_DAYS_MS)

        assert [(a.type, a.skill_id) for a in plan] == [
            (ActionType.REVIEW, "basic"),
            (ActionType.PRACTICE, "intermediate"),
        ]

    def test_review_priority_capped(self, engine, factory_context, config):
        last = self._practice_basic(engine, factory_context)

        action = engine.get_next_action("learner-1", config, at_time=last + 100 * MS_PER_DAY)

        assert action.priority == 100

    def test_replay_rebuilds_memory_states(self, engine, factory_context, basic_graph):
        self._practice_basic(engine, factory_context)

        replayed = create_deterministic_engine(basic_graph)
        replayed.replay_events(engine.get_event_log())

        assert replayed.get_memory_states("learner-1") == engine.get_memory_states("learner-1")

    def test_memory_states_survive_export(self, engine, factory_context, basic_graph):
        self._practice_basic(engine, factory_context)

        restored = create_deterministic_engine(basic_graph)
        restored.import_state(engine.export_state())

        assert restored.get_memory_states("learner-1") == engine.get_memory_states("learner-1")

    def test_remove_learner_drops_memory_states(self, engine, factory_context):
        self._practice_basic(engine, factory_context)

        engine.remove_learner("learner-1")

        assert engine.get_memory_states("learner-1") == []


class TestTransferTests:
    """Tests for registered transfer tests and the require_transfer_tests flag."""

    @pytest.fixture
    def seeded(self, engine):
        engine.seed_from_diagnostic("learner-1", {"basic": 0.9})
        engine.register_transfer_tests([TransferGate.create_test("t-near", "basic", TransferType.NEAR)])
        return engine

    def test_pending_transfer_test_served(self, seeded, config):
        action = seeded.get_next_action("learner-1", config)

        assert action.type == ActionType.TRANSFER_TEST
        assert action.skill_id == "basic"
        assert action.item_id == "t-near"
        assert action.priority == 75

    def test_flag_off_skips_transfer_tests(self, seeded):
        action = seeded.get_next_action("learner-1", SessionConfig(require_transfer_tests=False))

        assert action.type == ActionType.PRACTICE
        assert action.skill_id == "intermediate"

    def test_passed_attempt_unlocks_skill(self, seeded, config):
        assert not seeded.is_skill_unlocked("learner-1", "basic")

        event = seeded.record_transfer_attempt("learner-1", "session-1", "t-near", score=0.9)

        assert event.passed
        assert seeded.is_skill_unlocked("learner-1", "basic")
        assert seeded.get_pending_transfer_tests("learner-1", "basic") == []
        action = seeded.get_next_action("learner-1", config)
        assert action.type == ActionType.PRACTICE
        assert action.skill_id == "intermediate"

    def test_failed_attempt_keeps_test_pending(self, seeded, config):
        event = seeded.record_transfer_attempt("learner-1", "session-1", "t-near", score=0.5)

        assert not event.passed
        assert seeded.get_next_action("learner-1", config).item_id == "t-near"

    def test_results_are_per_learner(self, seeded):
        seeded.record_transfer_attempt("learner-1", "session-1", "t-near", score=0.9)

        assert len(seeded.get_transfer_results("learner-1")) == 1
        assert seeded.get_transfer_results("learner-2") == []
        assert not seeded.is_skill_unlocked("learner-2", "basic")

    def test_low_mastery_skill_not_tested(self, engine, config):
        engine.register_transfer_tests([TransferGate.create_test("t-near", "basic", TransferType.NEAR)])

        action = engine.get_next_action("learner-1", config)

        assert action.type == ActionType.PRACTICE
        assert action.skill_id == "basic"

    def test_unknown_test_id(self, seeded):
        with pytest.raises(KeyError):
            seeded.record_transfer_attempt("learner-1", "session-1", "missing", score=1.0)

    def test_results_survive_export(self, seeded, basic_graph):
        seeded.record_transfer_attempt("learner-1", "session-1", "t-near", score=0.9)

        restored = create_deterministic_engine(basic_graph)
        restored.import_state(seeded.export_state())

        assert restored.get_transfer_results("learner-1") == seeded.get_transfer_results("learner-1")


class TestRecording:
    """Tests for events built from the engine's own clock and ID source."""

    def test_record_practice_uses_engine_context(self, basic_graph):
        engine = create_deterministic_engine(basic_graph, start_time=5_000)

        first = engine.record_practice("learner-1", "session-1", "basic", "b1", True, 900)
        second = engine.record_practice("learner-1", "session-1", "basic", "b2", False, 900)

        assert (first.id, second.id) == ("evt-0001", "evt-0002")
        assert first.timestamp == 5_000
        assert engine.get_event_log() == [first, second]
        assert engine.get_learner_model("learner-1").total_events == 2

    def test_unknown_skill_still_applied(self, engine):
        engine.record_practice("learner-1", "session-1", "ghost", "g1", True, 900)

        assert engine.get_learner_model("learner-1").total_events == 1
        assert [s.skill_id for s in engine.get_memory_states("learner-1")] == ["ghost"]


class TestLearnerMetrics:
    """Tests for get_learner_metrics()."""

    def test_unknown_learner(self, engine):
        metrics = get_learner_metrics(engine, "nobody", at_time=0)

        assert metrics.mastery_by_skill == {}
        assert metrics.next_reviews == []
        assert metrics.estimated_events_to_full_mastery == 0

    def test_metrics_after_practice(self, engine, factory_context):
        for event in _practice_stream(factory_context, [True, True]):
            engine.process_event(event)
        at_time = 2000 + THREE_DAYS_MS

        metrics = get_learner_metrics(engine, "learner-1", at_time=at_time)

        assert set(metrics.mastery_by_skill) == {"basic", "intermediate"}
        assert metrics.skills_mastered == 1
        assert metrics.skills_due == 1
        assert metrics.total_practice_events == 2
        assert 0 < metrics.retention_by_skill["basic"] < 0.9
        assert metrics.next_reviews[0].skill_id == "basic"
        assert metrics.next_reviews[0].overdue_days > 0
        # one unmastered skill: ceil(log(0.15) / log(0.9)) = 19
        assert metrics.estimated_events_to_full_mastery == 19

    def test_not_yet_due(self, engine, factory_context):
        engine.process_event(_practice_stream(factory_context, [True])[0])

        metrics = get_learner_metrics(engine, "learner-1", at_time=1000)

        assert metrics.skills_due == 0
        assert metrics.next_reviews[0].overdue_days < 0
        assert metrics.retention_by_skill["basic"] == 1.0

    def test_defaults_to_engine_clock(self, basic_graph):
        engine = create_deterministic_engine(basic_graph, start_time=7_000)
        engine.get_or_create_learner_model("learner-1")

        assert get_learner_metrics(engine, "learner-1").computed_at == 7_000

    @pytest.mark.parametrize(
        "p_learn,threshold,expected",
        [(0.1, 0.85, 19), (0.5, 0.75, 2), (1.0, 0.85, 1), (0.0, 0.85, None), (0.1, 1.0, None), (0.1, 0.0, 0)],
    )
    def test_events_to_mastery(self, p_learn, threshold, expected):
        assert events_to_mastery(p_learn, threshold) == expected
