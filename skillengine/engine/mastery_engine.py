"""
Deterministic Mastery Engine.

Event-sourced learner mastery tracking over a shared SkillGraph:
- Event processing pipeline (practice, diagnostic, transfer, session events)
- BKT mastery plus FSRS memory state per learner/skill
- Next-action sequencing: due reviews, transfer tests, then new practice
- Replay of an event log
- Export/import of the full learner state

DETERMINISM: the engine never reads the wall clock or a random source.
Time and identity come from the injected EventFactoryContext, and model
updates depend only on prior state and the event itself.

Concurrency: not thread-safe. Hosts serialize access per engine instance.
"""
from __future__ import annotations

from typing import Iterable, Mapping, Optional

from loguru import logger

from skillengine.engine.models import ActionType, LearnerProgress, SessionAction, SessionConfig
from skillengine.engine.state import decode_state, encode_state
from skillengine.events.factory import (
    EventFactoryContext,
    create_deterministic_id_generator,
    create_fixed_clock,
    create_practice_event,
    create_transfer_test_event,
    validate_event,
)
from skillengine.events.models import (
    BaseEvent,
    DiagnosticEvent,
    PracticeEvent,
    SessionEndEvent,
    SessionStartEvent,
    TransferTestEvent,
)
from skillengine.graph.skill_graph import SkillGraph
from skillengine.learner.bkt_engine import BKTEngine, BKTParams, MasteryUpdate
from skillengine.learner.models import LearnerModel
from skillengine.memory.fsrs_scheduler import MS_PER_DAY, FSRSParams, FSRSScheduler, MemoryState
from skillengine.transfer.transfer_gate import (
    TransferGate,
    TransferGateConfig,
    TransferTest,
    TransferTestResult,
)

# Lower bound of the "learning" band in progress summaries
LEARNING_FLOOR = 0.3

# pMastery at which pending transfer tests are served
TRANSFER_TEST_THRESHOLD = 0.8

REVIEW_BASE_PRIORITY = 50
REVIEW_PRIORITY_PER_OVERDUE_DAY = 2.0
TRANSFER_TEST_PRIORITY = 75


class MasteryEngine:
    """
    Maintains one LearnerModel per learner.

    Usage:
        engine = MasteryEngine(graph)
        engine.process_event(event)
        action = engine.get_next_action("learner-1", SessionConfig())
        blob = engine.export_state()
    """

    def __init__(
        self,
        graph: SkillGraph,
        bkt_params: Optional[BKTParams] = None,
        context: Optional[EventFactoryContext] = None,
        fsrs_params: Optional[FSRSParams] = None,
        transfer_config: Optional[TransferGateConfig] = None,
    ):
        self.graph = graph
        self.learner_engine = BKTEngine(bkt_params)
        self.scheduler = FSRSScheduler(fsrs_params)
        self.transfer_gate = TransferGate(transfer_config)
        self.context = context or EventFactoryContext(
            clock=create_fixed_clock(0),
            id_generator=create_deterministic_id_generator(),
        )

        self._learner_models: dict[str, LearnerModel] = {}
        self._memory_states: dict[str, dict[str, MemoryState]] = {}
        self._transfer_results: dict[str, list[TransferTestResult]] = {}
        self._transfer_tests: dict[str, TransferTest] = {}
        self._event_log: list[BaseEvent] = []

    # =========================================================================
    # Event processing
    # =========================================================================

    def process_event(self, event: BaseEvent) -> Optional[MasteryUpdate]:
        """
        Record an event and update learner state.

        Events that reference skills outside the graph are still applied;
        each problem found by validate_event() is logged as a warning.

        Returns:
            MasteryUpdate for practice events, None otherwise
        """
        valid, errors = validate_event(event, self.graph)
        if not valid:
            for error in errors:
                logger.warning(f"Event {event.id}: {error}")

        self._event_log.append(event)

        if isinstance(event, PracticeEvent):
            return self._process_practice_event(event)
        if isinstance(event, DiagnosticEvent):
            self._process_diagnostic_event(event)
        elif isinstance(event, TransferTestEvent):
            self._process_transfer_test_event(event)
        elif isinstance(event, (SessionStartEvent, SessionEndEvent)):
            logger.debug(f"Session event {event.type} for {event.learner_id}/{event.session_id}")
        else:
            logger.warning(f"Unhandled event type {type(event).__name__} ({event.id})")
        return None

    def _process_practice_event(self, event: PracticeEvent) -> MasteryUpdate:
        model = self._ensure_model(event.learner_id, event.timestamp)
        update = self.learner_engine.update_model(model, event)

        states = self._memory_states.setdefault(event.learner_id, {})
        state = states.get(event.skill_id)
        if state is None:
            state = self.scheduler.create_state(event.skill_id, event.timestamp)
        states[event.skill_id] = self.scheduler.schedule_review(
            state,
            recalled=event.correct,
            rating=self.scheduler.rating_for(event.correct),
            timestamp=event.timestamp,
        )
        return update

    def _process_diagnostic_event(self, event: DiagnosticEvent) -> None:
        estimates = {result.skill_id: result.score for result in event.results}
        self.seed_from_diagnostic(event.learner_id, estimates, event.timestamp)

    def _process_transfer_test_event(self, event: TransferTestEvent) -> None:
        self._ensure_model(event.learner_id, event.timestamp)
        self._transfer_results.setdefault(event.learner_id, []).append(
            TransferTestResult(
                test_id=event.test_id,
                skill_id=event.skill_id,
                passed=event.passed,
                score=event.score,
                timestamp=event.timestamp,
            )
        )
        logger.debug(
            f"Transfer test {event.test_id} for {event.learner_id}: "
            f"{'passed' if event.passed else 'failed'} ({event.score:.2f})"
        )

    def seed_from_diagnostic(
        self,
        learner_id: str,
        estimates: Mapping[str, float],
        timestamp: Optional[int] = None,
    ) -> LearnerModel:
        """Initialize a learner's priors from diagnostic estimates."""
        if timestamp is None:
            timestamp = self.context.clock()
        model = self._ensure_model(learner_id, timestamp)
        self.learner_engine.initialize_from_diagnostic(model, estimates, timestamp)
        logger.info(f"Seeded {len(estimates)} skill priors for {learner_id} from diagnostic")
        return model

    def record_practice(
        self,
        learner_id: str,
        session_id: str,
        skill_id: str,
        item_id: str,
        correct: bool,
        latency_ms: int,
        *,
        confidence: Optional[int] = None,
        error_category: Optional[str] = None,
    ) -> PracticeEvent:
        """Build a practice event from the engine's clock and ID source, then process it."""
        event = create_practice_event(
            self.context,
            learner_id,
            session_id,
            skill_id,
            item_id,
            correct,
            latency_ms,
            confidence=confidence,
            error_category=error_category,
        )
        self.process_event(event)
        return event

    def record_transfer_attempt(
        self,
        learner_id: str,
        session_id: str,
        test_id: str,
        score: float,
    ) -> TransferTestEvent:
        """
        Score an attempt at a registered transfer test and process the result.

        Raises:
            KeyError: if no test with test_id is registered
        """
        test = self._transfer_tests.get(test_id)
        if test is None:
            raise KeyError(f"Unknown transfer test: {test_id}")

        event = create_transfer_test_event(
            self.context,
            learner_id,
            session_id,
            test_id=test.id,
            skill_id=test.skill_id,
            transfer_type=test.transfer_type,
            score=score,
            passed=self.transfer_gate.passes(test, score),
        )
        self.process_event(event)
        return event

    def replay_events(self, events: Iterable[BaseEvent]) -> None:
        """Clear all learner state and reprocess events in order."""
        self._learner_models = {}
        self._memory_states = {}
        self._transfer_results = {}
        self._event_log = []
        count = 0
        for event in events:
            self.process_event(event)
            count += 1
        logger.info(f"Replayed {count} events into {len(self._learner_models)} learner models")

    # =========================================================================
    # Learner models
    # =========================================================================

    def _ensure_model(self, learner_id: str, timestamp: int) -> LearnerModel:
        model = self._learner_models.get(learner_id)
        if model is None:
            model = self.learner_engine.create_model(learner_id, self.graph, timestamp)
            self._learner_models[learner_id] = model
            logger.debug(f"Created learner model for {learner_id}")
        return model

    def get_or_create_learner_model(self, learner_id: str) -> LearnerModel:
        """Return the learner's model, creating it at the default prior if absent."""
        model = self._learner_models.get(learner_id)
        if model is None:
            model = self._ensure_model(learner_id, self.context.clock())
        return model

    def get_learner_model(self, learner_id: str) -> Optional[LearnerModel]:
        """Return the learner's model, or None if no model exists yet."""
        return self._learner_models.get(learner_id)

    def learner_ids(self) -> list[str]:
        return sorted(self._learner_models)

    def remove_learner(self, learner_id: str) -> bool:
        """Explicit host-driven deletion of a learner and their review history."""
        self._memory_states.pop(learner_id, None)
        self._transfer_results.pop(learner_id, None)
        return self._learner_models.pop(learner_id, None) is not None

    def get_event_log(self) -> list[BaseEvent]:
        return list(self._event_log)

    def get_memory_states(self, learner_id: str) -> list[MemoryState]:
        """FSRS states for skills the learner has practiced, by skill id."""
        states = self._memory_states.get(learner_id, {})
        return [states[skill_id] for skill_id in sorted(states)]

    # =========================================================================
    # Transfer tests
    # =========================================================================

    def register_transfer_tests(self, tests: Iterable[TransferTest]) -> None:
        """Add or replace transfer tests, keyed by test id."""
        for test in tests:
            self._transfer_tests[test.id] = test

    def get_transfer_tests(self) -> list[TransferTest]:
        return [self._transfer_tests[test_id] for test_id in sorted(self._transfer_tests)]

    def get_transfer_results(self, learner_id: str) -> list[TransferTestResult]:
        return list(self._transfer_results.get(learner_id, []))

    def get_pending_transfer_tests(self, learner_id: str, skill_id: str) -> list[TransferTest]:
        return self.transfer_gate.get_pending_tests(
            skill_id, self._transfer_tests.values(), self._transfer_results.get(learner_id, [])
        )

    def is_skill_unlocked(self, learner_id: str, skill_id: str) -> bool:
        """True once the learner has passed every required transfer test for the skill."""
        return self.transfer_gate.is_skill_unlocked(
            skill_id, self._transfer_tests.values(), self._transfer_results.get(learner_id, [])
        )

    # =========================================================================
    # Sequencing
    # =========================================================================

    def _eligible_skills(self, model: LearnerModel, threshold: float) -> tuple[list[str], bool]:
        """
        Skills ready to practice, in topological order.

        Returns:
            (eligible skill ids, whether every skill is already mastered)
        """
        eligible: list[str] = []
        for skill_id in self.graph.get_topological_order():
            if model.p_mastery(skill_id) >= threshold:
                continue
            prerequisites = self.graph.get_all_prerequisites(skill_id)
            if all(model.p_mastery(p) >= threshold for p in prerequisites):
                eligible.append(skill_id)

        # Checked over all skills: ones on a residual cycle are absent from the order
        all_mastered = all(model.p_mastery(s) >= threshold for s in self.graph.skills)
        return eligible, all_mastered

    def _practice_action(self, model: LearnerModel, skill_id: str) -> SessionAction:
        p_mastery = model.p_mastery(skill_id)
        leverage = len(self.graph.get_dependents(skill_id)) + 1
        return SessionAction(
            type=ActionType.PRACTICE,
            skill_id=skill_id,
            reason=f"Prerequisites mastered; current mastery {round(p_mastery * 100)}%",
            priority=40 + leverage,
            p_mastery=p_mastery,
        )

    def _review_actions(self, model: LearnerModel, at_time: int) -> list[SessionAction]:
        """Due reviews for skills in the graph, most overdue first."""
        states = self._memory_states.get(model.learner_id, {})
        due = self.scheduler.get_due_states(
            (s for s in states.values() if s.skill_id in self.graph), at_time
        )
        actions = []
        for state in due:
            overdue_days = (at_time - state.next_review) / MS_PER_DAY
            actions.append(
                SessionAction(
                    type=ActionType.REVIEW,
                    skill_id=state.skill_id,
                    reason=f"Spaced review due ({overdue_days:.1f} days overdue)",
                    priority=min(100.0, REVIEW_BASE_PRIORITY + overdue_days * REVIEW_PRIORITY_PER_OVERDUE_DAY),
                    p_mastery=model.p_mastery(state.skill_id),
                )
            )
        return actions

    def _transfer_actions(self, model: LearnerModel) -> list[SessionAction]:
        """Next pending transfer test per high-mastery skill, in topological order."""
        if not self._transfer_tests:
            return []
        completed = self._transfer_results.get(model.learner_id, [])
        actions = []
        for skill_id in self.graph.get_topological_order():
            p_mastery = model.p_mastery(skill_id)
            if p_mastery < TRANSFER_TEST_THRESHOLD:
                continue
            test = self.transfer_gate.get_next_test(skill_id, self._transfer_tests.values(), completed)
            if test is None:
                continue
            actions.append(
                SessionAction(
                    type=ActionType.TRANSFER_TEST,
                    skill_id=skill_id,
                    reason=f"Verify {test.transfer_type.value} transfer before unlocking",
                    priority=TRANSFER_TEST_PRIORITY,
                    p_mastery=p_mastery,
                    item_id=test.id,
                )
            )
        return actions

    def get_next_action(
        self,
        learner_id: str,
        session_config: SessionConfig,
        at_time: Optional[int] = None,
    ) -> SessionAction:
        """
        Recommend the next learning action.

        In order:
        1. With enforce_spaced_retrieval, the most overdue review at at_time
        2. With require_transfer_tests, the first pending transfer test for a
           skill at or above TRANSFER_TEST_THRESHOLD
        3. The first skill in topological order whose prerequisites are all at
           or above the mastery threshold while its own mastery is below it
        4. COMPLETE when every skill is mastered, otherwise REST

        Args:
            at_time: Evaluation time in ms. Defaults to the learner model's
                last update so the answer depends only on processed events.
        """
        model = self.get_or_create_learner_model(learner_id)
        if at_time is None:
            at_time = model.last_updated

        if session_config.enforce_spaced_retrieval:
            reviews = self._review_actions(model, at_time)
            if reviews:
                return reviews[0]

        if session_config.require_transfer_tests:
            transfers = self._transfer_actions(model)
            if transfers:
                return transfers[0]

        eligible, all_mastered = self._eligible_skills(model, session_config.mastery_threshold)
        if eligible:
            return self._practice_action(model, eligible[0])
        if all_mastered:
            return SessionAction(type=ActionType.COMPLETE, reason="All skills mastered")
        return SessionAction(type=ActionType.REST, reason="No skill is currently reachable")

    def plan_session(
        self,
        learner_id: str,
        session_config: SessionConfig,
        at_time: Optional[int] = None,
    ) -> list[SessionAction]:
        """
        Due reviews, transfer tests and practicable skills, highest priority
        first, capped at target_items. Equal priorities keep topological order.
        """
        model = self.get_or_create_learner_model(learner_id)
        if at_time is None:
            at_time = model.last_updated

        actions: list[SessionAction] = []
        if session_config.enforce_spaced_retrieval:
            actions.extend(self._review_actions(model, at_time))
        if session_config.require_transfer_tests:
            actions.extend(self._transfer_actions(model))

        planned = {a.skill_id for a in actions}
        eligible, _ = self._eligible_skills(model, session_config.mastery_threshold)
        actions.extend(
            self._practice_action(model, skill_id) for skill_id in eligible if skill_id not in planned
        )

        if not actions:
            return [self.get_next_action(learner_id, session_config, at_time)]
        actions.sort(key=lambda a: -a.priority)
        return actions[: session_config.target_items]

    def get_learner_progress(self, learner_id: str, mastery_threshold: float = 0.85) -> LearnerProgress:
        """Summary counts over the graph's skills."""
        total_skills = self.graph.size
        model = self.get_learner_model(learner_id)
        if model is None:
            return LearnerProgress(
                learner_id=learner_id,
                total_skills=total_skills,
                mastered_skills=0,
                learning_skills=0,
                not_started_skills=total_skills,
                average_mastery=0.0,
                total_events=0,
            )

        mastered = learning = 0
        total_mastery = 0.0
        for skill_id in self.graph.skills:
            p = model.p_mastery(skill_id)
            total_mastery += p
            if p >= mastery_threshold:
                mastered += 1
            elif p >= LEARNING_FLOOR:
                learning += 1

        return LearnerProgress(
            learner_id=learner_id,
            total_skills=total_skills,
            mastered_skills=mastered,
            learning_skills=learning,
            not_started_skills=total_skills - mastered - learning,
            average_mastery=total_mastery / total_skills if total_skills else 0.0,
            total_events=model.total_events,
        )

    # =========================================================================
    # Persistence
    # =========================================================================

    def export_state(self) -> str:
        """Serialize learner models, memory states, transfer results and the event log."""
        blob = encode_state(
            self._learner_models,
            self._event_log,
            self.context.clock(),
            memory_states=self._memory_states,
            transfer_results=self._transfer_results,
        )
        logger.info(f"Exported state for {len(self._learner_models)} learners")
        return blob

    def import_state(self, data: str) -> None:
        """
        Replace all in-memory learner state with an exported string.

        All-or-nothing: the string is fully decoded before anything is
        replaced, so a failure leaves the current state untouched.
        Registered transfer tests are configuration and are kept.

        Raises:
            MalformedStateError: if the string cannot be decoded
        """
        envelope = decode_state(data)
        learner_models = {state.learner_id: state.to_model() for state in envelope.learner_models}
        memory_states = {
            entry.learner_id: {s.skill_id: s.to_state() for s in entry.states}
            for entry in envelope.memory_states
        }
        transfer_results = {
            entry.learner_id: [r.to_result() for r in entry.results]
            for entry in envelope.transfer_results
        }
        event_log = list(envelope.event_log)

        self._learner_models = learner_models
        self._memory_states = memory_states
        self._transfer_results = transfer_results
        self._event_log = event_log
        logger.info(f"Imported state v{envelope.version} for {len(learner_models)} learners")


def create_deterministic_engine(
    graph: SkillGraph,
    bkt_params: Optional[BKTParams] = None,
    start_time: int = 0,
) -> MasteryEngine:
    """Engine with a frozen clock and evt-0001 style IDs, for tests and replay."""
    context = EventFactoryContext(
        clock=create_fixed_clock(start_time),
        id_generator=create_deterministic_id_generator(),
    )
    return MasteryEngine(graph, bkt_params=bkt_params, context=context)
