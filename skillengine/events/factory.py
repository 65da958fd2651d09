"""
Event factory.

Every event reads its timestamp from an injected clock and its ID from an
injected ID generator. Nothing in the engine core reads the wall clock or a
random source on its own: hosts that want real time opt in explicitly with
create_event_factory_context() defaults.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from skillengine.events.models import (
    BaseEvent,
    DiagnosticEvent,
    DiagnosticSkillResult,
    PracticeEvent,
    SessionEndEvent,
    SessionStartEvent,
    TransferTestEvent,
)

if TYPE_CHECKING:
    from skillengine.engine.models import SessionConfig
    from skillengine.graph.skill_graph import SkillGraph

ClockFn = Callable[[], int]
IdGeneratorFn = Callable[[], str]


def default_clock() -> int:
    """Wall-clock milliseconds. Non-deterministic; inject a fixed clock for replay."""
    return int(time.time() * 1000)


def default_id_generator() -> str:
    """Random UUID4. Non-deterministic; inject a counter for replay."""
    return str(uuid.uuid4())


def create_deterministic_id_generator(prefix: str = "evt") -> IdGeneratorFn:
    """Incrementing IDs: evt-0001, evt-0002, ..."""
    counter = 0

    def next_id() -> str:
        nonlocal counter
        counter += 1
        return f"{prefix}-{counter:04d}"

    return next_id


def create_fixed_clock(start: int = 0, step: int = 0) -> ClockFn:
    """Clock returning start, start + step, start + 2*step, ..."""
    current = start - step

    def tick() -> int:
        nonlocal current
        current += step
        return current

    return tick


@dataclass(frozen=True)
class EventFactoryContext:
    """Injected time and identity sources."""

    clock: ClockFn
    id_generator: IdGeneratorFn


def create_event_factory_context(
    clock: Optional[ClockFn] = None,
    id_generator: Optional[IdGeneratorFn] = None,
) -> EventFactoryContext:
    return EventFactoryContext(
        clock=clock or default_clock,
        id_generator=id_generator or default_id_generator,
    )


def validate_event(event: BaseEvent, graph: Optional[SkillGraph] = None) -> tuple[bool, list[str]]:
    """
    Check an event against the skill graph it will be applied to.

    Field shapes are enforced by the models themselves; this covers what they
    cannot see: skills outside the graph and inconsistent diagnostic results.

    Returns:
        (valid, errors)
    """
    errors: list[str] = []

    def check_skill(skill_id: str) -> None:
        if graph is not None and skill_id not in graph:
            errors.append(f"Unknown skill_id {skill_id!r}")

    if isinstance(event, (PracticeEvent, TransferTestEvent)):
        check_skill(event.skill_id)
    elif isinstance(event, DiagnosticEvent):
        seen: set[str] = set()
        for result in event.results:
            check_skill(result.skill_id)
            if result.skill_id in seen:
                errors.append(f"Duplicate diagnostic result for {result.skill_id!r}")
            seen.add(result.skill_id)
            if event.skills_assessed and result.skill_id not in event.skills_assessed:
                errors.append(f"Result for {result.skill_id!r} is not in skills_assessed")
            if result.items_correct > result.items_attempted:
                errors.append(
                    f"Result for {result.skill_id!r} has more items correct than attempted"
                )

    return not errors, errors


# =============================================================================
# FACTORIES
# =============================================================================

def create_practice_event(
    ctx: EventFactoryContext,
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
    """Create an immutable practice event."""
    return PracticeEvent(
        id=ctx.id_generator(),
        learner_id=learner_id,
        session_id=session_id,
        timestamp=ctx.clock(),
        skill_id=skill_id,
        item_id=item_id,
        correct=correct,
        latency_ms=latency_ms,
        confidence=confidence,
        error_category=error_category,
    )


def create_diagnostic_event(
    ctx: EventFactoryContext,
    learner_id: str,
    session_id: str,
    skills_assessed: Iterable[str],
    results: Iterable[DiagnosticSkillResult | dict[str, Any]],
) -> DiagnosticEvent:
    return DiagnosticEvent(
        id=ctx.id_generator(),
        learner_id=learner_id,
        session_id=session_id,
        timestamp=ctx.clock(),
        skills_assessed=tuple(skills_assessed),
        results=tuple(
            r if isinstance(r, DiagnosticSkillResult) else DiagnosticSkillResult(**r)
            for r in results
        ),
    )


def create_transfer_test_event(
    ctx: EventFactoryContext,
    learner_id: str,
    session_id: str,
    test_id: str,
    skill_id: str,
    transfer_type: str,
    score: float,
    passed: bool,
) -> TransferTestEvent:
    return TransferTestEvent(
        id=ctx.id_generator(),
        learner_id=learner_id,
        session_id=session_id,
        timestamp=ctx.clock(),
        test_id=test_id,
        skill_id=skill_id,
        transfer_type=getattr(transfer_type, "value", transfer_type),
        score=score,
        passed=passed,
    )


def create_session_start_event(
    ctx: EventFactoryContext,
    learner_id: str,
    session_id: str,
    config: SessionConfig,
) -> SessionStartEvent:
    return SessionStartEvent(
        id=ctx.id_generator(),
        learner_id=learner_id,
        session_id=session_id,
        timestamp=ctx.clock(),
        config=config.to_dict(),
    )


def create_session_end_event(
    ctx: EventFactoryContext,
    learner_id: str,
    session_id: str,
    summary: dict[str, Any],
) -> SessionEndEvent:
    return SessionEndEvent(
        id=ctx.id_generator(),
        learner_id=learner_id,
        session_id=session_id,
        timestamp=ctx.clock(),
        summary=dict(summary),
    )
