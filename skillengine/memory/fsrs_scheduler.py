"""
FSRS memory scheduler.

Free Spaced Repetition Scheduler over three quantities per learner/skill:
- Stability (S): days until recall probability drops to 90%
- Difficulty (D): 0-1, drifts with review ratings
- Retrievability (R): recall probability now, R(t) = (1 + t / (9 * S)) ** -1

Ratings: 1 = Again, 2 = Hard, 3 = Good, 4 = Easy.

Review times come from the event being scheduled, never from the wall clock,
so replaying the same practice history yields the same review schedule.
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Iterable

MS_PER_DAY = 24 * 60 * 60 * 1000


class ReviewState(str, Enum):
    """Lifecycle of a memory trace."""
    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


class InvalidFSRSParamsError(ValueError):
    """Raised when FSRS parameters are outside their valid ranges."""
    pass


@dataclass(frozen=True)
class FSRSParams:
    """FSRS parameters (research-based defaults)."""

    # Stability after a first review rated Again, Hard, Good, Easy
    initial_stability: tuple[float, float, float, float] = (0.4, 0.9, 2.3, 5.7)
    difficulty_decay: float = 0.7
    stability_decay: float = 0.2
    requested_retention: float = 0.9
    max_interval_days: float = 365.0
    initial_difficulty: float = 0.5

    def validate(self) -> None:
        if len(self.initial_stability) != 4 or any(s <= 0 for s in self.initial_stability):
            raise InvalidFSRSParamsError(
                f"FSRS initial_stability needs four positive values, got {self.initial_stability}"
            )
        if not 0 < self.requested_retention <= 1:
            raise InvalidFSRSParamsError(
                f"FSRS requested_retention must be in (0, 1], got {self.requested_retention}"
            )
        if self.max_interval_days < 0:
            raise InvalidFSRSParamsError(
                f"FSRS max_interval_days must be non-negative, got {self.max_interval_days}"
            )
        if not 0 <= self.initial_difficulty <= 1:
            raise InvalidFSRSParamsError(
                f"FSRS initial_difficulty must be between 0 and 1, got {self.initial_difficulty}"
            )

    @classmethod
    def from_settings(cls, settings: Any = None) -> FSRSParams:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_fsrs_config())


@dataclass
class MemoryState:
    """Review schedule for one learner/skill pair."""

    skill_id: str
    stability: float
    difficulty: float
    last_review: int
    next_review: int
    success_count: int = 0
    failure_count: int = 0
    state: ReviewState = ReviewState.NEW

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        return data


@dataclass
class MemoryStatistics:
    """Aggregate view over a learner's memory states."""

    total_items: int
    due_items: int
    average_retention: float
    items_by_state: dict[str, int] = field(default_factory=dict)


def calculate_retention(stability: float, elapsed_days: float) -> float:
    """R(t) = (1 + t / (9 * S)) ** -1."""
    if elapsed_days <= 0:
        return 1.0
    if stability <= 0:
        return 0.0
    return (1 + elapsed_days / (9 * stability)) ** -1


def days_between(from_time: int, to_time: int) -> float:
    return max(0.0, (to_time - from_time) / MS_PER_DAY)


class FSRSScheduler:
    """
    Create and reschedule MemoryStates.

    Usage:
        scheduler = FSRSScheduler()
        state = scheduler.create_state("basic", timestamp=event.timestamp)
        state = scheduler.schedule_review(state, recalled=True, rating=3, timestamp=event.timestamp)
    """

    def __init__(self, params: FSRSParams | None = None):
        self.params = params or FSRSParams()
        self.params.validate()

    def create_state(self, skill_id: str, timestamp: int) -> MemoryState:
        """New trace, due immediately."""
        return MemoryState(
            skill_id=skill_id,
            stability=self.params.initial_stability[2],
            difficulty=self.params.initial_difficulty,
            last_review=timestamp,
            next_review=timestamp,
        )

    def schedule_review(
        self,
        state: MemoryState,
        recalled: bool,
        rating: int,
        timestamp: int,
    ) -> MemoryState:
        """
        Apply one review and compute the next due time.

        Args:
            state: Current memory state (not modified)
            recalled: Whether the learner answered correctly
            rating: 1 (Again) to 4 (Easy)
            timestamp: Review time in ms, taken from the event

        Returns:
            New MemoryState
        """
        if rating not in (1, 2, 3, 4):
            raise ValueError(f"FSRS rating must be 1-4, got {rating}")

        elapsed_days = days_between(state.last_review, timestamp)
        difficulty = self._update_difficulty(state.difficulty, rating)

        if rating == 1:
            stability = self.params.initial_stability[0]
            new_state = ReviewState.LEARNING if state.state == ReviewState.NEW else ReviewState.RELEARNING
        elif state.state in (ReviewState.NEW, ReviewState.LEARNING):
            stability = self.params.initial_stability[rating - 1]
            new_state = ReviewState.REVIEW if rating >= 3 else ReviewState.LEARNING
        else:
            stability = self._update_stability(state.stability, state.difficulty, elapsed_days, rating)
            new_state = ReviewState.REVIEW

        interval_days = min(self._interval_days(stability), self.params.max_interval_days)

        return replace(
            state,
            stability=stability,
            difficulty=difficulty,
            last_review=timestamp,
            next_review=timestamp + int(interval_days * MS_PER_DAY),
            success_count=state.success_count + (1 if recalled else 0),
            failure_count=state.failure_count + (0 if recalled else 1),
            state=new_state,
        )

    @staticmethod
    def rating_for(correct: bool) -> int:
        """Practice answers map to Good (3) or Again (1)."""
        return 3 if correct else 1

    def get_due_states(self, states: Iterable[MemoryState], at_time: int) -> list[MemoryState]:
        """States due at at_time, most overdue first, ties by skill id."""
        due = [s for s in states if s.next_review <= at_time]
        return sorted(due, key=lambda s: (s.next_review, s.skill_id))

    def get_retention(self, state: MemoryState, at_time: int) -> float:
        return calculate_retention(state.stability, days_between(state.last_review, at_time))

    def get_statistics(self, states: Iterable[MemoryState], at_time: int) -> MemoryStatistics:
        states = list(states)
        by_state = {s.value: 0 for s in ReviewState}
        for state in states:
            by_state[state.state.value] += 1

        return MemoryStatistics(
            total_items=len(states),
            due_items=len(self.get_due_states(states, at_time)),
            average_retention=(
                sum(self.get_retention(s, at_time) for s in states) / len(states) if states else 0.0
            ),
            items_by_state=by_state,
        )

    # -------------------------------------------------------------------------
    # Formula helpers
    # -------------------------------------------------------------------------

    def _interval_days(self, stability: float) -> float:
        """interval = S * 9 * (1 / R - 1) for requested retention R."""
        retention = self.params.requested_retention
        if retention >= 1:
            return 0.0
        return stability * 9 * (1 / retention - 1)

    def _update_difficulty(self, difficulty: float, rating: int) -> float:
        adjustment = -(rating - 3) * 0.1 * self.params.difficulty_decay
        return max(0.1, min(0.9, difficulty + adjustment))

    def _update_stability(self, stability: float, difficulty: float, elapsed_days: float, rating: int) -> float:
        """
        S' = S * (1 + e^w * (11 - D) * S^-w * (e^(w * (1 - R)) - 1)) * modifier

        D is rescaled to 0-10; the rating modifier is 0.8 (Hard), 1.0 (Good), 1.3 (Easy).
        """
        retrievability = calculate_retention(stability, elapsed_days)
        w = self.params.stability_decay
        d = difficulty * 10

        new_stability = stability * (
            1 + math.exp(w) * (11 - d) * stability ** -w * (math.exp(w * (1 - retrievability)) - 1)
        )
        new_stability *= {2: 0.8, 3: 1.0, 4: 1.3}[rating]
        return max(0.1, new_stability)
