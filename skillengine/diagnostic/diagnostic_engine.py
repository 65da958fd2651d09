"""
Diagnostic Engine for cold-start learner placement.

Selects a bounded, difficulty-spread item set (prerequisites assessed before
dependents) and converts right/wrong responses into per-skill mastery priors,
propagated across prerequisite edges.

Unknown items are skipped and skills without evidence fall back to the
default prior. Mapping-style responses are validated with
DiagnosticResponseDocument, so a non-boolean `correct` raises ValidationError.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StrictBool

from skillengine.graph.skill_graph import SkillGraph

DEFAULT_PRIOR = 0.3
MIN_ESTIMATE = 0.05
MAX_ESTIMATE = 0.95


# =============================================================================
# DATA MODELS
# =============================================================================

@dataclass
class ItemSkillMapping:
    """Which assessment item measures which skill(s)."""

    item_id: str
    primary_skill_id: str
    secondary_skill_ids: set[str] = field(default_factory=set)
    difficulty: float = 0.5


@dataclass
class DiagnosticResponse:
    """A learner's answer to one diagnostic item."""

    item_id: str
    correct: bool


class ItemSkillMappingDocument(BaseModel):
    """Wire shape of an ItemSkillMapping (items JSON files)."""

    model_config = ConfigDict(extra="forbid")

    item_id: str = Field(min_length=1)
    primary_skill_id: str = Field(min_length=1)
    secondary_skill_ids: list[str] = Field(default_factory=list)
    difficulty: float = Field(default=0.5, ge=0.0, le=1.0)

    def to_mapping(self) -> ItemSkillMapping:
        return ItemSkillMapping(
            item_id=self.item_id,
            primary_skill_id=self.primary_skill_id,
            secondary_skill_ids=set(self.secondary_skill_ids),
            difficulty=self.difficulty,
        )


class DiagnosticResponseDocument(BaseModel):
    """Wire shape of a DiagnosticResponse. `correct` must be a JSON boolean."""

    item_id: str = Field(min_length=1)
    correct: StrictBool

    def to_response(self) -> DiagnosticResponse:
        return DiagnosticResponse(item_id=self.item_id, correct=self.correct)


@dataclass
class DiagnosticConfig:
    """
    Diagnostic engine configuration.

    The boost factor is a calibration heuristic: when a learner masters skill B
    with estimate 0.8 and the factor is 0.9, each prerequisite A is raised to
    max(current, 0.72).
    """

    min_items_per_skill: int = 2
    max_items_per_skill: int = 5
    mastery_threshold: float = 0.7
    difficulty_weight: float = 0.3
    prerequisite_boost_factor: float = 0.9

    @classmethod
    def from_settings(cls, settings: Any = None) -> DiagnosticConfig:
        """Build from application settings (defaults to get_settings())."""
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_diagnostic_config())


@dataclass
class DiagnosticSummary:
    """Skills bucketed by diagnosed mastery, each in topological order."""

    total_skills: int
    mastered_skills: list[str]
    learning_skills: list[str]
    not_started_skills: list[str]

    @property
    def mastered_count(self) -> int:
        return len(self.mastered_skills)

    @property
    def learning_count(self) -> int:
        return len(self.learning_skills)

    @property
    def not_started_count(self) -> int:
        return len(self.not_started_skills)


@dataclass
class _SkillTally:
    items_attempted: int = 0
    items_correct: int = 0
    total_difficulty: float = 0.0


ResponseLike = Union[DiagnosticResponse, Mapping[str, Any]]


# =============================================================================
# DIAGNOSTIC ENGINE
# =============================================================================

class DiagnosticEngine:
    """
    Deterministic diagnostic item selection and result analysis.

    Usage:
        engine = DiagnosticEngine()
        items = engine.generate_diagnostic(graph, mappings, max_items=12)
        estimates = engine.analyze_results(graph, mappings, responses)
    """

    def __init__(self, config: Optional[DiagnosticConfig] = None):
        self.config = config or DiagnosticConfig()

    def generate_diagnostic(
        self,
        graph: SkillGraph,
        item_mappings: Iterable[ItemSkillMapping],
        max_items: int,
    ) -> list[str]:
        """
        Select diagnostic items.

        Args:
            graph: Validated skill graph
            item_mappings: Available items with skill mappings
            max_items: Upper bound on the number of items returned

        Returns:
            Item IDs in recommended order (prerequisite skills first)
        """
        if max_items <= 0:
            return []

        items_by_skill: dict[str, list[ItemSkillMapping]] = {}
        for mapping in item_mappings:
            items_by_skill.setdefault(mapping.primary_skill_id, []).append(mapping)

        skill_order = graph.get_topological_order()
        base_items_per_skill = max(
            self.config.min_items_per_skill,
            min(
                self.config.max_items_per_skill,
                max_items // max(1, len(skill_order)),
            ),
        )

        selected: list[str] = []
        seen: set[str] = set()

        for skill_id in skill_order:
            if len(selected) >= max_items:
                break

            skill_items = items_by_skill.get(skill_id)
            if not skill_items:
                continue

            sorted_items = sorted(skill_items, key=lambda m: (m.difficulty, m.item_id))
            target_count = min(
                base_items_per_skill,
                max_items - len(selected),
                len(sorted_items),
            )

            for idx in self._select_spaced_indices(len(sorted_items), target_count):
                item_id = sorted_items[idx].item_id
                if item_id not in seen:
                    seen.add(item_id)
                    selected.append(item_id)

        logger.debug(f"Generated diagnostic with {len(selected)} items over {len(skill_order)} skills")
        return selected

    def analyze_results(
        self,
        graph: SkillGraph,
        item_mappings: Iterable[ItemSkillMapping],
        responses: Iterable[ResponseLike],
    ) -> dict[str, float]:
        """
        Turn diagnostic responses into per-skill mastery estimates.

        Returns:
            skill_id -> estimate; every graph skill is present
        """
        item_lookup = {mapping.item_id: mapping for mapping in item_mappings}
        tallies: dict[str, _SkillTally] = {}

        for response in responses:
            item_id, correct = self._unpack_response(response)
            mapping = item_lookup.get(item_id)
            if mapping is None:
                logger.warning(f"Diagnostic response for unknown item {item_id} - skipping")
                continue

            self._tally(tallies, mapping.primary_skill_id, correct, mapping.difficulty)
            for secondary_id in sorted(mapping.secondary_skill_ids):
                self._tally(tallies, secondary_id, correct, mapping.difficulty * 0.5)

        estimates: dict[str, float] = {}
        for skill_id, tally in tallies.items():
            if tally.items_attempted == 0:
                estimates[skill_id] = DEFAULT_PRIOR
                continue

            accuracy = tally.items_correct / tally.items_attempted
            avg_difficulty = tally.total_difficulty / tally.items_attempted
            difficulty_adjustment = (avg_difficulty - 0.5) * self.config.difficulty_weight
            estimates[skill_id] = max(MIN_ESTIMATE, min(MAX_ESTIMATE, accuracy + difficulty_adjustment))

        return self.propagate_estimates(graph, estimates)

    def propagate_estimates(
        self,
        graph: SkillGraph,
        estimates: Mapping[str, float],
    ) -> dict[str, float]:
        """
        Raise prerequisite estimates under mastered skills.

        Walks reverse topological order; a skill at or above the mastery
        threshold lifts every transitive prerequisite to
        max(current, estimate * boost). Estimates are never lowered.
        """
        result = dict(estimates)
        skill_order = graph.get_topological_order()
        boost = self.config.prerequisite_boost_factor

        for skill_id in reversed(skill_order):
            estimate = result.get(skill_id)
            if estimate is None or estimate < self.config.mastery_threshold:
                continue

            for prereq_id in graph.get_all_prerequisites(skill_id):
                current = result.get(prereq_id, DEFAULT_PRIOR)
                result[prereq_id] = max(current, estimate * boost)

        for skill_id in skill_order:
            result.setdefault(skill_id, DEFAULT_PRIOR)

        return result

    def get_summary(self, graph: SkillGraph, estimates: Mapping[str, float]) -> DiagnosticSummary:
        """Bucket skills into mastered / learning / not started."""
        skill_order = graph.get_topological_order()
        mastered: list[str] = []
        learning: list[str] = []
        not_started: list[str] = []

        for skill_id in skill_order:
            estimate = estimates.get(skill_id, DEFAULT_PRIOR)
            if estimate >= self.config.mastery_threshold:
                mastered.append(skill_id)
            elif estimate >= DEFAULT_PRIOR:
                learning.append(skill_id)
            else:
                not_started.append(skill_id)

        return DiagnosticSummary(
            total_skills=len(skill_order),
            mastered_skills=mastered,
            learning_skills=learning,
            not_started_skills=not_started,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _select_spaced_indices(total: int, count: int) -> list[int]:
        """Evenly spaced indices across [0, total) for difficulty spread."""
        if count >= total:
            return list(range(total))
        if count <= 0:
            return []

        step = (total - 1) / (count - 1) if count > 1 else 0.0
        # Round half up
        return [math.floor(i * step + 0.5) for i in range(count)]

    @staticmethod
    def _tally(tallies: dict[str, _SkillTally], skill_id: str, correct: bool, difficulty: float) -> None:
        tally = tallies.setdefault(skill_id, _SkillTally())
        tally.items_attempted += 1
        tally.items_correct += 1 if correct else 0
        tally.total_difficulty += difficulty

    @staticmethod
    def _unpack_response(response: ResponseLike) -> tuple[str, bool]:
        if isinstance(response, DiagnosticResponse):
            return response.item_id, response.correct
        document = DiagnosticResponseDocument.model_validate(response)
        return document.item_id, document.correct
