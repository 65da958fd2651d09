"""
Skill Graph.

A directed acyclic graph of skills where an edge P -> S means P is a
prerequisite of S. Provides:
- Structural validation (missing prerequisites, cycles)
- Deterministic topological ordering (Kahn's algorithm, sorted levels)
- Transitive prerequisite / dependent traversal

All traversals use explicit stacks, so graph depth is bounded by memory
rather than the interpreter recursion limit.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from loguru import logger


# =============================================================================
# DATA MODELS
# =============================================================================

class GraphErrorType(str, Enum):
    """Validation error categories."""
    MISSING_PREREQUISITE = "MISSING_PREREQUISITE"
    CYCLE_DETECTED = "CYCLE_DETECTED"


@dataclass
class Skill:
    """A single node in the skill graph."""
    id: str
    name: str
    prerequisites: list[str] = field(default_factory=list)
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[float] = None  # 0-1

    def __post_init__(self):
        # Ordered set semantics: keep first occurrence
        self.prerequisites = list(dict.fromkeys(self.prerequisites))


@dataclass
class SkillGraphError:
    """A single structural problem found by validate()."""
    type: GraphErrorType
    message: str
    affected_skills: list[str] = field(default_factory=list)


@dataclass
class SkillGraphValidationResult:
    """Outcome of SkillGraph.validate()."""
    valid: bool
    errors: list[SkillGraphError] = field(default_factory=list)

    @property
    def messages(self) -> list[str]:
        return [error.message for error in self.errors]


# Three-color DFS markers
WHITE, GRAY, BLACK = 0, 1, 2


# =============================================================================
# SKILL GRAPH
# =============================================================================

class SkillGraph:
    """
    Mutable DAG of skills.

    Mutation (add_skill / remove_skill) never cascades: dangling prerequisite
    references are left in place and surface on the next validate() call.
    Callers must re-validate after mutation before relying on orderings.

    Usage:
        graph = SkillGraph([Skill("a", "A"), Skill("b", "B", ["a"])])
        if graph.validate().valid:
            order = graph.get_topological_order()  # ["a", "b"]
    """

    def __init__(self, skills: Iterable[Skill] = ()):
        self.skills: dict[str, Skill] = {}
        for skill in skills:
            self.skills[skill.id] = skill

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def add_skill(self, skill: Skill) -> None:
        """Add or replace a skill."""
        self.skills[skill.id] = skill

    def remove_skill(self, skill_id: str) -> bool:
        """Remove a skill. Returns False if it was not present."""
        return self.skills.pop(skill_id, None) is not None

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_skill(self, skill_id: str) -> Optional[Skill]:
        return self.skills.get(skill_id)

    def __contains__(self, skill_id: object) -> bool:
        return skill_id in self.skills

    def __len__(self) -> int:
        return len(self.skills)

    @property
    def size(self) -> int:
        """Number of skills in the graph."""
        return len(self.skills)

    def skill_ids(self) -> list[str]:
        """All skill IDs, sorted."""
        return sorted(self.skills)

    def _known_prerequisites(self, skill_id: str) -> list[str]:
        skill = self.skills.get(skill_id)
        if skill is None:
            return []
        return [p for p in skill.prerequisites if p in self.skills]

    def _dependents_index(self) -> dict[str, list[str]]:
        """Reverse adjacency: prerequisite id -> direct dependents."""
        index: dict[str, list[str]] = defaultdict(list)
        for skill_id, skill in self.skills.items():
            for prereq_id in skill.prerequisites:
                if prereq_id in self.skills:
                    index[prereq_id].append(skill_id)
        return index

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self) -> SkillGraphValidationResult:
        """
        Validate graph integrity.

        Checks:
        - Every prerequisite reference exists (one error per dangling ref)
        - No prerequisite cycles (one aggregated error)

        Returns:
            SkillGraphValidationResult with all errors found
        """
        errors: list[SkillGraphError] = []

        for skill_id, skill in self.skills.items():
            for prereq_id in skill.prerequisites:
                if prereq_id not in self.skills:
                    errors.append(
                        SkillGraphError(
                            type=GraphErrorType.MISSING_PREREQUISITE,
                            message=(
                                f'Skill "{skill_id}" references non-existent '
                                f'prerequisite "{prereq_id}"'
                            ),
                            affected_skills=[skill_id, prereq_id],
                        )
                    )

        cycle_skills = self._detect_cycles()
        if cycle_skills:
            errors.append(
                SkillGraphError(
                    type=GraphErrorType.CYCLE_DETECTED,
                    message=f"Cycle detected involving skills: {', '.join(cycle_skills)}",
                    affected_skills=cycle_skills,
                )
            )

        if errors:
            logger.debug(f"Skill graph validation found {len(errors)} error(s)")

        return SkillGraphValidationResult(valid=not errors, errors=errors)

    def _detect_cycles(self) -> list[str]:
        """
        Three-color DFS over prerequisite edges.

        When a GRAY node is reached again, every node on the current path from
        that node onward is part of a cycle. Returns the sorted union.
        """
        color = {skill_id: WHITE for skill_id in self.skills}
        cycle_nodes: set[str] = set()

        for root in self.skills:
            if color[root] != WHITE:
                continue

            path: list[str] = [root]
            color[root] = GRAY
            stack = [iter(self._known_prerequisites(root))]

            while stack:
                advanced = False
                for prereq_id in stack[-1]:
                    state = color[prereq_id]
                    if state == GRAY:
                        start = path.index(prereq_id)
                        cycle_nodes.update(path[start:])
                    elif state == WHITE:
                        color[prereq_id] = GRAY
                        path.append(prereq_id)
                        stack.append(iter(self._known_prerequisites(prereq_id)))
                        advanced = True
                        break

                if not advanced:
                    stack.pop()
                    color[path.pop()] = BLACK

        return sorted(cycle_nodes)

    # -------------------------------------------------------------------------
    # Ordering & traversal
    # -------------------------------------------------------------------------

    def get_topological_order(self) -> list[str]:
        """
        Skills in topological order (prerequisites before dependents).

        Kahn's algorithm processed level by level: each level is sorted once,
        which keeps the output deterministic without re-sorting per removal.
        Skills on a cycle never reach in-degree zero and are omitted.
        """
        in_degree = {
            skill_id: len(self._known_prerequisites(skill_id))
            for skill_id in self.skills
        }
        dependents = self._dependents_index()

        current_level = sorted(s for s, degree in in_degree.items() if degree == 0)
        result: list[str] = []
        processed: set[str] = set()

        while current_level:
            next_level: list[str] = []
            for skill_id in current_level:
                if skill_id in processed:
                    continue
                processed.add(skill_id)
                result.append(skill_id)

                for dependent_id in dependents.get(skill_id, ()):
                    in_degree[dependent_id] -= 1
                    if in_degree[dependent_id] == 0 and dependent_id not in processed:
                        next_level.append(dependent_id)

            next_level.sort()
            current_level = next_level

        return result

    def get_all_prerequisites(self, skill_id: str) -> list[str]:
        """
        All transitive prerequisites of a skill, deepest first (post-order).

        Folding a reduction over the result visits every prerequisite after
        its own prerequisites.
        """
        visited: set[str] = set()
        result: list[str] = []
        stack = [(skill_id, iter(self._known_prerequisites(skill_id)))]

        while stack:
            node, prereqs = stack[-1]
            for prereq_id in prereqs:
                if prereq_id not in visited:
                    visited.add(prereq_id)
                    stack.append((prereq_id, iter(self._known_prerequisites(prereq_id))))
                    break
            else:
                stack.pop()
                if stack:
                    result.append(node)

        return result

    def get_dependents(self, skill_id: str) -> list[str]:
        """Skills that directly or transitively require this skill, sorted."""
        dependents = self._dependents_index()
        visited: set[str] = set()
        stack = [skill_id]

        while stack:
            current = stack.pop()
            for dependent_id in dependents.get(current, ()):
                if dependent_id not in visited:
                    visited.add(dependent_id)
                    stack.append(dependent_id)

        return sorted(visited)

    def is_prerequisite_of(self, skill_a: str, skill_b: str) -> bool:
        """True if skill_a is a direct or transitive prerequisite of skill_b."""
        return skill_a in self.get_all_prerequisites(skill_b)
