"""
Skill graph JSON loader.

Document shape:
    {"version": "1.0.0",
     "skills": [{"id", "name", "prerequisites", "description"?, "category"?, "difficulty"?}]}

Loading always runs SkillGraph.validate() and fails with every validation
message aggregated into a single SkillGraphLoadError.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from skillengine.graph.skill_graph import Skill, SkillGraph, SkillGraphError

SKILL_GRAPH_SCHEMA_VERSION = "1.0.0"


class SkillGraphLoadError(ValueError):
    """Raised when a skill graph document is malformed or the graph is invalid."""

    def __init__(self, message: str, errors: Optional[list[SkillGraphError]] = None):
        super().__init__(message)
        self.errors = errors or []


# =============================================================================
# DOCUMENT MODELS
# =============================================================================

class SkillDocument(BaseModel):
    """One skill entry as it appears on the wire."""

    id: str
    name: str
    prerequisites: list[str] = Field(default_factory=list)
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class SkillGraphDocument(BaseModel):
    """Top-level skill graph document."""

    version: str = SKILL_GRAPH_SCHEMA_VERSION
    skills: list[SkillDocument]

    @field_validator("version")
    @classmethod
    def supported_version(cls, value: str) -> str:
        if value != SKILL_GRAPH_SCHEMA_VERSION:
            raise ValueError(
                f"unsupported skill graph version {value!r}, expected {SKILL_GRAPH_SCHEMA_VERSION!r}"
            )
        return value

    @model_validator(mode="after")
    def unique_skill_ids(self) -> SkillGraphDocument:
        seen: set[str] = set()
        duplicates: set[str] = set()
        for skill in self.skills:
            if skill.id in seen:
                duplicates.add(skill.id)
            seen.add(skill.id)
        if duplicates:
            raise ValueError(f"duplicate skill ids: {', '.join(sorted(duplicates))}")
        return self


# =============================================================================
# LOAD / EXPORT
# =============================================================================

def load_skill_graph(data: dict[str, Any]) -> SkillGraph:
    """
    Build and validate a skill graph from a parsed JSON object.

    Args:
        data: Parsed document conforming to SkillGraphDocument

    Returns:
        Validated SkillGraph

    Raises:
        SkillGraphLoadError: if the document shape is wrong or the graph has
            missing prerequisites or cycles
    """
    try:
        document = SkillGraphDocument.model_validate(data)
    except ValidationError as e:
        raise SkillGraphLoadError(f"Malformed skill graph document: {e}") from e

    graph = SkillGraph(
        Skill(
            id=s.id,
            name=s.name,
            prerequisites=list(s.prerequisites),
            description=s.description,
            category=s.category,
            difficulty=s.difficulty,
        )
        for s in document.skills
    )

    result = graph.validate()
    if not result.valid:
        messages = "; ".join(result.messages)
        raise SkillGraphLoadError(f"Invalid skill graph: {messages}", result.errors)

    logger.info(f"Loaded skill graph v{document.version} with {graph.size} skills")
    return graph


def parse_skill_graph(text: str) -> SkillGraph:
    """Parse a JSON string and load it as a validated skill graph."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SkillGraphLoadError(f"Skill graph is not valid JSON: {e}") from e
    return load_skill_graph(data)


def load_skill_graph_file(path: Path | str) -> SkillGraph:
    """Read a skill graph JSON file from disk."""
    path = Path(path)
    return parse_skill_graph(path.read_text(encoding="utf-8"))


def export_skill_graph(graph: SkillGraph) -> dict[str, Any]:
    """
    Export a graph in the same shape load_skill_graph() accepts.

    Optional fields that are unset are omitted so load(export(g)) round-trips.
    """
    skills = []
    for skill in graph.skills.values():
        entry: dict[str, Any] = {
            "id": skill.id,
            "name": skill.name,
            "prerequisites": list(skill.prerequisites),
        }
        if skill.description is not None:
            entry["description"] = skill.description
        if skill.category is not None:
            entry["category"] = skill.category
        if skill.difficulty is not None:
            entry["difficulty"] = skill.difficulty
        skills.append(entry)

    return {"version": SKILL_GRAPH_SCHEMA_VERSION, "skills": skills}
