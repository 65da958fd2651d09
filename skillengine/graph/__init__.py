"""
Skill graph: DAG structure, validation, ordering, and JSON loading.
"""
from skillengine.graph.loader import (
    SKILL_GRAPH_SCHEMA_VERSION,
    SkillGraphDocument,
    SkillGraphLoadError,
    export_skill_graph,
    load_skill_graph,
    load_skill_graph_file,
    parse_skill_graph,
)
from skillengine.graph.skill_graph import (
    GraphErrorType,
    Skill,
    SkillGraph,
    SkillGraphError,
    SkillGraphValidationResult,
)

__all__ = [
    "Skill",
    "SkillGraph",
    "SkillGraphError",
    "SkillGraphValidationResult",
    "GraphErrorType",
    # Loader
    "SKILL_GRAPH_SCHEMA_VERSION",
    "SkillGraphDocument",
    "SkillGraphLoadError",
    "load_skill_graph",
    "load_skill_graph_file",
    "parse_skill_graph",
    "export_skill_graph",
]
