"""
Cold-start diagnostic assessment.
"""
from skillengine.diagnostic.diagnostic_engine import (
    DEFAULT_PRIOR,
    DiagnosticConfig,
    DiagnosticEngine,
    DiagnosticResponse,
    DiagnosticResponseDocument,
    DiagnosticSummary,
    ItemSkillMapping,
    ItemSkillMappingDocument,
)

__all__ = [
    "DiagnosticEngine",
    "DiagnosticConfig",
    "DiagnosticResponse",
    "DiagnosticSummary",
    "ItemSkillMapping",
    "DiagnosticResponseDocument",
    "ItemSkillMappingDocument",
    "DEFAULT_PRIOR",
]
