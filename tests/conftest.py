"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from skillengine.diagnostic import ItemSkillMapping  # noqa: E402
from skillengine.events import (  # noqa: E402
    create_deterministic_id_generator,
    create_event_factory_context,
    create_fixed_clock,
)
from skillengine.graph import Skill, SkillGraph  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (engine + state store)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def basic_graph():
    """Two skills: basic -> intermediate."""
    return SkillGraph([
        Skill(id="basic", name="Basic Skill"),
        Skill(id="intermediate", name="Intermediate Skill", prerequisites=["basic"]),
    ])


@pytest.fixture
def diamond_graph():
    """a -> b, a -> c, (b, c) -> d."""
    return SkillGraph([
        Skill(id="d", name="D", prerequisites=["b", "c"]),
        Skill(id="c", name="C", prerequisites=["a"]),
        Skill(id="b", name="B", prerequisites=["a"]),
        Skill(id="a", name="A"),
    ])


@pytest.fixture
def item_mappings():
    """Diagnostic items for basic_graph."""
    return [
        ItemSkillMapping(item_id="b1", primary_skill_id="basic", difficulty=0.3),
        ItemSkillMapping(item_id="b2", primary_skill_id="basic", difficulty=0.5),
        ItemSkillMapping(item_id="b3", primary_skill_id="basic", difficulty=0.7),
        ItemSkillMapping(item_id="i1", primary_skill_id="intermediate", difficulty=0.5),
        ItemSkillMapping(item_id="i2", primary_skill_id="intermediate", difficulty=0.8),
    ]


@pytest.fixture
def factory_context():
    """Event factory context with a 1s-step clock and evt-0001 style IDs."""
    return create_event_factory_context(
        clock=create_fixed_clock(start=1_000, step=1_000),
        id_generator=create_deterministic_id_generator(),
    )


@pytest.fixture
def sample_graph_document():
    """Provide a sample skill graph document."""
    return {
        "version": "1.0.0",
        "skills": [
            {"id": "basic", "name": "Basic Skill", "prerequisites": []},
            {
                "id": "intermediate",
                "name": "Intermediate Skill",
                "prerequisites": ["basic"],
                "category": "core",
                "difficulty": 0.6,
            },
        ],
    }
