"""
Setup script for skill-mastery-engine.

A small, self-contained skill-mastery modeling engine:

1. Skill Graph - DAG of skills with validation and deterministic ordering
2. Diagnostic - Cold-start item selection and mastery priors
3. Mastery Engine - Deterministic, event-sourced BKT learner tracking

The 'skillengine' command exposes graph, diagnostic, and state tools.
"""

from setuptools import find_packages, setup

setup(
    name="skill-mastery-engine",
    version="1.0.0",
    description="Deterministic skill graph, diagnostic, and learner mastery engine",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["skillengine", "skillengine.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "skillengine=skillengine.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning skill-graph knowledge-tracing bkt education",
)
