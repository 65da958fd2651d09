"""
Command line interface (Typer + Rich).
"""
from skillengine.cli.main import app, run

__all__ = ["app", "run"]
