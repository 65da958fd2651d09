"""
Skill Engine CLI.

Commands:
- skillengine graph validate FILE       : Validate a skill graph document
- skillengine graph order FILE          : Print the topological order
- skillengine diagnostic generate ...   : Select diagnostic items
- skillengine diagnostic analyze ...    : Estimate mastery from responses
- skillengine state replay ...          : Replay an event log and export state
- skillengine state next ...            : Recommend the next action for a learner
- skillengine state metrics ...         : Mastery, retention and due reviews for a learner
"""
from __future__ import annotations

import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from loguru import logger
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.table import Table

from config import get_settings
from skillengine.diagnostic import (
    DiagnosticConfig,
    DiagnosticEngine,
    DiagnosticResponseDocument,
    ItemSkillMapping,
    ItemSkillMappingDocument,
)
from skillengine.engine import MalformedStateError, MasteryEngine, SessionConfig, get_learner_metrics
from skillengine.events.models import Event
from skillengine.graph import SkillGraph, SkillGraphLoadError, load_skill_graph_file

console = Console()

# ============================================================================
# TYPER APPS
# ============================================================================

app = typer.Typer(
    name="skillengine",
    help="Skill graph, diagnostic, and mastery engine tools",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

graph_app = typer.Typer(name="graph", help="Skill graph commands", no_args_is_help=True)
diagnostic_app = typer.Typer(name="diagnostic", help="Cold-start diagnostic commands", no_args_is_help=True)
state_app = typer.Typer(name="state", help="Learner state replay and sequencing", no_args_is_help=True)

app.add_typer(graph_app, name="graph")
app.add_typer(diagnostic_app, name="diagnostic")
app.add_typer(state_app, name="state")

_EVENT_ADAPTER = TypeAdapter(Event)
_ITEMS_ADAPTER = TypeAdapter(list[ItemSkillMappingDocument])
_RESPONSES_ADAPTER = TypeAdapter(list[DiagnosticResponseDocument])


# ============================================================================
# HELPERS
# ============================================================================

def _fail(message: str) -> None:
    console.print(f"✗ {message}", style="red", markup=False)
    raise typer.Exit(code=1)


def _load_graph(path: Path) -> SkillGraph:
    try:
        return load_skill_graph_file(path)
    except SkillGraphLoadError as e:
        _fail(str(e))
    except OSError as e:
        _fail(f"Cannot read {path}: {e}")


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        _fail(f"Cannot read JSON from {path}: {e}")


def _load_items(path: Path) -> list[ItemSkillMapping]:
    try:
        documents = _ITEMS_ADAPTER.validate_python(_read_json(path))
    except ValidationError as e:
        _fail(f"Invalid item mappings in {path}: {e}")
    return [document.to_mapping() for document in documents]


def _load_state(engine: MasteryEngine, state_file: Optional[Path], key: Optional[str]) -> None:
    """Import exported state from a file or the SQL store, if either is given."""
    blob: Optional[str] = None
    if state_file is not None:
        try:
            blob = state_file.read_text(encoding="utf-8")
        except OSError as e:
            _fail(f"Cannot read {state_file}: {e}")
    elif key is not None:
        from skillengine.persistence import SqlStateStore

        store = SqlStateStore()
        try:
            blob = store.load(key)
        finally:
            store.close()
        if blob is None:
            _fail(f"No stored state under key {key}")

    if blob is not None:
        try:
            engine.import_state(blob)
        except MalformedStateError as e:
            _fail(str(e))


# ============================================================================
# GRAPH COMMANDS
# ============================================================================

@graph_app.command("validate")
def graph_validate(
    path: Annotated[Path, typer.Argument(help="Skill graph JSON file")],
) -> None:
    """
    Validate a skill graph document.

    Reports every missing prerequisite and cycle, not just the first.
    """
    try:
        graph = load_skill_graph_file(path)
    except OSError as e:
        _fail(f"Cannot read {path}: {e}")
    except SkillGraphLoadError as e:
        if not e.errors:
            _fail(str(e))

        table = Table(title="Validation errors")
        table.add_column("Type", style="red")
        table.add_column("Message")
        table.add_column("Skills", style="dim")
        for error in e.errors:
            table.add_row(error.type.value, error.message, ", ".join(error.affected_skills))
        console.print(table)
        raise typer.Exit(code=1)

    console.print(f"[green]✓ Valid skill graph ({graph.size} skills)[/green]")


@graph_app.command("order")
def graph_order(
    path: Annotated[Path, typer.Argument(help="Skill graph JSON file")],
) -> None:
    """Print skills in topological order (prerequisites first)."""
    graph = _load_graph(path)
    for position, skill_id in enumerate(graph.get_topological_order(), start=1):
        skill = graph.get_skill(skill_id)
        console.print(f"{position:>3}. {skill_id} [dim]{skill.name}[/dim]")


# ============================================================================
# DIAGNOSTIC COMMANDS
# ============================================================================

@diagnostic_app.command("generate")
def diagnostic_generate(
    graph_path: Annotated[Path, typer.Argument(help="Skill graph JSON file")],
    items_path: Annotated[Path, typer.Argument(help="Item-skill mapping JSON file")],
    max_items: Annotated[
        Optional[int], typer.Option("--max-items", "-n", help="Maximum items to select")
    ] = None,
) -> None:
    """Select a bounded diagnostic item set, one item ID per line."""
    graph = _load_graph(graph_path)
    items = _load_items(items_path)
    limit = max_items if max_items is not None else get_settings().diagnostic_max_items

    engine = DiagnosticEngine(DiagnosticConfig.from_settings())
    for item_id in engine.generate_diagnostic(graph, items, limit):
        console.print(item_id)


@diagnostic_app.command("analyze")
def diagnostic_analyze(
    graph_path: Annotated[Path, typer.Argument(help="Skill graph JSON file")],
    items_path: Annotated[Path, typer.Argument(help="Item-skill mapping JSON file")],
    responses_path: Annotated[Path, typer.Argument(help="Responses JSON file")],
) -> None:
    """Estimate per-skill mastery from diagnostic responses."""
    graph = _load_graph(graph_path)
    items = _load_items(items_path)
    try:
        documents = _RESPONSES_ADAPTER.validate_python(_read_json(responses_path))
    except ValidationError as e:
        _fail(f"Invalid responses in {responses_path}: {e}")
    responses = [document.to_response() for document in documents]

    engine = DiagnosticEngine(DiagnosticConfig.from_settings())
    estimates = engine.analyze_results(graph, items, responses)
    summary = engine.get_summary(graph, estimates)

    table = Table(title="Diagnostic estimates")
    table.add_column("Skill")
    table.add_column("Estimate", justify="right")
    table.add_column("Status")
    mastered = set(summary.mastered_skills)
    learning = set(summary.learning_skills)
    for skill_id in graph.get_topological_order():
        if skill_id in mastered:
            status = "[green]mastered[/green]"
        elif skill_id in learning:
            status = "[yellow]learning[/yellow]"
        else:
            status = "[dim]not started[/dim]"
        table.add_row(skill_id, f"{estimates[skill_id]:.2f}", status)
    console.print(table)
    console.print(
        f"Mastered: {summary.mastered_count}  Learning: {summary.learning_count}  "
        f"Not started: {summary.not_started_count}"
    )


# ============================================================================
# STATE COMMANDS
# ============================================================================

@state_app.command("replay")
def state_replay(
    graph_path: Annotated[Path, typer.Argument(help="Skill graph JSON file")],
    events_path: Annotated[Path, typer.Argument(help="Event log, one JSON event per line")],
    out: Annotated[
        Optional[Path], typer.Option("--out", "-o", help="Write exported state to this file")
    ] = None,
    save_key: Annotated[
        Optional[str], typer.Option("--save-key", help="Also save to the SQL state store under this key")
    ] = None,
) -> None:
    """Replay an event log through a fresh engine and export its state."""
    graph = _load_graph(graph_path)
    try:
        lines = events_path.read_text(encoding="utf-8").splitlines()
        events = [_EVENT_ADAPTER.validate_json(line) for line in lines if line.strip()]
    except OSError as e:
        _fail(f"Cannot read {events_path}: {e}")
    except ValidationError as e:
        _fail(f"Invalid event in {events_path}: {e}")

    engine = MasteryEngine(graph)
    engine.replay_events(events)
    blob = engine.export_state()

    if out is not None:
        out.write_text(blob, encoding="utf-8")
        console.print(f"[green]✓ Replayed {len(events)} events → {out}[/green]")
    if save_key is not None:
        from skillengine.persistence import SqlStateStore

        store = SqlStateStore()
        try:
            store.save(save_key, blob)
        finally:
            store.close()
        console.print(f"[green]✓ Saved state under key {save_key}[/green]")
    if out is None and save_key is None:
        typer.echo(blob)


@state_app.command("next")
def state_next(
    graph_path: Annotated[Path, typer.Argument(help="Skill graph JSON file")],
    learner: Annotated[str, typer.Option("--learner", "-l", help="Learner ID")],
    state_file: Annotated[
        Optional[Path], typer.Option("--state-file", "-s", help="Exported state file")
    ] = None,
    key: Annotated[
        Optional[str], typer.Option("--key", "-k", help="Load state from the SQL state store")
    ] = None,
    threshold: Annotated[
        Optional[float], typer.Option("--threshold", "-t", help="Mastery threshold override")
    ] = None,
) -> None:
    """Recommend the next learning action for a learner."""
    graph = _load_graph(graph_path)
    engine = MasteryEngine(graph)
    _load_state(engine, state_file, key)

    config = SessionConfig.from_settings()
    if threshold is not None:
        config = replace(config, mastery_threshold=threshold)

    action = engine.get_next_action(learner, config)
    target = " ".join(part for part in (action.skill_id, action.item_id) if part)
    if target:
        console.print(f"[cyan]{action.type.value}[/cyan] {target} [dim]{action.reason}[/dim]")
    else:
        console.print(f"[cyan]{action.type.value}[/cyan] [dim]{action.reason}[/dim]")


@state_app.command("metrics")
def state_metrics(
    graph_path: Annotated[Path, typer.Argument(help="Skill graph JSON file")],
    learner: Annotated[str, typer.Option("--learner", "-l", help="Learner ID")],
    state_file: Annotated[
        Optional[Path], typer.Option("--state-file", "-s", help="Exported state file")
    ] = None,
    key: Annotated[
        Optional[str], typer.Option("--key", "-k", help="Load state from the SQL state store")
    ] = None,
    at_time: Annotated[
        Optional[int], typer.Option("--at", help="Evaluation time in ms (defaults to the learner's last update)")
    ] = None,
) -> None:
    """Show mastery, retention and upcoming reviews for a learner."""
    graph = _load_graph(graph_path)
    engine = MasteryEngine(graph)
    _load_state(engine, state_file, key)

    model = engine.get_learner_model(learner)
    if model is None:
        _fail(f"No state for learner {learner}")
    if at_time is None:
        at_time = model.last_updated

    settings = get_settings()
    metrics = get_learner_metrics(engine, learner, at_time, settings.mastery_threshold)
    due = {r.skill_id: r for r in metrics.next_reviews}

    table = Table(title=f"Learner {learner}")
    table.add_column("Skill")
    table.add_column("Mastery", justify="right")
    table.add_column("Retention", justify="right")
    table.add_column("Review")
    for skill_id in graph.get_topological_order():
        retention = metrics.retention_by_skill.get(skill_id)
        review = due.get(skill_id)
        if review is None:
            review_text = "[dim]-[/dim]"
        elif review.overdue_days >= 0:
            review_text = f"[red]due ({review.overdue_days:.1f}d overdue)[/red]"
        else:
            review_text = f"in {-review.overdue_days:.1f}d"
        table.add_row(
            skill_id,
            f"{metrics.mastery_by_skill.get(skill_id, 0.0):.2f}",
            "-" if retention is None else f"{retention:.2f}",
            review_text,
        )
    console.print(table)

    remaining = metrics.estimated_events_to_full_mastery
    console.print(
        f"Mastered: {metrics.skills_mastered}  Due: {metrics.skills_due}  "
        f"Events: {metrics.total_practice_events}  "
        f"Est. events to mastery: {'n/a' if remaining is None else remaining}"
    )


# ============================================================================
# ENTRY POINT
# ============================================================================

@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Verbose output")
    ] = False,
) -> None:
    """
    Skill graph, diagnostic, and mastery engine tools.

    \b
    Quick Start:
      skillengine graph validate skills.json
      skillengine diagnostic generate skills.json items.json -n 12
      skillengine state replay skills.json events.jsonl -o state.json
      skillengine state next skills.json -l learner-1 -s state.json
      skillengine state metrics skills.json -l learner-1 -s state.json
    """
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else settings.log_level,
        format="<level>{message}</level>",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB")


def run() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
