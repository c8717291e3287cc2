from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional

import typer

from milestone_graph.core.config.engine_config import load_engine_config
from milestone_graph.core.engine import MilestoneGraphEngine
from milestone_graph.core.errors import ConfigError, GraphError, GraphWarning, SnapshotLoadError
from milestone_graph.core.graph.levels import level_buckets
from milestone_graph.core.io.snapshot_io import dump_snapshot, load_snapshot
from milestone_graph.core.normalize.normalize_snapshot import normalize_snapshot
from milestone_graph.core.suggest.apply_suggestions import (
    apply_suggested_milestones,
    apply_suggested_subtasks,
)
from milestone_graph.core.suggest.openai_client import OpenAISuggestionClient, SuggestionSource
from milestone_graph.core.timeline.timeline import format_date, project_finish_date

app = typer.Typer(add_completion=False, no_args_is_help=True)

FORMATS = ("text", "json")


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine diagnostics to stderr"),
) -> None:
    """Milestone dependency graph CLI."""
    # Without --verbose, warnings still reach stderr through logging's last-resort handler.
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a snapshot file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    strict: bool = typer.Option(False, "--strict", help="Exit 2 when the snapshot needed repairs"),
) -> None:
    """Load and normalize a snapshot, reporting every repair that was applied."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")

    try:
        raw = load_snapshot(path)
    except SnapshotLoadError as e:
        if format == "json":
            _emit_json({"command": "validate", "ok": False, "errors": [_error_item(e)]}, 1)
        _print_errors([e])
        raise typer.Exit(code=1)

    snapshot, warnings = normalize_snapshot(raw)
    ok = not (strict and warnings)
    summary = {
        "project_count": len(snapshot.projects),
        "milestone_count": sum(len(p.milestones) for p in snapshot.projects),
    }

    if format == "json":
        _emit_json(
            {
                "command": "validate",
                "ok": ok,
                "warning_count": len(warnings),
                "warnings": [_warning_item(w) for w in warnings],
                "summary": summary,
            },
            0 if ok else 2,
        )

    for w in warnings:
        typer.echo(f"WARN: {w}", err=True)
    if not ok:
        raise typer.Exit(code=2)
    typer.echo(
        f"OK: {summary['project_count']} project(s), "
        f"{summary['milestone_count']} milestone(s), {len(warnings)} warning(s)"
    )


@app.command("levels")
def levels(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    config: Optional[str] = typer.Option(None, "--config", help="Engine config YAML"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Print the dependency level of every milestone."""
    _check_format(format, "E_LEVELS_UNKNOWN_FORMAT")
    engine = _open_engine(path, project, config)
    layout = engine.layout()

    if format == "json":
        _emit_json({"command": "levels", "project": engine.project.id, "levels": layout.levels}, 0)

    names = {m.id: m.name for m in engine.project.milestones}
    buckets = level_buckets(engine.project.milestones, layout.levels)
    for level in sorted(buckets):
        typer.echo(f"L{level}: " + ", ".join(f"{nid} ({names[nid]})" for nid in buckets[level]))


@app.command("timeline")
def timeline(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    config: Optional[str] = typer.Option(None, "--config", help="Engine config YAML"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Print target finish dates and the project aggregate."""
    _check_format(format, "E_TIMELINE_UNKNOWN_FORMAT")
    engine = _open_engine(path, project, config)
    p = engine.project
    finish = engine.target_finish_dates()
    agg = engine.project_aggregate()
    end = project_finish_date(p)

    if format == "json":
        _emit_json(
            {
                "command": "timeline",
                "project": p.id,
                "start_date": p.start_date.isoformat(),
                "finish_dates": {k: v.isoformat() for k, v in finish.items()},
                "project_finish_date": end.isoformat(),
                "aggregate": {
                    "total_estimated_days": agg.total_estimated_days,
                    "flat_finish_date": agg.flat_finish_date.isoformat(),
                    "total_tasks": agg.total_tasks,
                    "completed_tasks": agg.completed_tasks,
                    "status_count": agg.status_count,
                },
            },
            0,
        )

    fmt = engine.snapshot.settings.date_format
    typer.echo(f"Project: {p.name} ({p.id}), start {format_date(p.start_date, fmt)}")
    for m in p.milestones:
        typer.echo(
            f"- {m.id}: {m.name} [{m.estimated_duration}d] -> {format_date(finish.get(m.id), fmt)}"
        )
    typer.echo(f"Finish: {format_date(end, fmt)}")
    typer.echo(
        f"Total estimated days: {agg.total_estimated_days} "
        f"(flat finish {format_date(agg.flat_finish_date, fmt)})"
    )
    typer.echo(f"Tasks: {agg.completed_tasks}/{agg.total_tasks} complete")


@app.command("layout")
def layout(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    config: Optional[str] = typer.Option(None, "--config", help="Engine config YAML"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Print effective node positions and canvas extents."""
    _check_format(format, "E_LAYOUT_UNKNOWN_FORMAT")
    engine = _open_engine(path, project, config)
    lay = engine.layout()

    if format == "json":
        _emit_json(
            {
                "command": "layout",
                "project": engine.project.id,
                "extents": {"width": lay.extents.width, "height": lay.extents.height},
                "nodes": [
                    {"id": n.id, "level": n.level, "x": n.x, "y": n.y, "manual": n.manual}
                    for n in lay.nodes.values()
                ],
            },
            0,
        )

    typer.echo(f"Canvas: {lay.extents.width:g} x {lay.extents.height:g}")
    for n in lay.nodes.values():
        tag = " (manual)" if n.manual else ""
        typer.echo(f"- {n.id}: L{n.level} at ({n.x:g}, {n.y:g}){tag}")


@app.command("link")
def link(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    source: str = typer.Argument(..., help="Upstream milestone id"),
    target: str = typer.Argument(..., help="Milestone that will depend on source"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write result here (default: in place)"),
) -> None:
    """Add a dependency edge source -> target unless it would break the DAG."""
    engine = _open_engine(path, project, None)
    result = engine.try_add_edge(source, target)
    if not result.ok:
        assert result.error is not None
        _print_errors([result.error])
        raise typer.Exit(code=2)
    _write(engine, out or path)
    typer.echo(f"OK: {target} now depends on {source}")


@app.command("add")
def add(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    parent: Optional[str] = typer.Option(None, "--parent", help="Milestone the new one depends on"),
    parallel: bool = typer.Option(False, "--parallel", help="Name it as a parallel branch"),
    before: Optional[str] = typer.Option(
        None, "--before", help="Insert a previous step upstream of this milestone"
    ),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    config: Optional[str] = typer.Option(None, "--config", help="Engine config YAML"),
    out: Optional[str] = typer.Option(None, "--out", help="Write result here (default: in place)"),
) -> None:
    """Add a milestone (a next step, a parallel branch, or a previous step)."""
    engine = _open_engine(path, project, config)
    if before is not None:
        created = engine.store.add_previous_step(before)
        if created is None:
            _print_errors([_unknown_milestone(before, "before", path)])
            raise typer.Exit(code=2)
    else:
        if parent is not None and engine.store.milestone(parent) is None:
            _print_errors([_unknown_milestone(parent, "parent", path)])
            raise typer.Exit(code=2)
        created = engine.add_milestone(parent, parallel)
    _write(engine, out or path)
    typer.echo(f"OK: added {created.id} ({created.name})")


@app.command("remove")
def remove(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    milestone: str = typer.Argument(..., help="Milestone id to delete"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write result here (default: in place)"),
) -> None:
    """Delete a milestone and strip it from every dependency list."""
    engine = _open_engine(path, project, None)
    if not engine.remove_milestone(milestone):
        _print_errors([_unknown_milestone(milestone, "milestone", path)])
        raise typer.Exit(code=2)
    _write(engine, out or path)
    typer.echo(f"OK: removed {milestone}")


@app.command("move")
def move(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    milestone: str = typer.Argument(..., help="Milestone id to move"),
    x: float = typer.Argument(..., help="New x (content coordinates)"),
    y: float = typer.Argument(..., help="New y (content coordinates)"),
    with_descendants: bool = typer.Option(
        False, "--with-descendants", help="Shift every transitive dependent by the same delta"
    ),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    config: Optional[str] = typer.Option(None, "--config", help="Engine config YAML"),
    out: Optional[str] = typer.Option(None, "--out", help="Write result here (default: in place)"),
) -> None:
    """Pin a milestone (optionally with its subtree) to a manual position."""
    engine = _open_engine(path, project, config)
    moved = engine.move_milestone(milestone, x, y, with_descendants)
    if not moved:
        _print_errors([_unknown_milestone(milestone, "milestone", path)])
        raise typer.Exit(code=2)
    _write(engine, out or path)
    typer.echo(f"OK: moved {len(moved)} milestone(s): {', '.join(moved)}")


@app.command("reset-layout")
def reset_layout(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    out: Optional[str] = typer.Option(None, "--out", help="Write result here (default: in place)"),
) -> None:
    """Clear every manual position so the auto layout applies again."""
    engine = _open_engine(path, project, None)
    cleared = engine.reset_manual_layout()
    _write(engine, out or path)
    typer.echo(f"OK: cleared {cleared} manual position(s)")


@app.command("viewport")
def viewport(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    width: float = typer.Option(1280, "--width", help="Viewport width in pixels"),
    height: float = typer.Option(800, "--height", help="Viewport height in pixels"),
    center: Optional[str] = typer.Option(None, "--center", help="Centre on this milestone"),
    fit: bool = typer.Option(False, "--fit", help="Zoom to fit the whole canvas"),
    zoom: Optional[float] = typer.Option(None, "--zoom", help="Set zoom (clamped to bounds)"),
    minimap_x: Optional[float] = typer.Option(None, "--minimap-x", help="Minimap click x"),
    minimap_y: Optional[float] = typer.Option(None, "--minimap-y", help="Minimap click y"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    config: Optional[str] = typer.Option(None, "--config", help="Engine config YAML"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Simulate viewport actions and print the resulting pan/zoom and minimap rectangle."""
    _check_format(format, "E_VIEWPORT_UNKNOWN_FORMAT")
    engine = _open_engine(path, project, config, viewport_size=(width, height))

    if center is not None and not engine.center_on(center):
        _print_errors([_unknown_milestone(center, "center", path)])
        raise typer.Exit(code=2)
    if fit:
        engine.fit_to_extents()
    if zoom is not None:
        try:
            engine.set_zoom(zoom)
        except ValueError as e:
            _print_errors([GraphError(code="E_VIEWPORT_INVALID_ZOOM", message=str(e), path="zoom")])
            raise typer.Exit(code=2)
    if (minimap_x is None) != (minimap_y is None):
        _print_errors(
            [
                GraphError(
                    code="E_VIEWPORT_MINIMAP_POINT",
                    message="--minimap-x and --minimap-y must be given together",
                    path="minimap",
                )
            ]
        )
        raise typer.Exit(code=2)
    if minimap_x is not None and minimap_y is not None:
        engine.recenter_from_minimap(minimap_x, minimap_y)

    vp = engine.viewport
    rect = engine.minimap().viewport_rect(vp)
    if format == "json":
        _emit_json(
            {
                "command": "viewport",
                "project": engine.project.id,
                "zoom": vp.zoom,
                "pan": {"x": vp.pan_x, "y": vp.pan_y},
                "minimap_rect": {"x": rect[0], "y": rect[1], "width": rect[2], "height": rect[3]},
            },
            0,
        )
    typer.echo(f"Zoom: {vp.zoom:.4g}")
    typer.echo(f"Pan: ({vp.pan_x:g}, {vp.pan_y:g})")
    typer.echo(f"Minimap rect: x={rect[0]:.1f} y={rect[1]:.1f} w={rect[2]:.1f} h={rect[3]:.1f}")


@app.command("suggest")
def suggest(
    path: str = typer.Argument(..., help="Path to a snapshot file"),
    milestone: Optional[str] = typer.Option(
        None, "--milestone", help="Suggest subtasks for this milestone instead of a structure"
    ),
    attach_to: Optional[str] = typer.Option(
        None, "--attach-to", help="Suggested roots depend on this milestone"
    ),
    model: str = typer.Option("gpt-4.1-mini", "--model"),
    base_url: Optional[str] = typer.Option(None, "--base-url"),
    project: Optional[str] = typer.Option(None, "--project", help="Project id (default: first)"),
    config: Optional[str] = typer.Option(None, "--config", help="Engine config YAML"),
    out: Optional[str] = typer.Option(None, "--out", help="Write result here (default: in place)"),
) -> None:
    """Ask the model for milestones or subtasks and merge them into the graph."""
    engine = _open_engine(path, project, config)

    if not os.getenv("OPENAI_API_KEY"):
        _print_errors(
            [
                GraphError(
                    code="E_SUGGEST_NO_API_KEY",
                    message="OPENAI_API_KEY is not set",
                    path="OPENAI_API_KEY",
                )
            ]
        )
        raise typer.Exit(code=2)

    p = engine.project
    if milestone is not None and engine.store.milestone(milestone) is None:
        _print_errors([_unknown_milestone(milestone, "milestone", path)])
        raise typer.Exit(code=2)

    source = _make_suggestion_client(base_url)
    try:
        if milestone is not None:
            target = engine.store.milestone(milestone)
            assert target is not None
            items = source.suggest_subtasks(
                milestone_name=target.name, project_context=f"{p.name} ({p.type})", model=model
            )
            added = apply_suggested_subtasks(engine.store, milestone, items)
            summary = f"added {len(added)} subtask(s) to {milestone}"
        else:
            suggestion = source.suggest_project(name=p.name, project_type=p.type, model=model)
            result = apply_suggested_milestones(engine.store, suggestion, attach_to=attach_to)
            for err in result.rejected_edges:
                typer.echo(f"WARN: {err}", err=True)
            summary = f"added {len(result.added)} milestone(s)"
    except (RuntimeError, ValueError) as e:
        _print_errors([GraphError(code="E_SUGGEST_FAILED", message=str(e), file=path)])
        raise typer.Exit(code=2)

    _write(engine, out or path)
    typer.echo(f"OK: {summary}")


def _make_suggestion_client(base_url: Optional[str]) -> SuggestionSource:
    return OpenAISuggestionClient(base_url=base_url)


def _open_engine(
    path: str,
    project: Optional[str],
    config_file: Optional[str],
    *,
    viewport_size: tuple[float, float] = (1280, 800),
) -> MilestoneGraphEngine:
    try:
        raw = load_snapshot(path)
    except SnapshotLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    try:
        cfg = load_engine_config(config_file)
    except ConfigError as e:
        _print_errors([e])
        raise typer.Exit(code=1 if e.code == "E_CONFIG_NOT_FOUND" else 2)

    snapshot, _ = normalize_snapshot(raw)
    if not snapshot.projects:
        _print_errors(
            [GraphError(code="E_NO_PROJECTS", message="snapshot has no projects", file=path)]
        )
        raise typer.Exit(code=2)

    engine = MilestoneGraphEngine(snapshot, config=cfg, viewport_size=viewport_size)
    if project is not None and not engine.select_project(project):
        _print_errors(
            [
                GraphError(
                    code="E_UNKNOWN_PROJECT",
                    message=f"--project references unknown id: {project}",
                    file=path,
                    path="project",
                )
            ]
        )
        raise typer.Exit(code=2)
    return engine


def _write(engine: MilestoneGraphEngine, path: str) -> None:
    dump_snapshot(engine.snapshot, path)


def _unknown_milestone(milestone_id: str, option: str, file: str) -> GraphError:
    return GraphError(
        code="E_UNKNOWN_MILESTONE",
        message=f"unknown milestone id: {milestone_id}",
        file=file,
        path=option,
    )


def _check_format(format: str, code: str) -> None:
    if format not in FORMATS:
        _print_errors(
            [
                GraphError(
                    code=code,
                    message=f"unknown format: {format} (choose one of: {', '.join(FORMATS)})",
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)


def _error_item(e: GraphError) -> dict[str, Any]:
    return {"code": e.code, "message": e.message, "file": e.file, "path": e.path}


def _warning_item(w: GraphWarning) -> dict[str, Any]:
    return {"code": w.code, "message": w.message, "path": w.path}


def _emit_json(payload: dict[str, Any], exit_code: int) -> None:
    typer.echo(json.dumps({"tool": "milestone-graph", **payload}, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _print_errors(errors: list[GraphError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="milestone-graph")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
