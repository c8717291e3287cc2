from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import yaml

from milestone_graph.core.errors import SnapshotLoadError
from milestone_graph.core.model import Manual, Milestone, Project, Snapshot, Subtask


_PARSERS: dict[str, tuple[str, Callable[[str], Any]]] = {
    ".yaml": ("E_YAML_PARSE", yaml.safe_load),
    ".yml": ("E_YAML_PARSE", yaml.safe_load),
    ".json": ("E_JSON_PARSE", json.loads),
}


def load_snapshot(path: str) -> dict[str, Any]:
    """Read a YAML/JSON snapshot file into {"projects": ..., "settings": ...}.

    Either value may be None. Shape repair is left to normalize_snapshot.
    """

    p = Path(path)
    if not p.is_file():
        raise SnapshotLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))
    if p.suffix.lower() not in _PARSERS:
        raise SnapshotLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message=f"supported formats are {', '.join(sorted(_PARSERS))}",
            file=str(p),
        )

    parse_code, parse = _PARSERS[p.suffix.lower()]
    try:
        data = parse(p.read_text(encoding="utf-8"))
    except OSError as e:  # pragma: no cover
        raise SnapshotLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e
    except (yaml.YAMLError, ValueError) as e:
        raise SnapshotLoadError(code=parse_code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise SnapshotLoadError(
            code="E_INVALID_TOP_LEVEL",
            message=f"top-level document must be a mapping, got {type(data).__name__}",
            file=str(p),
        )
    return {"projects": data.get("projects"), "settings": data.get("settings")}


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, Any]:
    """Render a snapshot in the persistence shape (camelCase keys)."""
    s = snapshot.settings
    return {
        "projects": [_project_to_dict(p) for p in snapshot.projects],
        "settings": {
            "projectTypes": list(s.project_types),
            "companies": list(s.companies),
            "people": list(s.people),
            "statuses": list(s.statuses),
            "dateFormat": s.date_format,
        },
    }


def dump_snapshot(snapshot: Snapshot, path: str) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    data = snapshot_to_dict(snapshot)
    with open(p, "w", encoding="utf-8") as f:
        if p.suffix.lower() == ".json":
            json.dump(data, f, indent=2)
            f.write("\n")
        else:
            yaml.safe_dump(data, f, sort_keys=False, default_flow_style=False, allow_unicode=True)


def _project_to_dict(p: Project) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": p.id,
        "name": p.name,
        "company": p.company,
        "type": p.type,
        "startDate": p.start_date.isoformat(),
        "createdAt": p.created_at,
        "updatedAt": p.updated_at,
        "milestones": [_milestone_to_dict(m) for m in p.milestones],
    }
    for key, value in (
        ("cashRequirement", p.cash_requirement),
        ("debtRequirement", p.debt_requirement),
        ("valueAtCompletion", p.value_at_completion),
        ("profit", p.profit),
    ):
        if value is not None:
            out[key] = value
    return out


def _milestone_to_dict(m: Milestone) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": m.id,
        "name": m.name,
        "estimatedDuration": m.estimated_duration,
        "dependsOn": list(m.depends_on),
        "subtasks": [_subtask_to_dict(s) for s in m.subtasks],
    }
    if isinstance(m.placement, Manual):
        out["x"] = m.placement.x
        out["y"] = m.placement.y
    if m.completed_at is not None:
        out["completedAt"] = m.completed_at
    return out


def _subtask_to_dict(s: Subtask) -> dict[str, Any]:
    out: dict[str, Any] = {
        "id": s.id,
        "name": s.name,
        "description": s.description,
        "assignedTo": s.assigned_to,
        "notes": s.notes,
        "status": s.status,
    }
    if s.link is not None:
        out["link"] = s.link
    if s.completed_at is not None:
        out["completedAt"] = s.completed_at
    return out
