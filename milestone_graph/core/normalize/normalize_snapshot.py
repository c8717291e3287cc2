from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any, Optional, cast

from milestone_graph.core.errors import (
    DanglingReferenceWarning,
    GraphWarning,
    InvalidDurationWarning,
    ShapeWarning,
)
from milestone_graph.core.ids import allocate_unique_id
from milestone_graph.core.model import (
    AUTO,
    DEFAULT_DATE_FORMAT,
    AppSettings,
    DateFormat,
    Manual,
    Milestone,
    Placement,
    Project,
    Snapshot,
    Subtask,
)

logger = logging.getLogger(__name__)

DATE_FORMATS: set[str] = {"DD/MM/YY", "MM/DD/YY"}

# A century of calendar days; anything longer is treated as a data-entry error.
MAX_DURATION_DAYS = 36500


def normalize_snapshot(raw: Any) -> tuple[Snapshot, list[GraphWarning]]:
    """Best-effort repair of a persistence snapshot.

    The persistence layer may drop empty lists and hand back key-indexed
    mappings where ordered sequences were stored. Every such shape is folded
    back into an ordered sequence; durations are clamped, self references and
    repeated dependencies are dropped, dangling dependencies are kept but
    reported. Never raises.
    """

    warnings: list[GraphWarning] = []
    if not isinstance(raw, dict):
        warnings.append(
            ShapeWarning(
                code="W_MALFORMED_SHAPE",
                message="snapshot must be a mapping; using an empty snapshot",
            )
        )
        _log(warnings)
        return Snapshot(), warnings

    projects: list[Project] = []
    seen_project_ids: set[str] = set()
    for i, raw_project in enumerate(_as_sequence(raw.get("projects"), "projects", warnings)):
        path = f"projects[{i}]"
        if not isinstance(raw_project, dict):
            warnings.append(
                ShapeWarning(code="W_MALFORMED_SHAPE", message="project must be an object", path=path)
            )
            continue
        project = _normalize_project(raw_project, path, warnings)
        if project.id in seen_project_ids:
            new_id = allocate_unique_id(seen_project_ids, project.id)
            warnings.append(
                ShapeWarning(
                    code="W_DUPLICATE_ID",
                    message=f"duplicate project id {project.id} renamed to {new_id}",
                    path=f"{path}.id",
                )
            )
            project = replace(project, id=new_id)
        seen_project_ids.add(project.id)
        projects.append(project)

    settings = normalize_settings(raw.get("settings"), warnings)
    _log(warnings)
    return Snapshot(projects=tuple(projects), settings=settings), warnings


def normalize_project(raw: Any, path: str = "project") -> tuple[Project, list[GraphWarning]]:
    warnings: list[GraphWarning] = []
    if not isinstance(raw, dict):
        warnings.append(
            ShapeWarning(code="W_MALFORMED_SHAPE", message="project must be an object", path=path)
        )
        raw = {}
    project = _normalize_project(raw, path, warnings)
    _log(warnings)
    return project, warnings


def normalize_settings(raw: Any, warnings: list[GraphWarning]) -> AppSettings:
    defaults = AppSettings()
    if raw is None:
        return defaults
    if not isinstance(raw, dict):
        warnings.append(
            ShapeWarning(code="W_MALFORMED_SHAPE", message="settings must be an object", path="settings")
        )
        return defaults

    def str_list(key: str, fallback: tuple[str, ...]) -> tuple[str, ...]:
        if raw.get(key) is None:
            return fallback
        items = [x for x in _as_sequence(raw.get(key), f"settings.{key}", warnings) if isinstance(x, str)]
        return tuple(items) if items else fallback

    date_format = raw.get("dateFormat", DEFAULT_DATE_FORMAT)
    if date_format not in DATE_FORMATS:
        warnings.append(
            ShapeWarning(
                code="W_INVALID_DATE_FORMAT",
                message=f"dateFormat must be one of {sorted(DATE_FORMATS)}; using {DEFAULT_DATE_FORMAT}",
                path="settings.dateFormat",
            )
        )
        date_format = DEFAULT_DATE_FORMAT

    return AppSettings(
        project_types=str_list("projectTypes", defaults.project_types),
        companies=str_list("companies", defaults.companies),
        people=str_list("people", defaults.people),
        statuses=str_list("statuses", defaults.statuses),
        date_format=cast(DateFormat, date_format),
    )


def clamp_duration(value: Any, path: str, warnings: list[GraphWarning]) -> int:
    """Coerce a duration to whole days in [0, MAX_DURATION_DAYS]. Invalid values become 0."""
    if value is None:
        return 0
    number: Optional[float] = None
    if isinstance(value, bool):
        number = None
    elif isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            number = None

    if number is None or not math.isfinite(number) or number < 0:
        warnings.append(
            InvalidDurationWarning(
                code="W_INVALID_DURATION",
                message=f"estimatedDuration {value!r} is not a non-negative number; using 0",
                path=path,
            )
        )
        return 0
    if number > MAX_DURATION_DAYS:
        warnings.append(
            InvalidDurationWarning(
                code="W_INVALID_DURATION",
                message=f"estimatedDuration {value!r} exceeds {MAX_DURATION_DAYS} days; clamped",
                path=path,
            )
        )
        return MAX_DURATION_DAYS
    if number != int(number):
        warnings.append(
            InvalidDurationWarning(
                code="W_INVALID_DURATION",
                message=f"estimatedDuration {value!r} truncated to {int(number)} days",
                path=path,
            )
        )
    return int(number)


def parse_start_date(value: Any, path: str, warnings: list[GraphWarning]) -> date:
    """Accept epoch milliseconds, ISO date/datetime strings, or date objects."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed: Optional[date] = None
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        parsed = _date_from_epoch_ms(value)
    elif isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            parsed = _date_from_epoch_ms(int(text))
        else:
            try:
                parsed = date.fromisoformat(text[:10])
            except ValueError:
                parsed = None
    if parsed is not None:
        return parsed

    warnings.append(
        ShapeWarning(
            code="W_INVALID_START_DATE",
            message=f"startDate {value!r} is not a date; using today",
            path=path,
        )
    )
    return date.today()


def _date_from_epoch_ms(ms: float) -> Optional[date]:
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).date()
    except (OverflowError, OSError, ValueError):
        return None


def _normalize_project(raw: dict[str, Any], path: str, warnings: list[GraphWarning]) -> Project:
    pid = raw.get("id")
    if isinstance(pid, (int, float)) and not isinstance(pid, bool):
        pid = str(pid)
    if not isinstance(pid, str) or not pid:
        pid = path
        warnings.append(
            ShapeWarning(code="W_MISSING_ID", message=f"project id missing; using {pid}", path=f"{path}.id")
        )

    milestones = _normalize_milestones(raw.get("milestones"), f"{path}.milestones", warnings)

    return Project(
        id=pid,
        name=_str(raw.get("name")),
        company=_str(raw.get("company")),
        type=_str(raw.get("type")),
        start_date=parse_start_date(raw.get("startDate"), f"{path}.startDate", warnings),
        milestones=milestones,
        created_at=_int(raw.get("createdAt")) or 0,
        updated_at=_int(raw.get("updatedAt")) or 0,
        cash_requirement=_float(raw.get("cashRequirement")),
        debt_requirement=_float(raw.get("debtRequirement")),
        value_at_completion=_float(raw.get("valueAtCompletion")),
        profit=_float(raw.get("profit")),
    )


def _normalize_milestones(raw: Any, path: str, warnings: list[GraphWarning]) -> tuple[Milestone, ...]:
    # First pass: shape + ids, so dependency checks see every id.
    entries: list[tuple[str, str, dict[str, Any]]] = []
    used_ids: set[str] = set()
    for i, raw_m in enumerate(_as_sequence(raw, path, warnings)):
        m_path = f"{path}[{i}]"
        if not isinstance(raw_m, dict):
            warnings.append(
                ShapeWarning(code="W_MALFORMED_SHAPE", message="milestone must be an object", path=m_path)
            )
            continue
        mid = raw_m.get("id")
        if isinstance(mid, (int, float)) and not isinstance(mid, bool):
            mid = str(mid)
        if not isinstance(mid, str) or not mid:
            mid = allocate_unique_id(used_ids, f"m{i + 1}")
            warnings.append(
                ShapeWarning(code="W_MISSING_ID", message=f"milestone id missing; using {mid}", path=f"{m_path}.id")
            )
        elif mid in used_ids:
            new_id = allocate_unique_id(used_ids, mid)
            warnings.append(
                ShapeWarning(
                    code="W_DUPLICATE_ID",
                    message=f"duplicate milestone id {mid} renamed to {new_id}",
                    path=f"{m_path}.id",
                )
            )
            mid = new_id
        used_ids.add(mid)
        entries.append((mid, m_path, raw_m))

    out: list[Milestone] = []
    for mid, m_path, raw_m in entries:
        out.append(
            Milestone(
                id=mid,
                name=_str(raw_m.get("name")),
                estimated_duration=clamp_duration(
                    raw_m.get("estimatedDuration"), f"{m_path}.estimatedDuration", warnings
                ),
                depends_on=_normalize_depends(
                    mid, raw_m.get("dependsOn"), used_ids, f"{m_path}.dependsOn", warnings
                ),
                placement=_normalize_placement(raw_m, m_path, warnings),
                completed_at=_int(raw_m.get("completedAt")),
                subtasks=_normalize_subtasks(raw_m.get("subtasks"), f"{m_path}.subtasks", warnings),
            )
        )
    return tuple(out)


def _normalize_depends(
    mid: str,
    raw: Any,
    known_ids: set[str],
    path: str,
    warnings: list[GraphWarning],
) -> tuple[str, ...]:
    out: list[str] = []
    seen: set[str] = set()
    for di, dep in enumerate(_as_sequence(raw, path, warnings)):
        if isinstance(dep, (int, float)) and not isinstance(dep, bool):
            dep = str(dep)
        if not isinstance(dep, str) or not dep:
            warnings.append(
                ShapeWarning(code="W_MALFORMED_SHAPE", message="dependency id must be a string", path=f"{path}[{di}]")
            )
            continue
        if dep == mid:
            warnings.append(
                ShapeWarning(code="W_SELF_REFERENCE", message=f"{mid} cannot depend on itself", path=f"{path}[{di}]")
            )
            continue
        if dep in seen:
            warnings.append(
                ShapeWarning(
                    code="W_DUPLICATE_DEPENDENCY",
                    message=f"{mid} lists {dep} more than once",
                    path=f"{path}[{di}]",
                )
            )
            continue
        if dep not in known_ids:
            # Kept; level and timeline computations skip it.
            warnings.append(
                DanglingReferenceWarning(
                    code="W_DANGLING_REFERENCE",
                    message=f"{mid} depends on unknown milestone {dep}",
                    path=f"{path}[{di}]",
                )
            )
        seen.add(dep)
        out.append(dep)
    return tuple(out)


def _normalize_placement(raw: dict[str, Any], path: str, warnings: list[GraphWarning]) -> Placement:
    x = _float(raw.get("x"))
    y = _float(raw.get("y"))
    if x is not None and y is not None:
        return Manual(x=x, y=y)
    if x is not None or y is not None:
        warnings.append(
            ShapeWarning(
                code="W_PARTIAL_POSITION",
                message="manual position needs both x and y; using the automatic layout",
                path=path,
            )
        )
    return AUTO


def _normalize_subtasks(raw: Any, path: str, warnings: list[GraphWarning]) -> tuple[Subtask, ...]:
    out: list[Subtask] = []
    used_ids: set[str] = set()
    for i, raw_s in enumerate(_as_sequence(raw, path, warnings)):
        s_path = f"{path}[{i}]"
        if not isinstance(raw_s, dict):
            warnings.append(
                ShapeWarning(code="W_MALFORMED_SHAPE", message="subtask must be an object", path=s_path)
            )
            continue
        sid = raw_s.get("id")
        if not isinstance(sid, str) or not sid:
            sid = f"s{i + 1}"
        sid = allocate_unique_id(used_ids, sid)
        used_ids.add(sid)
        link = raw_s.get("link")
        out.append(
            Subtask(
                id=sid,
                name=_str(raw_s.get("name")),
                description=_str(raw_s.get("description")),
                assigned_to=_str(raw_s.get("assignedTo")),
                notes=_str(raw_s.get("notes")),
                status=_str(raw_s.get("status")) or "Not started",
                link=link if isinstance(link, str) and link else None,
                completed_at=_int(raw_s.get("completedAt")),
            )
        )
    return tuple(out)


def _as_sequence(value: Any, path: str, warnings: list[GraphWarning]) -> list[Any]:
    """Return value as an ordered list.

    Mappings (sparse array keys) are ordered by numeric key when every key is
    integer-like, otherwise by insertion order.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, dict):
        warnings.append(
            ShapeWarning(
                code="W_MALFORMED_SHAPE",
                message="expected a sequence, got a key-indexed mapping; converted",
                path=path,
            )
        )
        keys = list(value.keys())
        if all(_is_int_like(k) for k in keys):
            keys.sort(key=lambda k: int(k))
        return [value[k] for k in keys]
    warnings.append(
        ShapeWarning(
            code="W_MALFORMED_SHAPE",
            message=f"expected a sequence, got {type(value).__name__}; ignored",
            path=path,
        )
    )
    return []


def _is_int_like(k: Any) -> bool:
    if isinstance(k, bool):
        return False
    if isinstance(k, int):
        return True
    return isinstance(k, str) and k.strip().isdigit()


def _str(v: Any) -> str:
    if isinstance(v, str):
        return v
    if v is None:
        return ""
    return str(v)


def _float(v: Any) -> Optional[float]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    if not math.isfinite(v):
        return None
    return float(v)


def _int(v: Any) -> Optional[int]:
    f = _float(v)
    return int(f) if f is not None else None


def _log(warnings: list[GraphWarning]) -> None:
    for w in warnings:
        logger.debug("normalize: %s", w)
    if warnings:
        logger.warning("snapshot normalized with %d correction(s)", len(warnings))
