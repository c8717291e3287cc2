from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SuggestedSubtask:
    name: str
    description: str


@dataclass(frozen=True)
class SuggestedMilestone:
    id: str
    name: str
    depends_on: list[str]
    subtasks: list[SuggestedSubtask]


@dataclass(frozen=True)
class ProjectSuggestion:
    milestones: list[SuggestedMilestone]


def parse_subtask_suggestions(obj: Any) -> list[SuggestedSubtask]:
    if not isinstance(obj, list):
        raise ValueError("subtask suggestions must be a list")
    out: list[SuggestedSubtask] = []
    for item in obj:
        if not isinstance(item, dict):
            raise ValueError("each subtask suggestion must be an object")
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("subtask name must be a non-empty string")
        description = item.get("description")
        out.append(
            SuggestedSubtask(
                name=name.strip(),
                description=description if isinstance(description, str) else "",
            )
        )
    return out


def parse_project_suggestion(obj: Any) -> ProjectSuggestion:
    if not isinstance(obj, dict):
        raise ValueError("ProjectSuggestion must be an object")

    milestones_raw = obj.get("milestones", [])
    if not isinstance(milestones_raw, list):
        raise ValueError("milestones must be a list")

    milestones: list[SuggestedMilestone] = []
    for item in milestones_raw:
        if not isinstance(item, dict):
            raise ValueError("each milestone must be an object")
        mid = item.get("id")
        name = item.get("name")
        if not isinstance(mid, str) or not mid:
            raise ValueError("milestones[].id must be a non-empty string")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("milestones[].name must be a non-empty string")
        deps = item.get("dependsOn", [])
        if not isinstance(deps, list) or any(not isinstance(d, str) for d in deps):
            raise ValueError("milestones[].dependsOn must be a list[str]")
        milestones.append(
            SuggestedMilestone(
                id=mid,
                name=name.strip(),
                depends_on=list(deps),
                subtasks=parse_subtask_suggestions(item.get("subtasks", [])),
            )
        )

    return ProjectSuggestion(milestones=milestones)
