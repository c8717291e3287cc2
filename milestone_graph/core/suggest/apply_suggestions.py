from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from milestone_graph.core.errors import EdgeError
from milestone_graph.core.graph.store import GraphStore
from milestone_graph.core.ids import allocate_unique_id, new_subtask_id
from milestone_graph.core.model import Milestone, Subtask
from milestone_graph.core.suggest.contracts import ProjectSuggestion, SuggestedSubtask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplySuggestionResult:
    added: list[str]
    id_remap: dict[str, str]
    rejected_edges: list[EdgeError]
    skipped_dependencies: list[str]


def apply_suggested_milestones(
    store: GraphStore,
    suggestion: ProjectSuggestion,
    *,
    attach_to: Optional[str] = None,
    duration_days: Optional[int] = None,
) -> ApplySuggestionResult:
    """Append suggested milestones to the active project.

    Suggested ids that collide with existing ones are renamed, and their
    dependsOn references follow the rename. Every edge goes through the
    cycle-checked linker; rejected edges are reported, not fatal. Suggested
    roots become project roots, or depend on attach_to when it is given.
    """

    existing_ids = {m.id for m in store.milestones}
    if attach_to is not None and attach_to not in existing_ids:
        logger.warning("suggest: attach_to %s does not exist; adding as roots", attach_to)
        attach_to = None

    duration = store.config.default_duration_days if duration_days is None else duration_days
    # suggested id -> id of the first milestone allocated for it
    allocated: dict[str, str] = {}
    new_milestones: list[Milestone] = []
    for sm in suggestion.milestones:
        new_id = allocate_unique_id(existing_ids, sm.id)
        allocated.setdefault(sm.id, new_id)
        existing_ids.add(new_id)
        new_milestones.append(
            Milestone(
                id=new_id,
                name=sm.name,
                estimated_duration=duration,
                subtasks=tuple(_materialize(s) for s in sm.subtasks),
            )
        )

    store.append_milestones(new_milestones)

    rejected: list[EdgeError] = []
    skipped: list[str] = []
    for sm, m in zip(suggestion.milestones, new_milestones):
        linked = False
        for dep in sm.depends_on:
            source = allocated.get(dep, dep)
            if source not in existing_ids:
                skipped.append(dep)
                logger.info("suggest: %s depends on unknown %s; skipped", m.id, dep)
                continue
            res = store.try_add_edge(source, m.id)
            if res.ok:
                linked = True
            elif res.error is not None:
                rejected.append(res.error)
        if not linked and attach_to is not None:
            res = store.try_add_edge(attach_to, m.id)
            if not res.ok and res.error is not None:
                rejected.append(res.error)

    logger.info(
        "suggest: added %d milestone(s), %d edge(s) rejected",
        len(new_milestones),
        len(rejected),
    )
    return ApplySuggestionResult(
        added=[m.id for m in new_milestones],
        id_remap={k: v for k, v in allocated.items() if k != v},
        rejected_edges=rejected,
        skipped_dependencies=skipped,
    )


def apply_suggested_subtasks(
    store: GraphStore, milestone_id: str, suggestions: list[SuggestedSubtask]
) -> list[Subtask]:
    subtasks = [_materialize(s) for s in suggestions]
    if not store.append_subtasks(milestone_id, subtasks):
        return []
    return subtasks


def _materialize(s: SuggestedSubtask) -> Subtask:
    return Subtask(id=new_subtask_id(), name=s.name, description=s.description)
