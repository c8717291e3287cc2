from __future__ import annotations

from typing import Mapping, Optional, Sequence

from milestone_graph.core.errors import (
    CycleError,
    DuplicateEdgeError,
    EdgeError,
    SelfLoopError,
    UnknownMilestoneError,
)
from milestone_graph.core.model import Milestone


def is_ancestor(ancestor_id: str, node_id: str, parents_by_id: Mapping[str, Sequence[str]]) -> bool:
    """True if ancestor_id is node_id or reachable from it through depends_on.

    Each milestone is visited once, so the walk stays O(V+E) and terminates
    even on data that already contains a loop.
    """

    if ancestor_id == node_id:
        return True
    stack = [node_id]
    seen = {node_id}
    while stack:
        cur = stack.pop()
        for p in parents_by_id.get(cur, ()):
            if p == ancestor_id:
                return True
            if p not in seen and p in parents_by_id:
                seen.add(p)
                stack.append(p)
    return False


def check_new_edge(
    milestones: Sequence[Milestone], source_id: str, target_id: str
) -> Optional[EdgeError]:
    """Validate making target_id depend on source_id.

    Returns None when the edge may be added, otherwise the reason it may not.
    """

    if source_id == target_id:
        return SelfLoopError(
            code="E_SELF_LOOP",
            message="a milestone cannot depend on itself",
            path=target_id,
        )

    parents_by_id = {m.id: m.depends_on for m in milestones}
    for mid in (source_id, target_id):
        if mid not in parents_by_id:
            return UnknownMilestoneError(
                code="E_UNKNOWN_MILESTONE",
                message=f"unknown milestone id: {mid}",
                path=mid,
            )

    if source_id in parents_by_id[target_id]:
        return DuplicateEdgeError(
            code="E_DUPLICATE_EDGE",
            message=f"{target_id} already depends on {source_id}",
            path=f"{target_id}.depends_on",
        )

    if is_ancestor(target_id, source_id, parents_by_id):
        return CycleError(
            code="E_CYCLE",
            message=f"{target_id} is already an ancestor of {source_id}; the link would create a loop",
            path=f"{target_id}.depends_on",
        )

    return None
