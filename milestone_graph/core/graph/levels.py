from __future__ import annotations

from typing import Optional, Sequence

from milestone_graph.core.graph.order import DependencyOrder, dependency_order
from milestone_graph.core.model import Milestone


def assign_levels(
    milestones: Sequence[Milestone],
    order: Optional[DependencyOrder] = None,
) -> dict[str, int]:
    """Topological depth of every milestone.

    Roots (no existing parents) are level 0; every other milestone sits one
    level below its deepest parent. Computed from scratch on each call.
    """

    dep_order = order or dependency_order(milestones)
    levels: dict[str, int] = {}
    for nid in dep_order.order:
        parents = dep_order.parents.get(nid, [])
        levels[nid] = 1 + max(levels[p] for p in parents) if parents else 0
    return levels


def level_buckets(milestones: Sequence[Milestone], levels: dict[str, int]) -> dict[int, list[str]]:
    """Group ids by level, keeping project order inside each bucket."""
    buckets: dict[int, list[str]] = {}
    for m in milestones:
        level = levels.get(m.id)
        if level is None:
            continue
        buckets.setdefault(level, []).append(m.id)
    return buckets
