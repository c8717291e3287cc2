from __future__ import annotations

import logging
from typing import Sequence

from milestone_graph.core.config.engine_config import DEFAULT_CONFIG, EngineConfig
from milestone_graph.core.graph.order import children_map
from milestone_graph.core.graph.store import GraphStore
from milestone_graph.core.layout.layout_engine import Layout, compute_layout
from milestone_graph.core.model import Manual, Milestone, Placement

logger = logging.getLogger(__name__)


def descendants(milestones: Sequence[Milestone], milestone_id: str) -> list[str]:
    """Every milestone that transitively depends on milestone_id, each once."""
    children = children_map(milestones)
    out: list[str] = []
    seen = {milestone_id}
    stack = [milestone_id]
    while stack:
        cur = stack.pop()
        for child in children.get(cur, []):
            if child not in seen:
                seen.add(child)
                out.append(child)
                stack.append(child)
    return out


def plan_move(
    milestones: Sequence[Milestone],
    layout: Layout,
    milestone_id: str,
    new_x: float,
    new_y: float,
    include_descendants: bool,
) -> dict[str, Placement]:
    """Manual placements produced by dragging milestone_id to (new_x, new_y).

    With include_descendants the whole downstream subtree shifts by the same
    delta, measured against current effective positions.
    """

    current = layout.effective_position(milestone_id)
    if current is None:
        return {}

    placements: dict[str, Placement] = {milestone_id: Manual(new_x, new_y)}
    if not include_descendants:
        return placements

    dx = new_x - current[0]
    dy = new_y - current[1]
    for nid in descendants(milestones, milestone_id):
        pos = layout.effective_position(nid)
        if pos is None:
            continue
        placements[nid] = Manual(pos[0] + dx, pos[1] + dy)
    return placements


def move_milestone(
    store: GraphStore,
    milestone_id: str,
    new_x: float,
    new_y: float,
    include_descendants: bool = False,
    config: EngineConfig = DEFAULT_CONFIG,
) -> list[str]:
    """Apply a move to the store. Returns the ids that moved (empty for unknown ids)."""
    layout = compute_layout(store.milestones, config)
    placements = plan_move(store.milestones, layout, milestone_id, new_x, new_y, include_descendants)
    if not placements:
        logger.info("move: unknown milestone %s", milestone_id)
        return []
    store.set_placements(placements)
    return list(placements)


def reset_manual_layout(store: GraphStore) -> int:
    cleared = store.clear_placements()
    logger.info("reset layout: cleared %d manual position(s)", cleared)
    return cleared
