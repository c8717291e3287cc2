from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from milestone_graph.core.config.engine_config import DEFAULT_CONFIG, EngineConfig
from milestone_graph.core.graph.levels import assign_levels, level_buckets
from milestone_graph.core.model import Auto, Manual, Milestone, Placement


@dataclass(frozen=True)
class CanvasExtents:
    width: float
    height: float


@dataclass(frozen=True)
class NodeLayout:
    id: str
    level: int
    auto_x: float
    auto_y: float
    x: float
    y: float
    manual: bool


@dataclass(frozen=True)
class Layout:
    levels: dict[str, int]
    nodes: dict[str, NodeLayout]  # project order
    extents: CanvasExtents

    def effective_position(self, milestone_id: str) -> Optional[tuple[float, float]]:
        node = self.nodes.get(milestone_id)
        if node is None:
            return None
        return node.x, node.y


def canvas_extents(
    levels: dict[str, int], buckets: dict[int, list[str]], config: EngineConfig = DEFAULT_CONFIG
) -> CanvasExtents:
    max_level = max(levels.values(), default=0)
    max_in_level = max((len(b) for b in buckets.values()), default=0)
    width = max((max_level + 1) * config.horizontal_gap + 2 * config.padding_x, config.min_width)
    height = max((max_in_level + 1) * config.vertical_gap + 2 * config.padding_y, config.min_height)
    return CanvasExtents(width=width, height=height)


def resolve_position(placement: Placement, auto_x: float, auto_y: float) -> tuple[float, float]:
    if isinstance(placement, Manual):
        return placement.x, placement.y
    if isinstance(placement, Auto):
        return auto_x, auto_y
    raise TypeError(f"unknown placement: {placement!r}")


def compute_layout(milestones: Sequence[Milestone], config: EngineConfig = DEFAULT_CONFIG) -> Layout:
    """Level-column layout merged with manual overrides.

    Level L goes in column PADDING_X + L*HORIZONTAL_GAP; each column is
    centred vertically on the canvas in project order.
    """

    levels = assign_levels(milestones)
    buckets = level_buckets(milestones, levels)
    extents = canvas_extents(levels, buckets, config)
    center_y = extents.height / 2

    index_in_level: dict[str, int] = {}
    for bucket in buckets.values():
        for i, nid in enumerate(bucket):
            index_in_level[nid] = i

    nodes: dict[str, NodeLayout] = {}
    for m in milestones:
        level = levels[m.id]
        count = len(buckets[level])
        auto_x = config.padding_x + level * config.horizontal_gap
        auto_y = center_y + (index_in_level[m.id] - (count - 1) / 2) * config.vertical_gap
        x, y = resolve_position(m.placement, auto_x, auto_y)
        nodes[m.id] = NodeLayout(
            id=m.id,
            level=level,
            auto_x=auto_x,
            auto_y=auto_y,
            x=x,
            y=y,
            manual=isinstance(m.placement, Manual),
        )

    return Layout(levels=levels, nodes=nodes, extents=extents)
