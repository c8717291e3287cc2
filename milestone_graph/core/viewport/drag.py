from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from milestone_graph.core.config.engine_config import DEFAULT_CONFIG, EngineConfig
from milestone_graph.core.graph.store import GraphStore
from milestone_graph.core.layout.layout_engine import Layout
from milestone_graph.core.layout.mover import move_milestone
from milestone_graph.core.viewport.viewport import Viewport


@dataclass
class PanDrag:
    """Background drag: every pointer move shifts the pan by the same screen delta."""

    viewport: Viewport
    last_x: float
    last_y: float

    @classmethod
    def start(cls, viewport: Viewport, screen_x: float, screen_y: float) -> "PanDrag":
        return cls(viewport=viewport, last_x=screen_x, last_y=screen_y)

    def update(self, screen_x: float, screen_y: float) -> tuple[float, float]:
        self.viewport.set_pan(
            self.viewport.pan_x + (screen_x - self.last_x),
            self.viewport.pan_y + (screen_y - self.last_y),
        )
        self.last_x = screen_x
        self.last_y = screen_y
        return self.viewport.pan_x, self.viewport.pan_y

    def commit(self, screen_x: float, screen_y: float) -> tuple[float, float]:
        return self.update(screen_x, screen_y)


@dataclass(frozen=True)
class DragOutcome:
    moved: list[str]
    clicked: bool


@dataclass
class NodeDrag:
    """Milestone drag. Screen deltas become content deltas at the zoom captured on start."""

    milestone_id: str
    start_screen: tuple[float, float]
    start_node: tuple[float, float]
    zoom: float
    config: EngineConfig = field(default=DEFAULT_CONFIG, repr=False)

    @classmethod
    def start(
        cls,
        layout: Layout,
        viewport: Viewport,
        milestone_id: str,
        screen_x: float,
        screen_y: float,
    ) -> Optional["NodeDrag"]:
        pos = layout.effective_position(milestone_id)
        if pos is None:
            return None
        return cls(
            milestone_id=milestone_id,
            start_screen=(screen_x, screen_y),
            start_node=pos,
            zoom=viewport.zoom,
            config=viewport.config,
        )

    def update(self, screen_x: float, screen_y: float) -> tuple[float, float]:
        """Preview position of the dragged milestone, in content space."""
        dx = (screen_x - self.start_screen[0]) / self.zoom
        dy = (screen_y - self.start_screen[1]) / self.zoom
        return self.start_node[0] + dx, self.start_node[1] + dy

    def commit(
        self,
        store: GraphStore,
        screen_x: float,
        screen_y: float,
        include_descendants: bool = False,
    ) -> DragOutcome:
        """Finish the drag. Movement within the threshold counts as a click."""
        sdx = screen_x - self.start_screen[0]
        sdy = screen_y - self.start_screen[1]
        threshold = self.config.drag_threshold_px
        if abs(sdx) <= threshold and abs(sdy) <= threshold:
            return DragOutcome(moved=[], clicked=True)
        x, y = self.update(screen_x, screen_y)
        moved = move_milestone(store, self.milestone_id, x, y, include_descendants, self.config)
        return DragOutcome(moved=moved, clicked=False)
