"""Engine facade: one snapshot, one active project, one viewport.

Every derived value (levels, layout, dates) is recomputed from the current
project on request, so a full-state replacement from the persistence layer
needs no invalidation.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Callable, Optional

from milestone_graph.core.config.engine_config import DEFAULT_CONFIG, EngineConfig
from milestone_graph.core.errors import GraphError, LinkResult
from milestone_graph.core.graph.store import GraphStore, now_ms
from milestone_graph.core.ids import new_milestone_id
from milestone_graph.core.layout.layout_engine import CanvasExtents, Layout, compute_layout
from milestone_graph.core.layout.mover import move_milestone, reset_manual_layout
from milestone_graph.core.model import Milestone, Project, Snapshot
from milestone_graph.core.timeline.timeline import (
    ProjectAggregate,
    project_aggregate,
    target_finish_dates,
)
from milestone_graph.core.viewport.viewport import Minimap, Viewport, recenter_from_minimap

logger = logging.getLogger(__name__)


class MilestoneGraphEngine:
    def __init__(
        self,
        snapshot: Optional[Snapshot] = None,
        *,
        config: EngineConfig = DEFAULT_CONFIG,
        viewport_size: tuple[float, float] = (1280, 800),
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = new_milestone_id,
    ) -> None:
        self.config = config
        self.viewport = Viewport(width=viewport_size[0], height=viewport_size[1], config=config)
        self._clock = clock
        self._id_factory = id_factory
        self._snapshot = snapshot or Snapshot()
        self._store: Optional[GraphStore] = None
        if self._snapshot.projects:
            self.select_project(self._snapshot.projects[0].id)

    # Snapshot / project selection

    @property
    def snapshot(self) -> Snapshot:
        """Current state, with the active project's edits folded back in."""
        if self._store is None:
            return self._snapshot
        active = self._store.project
        projects = tuple(active if p.id == active.id else p for p in self._snapshot.projects)
        return replace(self._snapshot, projects=projects)

    @property
    def store(self) -> GraphStore:
        if self._store is None:
            raise GraphError(code="E_NO_PROJECT", message="no project is selected")
        return self._store

    @property
    def project(self) -> Project:
        return self.store.project

    def replace_snapshot(self, snapshot: Snapshot) -> None:
        """Adopt an authoritative snapshot; keep the active project if it still exists."""
        active_id = self._store.project.id if self._store is not None else None
        self._snapshot = snapshot
        if active_id is not None:
            project = snapshot.get_project(active_id)
            if project is not None:
                self.store.replace_project(project)
                return
            logger.info("active project %s vanished from snapshot", active_id)
        self._store = None
        if snapshot.projects:
            self.select_project(snapshot.projects[0].id)

    def select_project(self, project_id: str) -> bool:
        self._snapshot = self.snapshot
        project = self._snapshot.get_project(project_id)
        if project is None:
            return False
        self._store = GraphStore(
            project, config=self.config, clock=self._clock, id_factory=self._id_factory
        )
        if project.milestones:
            self.center_on()
        return True

    # Rendering

    def layout(self) -> Layout:
        return compute_layout(self.store.milestones, self.config)

    def get_level(self, milestone_id: str) -> Optional[int]:
        return self.layout().levels.get(milestone_id)

    def get_effective_position(self, milestone_id: str) -> Optional[tuple[float, float]]:
        return self.layout().effective_position(milestone_id)

    def canvas_extents(self) -> CanvasExtents:
        return self.layout().extents

    # Dates

    def target_finish_dates(self) -> dict[str, date]:
        return target_finish_dates(self.project.start_date, self.project.milestones)

    def get_target_finish_date(self, milestone_id: str) -> Optional[date]:
        return self.target_finish_dates().get(milestone_id)

    def project_aggregate(self) -> ProjectAggregate:
        return project_aggregate(self.project)

    # Mutations

    def try_add_edge(self, source_id: str, target_id: str) -> LinkResult:
        return self.store.try_add_edge(source_id, target_id)

    def add_milestone(self, parent_id: Optional[str] = None, is_parallel: bool = False) -> Milestone:
        return self.store.add_milestone(parent_id, is_parallel)

    def remove_milestone(self, milestone_id: str) -> bool:
        return self.store.remove_milestone(milestone_id)

    def move_milestone(
        self, milestone_id: str, x: float, y: float, include_descendants: bool = False
    ) -> list[str]:
        return move_milestone(self.store, milestone_id, x, y, include_descendants, self.config)

    def reset_manual_layout(self, project_id: Optional[str] = None) -> int:
        """Clear every manual position in a project (the active one by default)."""
        if project_id is None or (self._store is not None and project_id == self._store.project.id):
            return reset_manual_layout(self.store)

        project = self._snapshot.get_project(project_id)
        if project is None:
            logger.info("reset layout: unknown project %s", project_id)
            return 0
        store = GraphStore(project, config=self.config, clock=self._clock)
        cleared = reset_manual_layout(store)
        self._snapshot = replace(
            self._snapshot,
            projects=tuple(store.project if p.id == project_id else p for p in self._snapshot.projects),
        )
        return cleared

    # Viewport

    def set_pan(self, x: float, y: float) -> None:
        self.viewport.set_pan(x, y)

    def set_zoom(self, zoom: float) -> float:
        return self.viewport.set_zoom(zoom)

    def center_on(self, milestone_id: Optional[str] = None) -> bool:
        """Zoom 1 with the milestone at the viewport anchor; defaults to the first milestone."""
        milestones = self.store.milestones
        if not milestones:
            return False
        target = milestone_id or milestones[0].id
        pos = self.get_effective_position(target)
        if pos is None:
            return False
        self.viewport.center_on(*pos)
        return True

    def fit_to_extents(self) -> float:
        extents = self.canvas_extents()
        return self.viewport.fit_to_extents(extents.width, extents.height)

    def minimap(self) -> Minimap:
        extents = self.canvas_extents()
        return Minimap.for_extents(extents.width, extents.height, self.config)

    def minimap_point_to_content(self, x: float, y: float) -> tuple[float, float]:
        return self.minimap().minimap_to_content(x, y)

    def content_to_minimap_point(self, x: float, y: float) -> tuple[float, float]:
        return self.minimap().content_to_minimap(x, y)

    def recenter_from_minimap(self, x: float, y: float) -> tuple[float, float]:
        return recenter_from_minimap(self.viewport, self.minimap(), x, y)
