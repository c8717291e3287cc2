from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import date
from typing import Callable, Iterable, Mapping, Optional

from milestone_graph.core.config.engine_config import DEFAULT_CONFIG, EngineConfig
from milestone_graph.core.errors import GraphWarning, LINK_OK, LinkResult
from milestone_graph.core.graph.linker import check_new_edge
from milestone_graph.core.ids import new_milestone_id, new_subtask_id
from milestone_graph.core.model import (
    AUTO,
    SUBTASK_COMPLETE,
    Manual,
    Milestone,
    Placement,
    Project,
    Subtask,
)
from milestone_graph.core.normalize.normalize_snapshot import clamp_duration

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class GraphStore:
    """Owns the milestones of the active project.

    The project is an immutable value; every mutation swaps in a new one.
    Structural mutations stamp updated_at, placement changes do not.
    """

    def __init__(
        self,
        project: Project,
        *,
        config: EngineConfig = DEFAULT_CONFIG,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[], str] = new_milestone_id,
    ) -> None:
        self._project = project
        self._config = config
        self._clock = clock
        self._id_factory = id_factory

    @property
    def project(self) -> Project:
        return self._project

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def milestones(self) -> tuple[Milestone, ...]:
        return self._project.milestones

    def milestone(self, milestone_id: str) -> Optional[Milestone]:
        for m in self._project.milestones:
            if m.id == milestone_id:
                return m
        return None

    def replace_project(self, project: Project) -> None:
        """Full-state replacement. Nothing derived is cached, so nothing to invalidate."""
        self._project = project

    # Structure

    def add_milestone(self, parent_id: Optional[str] = None, is_parallel: bool = False) -> Milestone:
        depends_on: tuple[str, ...] = ()
        if parent_id is not None:
            if self.milestone(parent_id) is None:
                logger.warning("add_milestone: unknown parent %s; adding a root", parent_id)
            else:
                depends_on = (parent_id,)
        milestone = Milestone(
            id=self._new_id(),
            name="New Parallel Branch" if is_parallel else "Next Milestone",
            estimated_duration=self._config.default_duration_days,
            depends_on=depends_on,
        )
        self._commit(self._project.milestones + (milestone,))
        return milestone

    def add_previous_step(self, current_id: str) -> Optional[Milestone]:
        """Insert a milestone directly upstream of current_id.

        The new step takes over current's dependencies and becomes its only
        dependency.
        """
        current = self.milestone(current_id)
        if current is None:
            return None

        placement: Placement = AUTO
        if isinstance(current.placement, Manual):
            placement = Manual(current.placement.x - self._config.horizontal_gap, current.placement.y)

        step = Milestone(
            id=self._new_id(),
            name="Previous Step",
            estimated_duration=self._config.default_duration_days,
            depends_on=current.depends_on,
            placement=placement,
        )
        milestones = tuple(
            replace(m, depends_on=(step.id,)) if m.id == current_id else m
            for m in self._project.milestones
        )
        self._commit(milestones + (step,))
        return step

    def append_milestones(self, new_milestones: Iterable[Milestone]) -> None:
        self._commit(self._project.milestones + tuple(new_milestones))

    def remove_milestone(self, milestone_id: str) -> bool:
        """Delete one milestone and strip it from every depends_on. Dependents stay."""
        if self.milestone(milestone_id) is None:
            return False
        milestones = tuple(
            replace(m, depends_on=tuple(d for d in m.depends_on if d != milestone_id))
            if milestone_id in m.depends_on
            else m
            for m in self._project.milestones
            if m.id != milestone_id
        )
        self._commit(milestones)
        return True

    def try_add_edge(self, source_id: str, target_id: str) -> LinkResult:
        """Make target_id depend on source_id unless that breaks the DAG."""
        err = check_new_edge(self._project.milestones, source_id, target_id)
        if err is not None:
            logger.info("link %s -> %s rejected: %s", source_id, target_id, err.code)
            return LinkResult(ok=False, error=err)
        self._update(target_id, lambda m: replace(m, depends_on=m.depends_on + (source_id,)))
        return LINK_OK

    # Attributes

    def rename_milestone(self, milestone_id: str, name: str) -> bool:
        return self._update(milestone_id, lambda m: replace(m, name=name))

    def set_duration(self, milestone_id: str, days: object) -> bool:
        warnings: list[GraphWarning] = []
        clamped = clamp_duration(days, f"{milestone_id}.estimatedDuration", warnings)
        for w in warnings:
            logger.warning("set_duration: %s", w)
        return self._update(milestone_id, lambda m: replace(m, estimated_duration=clamped))

    def set_start_date(self, start_date: date) -> None:
        self._project = replace(self._project, start_date=start_date, updated_at=self._clock())

    def add_subtask(self, milestone_id: str, name: str = "New Subtask", description: str = "") -> Optional[Subtask]:
        subtask = Subtask(id=new_subtask_id(), name=name, description=description)
        ok = self._update(milestone_id, lambda m: _with_subtasks(m, m.subtasks + (subtask,), self._clock))
        return subtask if ok else None

    def append_subtasks(self, milestone_id: str, subtasks: Iterable[Subtask]) -> bool:
        items = tuple(subtasks)
        return self._update(milestone_id, lambda m: _with_subtasks(m, m.subtasks + items, self._clock))

    def update_subtask_status(self, milestone_id: str, subtask_id: str, status: str) -> bool:
        milestone = self.milestone(milestone_id)
        if milestone is None or all(s.id != subtask_id for s in milestone.subtasks):
            return False

        def apply(s: Subtask) -> Subtask:
            if s.id != subtask_id:
                return s
            if status == SUBTASK_COMPLETE:
                completed_at = s.completed_at if s.is_complete else self._clock()
            else:
                completed_at = None
            return replace(s, status=status, completed_at=completed_at)

        return self._update(
            milestone_id,
            lambda m: _with_subtasks(m, tuple(apply(s) for s in m.subtasks), self._clock),
        )

    # Placement (layout only; does not stamp updated_at)

    def set_placements(self, placements: Mapping[str, Placement]) -> None:
        if not placements:
            return
        milestones = tuple(
            replace(m, placement=placements[m.id]) if m.id in placements else m
            for m in self._project.milestones
        )
        self._project = replace(self._project, milestones=milestones)

    def clear_placements(self) -> int:
        """Drop every manual override. Returns how many were cleared."""
        cleared = sum(1 for m in self._project.milestones if isinstance(m.placement, Manual))
        milestones = tuple(
            replace(m, placement=AUTO) if isinstance(m.placement, Manual) else m
            for m in self._project.milestones
        )
        self._project = replace(self._project, milestones=milestones)
        return cleared

    # Internals

    def _new_id(self) -> str:
        existing = {m.id for m in self._project.milestones}
        nid = self._id_factory()
        while nid in existing:
            nid = self._id_factory()
        return nid

    def _update(self, milestone_id: str, fn: Callable[[Milestone], Milestone]) -> bool:
        found = False
        out: list[Milestone] = []
        for m in self._project.milestones:
            if m.id == milestone_id:
                found = True
                m = fn(m)
            out.append(m)
        if found:
            self._commit(tuple(out))
        return found

    def _commit(self, milestones: tuple[Milestone, ...]) -> None:
        self._project = replace(self._project, milestones=milestones, updated_at=self._clock())


def _with_subtasks(
    milestone: Milestone, subtasks: tuple[Subtask, ...], clock: Callable[[], int]
) -> Milestone:
    """Replace subtasks and keep milestone completion in step with them."""
    all_complete = bool(subtasks) and all(s.is_complete for s in subtasks)
    completed_at = (milestone.completed_at or clock()) if all_complete else None
    return replace(milestone, subtasks=subtasks, completed_at=completed_at)
