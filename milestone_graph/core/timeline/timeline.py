from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Sequence

from milestone_graph.core.graph.order import DependencyOrder, dependency_order
from milestone_graph.core.model import DEFAULT_DATE_FORMAT, DateFormat, Milestone, Project


@dataclass(frozen=True)
class ProjectAggregate:
    total_estimated_days: int
    flat_finish_date: date
    total_tasks: int
    completed_tasks: int
    status_count: dict[str, int]


def add_days(start: date, days: int) -> date:
    """start + days, saturating at date.max instead of overflowing."""
    if days >= (date.max - start).days:
        return date.max
    return start + timedelta(days=days)


def target_finish_dates(
    start_date: date,
    milestones: Sequence[Milestone],
    order: Optional[DependencyOrder] = None,
) -> dict[str, date]:
    """Forward pass: earliest finish of every milestone.

    A milestone starts when its latest parent finishes (or at start_date if it
    has none) and takes estimated_duration calendar days.
    """

    dep_order = order or dependency_order(milestones)
    duration = {m.id: max(0, m.estimated_duration) for m in milestones}
    finish: dict[str, date] = {}
    for nid in dep_order.order:
        begin = start_date
        for p in dep_order.parents.get(nid, []):
            if finish[p] > begin:
                begin = finish[p]
        finish[nid] = add_days(begin, duration[nid])
    return finish


def project_finish_date(project: Project) -> date:
    """Latest target finish across the project, or start_date when empty."""
    finish = target_finish_dates(project.start_date, project.milestones)
    return max(finish.values(), default=project.start_date)


def project_aggregate(project: Project) -> ProjectAggregate:
    """Dashboard totals.

    total_estimated_days is the plain sum of durations, not a longest path;
    flat_finish_date is start_date plus that sum.
    """

    total_days = 0
    total_tasks = 0
    completed = 0
    status_count: Counter[str] = Counter()
    for m in project.milestones:
        total_days += max(0, m.estimated_duration)
        for s in m.subtasks:
            total_tasks += 1
            if s.is_complete:
                completed += 1
            status_count[s.status] += 1

    return ProjectAggregate(
        total_estimated_days=total_days,
        flat_finish_date=add_days(project.start_date, total_days),
        total_tasks=total_tasks,
        completed_tasks=completed,
        status_count=dict(status_count),
    )


def format_date(d: Optional[date], date_format: DateFormat = DEFAULT_DATE_FORMAT) -> str:
    if d is None:
        return "N/A"
    if date_format == "MM/DD/YY":
        return d.strftime("%m/%d/%y")
    return d.strftime("%d/%m/%y")
