from datetime import date

from milestone_graph.core.model import Milestone, Project, Subtask
from milestone_graph.core.timeline.timeline import (
    add_days,
    format_date,
    project_aggregate,
    project_finish_date,
    target_finish_dates,
)


def _example() -> list[Milestone]:
    return [
        Milestone(id="M1", name="one", estimated_duration=5),
        Milestone(id="M2", name="two", estimated_duration=3, depends_on=("M1",)),
        Milestone(id="M3", name="three", estimated_duration=10, depends_on=("M1",)),
        Milestone(id="M4", name="four", estimated_duration=2, depends_on=("M2", "M3")),
    ]


def test_worked_example_finish_dates():
    finish = target_finish_dates(date(2024, 1, 1), _example())
    assert finish == {
        "M1": date(2024, 1, 6),
        "M2": date(2024, 1, 9),
        "M3": date(2024, 1, 16),
        "M4": date(2024, 1, 18),
    }


def test_finish_never_before_any_parent():
    ms = _example()
    finish = target_finish_dates(date(2024, 1, 1), ms)
    for m in ms:
        for p in m.depends_on:
            assert finish[m.id] >= finish[p]


def test_month_boundary():
    ms = [Milestone(id="A", name="a", estimated_duration=3)]
    assert target_finish_dates(date(2024, 1, 30), ms)["A"] == date(2024, 2, 2)


def test_leap_year_february():
    ms = [Milestone(id="A", name="a", estimated_duration=3)]
    assert target_finish_dates(date(2024, 2, 27), ms)["A"] == date(2024, 3, 1)
    assert target_finish_dates(date(2023, 2, 27), ms)["A"] == date(2023, 3, 2)


def test_zero_duration_root_finishes_on_start():
    ms = [Milestone(id="A", name="a")]
    assert target_finish_dates(date(2024, 5, 1), ms)["A"] == date(2024, 5, 1)


def test_dangling_parent_is_ignored():
    ms = [Milestone(id="A", name="a", estimated_duration=2, depends_on=("GHOST",))]
    assert target_finish_dates(date(2024, 1, 1), ms)["A"] == date(2024, 1, 3)


def test_project_finish_date():
    p = Project(id="p", name="p", start_date=date(2024, 1, 1), milestones=tuple(_example()))
    assert project_finish_date(p) == date(2024, 1, 18)
    empty = Project(id="e", name="e", start_date=date(2024, 1, 1))
    assert project_finish_date(empty) == date(2024, 1, 1)


def test_aggregate_is_a_flat_sum():
    ms = _example()
    ms[0] = Milestone(
        id="M1",
        name="one",
        estimated_duration=5,
        subtasks=(
            Subtask(id="s1", name="a", status="Complete"),
            Subtask(id="s2", name="b", status="Held"),
            Subtask(id="s3", name="c", status="Held"),
        ),
    )
    p = Project(id="p", name="p", start_date=date(2024, 1, 1), milestones=tuple(ms))
    agg = project_aggregate(p)
    # Sum of durations, not the critical path (which would be 17).
    assert agg.total_estimated_days == 20
    assert agg.flat_finish_date == date(2024, 1, 21)
    assert agg.total_tasks == 3
    assert agg.completed_tasks == 1
    assert agg.status_count == {"Complete": 1, "Held": 2}


def test_format_date():
    d = date(2024, 1, 6)
    assert format_date(d, "DD/MM/YY") == "06/01/24"
    assert format_date(d, "MM/DD/YY") == "01/06/24"
    assert format_date(None) == "N/A"


def test_add_days_saturates_at_date_max():
    assert add_days(date(2024, 1, 1), 5) == date(2024, 1, 6)
    assert add_days(date(2024, 1, 1), 4_000_000) == date.max
    assert add_days(date.max, 0) == date.max


def test_huge_durations_saturate_instead_of_overflowing():
    ms = [
        Milestone(id="A", name="a", estimated_duration=4_000_000),
        Milestone(id="B", name="b", estimated_duration=1, depends_on=("A",)),
        Milestone(id="C", name="c", estimated_duration=2),
    ]
    finish = target_finish_dates(date(2024, 1, 1), ms)
    assert finish["A"] == date.max
    assert finish["B"] == date.max
    assert finish["C"] == date(2024, 1, 3)

    p = Project(
        id="p",
        name="p",
        start_date=date(2024, 1, 1),
        milestones=(
            Milestone(id="A", name="a", estimated_duration=2_000_000),
            Milestone(id="B", name="b", estimated_duration=2_000_000),
        ),
    )
    agg = project_aggregate(p)
    assert agg.total_estimated_days == 4_000_000
    assert agg.flat_finish_date == date.max
    assert project_finish_date(p) == date.max
