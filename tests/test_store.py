import itertools
from datetime import date

from milestone_graph.core.graph.levels import assign_levels
from milestone_graph.core.graph.store import GraphStore
from milestone_graph.core.model import Manual, Milestone, Project, Subtask


def _store(clock_value: int = 42) -> GraphStore:
    ms = (
        Milestone(id="M1", name="one", estimated_duration=5, placement=Manual(500, 300)),
        Milestone(id="M2", name="two", estimated_duration=3, depends_on=("M1",)),
        Milestone(id="M3", name="three", estimated_duration=10, depends_on=("M1",)),
        Milestone(
            id="M4",
            name="four",
            estimated_duration=2,
            depends_on=("M2", "M3"),
            subtasks=(
                Subtask(id="s1", name="a", status="Complete", completed_at=5),
                Subtask(id="s2", name="b", status="Started"),
            ),
        ),
    )
    project = Project(id="p", name="p", start_date=date(2024, 1, 1), milestones=ms)
    counter = itertools.count(1)
    return GraphStore(project, clock=lambda: clock_value, id_factory=lambda: f"n{next(counter)}")


def test_add_milestone_after_parent():
    store = _store()
    m = store.add_milestone("M4")
    assert m.id == "n1"
    assert m.name == "Next Milestone"
    assert m.estimated_duration == 5
    assert m.depends_on == ("M4",)
    assert store.project.updated_at == 42
    assert assign_levels(store.milestones)["n1"] == 3


def test_add_parallel_branch_and_root():
    store = _store()
    branch = store.add_milestone("M1", is_parallel=True)
    assert branch.name == "New Parallel Branch"
    root = store.add_milestone()
    assert root.depends_on == ()


def test_add_milestone_with_unknown_parent_adds_root():
    store = _store()
    assert store.add_milestone("GHOST").depends_on == ()


def test_generated_ids_skip_existing():
    store = _store()
    project = store.project
    store.replace_project(
        Project(id="p", name="p", start_date=project.start_date, milestones=(Milestone(id="n1", name="x"),))
    )
    assert store.add_milestone().id == "n2"


def test_add_previous_step_rewires_dependencies():
    store = _store()
    step = store.add_previous_step("M2")
    assert step is not None
    assert step.depends_on == ("M1",)
    assert store.milestone("M2").depends_on == (step.id,)
    levels = assign_levels(store.milestones)
    assert levels[step.id] == 1
    assert levels["M2"] == 2
    assert levels["M4"] == 3


def test_add_previous_step_offsets_manual_position():
    store = _store()
    step = store.add_previous_step("M1")
    assert step.placement == Manual(500 - 360, 300)
    assert step.depends_on == ()
    assert store.add_previous_step("GHOST") is None


def test_remove_strips_dependency_everywhere():
    store = _store()
    assert store.remove_milestone("M1")
    assert store.milestone("M1") is None
    assert store.milestone("M2").depends_on == ()
    assert store.milestone("M3").depends_on == ()
    assert not any("M1" in m.depends_on for m in store.milestones)
    assert store.project.updated_at == 42
    assert not store.remove_milestone("M1")


def test_remove_leaves_other_manual_positions_alone():
    store = _store()
    store.set_placements({"M3": Manual(900, 640)})
    assert store.remove_milestone("M2")
    assert store.milestone("M1").placement == Manual(500, 300)
    assert store.milestone("M3").placement == Manual(900, 640)
    assert store.milestone("M4").depends_on == ("M3",)


def test_subtask_completion_drives_milestone_completion():
    store = _store(clock_value=77)
    assert store.update_subtask_status("M4", "s2", "Complete")
    m4 = store.milestone("M4")
    assert m4.completed_at == 77
    assert [s.completed_at for s in m4.subtasks] == [5, 77]

    assert store.update_subtask_status("M4", "s1", "Held")
    m4 = store.milestone("M4")
    assert m4.completed_at is None
    assert m4.subtasks[0].completed_at is None


def test_update_unknown_subtask():
    store = _store()
    assert not store.update_subtask_status("M4", "nope", "Complete")
    assert not store.update_subtask_status("NOPE", "s1", "Complete")


def test_add_subtask_reopens_completed_milestone():
    store = _store()
    store.update_subtask_status("M4", "s2", "Complete")
    assert store.milestone("M4").is_complete
    s = store.add_subtask("M4", "Inspection")
    assert s is not None and s.name == "Inspection"
    assert store.milestone("M4").completed_at is None


def test_set_duration_clamps_invalid_values():
    store = _store()
    store.set_duration("M2", -3)
    assert store.milestone("M2").estimated_duration == 0
    store.set_duration("M2", "12")
    assert store.milestone("M2").estimated_duration == 12


def test_rename_and_start_date_stamp_updated_at():
    store = _store()
    assert store.rename_milestone("M3", "Civil")
    assert store.milestone("M3").name == "Civil"
    store.set_start_date(date(2024, 2, 1))
    assert store.project.start_date == date(2024, 2, 1)
    assert store.project.updated_at == 42


def test_placement_changes_do_not_stamp_updated_at():
    store = _store()
    store.set_placements({"M2": Manual(1, 2)})
    assert store.project.updated_at == 0
    assert store.clear_placements() == 2
    assert store.project.updated_at == 0
