from datetime import date
from pathlib import Path

from milestone_graph.core.graph.levels import assign_levels
from milestone_graph.core.io.snapshot_io import load_snapshot
from milestone_graph.core.model import AUTO, Manual
from milestone_graph.core.normalize.normalize_snapshot import (
    MAX_DURATION_DAYS,
    clamp_duration,
    normalize_project,
    normalize_snapshot,
    parse_start_date,
)
from milestone_graph.core.timeline.timeline import target_finish_dates

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


def _codes(warnings) -> list[str]:
    return [w.code for w in warnings]


def test_sample_snapshot_is_clean():
    snapshot, warnings = normalize_snapshot(load_snapshot(str(EXAMPLES / "sample-snapshot.yaml")))
    assert warnings == []
    assert [p.id for p in snapshot.projects] == ["p1", "p2"]
    p1 = snapshot.projects[0]
    assert p1.start_date == date(2024, 1, 1)
    assert p1.cash_requirement == 1200
    assert p1.milestones[0].subtasks[0].completed_at == 1704412800000
    assert snapshot.projects[1].milestones[0].placement == Manual(900, 700)
    assert snapshot.settings.people == ("Kiera", "Beau")


def test_map_shaped_snapshot_matches_list_shaped():
    listed, _ = normalize_snapshot(load_snapshot(str(EXAMPLES / "sample-snapshot.yaml")))
    mapped, warnings = normalize_snapshot(load_snapshot(str(EXAMPLES / "map-shaped-snapshot.json")))
    assert "W_MALFORMED_SHAPE" in _codes(warnings)

    a = listed.projects[0]
    b = mapped.projects[0]
    assert [m.id for m in b.milestones] == ["M1", "M2", "M3", "M4"]
    assert b.start_date == a.start_date
    assert assign_levels(b.milestones) == assign_levels(a.milestones)
    assert target_finish_dates(b.start_date, b.milestones) == target_finish_dates(
        a.start_date, a.milestones
    )


def test_sparse_mapping_keys_are_ordered_numerically():
    raw = {"projects": [{"id": "p", "startDate": "2024-01-01", "milestones": {"10": {"id": "B"}, "2": {"id": "A"}}}]}
    snapshot, _ = normalize_snapshot(raw)
    assert [m.id for m in snapshot.projects[0].milestones] == ["A", "B"]


def test_repairs_are_reported():
    snapshot, warnings = normalize_snapshot(load_snapshot(str(EXAMPLES / "invalid-durations.yaml")))
    codes = _codes(warnings)
    assert codes.count("W_INVALID_DURATION") == 2
    assert "W_SELF_REFERENCE" in codes
    assert "W_DANGLING_REFERENCE" in codes
    assert "W_DUPLICATE_DEPENDENCY" in codes
    assert "W_PARTIAL_POSITION" in codes

    a, b = snapshot.projects[0].milestones
    assert a.estimated_duration == 0
    assert a.depends_on == ("GHOST",)
    assert b.estimated_duration == 0
    assert b.depends_on == ("A",)
    assert b.placement == AUTO


def test_missing_lists_become_empty():
    project, warnings = normalize_project({"id": "p", "name": "p", "startDate": "2024-01-01", "milestones": [{"id": "A", "name": "a"}]})
    assert warnings == []
    assert project.milestones[0].depends_on == ()
    assert project.milestones[0].subtasks == ()


def test_duplicate_and_missing_ids_are_repaired():
    raw = {"id": "p", "startDate": "2024-01-01", "milestones": [{"id": "A"}, {"id": "A"}, {"name": "no id"}]}
    project, warnings = normalize_project(raw)
    assert [m.id for m in project.milestones] == ["A", "A-A", "m3"]
    assert "W_DUPLICATE_ID" in _codes(warnings)
    assert "W_MISSING_ID" in _codes(warnings)


def test_clamp_duration():
    warnings = []
    assert clamp_duration(None, "d", warnings) == 0
    assert clamp_duration(4, "d", warnings) == 4
    assert clamp_duration("6", "d", warnings) == 6
    assert warnings == []
    assert clamp_duration(-1, "d", warnings) == 0
    assert clamp_duration(True, "d", warnings) == 0
    assert clamp_duration(float("nan"), "d", warnings) == 0
    assert clamp_duration(2.7, "d", warnings) == 2
    assert len(warnings) == 4


def test_clamp_duration_caps_huge_values():
    warnings = []
    assert clamp_duration(4_000_000, "d", warnings) == MAX_DURATION_DAYS
    assert clamp_duration("1e12", "d", warnings) == MAX_DURATION_DAYS
    assert clamp_duration(MAX_DURATION_DAYS, "d", warnings) == MAX_DURATION_DAYS
    assert [w.code for w in warnings] == ["W_INVALID_DURATION", "W_INVALID_DURATION"]


def test_parse_start_date_variants():
    warnings = []
    assert parse_start_date(1704067200000, "s", warnings) == date(2024, 1, 1)
    assert parse_start_date("1704067200000", "s", warnings) == date(2024, 1, 1)
    assert parse_start_date("2024-02-29T10:00:00Z", "s", warnings) == date(2024, 2, 29)
    assert parse_start_date(date(2023, 5, 1), "s", warnings) == date(2023, 5, 1)
    assert warnings == []
    assert parse_start_date("not a date", "s", warnings) == date.today()
    assert parse_start_date(10**20, "s", warnings) == date.today()
    assert [w.code for w in warnings] == ["W_INVALID_START_DATE", "W_INVALID_START_DATE"]


def test_non_mapping_snapshot_is_empty():
    snapshot, warnings = normalize_snapshot(["not", "a", "snapshot"])
    assert snapshot.projects == ()
    assert _codes(warnings) == ["W_MALFORMED_SHAPE"]


def test_invalid_date_format_falls_back():
    snapshot, warnings = normalize_snapshot({"projects": [], "settings": {"dateFormat": "YYYY"}})
    assert snapshot.settings.date_format == "DD/MM/YY"
    assert _codes(warnings) == ["W_INVALID_DATE_FORMAT"]
